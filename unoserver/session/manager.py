"""
Room Directory - Creates, finds and reclaims match rooms.

LIFECYCLE:
1. A host creates a room (4-digit code, or a forced id) and is seated
2. Other players join by code while the room is in the lobby
3. The engine runs the match; the directory only tracks activity
4. Finished or abandoned rooms are closed and dropped by
   cleanup_stale_rooms, which the server runs periodically

PERSISTENCE RULES:
- Rooms are in-memory only
- Only settlement (ratings, currency) touches the user store
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import random
import threading
import uuid

from ..engine_core.action import Command
from ..engine_core.engine import MatchEngine
from ..engine_core.scheduler import AsyncioScheduler, Scheduler
from ..engine_core.settlement import UserStore
from ..engine_core.state import GameMode, GameStatus, MatchSettings
from ..bots.policy import BotPolicy

logger = logging.getLogger(__name__)

BOT_NAMES = ("Bot Alpha", "Bot Beta", "Bot Gamma")


@dataclass
class Room:
    """A directory entry: the engine plus bookkeeping for reclamation."""
    room_id: str
    engine: MatchEngine
    created_at: float
    last_activity: float
    is_private: bool = False

    @property
    def status(self) -> GameStatus:
        return self.engine.status

    def is_active(self) -> bool:
        return self.status == GameStatus.PLAYING


class RoomDirectory:
    """
    Maps room codes to engines.

    Usage:
        rooms = RoomDirectory(user_store=store)
        room_id, engine = rooms.create_room("alice", 17)
        rooms.join_room(room_id, "bob", 42)
        engine.start_game()
    """

    def __init__(
        self,
        scheduler: Scheduler | None = None,
        user_store: UserStore | None = None,
        settings: MatchSettings | None = None,
        bot_policy: BotPolicy | None = None,
        rng: random.Random | None = None,
    ):
        self.scheduler = scheduler or AsyncioScheduler()
        self.user_store = user_store
        self.settings = settings or MatchSettings()
        self.bot_policy = bot_policy
        self.rng = rng or random.Random()
        self._rooms: dict[str, Room] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def create_room(
        self,
        host_name: str,
        host_id: str | int,
        forced_room_id: str | None = None,
        avatar_id: int | None = None,
        mode: GameMode = GameMode.STANDARD,
        is_private: bool = False,
    ) -> tuple[str, MatchEngine]:
        """
        Create a room and seat its host.

        Raises:
            ValueError: forced_room_id is already in use
        """
        with self._lock:
            if forced_room_id is not None:
                if forced_room_id in self._rooms:
                    raise ValueError(f"Room {forced_room_id} already exists")
                room_id = forced_room_id
            else:
                room_id = self._generate_room_code()

            engine = self._new_engine(room_id, mode)
            now = self.scheduler.now()
            room = Room(
                room_id=room_id,
                engine=engine,
                created_at=now,
                last_activity=now,
                is_private=is_private,
            )
            self._rooms[room_id] = room

        engine.subscribe(lambda snapshot: self._touch(room))
        engine.add_player(host_name, False, host_id, avatar_id)
        logger.info("Room %s created by %s (%s)", room_id, host_name, mode.value)
        return room_id, engine

    def join_room(
        self,
        room_id: str,
        name: str,
        player_id: str | int,
        avatar_id: int | None = None,
    ) -> MatchEngine | None:
        """
        Seat a player in an existing room.

        Returns None only when the room does not exist; a seat refused by
        the engine (full, started, name taken) is logged and the engine is
        still returned.
        """
        engine = self.get_room(room_id)
        if engine is None:
            return None

        result = engine.apply(Command.join(name, str(player_id), avatar_id))
        if not result:
            logger.warning("Join %s refused for %s: %s", room_id, name, result.error)
        return engine

    def get_room(self, room_id: str) -> MatchEngine | None:
        """Get a room's engine by code."""
        room = self._rooms.get(room_id)
        return room.engine if room else None

    def get_entry(self, room_id: str) -> Room | None:
        return self._rooms.get(room_id)

    def create_bot_game(
        self,
        host_name: str,
        host_id: str | int,
        avatar_id: int | None = None,
        mode: GameMode = GameMode.STANDARD,
        bot_count: int = 3,
    ) -> tuple[str, MatchEngine]:
        """Private room, the host plus bots, started immediately."""
        bot_count = max(1, min(bot_count, self.settings.max_players - 1))
        room_id = f"bot_match_{host_id}_{uuid.uuid4().hex[:8]}"
        room_id, engine = self.create_room(
            host_name, host_id, room_id, avatar_id, mode, is_private=True,
        )

        for name in BOT_NAMES[:bot_count]:
            engine.add_player(name, True, None, self.rng.randint(1, 12))

        engine.start_game()
        return room_id, engine

    def add_bot(self, room_id: str):
        """Add a bot named "Bot NNNN" with a random avatar. None if no such room."""
        engine = self.get_room(room_id)
        if engine is None:
            return None
        name = f"Bot {self.rng.randrange(10000):04d}"
        return engine.apply(Command.add_bot(name, self.rng.randint(1, 12)))

    def list_rooms(self, include_private: bool = False) -> list[Room]:
        """Rooms in creation order."""
        with self._lock:
            rooms = list(self._rooms.values())
        return [r for r in rooms if include_private or not r.is_private]

    def remove_room(self, room_id: str) -> bool:
        """Close a room's engine and drop it."""
        with self._lock:
            room = self._rooms.pop(room_id, None)
        if room is None:
            return False
        room.engine.close()
        logger.info("Room %s removed (%s)", room_id, room.status.value)
        return True

    def cleanup_stale_rooms(self, max_age_seconds: float = 3600) -> list[str]:
        """
        Drop rooms nobody is using.

        A room is stale when it is finished or still in the lobby and has
        seen no activity for max_age_seconds. Matches in progress are kept:
        their timers keep them moving.

        Called periodically to free memory. Returns the removed codes.
        """
        current_time = self.scheduler.now()
        with self._lock:
            to_remove = [
                room_id for room_id, room in self._rooms.items()
                if not room.is_active()
                and current_time - room.last_activity > max_age_seconds
            ]

        for room_id in to_remove:
            self.remove_room(room_id)
        if to_remove:
            logger.info("Cleaned up %d stale rooms", len(to_remove))
        return to_remove

    def _touch(self, room: Room):
        room.last_activity = self.scheduler.now()

    def _new_engine(self, room_id: str, mode: GameMode) -> MatchEngine:
        return MatchEngine(
            room_id,
            mode=mode,
            scheduler=self.scheduler,
            user_store=self.user_store,
            bot_policy=self.bot_policy,
            settings=self.settings,
            rng=random.Random(self.rng.getrandbits(64)),
        )

    def _generate_room_code(self) -> str:
        room_id = str(self.rng.randint(1000, 9999))
        while room_id in self._rooms:
            logger.warning("Room code %s collided, regenerating", room_id)
            room_id = str(self.rng.randint(1000, 9999))
        return room_id
