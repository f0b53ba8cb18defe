"""
Match State - The single source of truth for one room.

Design principles:
- MatchState is mutable and owned by exactly one MatchEngine
- Subscribers only ever see a MatchSnapshot, a frozen projection
- Rules and settings are fixed when the room is created
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field
from enum import Enum
import time

from .cards import Card, CardColor


class GameStatus(str, Enum):
    """High-level match phases."""
    LOBBY = "LOBBY"
    PLAYING = "PLAYING"
    GAME_OVER = "GAME_OVER"


class GameMode(str, Enum):
    """Modes selectable at room creation."""
    STANDARD = "standard"
    CHAOS = "chaos"
    NO_MERCY = "no-mercy"
    UNO_FLIP = "uno-flip"
    ALL_WILD = "all-wild"
    TWO_VS_TWO = "2v2"


@dataclass(frozen=True)
class GameRules:
    """Rule variants, derived once from the mode."""
    stacking: bool = False
    jump_in: bool = False
    seven_zero: bool = False
    force_play: bool = False  # reserved

    @classmethod
    def for_mode(cls, mode: GameMode) -> GameRules:
        chaos = mode == GameMode.CHAOS
        return cls(
            stacking=chaos,
            jump_in=chaos,
            seven_zero=chaos,
            force_play=mode == GameMode.NO_MERCY,
        )


@dataclass(frozen=True)
class MatchSettings:
    """
    Timing, table and economy constants for a match.

    Times are in seconds of whatever clock the scheduler runs on.
    """
    max_players: int = 4
    min_players: int = 2
    hand_size: int = 7

    turn_seconds: float = 30.0
    uno_grace_seconds: float = 2.0
    bot_delay_min: float = 1.5
    bot_delay_max: float = 2.5
    bot_follow_up_delay: float = 0.5
    bot_uno_recall: float = 0.8  # chance a bot remembers to declare

    uno_penalty: int = 2
    timeout_penalty: int = 1

    win_rating_delta: int = 25
    win_reward: int = 50
    loss_rating_delta: int = 10
    loss_reward: int = 15


@dataclass
class Player:
    """A seat at the table."""
    id: str
    name: str
    hand: list[Card] = field(default_factory=list)
    is_bot: bool = False
    avatar_id: int = 1
    has_said_uno: bool = False

    @property
    def hand_size(self) -> int:
        return len(self.hand)

    def find_card(self, card_id: str) -> Card | None:
        for card in self.hand:
            if card.id == card_id:
                return card
        return None

    def remove_card(self, card_id: str) -> Card | None:
        for i, card in enumerate(self.hand):
            if card.id == card_id:
                return self.hand.pop(i)
        return None


@dataclass
class MatchState:
    """
    Complete state of one match.

    Turn order is list order. discard_pile[-1] is the top card.
    """
    room_id: str
    mode: GameMode = GameMode.STANDARD
    rules: GameRules = field(default_factory=GameRules)

    players: list[Player] = field(default_factory=list)
    deck_count: int = 0
    discard_pile: list[Card] = field(default_factory=list)

    turn_index: int = 0
    direction: int = 1
    status: GameStatus = GameStatus.LOBBY
    winner_id: str | None = None

    active_color: CardColor = CardColor.WILD
    message: str = "Waiting for players..."
    has_drawn_this_turn: bool = False
    turn_start_time: float = field(default_factory=time.time)
    pending_draw_value: int = 0

    @property
    def current_player(self) -> Player | None:
        if not self.players:
            return None
        return self.players[self.turn_index]

    @property
    def top_card(self) -> Card | None:
        return self.discard_pile[-1] if self.discard_pile else None

    @property
    def num_players(self) -> int:
        return len(self.players)

    def get_player(self, player_id: str) -> Player | None:
        """Get player by ID."""
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def index_of(self, player_id: str) -> int:
        """Seat index of a player, -1 if absent."""
        for i, p in enumerate(self.players):
            if p.id == player_id:
                return i
        return -1

    def next_index(self, step: int = 1) -> int:
        """Seat reached by moving step seats in the current direction."""
        n = len(self.players)
        return (self.turn_index + step * self.direction) % n

    def cards_in_play(self) -> int:
        """Hands plus discard pile plus draw pile."""
        return sum(p.hand_size for p in self.players) + len(self.discard_pile) + self.deck_count

    def snapshot(self) -> MatchSnapshot:
        """Project an immutable view for subscribers."""
        return MatchSnapshot(
            room_id=self.room_id,
            mode=self.mode,
            rules=self.rules,
            players=tuple(
                PlayerView(
                    id=p.id,
                    name=p.name,
                    hand=tuple(p.hand),
                    is_bot=p.is_bot,
                    avatar_id=p.avatar_id,
                    has_said_uno=p.has_said_uno,
                )
                for p in self.players
            ),
            deck_count=self.deck_count,
            discard_pile=tuple(self.discard_pile),
            turn_index=self.turn_index,
            direction=self.direction,
            status=self.status,
            winner_id=self.winner_id,
            active_color=self.active_color,
            message=self.message,
            has_drawn_this_turn=self.has_drawn_this_turn,
            turn_start_time=self.turn_start_time,
            pending_draw_value=self.pending_draw_value,
        )


@dataclass(frozen=True)
class PlayerView:
    """Read-only player in a snapshot."""
    id: str
    name: str
    hand: tuple[Card, ...]
    is_bot: bool
    avatar_id: int
    has_said_uno: bool

    @property
    def hand_size(self) -> int:
        return len(self.hand)


@dataclass(frozen=True)
class MatchSnapshot:
    """
    Frozen copy of a MatchState at one instant.

    Cards are frozen too, so a snapshot can be handed to any number of
    subscribers without copying.
    """
    room_id: str
    mode: GameMode
    rules: GameRules
    players: tuple[PlayerView, ...]
    deck_count: int
    discard_pile: tuple[Card, ...]
    turn_index: int
    direction: int
    status: GameStatus
    winner_id: str | None
    active_color: CardColor
    message: str
    has_drawn_this_turn: bool
    turn_start_time: float
    pending_draw_value: int

    @property
    def top_card(self) -> Card | None:
        return self.discard_pile[-1] if self.discard_pile else None

    @property
    def current_player(self) -> PlayerView | None:
        if not self.players:
            return None
        return self.players[self.turn_index]

    def get_player(self, player_id: str) -> PlayerView | None:
        for p in self.players:
            if p.id == player_id:
                return p
        return None

    def to_dict(self) -> dict:
        """
        Plain JSON-ready dict of the snapshot, enums as their values.

        Every hand is included; filter before sending to a client.
        """
        data = asdict(self, dict_factory=lambda items: {k: _plain(v) for k, v in items})
        data["top_card"] = data["discard_pile"][-1] if data["discard_pile"] else None
        return data


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    return value
