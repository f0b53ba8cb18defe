"""
Tests for the room directory.

Tests:
- Room creation, codes and joining
- Bot games and added bots
- Removal and stale-room cleanup
"""

import logging
import random
import re

import pytest

from ..engine_core.state import GameMode, GameStatus
from ..session import RoomDirectory


class SequenceRandom(random.Random):
    """Random whose randint replays a fixed sequence."""

    def __init__(self, values):
        super().__init__(0)
        self._values = iter(values)

    def randint(self, a, b):
        return next(self._values)


@pytest.fixture
def rooms(scheduler) -> RoomDirectory:
    return RoomDirectory(scheduler=scheduler, rng=random.Random(99))


class TestCreateAndJoin:
    """Tests for creating and joining rooms."""

    def test_create_room_seats_host(self, rooms):
        room_id, engine = rooms.create_room("alice", 17, avatar_id=5)

        assert re.fullmatch(r"\d{4}", room_id)
        assert rooms.get_room(room_id) is engine
        assert engine.status == GameStatus.LOBBY
        host = engine.state.players[0]
        assert (host.id, host.name, host.avatar_id) == ("17", "alice", 5)

    def test_forced_room_id(self, rooms):
        room_id, engine = rooms.create_room("alice", 1, forced_room_id="lobby-7", mode=GameMode.CHAOS)

        assert room_id == "lobby-7"
        assert engine.state.rules.jump_in

        with pytest.raises(ValueError):
            rooms.create_room("bob", 2, forced_room_id="lobby-7")

    def test_code_collision_regenerates(self, scheduler, caplog):
        rooms = RoomDirectory(scheduler=scheduler, rng=SequenceRandom([1111, 1111, 2222]))

        first, _ = rooms.create_room("alice", 1)
        with caplog.at_level(logging.WARNING):
            second, _ = rooms.create_room("bob", 2)

        assert (first, second) == ("1111", "2222")
        assert "collided" in caplog.text

    def test_join_room(self, rooms):
        room_id, engine = rooms.create_room("alice", 1)

        joined = rooms.join_room(room_id, "bob", 2, avatar_id=3)

        assert joined is engine
        assert [p.id for p in engine.state.players] == ["1", "2"]

    def test_join_missing_room(self, rooms):
        assert rooms.join_room("0000", "bob", 2) is None
        assert rooms.get_room("0000") is None

    def test_join_full_room_keeps_four(self, rooms):
        room_id, engine = rooms.create_room("p0", 0)
        for i in range(1, 5):
            rooms.join_room(room_id, f"p{i}", i)

        assert engine.state.num_players == 4

    def test_rooms_are_independent(self, rooms):
        first, a = rooms.create_room("alice", 1)
        second, b = rooms.create_room("bob", 2)
        rooms.join_room(first, "carol", 3)

        assert a is not b
        assert a.state.num_players == 2
        assert b.state.num_players == 1


class TestBots:
    """Tests for bot games and added bots."""

    def test_create_bot_game(self, rooms):
        room_id, engine = rooms.create_bot_game("alice", 1, avatar_id=2, mode=GameMode.CHAOS)

        s = engine.get_state()
        assert room_id.startswith("bot_match_1_")
        assert s.status == GameStatus.PLAYING
        assert [p.name for p in s.players] == ["alice", "Bot Alpha", "Bot Beta", "Bot Gamma"]
        assert all(1 <= p.avatar_id <= 12 for p in s.players if p.is_bot)
        assert s.current_player.id == "1"

    def test_bot_game_is_private(self, rooms):
        rooms.create_room("bob", 2)
        room_id, _ = rooms.create_bot_game("alice", 1)

        assert room_id not in [r.room_id for r in rooms.list_rooms()]
        assert room_id in [r.room_id for r in rooms.list_rooms(include_private=True)]

    def test_bot_count(self, rooms):
        _, engine = rooms.create_bot_game("alice", 1, bot_count=1)

        assert engine.state.num_players == 2

    def test_add_bot(self, rooms):
        room_id, engine = rooms.create_room("alice", 1)

        result = rooms.add_bot(room_id)

        assert result.success
        assert re.fullmatch(r"Bot \d{4}", result.player.name)
        assert result.player.is_bot
        assert engine.state.num_players == 2

    def test_add_bot_missing_room(self, rooms):
        assert rooms.add_bot("0000") is None


class TestReclamation:
    """Tests for removing rooms."""

    def test_remove_room_closes_engine(self, rooms, scheduler):
        room_id, _ = rooms.create_bot_game("alice", 1)
        assert scheduler.pending > 0

        assert rooms.remove_room(room_id)

        assert scheduler.pending == 0
        assert rooms.get_room(room_id) is None
        assert not rooms.remove_room(room_id)

    def test_cleanup_idle_lobby(self, rooms, scheduler):
        room_id, _ = rooms.create_room("alice", 1)

        scheduler.advance(100)
        assert rooms.cleanup_stale_rooms(max_age_seconds=3600) == []

        scheduler.advance(3600)
        assert rooms.cleanup_stale_rooms(max_age_seconds=3600) == [room_id]
        assert len(rooms) == 0

    def test_activity_keeps_lobby(self, rooms, scheduler):
        room_id, _ = rooms.create_room("alice", 1)

        scheduler.advance(3000)
        rooms.join_room(room_id, "bob", 2)
        scheduler.advance(1000)

        assert rooms.cleanup_stale_rooms(max_age_seconds=3600) == []

    def test_cleanup_keeps_matches_in_progress(self, rooms, scheduler):
        room_id, engine = rooms.create_room("alice", 1)
        rooms.join_room(room_id, "bob", 2)
        engine.start_game()
        rooms.get_entry(room_id).last_activity = -10_000

        assert rooms.cleanup_stale_rooms(max_age_seconds=3600) == []
        assert room_id in rooms

    def test_cleanup_finished_room(self, rooms):
        room_id, engine = rooms.create_room("alice", 1)
        rooms.join_room(room_id, "bob", 2)
        engine.start_game()
        engine.state.status = GameStatus.GAME_OVER
        rooms.get_entry(room_id).last_activity = -10_000

        assert rooms.cleanup_stale_rooms(max_age_seconds=3600) == [room_id]
