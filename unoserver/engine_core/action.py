"""
Command System - Commands, payloads, and results.

Commands represent:
1. Player intents arriving from a transport (join, start, draw, play, ...)
2. Table management (add a bot)

Every state change in a match flows through a command handler.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .cards import CardColor


class CommandType(str, Enum):
    """Transport-level command vocabulary."""
    JOIN_ROOM = "join_room"
    START_GAME = "start_game"
    DRAW_CARD = "draw_card"
    PLAY_CARD = "play_card"
    PASS_TURN = "pass_turn"
    DECLARE_UNO = "declare_uno"
    ADD_BOT = "add_bot"


class ErrorCode(str, Enum):
    """Why a command was rejected."""
    GAME_NOT_PLAYING = "GAME_NOT_PLAYING"
    GAME_ALREADY_STARTED = "GAME_ALREADY_STARTED"
    NOT_ENOUGH_PLAYERS = "NOT_ENOUGH_PLAYERS"
    ROOM_FULL = "ROOM_FULL"
    NAME_TAKEN = "NAME_TAKEN"
    NAME_REQUIRED = "NAME_REQUIRED"
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
    CARD_NOT_FOUND = "CARD_NOT_FOUND"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    ALREADY_SEATED = "ALREADY_SEATED"
    ALREADY_DRAWN = "ALREADY_DRAWN"
    MUST_DRAW_FIRST = "MUST_DRAW_FIRST"
    ILLEGAL_CARD = "ILLEGAL_CARD"


@dataclass
class CommandPayload:
    """
    Parameters of a command.

    Different command types use different fields; the engine validates.
    """
    player_id: str | None = None
    card_id: str | None = None
    chosen_color: CardColor | None = None
    target_player_id: str | None = None

    # join / add bot
    name: str | None = None
    avatar_id: int | None = None
    is_bot: bool = False


@dataclass
class Command:
    """A complete command to be applied to a match."""
    command_type: CommandType
    payload: CommandPayload = field(default_factory=CommandPayload)

    @classmethod
    def join(
        cls,
        name: str,
        player_id: str | None = None,
        avatar_id: int | None = None,
    ) -> Command:
        return cls(
            command_type=CommandType.JOIN_ROOM,
            payload=CommandPayload(player_id=player_id, name=name, avatar_id=avatar_id),
        )

    @classmethod
    def start(cls) -> Command:
        return cls(command_type=CommandType.START_GAME)

    @classmethod
    def draw(cls, player_id: str) -> Command:
        return cls(
            command_type=CommandType.DRAW_CARD,
            payload=CommandPayload(player_id=player_id),
        )

    @classmethod
    def play(
        cls,
        player_id: str,
        card_id: str,
        chosen_color: CardColor | None = None,
        target_player_id: str | None = None,
    ) -> Command:
        return cls(
            command_type=CommandType.PLAY_CARD,
            payload=CommandPayload(
                player_id=player_id,
                card_id=card_id,
                chosen_color=chosen_color,
                target_player_id=target_player_id,
            ),
        )

    @classmethod
    def pass_turn(cls, player_id: str) -> Command:
        return cls(
            command_type=CommandType.PASS_TURN,
            payload=CommandPayload(player_id=player_id),
        )

    @classmethod
    def declare_uno(cls, player_id: str) -> Command:
        return cls(
            command_type=CommandType.DECLARE_UNO,
            payload=CommandPayload(player_id=player_id),
        )

    @classmethod
    def add_bot(cls, name: str | None = None, avatar_id: int | None = None) -> Command:
        return cls(
            command_type=CommandType.ADD_BOT,
            payload=CommandPayload(name=name, avatar_id=avatar_id, is_bot=True),
        )


@dataclass
class CommandResult:
    """
    Outcome of a command.

    A rejected command leaves the match untouched and is not broadcast;
    only the caller learns why.
    """
    success: bool
    error: str | None = None
    error_code: ErrorCode | None = None
    player: Any | None = None  # Player created by a join

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def failure(cls, error: str, error_code: ErrorCode | None = None) -> CommandResult:
        return cls(success=False, error=error, error_code=error_code)

    @classmethod
    def ok(cls, player: Any | None = None) -> CommandResult:
        return cls(success=True, player=player)
