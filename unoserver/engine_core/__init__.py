"""
Engine Core - Authoritative match state and rules.

The engine is the runtime that:
1. Seats players and deals from a shuffled deck
2. Validates every command against the current state
3. Applies card effects and advances turns
4. Runs bot, UNO and turn timers through a Scheduler
5. Settles ratings and currency when the match ends
"""

from .cards import Card, CardColor, CardValue, build_deck, is_playable
from .deck import Deck
from .state import (
    GameMode,
    GameRules,
    GameStatus,
    MatchSettings,
    MatchSnapshot,
    MatchState,
    Player,
    PlayerView,
)
from .action import Command, CommandType, CommandPayload, CommandResult, ErrorCode
from .scheduler import Scheduler, AsyncioScheduler, ManualScheduler
from .settlement import UserStore, InMemoryUserStore, UserRecord, StatsUpdate, settle_match
from .engine import MatchEngine

__all__ = [
    "Card",
    "CardColor",
    "CardValue",
    "build_deck",
    "is_playable",
    "Deck",
    "GameMode",
    "GameRules",
    "GameStatus",
    "MatchSettings",
    "MatchSnapshot",
    "MatchState",
    "Player",
    "PlayerView",
    "Command",
    "CommandType",
    "CommandPayload",
    "CommandResult",
    "ErrorCode",
    "Scheduler",
    "AsyncioScheduler",
    "ManualScheduler",
    "UserStore",
    "InMemoryUserStore",
    "UserRecord",
    "StatsUpdate",
    "settle_match",
    "MatchEngine",
]
