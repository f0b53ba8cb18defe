"""
Settlement - Rating and currency updates when a match ends.

The user store is an external collaborator. The engine only needs two
calls from it, and tolerates any of them failing: the result players
already saw stands, the failure is logged, nothing is retried.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Iterable
import logging
import threading

from .state import MatchSettings, Player

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRecord:
    """A persistent player record."""
    id: str
    username: str
    rating: int = 1000
    wins: int = 0
    losses: int = 0
    coins: int = 0
    avatar_id: int = 1


@dataclass(frozen=True)
class StatsUpdate:
    """
    What to write back for one player.

    rating is the new absolute rating; won selects wins or losses.
    """
    rating: int
    won: bool
    currency_delta: int


class UserStore(ABC):
    """Persistence interface consumed at match end."""

    @abstractmethod
    def get_user_by_id(self, user_id: str) -> UserRecord | None:
        pass

    @abstractmethod
    def update_user_stats(self, user_id: str, update: StatsUpdate):
        pass


@dataclass
class InMemoryUserStore(UserStore):
    """Process-local store, for development servers and tests."""
    users: dict[str, UserRecord] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add_user(self, user_id: str, username: str, **kwargs) -> UserRecord:
        record = UserRecord(id=str(user_id), username=username, **kwargs)
        with self._lock:
            self.users[record.id] = record
        return record

    def get_user_by_id(self, user_id: str) -> UserRecord | None:
        with self._lock:
            return self.users.get(str(user_id))

    def update_user_stats(self, user_id: str, update: StatsUpdate):
        with self._lock:
            record = self.users.get(str(user_id))
            if record is None:
                raise KeyError(f"User {user_id} not found")
            self.users[record.id] = replace(
                record,
                rating=update.rating,
                wins=record.wins + (1 if update.won else 0),
                losses=record.losses + (0 if update.won else 1),
                coins=record.coins + update.currency_delta,
            )


def compute_update(record: UserRecord, won: bool, settings: MatchSettings) -> StatsUpdate:
    """Winner: +rating, +reward. Loser: -rating (floored at 0), smaller reward."""
    if won:
        return StatsUpdate(
            rating=record.rating + settings.win_rating_delta,
            won=True,
            currency_delta=settings.win_reward,
        )
    return StatsUpdate(
        rating=max(0, record.rating - settings.loss_rating_delta),
        won=False,
        currency_delta=settings.loss_reward,
    )


def settle_match(
    store: UserStore,
    players: Iterable[Player],
    winner_id: str,
    settings: MatchSettings,
) -> dict[str, StatsUpdate]:
    """
    Apply end-of-match updates for every human participant.

    Bots and players without a user record are skipped. Returns the
    updates that were written successfully.
    """
    applied: dict[str, StatsUpdate] = {}
    for player in players:
        if player.is_bot:
            continue
        won = player.id == winner_id
        try:
            record = store.get_user_by_id(player.id)
            if record is None:
                logger.debug("No user record for %s, skipping settlement", player.name)
                continue
            update = compute_update(record, won, settings)
            store.update_user_stats(record.id, update)
        except Exception:
            logger.exception(
                "Failed to update %s stats for %s",
                "winner" if won else "loser",
                player.name,
            )
            continue

        logger.info(
            "Settled %s: rating %d, %+d coins (%s)",
            player.name, update.rating, update.currency_delta, "win" if won else "loss",
        )
        applied[player.id] = update
    return applied
