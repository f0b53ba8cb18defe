"""
Pytest fixtures for unoserver tests.
"""

import itertools
import random

import pytest

from ..engine_core.cards import Card, CardColor, CardValue
from ..engine_core.engine import MatchEngine
from ..engine_core.scheduler import ManualScheduler
from ..engine_core.settlement import InMemoryUserStore
from ..engine_core.state import GameMode


def rig_table(engine, hands, top, deck=None, active_color=None, turn_index=0):
    """
    Replace the dealt table with known cards.

    hands are given in seat order. deck, when given, replaces the draw
    pile; its last card is drawn first.
    """
    s = engine.state
    for player, hand in zip(s.players, hands):
        player.hand = list(hand)
    s.discard_pile = [top]
    s.active_color = active_color or top.color
    if deck is not None:
        engine.deck.cards = list(deck)
    s.deck_count = len(engine.deck)
    s.turn_index = turn_index
    s.pending_draw_value = 0


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Virtual clock at t=0."""
    return ManualScheduler()


@pytest.fixture
def card():
    """Factory for cards with unique ids."""
    counter = itertools.count()

    def _card(color: CardColor, value: CardValue) -> Card:
        return Card(id=f"t{next(counter)}", color=color, value=value)

    return _card


@pytest.fixture
def filler(card):
    """Factory for draw-pile padding that never matches a RED 1."""
    def _filler(n: int = 10) -> list[Card]:
        return [card(CardColor.YELLOW, CardValue.EIGHT) for _ in range(n)]

    return _filler


@pytest.fixture
def user_store() -> InMemoryUserStore:
    """Store with records for alice ("a") and bob ("b")."""
    store = InMemoryUserStore()
    store.add_user("a", "alice", rating=1000, coins=100)
    store.add_user("b", "bob", rating=5, coins=0)
    return store


@pytest.fixture
def make_engine(scheduler):
    """Factory for engines on the virtual clock with a seeded rng."""
    def _make(mode: GameMode = GameMode.STANDARD, **kwargs) -> MatchEngine:
        kwargs.setdefault("rng", random.Random(1234))
        return MatchEngine("1234", mode=mode, scheduler=scheduler, **kwargs)

    return _make


@pytest.fixture
def make_game(make_engine):
    """
    Factory for a started game of human players.

    Player ids are the first letter of each name.
    """
    def _make(names=("alice", "bob"), mode: GameMode = GameMode.STANDARD, **kwargs) -> MatchEngine:
        engine = make_engine(mode, **kwargs)
        for name in names:
            engine.add_player(name, external_id=name[0])
        engine.start_game()
        return engine

    return _make


@pytest.fixture
def broadcasts():
    """A subscriber that records every snapshot."""
    class Recorder(list):
        def __call__(self, snapshot):
            self.append(snapshot)

    return Recorder()
