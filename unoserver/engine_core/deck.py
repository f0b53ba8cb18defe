"""
Deck - The shared draw pile.

The top of the pile is the end of the list. The deck never raises when it
runs dry: it refills from the discard pile when it can and otherwise
returns fewer cards than asked for.
"""

from __future__ import annotations
from dataclasses import replace
import logging
import random

from .cards import Card, build_deck

logger = logging.getLogger(__name__)


class Deck:
    """
    Draw pile for one match.

    Usage:
        deck = Deck(rng=random.Random(7))
        deck.generate()
        hand = deck.draw(7, discard_pile)
    """

    def __init__(self, rng: random.Random | None = None, cards: list[Card] | None = None):
        self.rng = rng or random.Random()
        self.cards: list[Card] = list(cards) if cards else []

    def __len__(self) -> int:
        return len(self.cards)

    @property
    def is_empty(self) -> bool:
        return not self.cards

    def generate(self) -> list[Card]:
        """Replace the pile with a freshly shuffled 108-card set."""
        self.cards = self.shuffle(build_deck())
        return list(self.cards)

    def shuffle(self, cards: list[Card]) -> list[Card]:
        """Uniform in-place shuffle (Fisher-Yates)."""
        self.rng.shuffle(cards)
        return cards

    def draw(self, count: int, discard_pile: list[Card] | None = None) -> list[Card]:
        """
        Remove up to count cards from the top.

        When the pile runs out and the discard pile holds more than one card,
        everything under the top discard is shuffled back in. discard_pile is
        modified in place.
        """
        drawn: list[Card] = []
        for _ in range(count):
            if not self.cards and not self.replenish(discard_pile):
                break
            drawn.append(self.cards.pop())
        return drawn

    def replenish(self, discard_pile: list[Card] | None) -> bool:
        """Turn all but the top discard into a new draw pile."""
        if not discard_pile or len(discard_pile) <= 1:
            return False

        top = discard_pile[-1]
        # Cards go back as printed: play-time stamps do not survive a reshuffle
        rest = [replace(c, chosen_color=None, rotation=None) for c in discard_pile[:-1]]
        discard_pile[:] = [top]
        self.cards = self.shuffle(rest) + self.cards

        logger.debug("Reshuffled %d discards into the draw pile", len(rest))
        return True

    def flip_starter(self) -> Card | None:
        """
        Pop a non-wild starting card.

        A wild goes back into the pile, which is reshuffled before retrying.
        """
        if not self.cards or all(c.is_wild for c in self.cards):
            return None

        card = self.cards.pop()
        while card.is_wild:
            self.cards.insert(0, card)
            self.shuffle(self.cards)
            card = self.cards.pop()
        return card
