"""
Cards - Card model, the canonical deck list, and matching rules.

A card is a frozen value. The only per-play information (the color chosen
for a wild, the cosmetic rotation) is stamped onto a copy when the card
lands on the discard pile.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from enum import Enum


class CardColor(str, Enum):
    """Card colors. WILD is the printed color of wild cards only."""
    RED = "RED"
    BLUE = "BLUE"
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    WILD = "WILD"


# Fixed enumeration order, used for tie-breaking
PLAYABLE_COLORS: tuple[CardColor, ...] = (
    CardColor.RED,
    CardColor.BLUE,
    CardColor.GREEN,
    CardColor.YELLOW,
)


class CardValue(str, Enum):
    """Card faces."""
    ZERO = "0"
    ONE = "1"
    TWO = "2"
    THREE = "3"
    FOUR = "4"
    FIVE = "5"
    SIX = "6"
    SEVEN = "7"
    EIGHT = "8"
    NINE = "9"
    SKIP = "SKIP"
    REVERSE = "REVERSE"
    DRAW_TWO = "+2"
    WILD = "WILD"
    WILD_DRAW_FOUR = "+4"


NUMBER_VALUES: tuple[CardValue, ...] = (
    CardValue.ONE, CardValue.TWO, CardValue.THREE, CardValue.FOUR,
    CardValue.FIVE, CardValue.SIX, CardValue.SEVEN, CardValue.EIGHT,
    CardValue.NINE,
)

ACTION_VALUES: tuple[CardValue, ...] = (
    CardValue.SKIP,
    CardValue.REVERSE,
    CardValue.DRAW_TWO,
)

# Cards that start or answer a stack war, and how many cards they add
PENALTY_VALUES: dict[CardValue, int] = {
    CardValue.DRAW_TWO: 2,
    CardValue.WILD_DRAW_FOUR: 4,
}

DECK_SIZE = 108


@dataclass(frozen=True)
class Card:
    """
    A physical card.

    Identity is the card id; two cards with the same face are still
    different cards.
    """
    id: str
    color: CardColor
    value: CardValue
    chosen_color: CardColor | None = None
    rotation: int | None = None

    @property
    def is_wild(self) -> bool:
        return self.color == CardColor.WILD

    @property
    def penalty(self) -> int:
        """Cards added to a stack war by this card (0 if it is not a penalty card)."""
        return PENALTY_VALUES.get(self.value, 0)

    def stamped(self, rotation: int, chosen_color: CardColor | None = None) -> Card:
        """Return the copy that goes onto the discard pile."""
        return replace(self, rotation=rotation, chosen_color=chosen_color)

    def __str__(self) -> str:
        if self.is_wild:
            return self.value.value
        return f"{self.color.value} {self.value.value}"


def build_deck() -> list[Card]:
    """
    Build the canonical, unshuffled 108-card set.

    Per color: one 0, two each of 1-9, two SKIP, two REVERSE, two DRAW_TWO.
    Plus four WILD and four WILD_DRAW_FOUR.
    """
    cards: list[Card] = []

    def add(color: CardColor, value: CardValue):
        cards.append(Card(id=f"card_{len(cards)}", color=color, value=value))

    for color in PLAYABLE_COLORS:
        add(color, CardValue.ZERO)
        for value in NUMBER_VALUES + ACTION_VALUES:
            add(color, value)
            add(color, value)

    for _ in range(4):
        add(CardColor.WILD, CardValue.WILD)
        add(CardColor.WILD, CardValue.WILD_DRAW_FOUR)

    return cards


def is_playable(card: Card, top_card: Card | None, active_color: CardColor) -> bool:
    """Normal-turn legality: wild, active color, or same value as the top card."""
    if card.is_wild or card.color == active_color:
        return True
    return top_card is not None and card.value == top_card.value


def answers_attack(card: Card, top_card: Card | None) -> bool:
    """Whether card may be stacked on top_card during a stack war."""
    if top_card is None or not top_card.penalty:
        return False
    return card.value == top_card.value


def is_exact_match(card: Card, top_card: Card | None) -> bool:
    """Same printed color and value (jump-in requirement)."""
    return (
        top_card is not None
        and card.color == top_card.color
        and card.value == top_card.value
    )
