"""
Bot Policy - Interface for bot decision-making.

A BotPolicy looks at a snapshot of the table from one seat and returns a
decision: play a specific card (with a color and/or swap target when the
card needs one), or draw.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..engine_core.cards import CardColor

if TYPE_CHECKING:
    from ..engine_core.state import MatchSnapshot


class BotAction(str, Enum):
    PLAY = "PLAY"
    DRAW = "DRAW"


@dataclass(frozen=True)
class BotDecision:
    """
    A decision made by a bot.

    card_id is set for PLAY only. chosen_color is set for wilds,
    target_player_id for a SEVEN under the seven-zero rule.
    """
    action: BotAction
    card_id: str | None = None
    chosen_color: CardColor | None = None
    target_player_id: str | None = None
    explanation: str = ""

    @classmethod
    def draw(cls, explanation: str = "") -> BotDecision:
        return cls(action=BotAction.DRAW, explanation=explanation)

    @property
    def is_play(self) -> bool:
        return self.action == BotAction.PLAY and self.card_id is not None


class BotPolicy(ABC):
    """
    Abstract base class for bot policies.

    Policies must be pure: no side effects, no state carried between
    calls. The engine may ask again at any time with a newer snapshot.
    """

    @abstractmethod
    def select_move(self, snapshot: MatchSnapshot, player_id: str) -> BotDecision:
        """
        Decide the next move for player_id.

        Args:
            snapshot: Current table state
            player_id: The seat the bot plays

        Returns:
            BotDecision to PLAY a card or DRAW
        """
        pass

    def get_name(self) -> str:
        """Get the bot's name/identifier."""
        return self.__class__.__name__
