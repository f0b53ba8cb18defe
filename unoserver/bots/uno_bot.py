"""
Heuristic UNO bot.

Priorities, in order:
1. Under a stack war, answer with a matching penalty card or take the draw
2. Play disruptive specials (+2, skip, reverse, 7, 0) first
3. Then a same-color card, then a same-value card
4. Wilds last, calling the color the bot holds most of

The bot does NOT:
- Track cards seen or count what opponents may hold
- Hold back specials for later
- Consider jump-ins (it only moves on its own turn)
"""

from __future__ import annotations
from collections import Counter
from typing import Protocol, Sequence, TYPE_CHECKING

from .policy import BotPolicy, BotDecision, BotAction
from ..engine_core.cards import (
    Card,
    CardColor,
    CardValue,
    PLAYABLE_COLORS,
    answers_attack,
    is_playable,
)

if TYPE_CHECKING:
    from ..engine_core.state import MatchSnapshot


DISRUPTIVE_VALUES = frozenset({
    CardValue.DRAW_TWO,
    CardValue.SKIP,
    CardValue.REVERSE,
    CardValue.SEVEN,
    CardValue.ZERO,
})


class Seat(Protocol):
    """What the bot needs to know about the other players."""
    id: str

    @property
    def hand_size(self) -> int: ...


def calculate_bot_move(
    hand: Sequence[Card],
    top_card: Card | None,
    active_color: CardColor,
    players: Sequence[Seat],
    player_id: str,
    pending_draw_value: int = 0,
    seven_zero: bool = False,
) -> BotDecision:
    """Pure decision function: (hand, table) -> move."""
    if pending_draw_value > 0:
        defense = next((c for c in hand if answers_attack(c, top_card)), None)
        if defense is None:
            return BotDecision.draw(f"No answer to +{pending_draw_value}, taking it")
        return BotDecision(
            action=BotAction.PLAY,
            card_id=defense.id,
            chosen_color=CardColor.RED if defense.is_wild else None,
            explanation=f"Stacking {defense}",
        )

    playable = [c for c in hand if is_playable(c, top_card, active_color)]
    if not playable:
        return BotDecision.draw("Nothing playable")

    best = (
        next((c for c in playable if c.value in DISRUPTIVE_VALUES), None)
        or next((c for c in playable if not c.is_wild and c.color == active_color), None)
        or next(
            (c for c in playable
             if not c.is_wild and top_card is not None and c.value == top_card.value),
            None,
        )
        or playable[0]
    )

    chosen_color = choose_wild_color(hand) if best.is_wild else None

    target_player_id = None
    if best.value == CardValue.SEVEN and seven_zero:
        target_player_id = choose_swap_target(players, player_id)

    return BotDecision(
        action=BotAction.PLAY,
        card_id=best.id,
        chosen_color=chosen_color,
        target_player_id=target_player_id,
        explanation=f"Playing {best}",
    )


def choose_wild_color(hand: Sequence[Card]) -> CardColor:
    """Most common non-wild color in hand; ties go to the earlier color."""
    counts = Counter(c.color for c in hand if not c.is_wild)
    return max(PLAYABLE_COLORS, key=lambda color: (counts[color], -PLAYABLE_COLORS.index(color)))


def choose_swap_target(players: Sequence[Seat], player_id: str) -> str | None:
    """Opponent with the fewest cards; ties go to the earlier seat."""
    best: Seat | None = None
    for p in players:
        if p.id == player_id:
            continue
        if best is None or p.hand_size < best.hand_size:
            best = p
    return best.id if best else None


class HeuristicUnoBot(BotPolicy):
    """
    Default automa for every bot seat.

    Usage:
        bot = HeuristicUnoBot()
        decision = bot.select_move(engine.get_state(), "bot_1a2b")
    """

    def select_move(self, snapshot: MatchSnapshot, player_id: str) -> BotDecision:
        me = snapshot.get_player(player_id)
        if me is None:
            return BotDecision.draw("Not seated")

        return calculate_bot_move(
            hand=me.hand,
            top_card=snapshot.top_card,
            active_color=snapshot.active_color,
            players=snapshot.players,
            player_id=player_id,
            pending_draw_value=snapshot.pending_draw_value,
            seven_zero=snapshot.rules.seven_zero,
        )
