"""
Bots module - Automa AI implementations.

Provides:
- BotPolicy: Interface for bot decision-making
- HeuristicUnoBot: The default UNO bot
- calculate_bot_move: The bot's pure decision function
"""

from .policy import BotPolicy, BotDecision, BotAction
from .uno_bot import HeuristicUnoBot, calculate_bot_move

__all__ = [
    "BotPolicy",
    "BotDecision",
    "BotAction",
    "HeuristicUnoBot",
    "calculate_bot_move",
]
