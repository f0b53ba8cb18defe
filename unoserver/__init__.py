"""
unoserver - Real-time multiplayer UNO server

An authoritative match engine for UNO rooms with bot opponents. Provides:
- Deck handling and card matching rules
- A timed match state machine (stacking, jump-in, 7/0, UNO race)
- Heuristic bots
- A room directory and a FastAPI transport
- Rating and currency settlement at match end
"""

__version__ = "0.1.0"
