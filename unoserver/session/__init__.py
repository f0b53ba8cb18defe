"""
Session Module - The room directory.

A room holds one match:
- Created by a host (or as a private bot game)
- Joined by code while in the lobby
- Reclaimed once finished or abandoned

Rooms are in-memory only.
"""

from .manager import RoomDirectory, Room

__all__ = [
    "RoomDirectory",
    "Room",
]
