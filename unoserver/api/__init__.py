"""
API Module - Client interface.

Exposes rooms over REST and WebSocket. A client:
1. Creates a room or a bot game (or joins one by code)
2. Opens the room WebSocket to receive every state change
3. Sends commands (draw, play, pass, UNO) over REST or the socket

Rooms are in-memory. Only settlement touches the user store.
"""

from .schemas import (
    # Requests
    CreateRoomRequest,
    CreateBotGameRequest,
    JoinRoomRequest,
    PlayerActionRequest,
    PlayCardRequest,
    ClientMessage,
    # Responses
    CommandResponse,
    GameStateResponse,
    RoomResponse,
    RoomListResponse,
    ErrorResponse,
    HealthResponse,
    # Shared
    CardInfo,
    PlayerInfo,
    ErrorCode,
)
from .service import APIService, state_to_response
from .app import create_app, ConnectionManager

__all__ = [
    # Requests
    "CreateRoomRequest",
    "CreateBotGameRequest",
    "JoinRoomRequest",
    "PlayerActionRequest",
    "PlayCardRequest",
    "ClientMessage",
    # Responses
    "CommandResponse",
    "GameStateResponse",
    "RoomResponse",
    "RoomListResponse",
    "ErrorResponse",
    "HealthResponse",
    # Shared
    "CardInfo",
    "PlayerInfo",
    "ErrorCode",
    # Service
    "APIService",
    "state_to_response",
    "create_app",
    "ConnectionManager",
]
