"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the exact contract between game clients and the server.
REST responses and WebSocket messages carry the same GameStateResponse.

Error Codes:
- ROOM_NOT_FOUND: Room does not exist or has been reclaimed
- ROOM_EXISTS: A forced room id is already in use
- VALIDATION_ERROR: Malformed request or WebSocket message
- INTERNAL_ERROR: Unexpected server failure

Rejected game commands are not errors at this level: they come back as a
CommandResponse with accepted=false and the engine's error_code.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from ..engine_core.cards import CardColor, CardValue
from ..engine_core.state import GameMode, GameStatus


# =============================================================================
# Enums
# =============================================================================

class ErrorCode(str, Enum):
    """Structured error codes."""
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    ROOM_EXISTS = "ROOM_EXISTS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class MessageType(str, Enum):
    """WebSocket message types sent by the server."""
    GAME_STATE = "game_state"
    COMMAND_RESULT = "command_result"
    PONG = "pong"
    ERROR = "error"


# =============================================================================
# Shared Models
# =============================================================================

class CardInfo(BaseModel):
    """A card as clients render it."""
    id: str
    color: CardColor
    value: CardValue
    chosen_color: Optional[CardColor] = None
    rotation: Optional[int] = None

    model_config = {"from_attributes": True}


class RulesInfo(BaseModel):
    """Rule variants in effect for the room."""
    stacking: bool
    jump_in: bool
    seven_zero: bool
    force_play: bool

    model_config = {"from_attributes": True}


class PlayerInfo(BaseModel):
    """A seat. hand is empty for anyone but the viewer."""
    id: str
    name: str
    is_bot: bool
    avatar_id: int
    has_said_uno: bool
    hand_size: int
    hand: list[CardInfo] = Field(default_factory=list)
    is_current_turn: bool = False


class GameStateResponse(BaseModel):
    """Full table state, pushed on every change."""
    room_id: str
    mode: GameMode
    rules: RulesInfo
    status: GameStatus

    players: list[PlayerInfo]
    deck_count: int
    discard_pile: list[CardInfo]
    top_card: Optional[CardInfo] = None
    active_color: CardColor

    turn_index: int
    direction: int = Field(description="1 clockwise, -1 counter-clockwise")
    winner_id: Optional[str] = None
    message: str
    has_drawn_this_turn: bool
    turn_start_time: float
    pending_draw_value: int = Field(0, description="Cards owed by the current stack war")

    api_version: str = "v1"


# =============================================================================
# Request Models
# =============================================================================

class CreateRoomRequest(BaseModel):
    """Create a room and seat its host."""
    host_name: str = Field(..., min_length=1, max_length=32)
    host_id: str = Field(..., min_length=1)
    room_id: Optional[str] = Field(None, description="Force a room code instead of generating one")
    avatar_id: Optional[int] = Field(None, ge=1)
    mode: GameMode = GameMode.STANDARD


class CreateBotGameRequest(BaseModel):
    """Start a private game against bots."""
    host_name: str = Field(..., min_length=1, max_length=32)
    host_id: str = Field(..., min_length=1)
    avatar_id: Optional[int] = Field(None, ge=1)
    mode: GameMode = GameMode.STANDARD
    bot_count: int = Field(3, ge=1, le=3)


class JoinRoomRequest(BaseModel):
    """Take a seat in a lobby."""
    name: str = Field(..., min_length=1, max_length=32)
    player_id: str = Field(..., min_length=1)
    avatar_id: Optional[int] = Field(None, ge=1)


class PlayerActionRequest(BaseModel):
    """Draw, pass or declare UNO."""
    player_id: str


class PlayCardRequest(BaseModel):
    """Play a card; chosen_color for wilds, target_player_id for a 7 swap."""
    player_id: str
    card_id: str
    chosen_color: Optional[CardColor] = None
    target_player_id: Optional[str] = None


class ClientMessage(BaseModel):
    """
    A command received over the WebSocket.

    type is one of join_room, start_game, draw_card, play_card, pass_turn,
    declare_uno, add_bot, or ping.
    """
    type: str
    player_id: Optional[str] = None
    card_id: Optional[str] = None
    chosen_color: Optional[CardColor] = None
    target_player_id: Optional[str] = None
    name: Optional[str] = None
    avatar_id: Optional[int] = None

    model_config = {"extra": "ignore"}


# =============================================================================
# Response Models
# =============================================================================

class RoomResponse(BaseModel):
    """Response after creating a room or a bot game."""
    room_id: str
    mode: GameMode
    player_id: str = Field(description="Seat id of the host")
    state: GameStateResponse


class RoomSummary(BaseModel):
    """One line of the room list."""
    room_id: str
    mode: GameMode
    status: GameStatus
    player_count: int
    max_players: int
    created_at: float


class RoomListResponse(BaseModel):
    """Response listing public rooms."""
    rooms: list[RoomSummary]
    count: int


class CommandResponse(BaseModel):
    """
    Outcome of a game command.

    A rejected command changed nothing; error_code says why.
    """
    accepted: bool
    error: Optional[str] = None
    error_code: Optional[str] = None
    player_id: Optional[str] = Field(None, description="Seat created by a join or add_bot")
    state: Optional[GameStateResponse] = None


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    error_code: ErrorCode
    details: Optional[dict] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str
    rooms: int = 0
