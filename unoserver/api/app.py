"""
FastAPI Application - REST and WebSocket API for game clients.

Endpoints:
    POST   /api/v1/rooms                    Create a room (caller is host)
    POST   /api/v1/bot-games                Create and start a game against bots
    GET    /api/v1/rooms                    List public rooms
    GET    /api/v1/rooms/{id}/state         Get table state
    POST   /api/v1/rooms/{id}/join          Take a seat
    POST   /api/v1/rooms/{id}/start         Start the match
    POST   /api/v1/rooms/{id}/draw          Draw (or accept a stack)
    POST   /api/v1/rooms/{id}/play          Play a card
    POST   /api/v1/rooms/{id}/pass          Pass after drawing
    POST   /api/v1/rooms/{id}/uno           Declare UNO
    POST   /api/v1/rooms/{id}/bots          Add a bot to the lobby
    WS     /api/v1/rooms/{id}/ws            Real-time state and commands

Every accepted command triggers a game_state push to every WebSocket in
the room. A rejected command only answers its caller.

All responses are JSON with explicit Pydantic schemas.
"""

from contextlib import asynccontextmanager
from typing import Optional, Union
import asyncio
import json
import logging
import os

from ..engine_core.action import Command
from ..engine_core.settlement import InMemoryUserStore
from ..engine_core.state import MatchSettings

logger = logging.getLogger(__name__)

# Environment configuration
UNO_ENV = os.getenv("UNO_ENV", "development")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
UNO_TURN_SECONDS = float(os.getenv("UNO_TURN_SECONDS", "30"))
UNO_GRACE_SECONDS = float(os.getenv("UNO_GRACE_SECONDS", "2"))
UNO_ROOM_RETENTION_SECONDS = float(os.getenv("UNO_ROOM_RETENTION_SECONDS", "3600"))
UNO_CLEANUP_INTERVAL_SECONDS = float(os.getenv("UNO_CLEANUP_INTERVAL_SECONDS", "300"))


class ConnectionManager:
    """
    WebSocket connections per room.

    Each connection subscribes to its room's engine and receives every
    snapshot, rendered from its own seat.
    """

    def __init__(self):
        self.active_connections: dict[str, list] = {}
        self._unsubscribers: dict[int, object] = {}

    async def connect(self, websocket, room_id: str, engine, viewer_id: Optional[str] = None):
        """Accept the socket and subscribe it to the room's engine."""
        from .service import state_to_response

        await websocket.accept()
        self.active_connections.setdefault(room_id, []).append(websocket)
        loop = asyncio.get_running_loop()

        def push(snapshot):
            message = {
                "type": "game_state",
                "payload": state_to_response(snapshot, viewer_id).model_dump(mode="json"),
            }
            asyncio.run_coroutine_threadsafe(self.send_personal_message(message, websocket), loop)

        self._unsubscribers[id(websocket)] = engine.subscribe(push)

    def disconnect(self, websocket, room_id: str):
        """Unsubscribe and forget a socket."""
        unsubscribe = self._unsubscribers.pop(id(websocket), None)
        if unsubscribe is not None:
            unsubscribe()
        if room_id in self.active_connections:
            if websocket in self.active_connections[room_id]:
                self.active_connections[room_id].remove(websocket)
            # Clean up if there are no more connections for this room
            if not self.active_connections[room_id]:
                del self.active_connections[room_id]

    async def send_personal_message(self, message: dict, websocket):
        try:
            await websocket.send_json(message)
        except Exception:
            logger.debug("Dropping message to a closed socket")


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Query
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.responses import JSONResponse
        from apscheduler.schedulers.asyncio import AsyncIOScheduler
        from pydantic import ValidationError
    except ImportError:
        raise ImportError(
            "Server dependencies not installed. Install with: pip install fastapi uvicorn apscheduler"
        )

    from .service import APIService
    from .schemas import (
        # Request models
        CreateRoomRequest,
        CreateBotGameRequest,
        JoinRoomRequest,
        PlayerActionRequest,
        PlayCardRequest,
        ClientMessage,
        # Response models
        CommandResponse,
        ErrorResponse,
        GameStateResponse,
        HealthResponse,
        RoomListResponse,
        RoomResponse,
        # Enums
        ErrorCode,
        MessageType,
    )
    from ..session import RoomDirectory
    from .. import __version__

    if service is None:
        settings = MatchSettings(
            turn_seconds=UNO_TURN_SECONDS,
            uno_grace_seconds=UNO_GRACE_SECONDS,
        )
        service = APIService(
            directory=RoomDirectory(user_store=InMemoryUserStore(), settings=settings),
        )
    api_service = service

    @asynccontextmanager
    async def lifespan(app):
        """Run room reclamation on an interval while the server is up."""
        scheduler = AsyncIOScheduler()

        async def cleanup_rooms():
            api_service.cleanup(UNO_ROOM_RETENTION_SECONDS)

        scheduler.add_job(
            cleanup_rooms,
            "interval",
            seconds=UNO_CLEANUP_INTERVAL_SECONDS,
        )
        scheduler.start()
        logger.info("Server started (%s)", UNO_ENV)
        try:
            yield
        finally:
            scheduler.shutdown()
            logger.info("Stop Server")

    app = FastAPI(
        title="UNO Server API",
        description="""
Real-time multiplayer UNO with bot opponents.

## Commands

Game commands answer with a `CommandResponse`. A rejected command has
`accepted=false` and an `error_code` from the engine, changes nothing and is
not broadcast:

| Code | Description |
|------|-------------|
| `GAME_NOT_PLAYING` | The match has not started or is over |
| `NOT_YOUR_TURN` | Out-of-turn play that is not a legal jump-in |
| `ALREADY_DRAWN` | Only one draw per turn |
| `MUST_DRAW_FIRST` | Passing requires drawing first |
| `ILLEGAL_CARD` | The card does not match, or does not answer the stack |
| `ROOM_FULL` | Four players already seated |

Unknown rooms answer 404 with `ROOM_NOT_FOUND`.
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    manager = ConnectionManager()
    app.state.service = api_service
    app.state.connections = manager

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    def room_not_found(room_id: str) -> JSONResponse:
        return make_error_response(
            ErrorCode.ROOM_NOT_FOUND,
            f"Room {room_id} not found",
            status_code=404,
        )

    def command_or_404(room_id: str, response) -> Union[CommandResponse, JSONResponse]:
        if response is None:
            return room_not_found(room_id)
        return response

    # =========================================================================
    # Room Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/rooms",
        response_model=RoomResponse,
        responses={409: {"model": ErrorResponse, "description": "Room id already in use"}},
        tags=["Rooms"],
        summary="Create a room",
    )
    async def create_room(request: CreateRoomRequest) -> Union[RoomResponse, JSONResponse]:
        """
        Create a room and seat the caller as host.

        A 4-digit code is generated unless `room_id` forces one.
        """
        try:
            return api_service.create_room(request)
        except ValueError as e:
            return make_error_response(ErrorCode.ROOM_EXISTS, str(e), status_code=409)

    @app.post(
        "/api/v1/bot-games",
        response_model=RoomResponse,
        tags=["Rooms"],
        summary="Start a game against bots",
    )
    async def create_bot_game(request: CreateBotGameRequest) -> RoomResponse:
        """Create a private room with up to three bots and start it immediately."""
        return api_service.create_bot_game(request)

    @app.get(
        "/api/v1/rooms",
        response_model=RoomListResponse,
        tags=["Rooms"],
        summary="List public rooms",
    )
    async def list_rooms() -> RoomListResponse:
        return api_service.list_rooms()

    @app.get(
        "/api/v1/rooms/{room_id}/state",
        response_model=GameStateResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Rooms"],
        summary="Get table state",
    )
    async def get_state(
        room_id: str,
        player_id: Optional[str] = Query(None, description="Seat to view from; only its hand is shown"),
    ) -> Union[GameStateResponse, JSONResponse]:
        response = api_service.get_state(room_id, player_id)
        if response is None:
            return room_not_found(room_id)
        return response

    # =========================================================================
    # Game Commands
    # =========================================================================

    @app.post(
        "/api/v1/rooms/{room_id}/join",
        response_model=CommandResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Take a seat",
    )
    async def join_room(room_id: str, request: JoinRoomRequest):
        return command_or_404(room_id, api_service.join(room_id, request))

    @app.post(
        "/api/v1/rooms/{room_id}/start",
        response_model=CommandResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Start the match",
    )
    async def start_game(room_id: str):
        return command_or_404(room_id, api_service.execute(room_id, Command.start()))

    @app.post(
        "/api/v1/rooms/{room_id}/draw",
        response_model=CommandResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Draw a card",
    )
    async def draw_card(room_id: str, request: PlayerActionRequest):
        """Draw one card, or take the whole pending stack."""
        return command_or_404(room_id, api_service.execute(room_id, Command.draw(request.player_id)))

    @app.post(
        "/api/v1/rooms/{room_id}/play",
        response_model=CommandResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Play a card",
    )
    async def play_card(room_id: str, request: PlayCardRequest):
        """
        Play a card from hand.

        Out of turn this is a jump-in, allowed only in modes with the
        jump-in rule and only with an exact match of the top card.
        """
        command = Command.play(
            request.player_id,
            request.card_id,
            request.chosen_color,
            request.target_player_id,
        )
        return command_or_404(room_id, api_service.execute(room_id, command))

    @app.post(
        "/api/v1/rooms/{room_id}/pass",
        response_model=CommandResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Pass after drawing",
    )
    async def pass_turn(room_id: str, request: PlayerActionRequest):
        return command_or_404(room_id, api_service.execute(room_id, Command.pass_turn(request.player_id)))

    @app.post(
        "/api/v1/rooms/{room_id}/uno",
        response_model=CommandResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Declare UNO",
    )
    async def say_uno(room_id: str, request: PlayerActionRequest):
        return command_or_404(room_id, api_service.execute(room_id, Command.declare_uno(request.player_id)))

    @app.post(
        "/api/v1/rooms/{room_id}/bots",
        response_model=CommandResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Game"],
        summary="Add a bot",
    )
    async def add_bot(room_id: str):
        return command_or_404(room_id, api_service.add_bot(room_id))

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/rooms/{room_id}/ws")
    async def websocket_endpoint(
        websocket: WebSocket,
        room_id: str,
        player_id: Optional[str] = None,
    ):
        """
        WebSocket for real-time play.

        Messages from server:
        - game_state: Table changed (also sent on connect)
        - command_result: Answer to this socket's command
        - error: Malformed message or unknown room
        - pong: Keep-alive answer

        Messages from client:
        - {"type": "<command>", ...}: join_room, start_game, draw_card,
          play_card, pass_turn, declare_uno, add_bot
        - ping: Keep-alive
        """
        engine = api_service.directory.get_room(room_id)
        if engine is None:
            await websocket.accept()
            await websocket.send_json({
                "type": MessageType.ERROR.value,
                "payload": {"message": f"Room {room_id} not found", "error_code": ErrorCode.ROOM_NOT_FOUND.value},
            })
            await websocket.close()
            return

        await manager.connect(websocket, room_id, engine, player_id)

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = ClientMessage.model_validate(json.loads(data))
                except (json.JSONDecodeError, ValidationError):
                    await websocket.send_json({
                        "type": MessageType.ERROR.value,
                        "payload": {"message": "Invalid JSON", "error_code": ErrorCode.VALIDATION_ERROR.value},
                    })
                    continue

                if message.type == "ping":
                    await websocket.send_json({"type": MessageType.PONG.value})
                    continue

                try:
                    response = api_service.handle_message(room_id, message)
                except ValueError as e:
                    await websocket.send_json({
                        "type": MessageType.ERROR.value,
                        "payload": {"message": str(e), "error_code": ErrorCode.VALIDATION_ERROR.value},
                    })
                    continue

                if response is None:
                    await websocket.send_json({
                        "type": MessageType.ERROR.value,
                        "payload": {"message": f"Room {room_id} was closed", "error_code": ErrorCode.ROOM_NOT_FOUND.value},
                    })
                    break

                await websocket.send_json({
                    "type": MessageType.COMMAND_RESULT.value,
                    "payload": response.model_dump(mode="json", exclude={"state"}),
                })

        except WebSocketDisconnect:
            logger.debug("Socket left room %s", room_id)
        finally:
            manager.disconnect(websocket, room_id)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="unoserver",
            version=__version__,
            rooms=len(api_service.directory),
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "UNO Server API",
            "version": __version__,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn unoserver.api.app:app
app = create_app()
