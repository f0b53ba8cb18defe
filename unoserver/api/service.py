"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to engine commands
2. Owns the room directory
3. Formats engine snapshots for clients

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .schemas import (
    # Requests
    CreateRoomRequest,
    CreateBotGameRequest,
    JoinRoomRequest,
    ClientMessage,
    # Responses
    CommandResponse,
    GameStateResponse,
    RoomListResponse,
    RoomResponse,
    RoomSummary,
    # Shared
    CardInfo,
    PlayerInfo,
    RulesInfo,
)
from ..engine_core.action import Command, CommandPayload, CommandResult, CommandType
from ..engine_core.state import MatchSnapshot
from ..session import RoomDirectory


def state_to_response(snapshot: MatchSnapshot, viewer_id: str | None = None) -> GameStateResponse:
    """
    Convert an engine snapshot to the wire model.

    Only the viewer's own hand is included; everyone else shows a count.
    """
    current = snapshot.current_player
    return GameStateResponse(
        room_id=snapshot.room_id,
        mode=snapshot.mode,
        rules=RulesInfo.model_validate(snapshot.rules),
        status=snapshot.status,
        players=[
            PlayerInfo(
                id=p.id,
                name=p.name,
                is_bot=p.is_bot,
                avatar_id=p.avatar_id,
                has_said_uno=p.has_said_uno,
                hand_size=p.hand_size,
                hand=[CardInfo.model_validate(c) for c in p.hand] if p.id == viewer_id else [],
                is_current_turn=current is not None and p.id == current.id,
            )
            for p in snapshot.players
        ],
        deck_count=snapshot.deck_count,
        discard_pile=[CardInfo.model_validate(c) for c in snapshot.discard_pile],
        top_card=CardInfo.model_validate(snapshot.top_card) if snapshot.top_card else None,
        active_color=snapshot.active_color,
        turn_index=snapshot.turn_index,
        direction=snapshot.direction,
        winner_id=snapshot.winner_id,
        message=snapshot.message,
        has_drawn_this_turn=snapshot.has_drawn_this_turn,
        turn_start_time=snapshot.turn_start_time,
        pending_draw_value=snapshot.pending_draw_value,
    )


@dataclass
class APIService:
    """
    Main API service for game clients.

    Usage:
        service = APIService()

        # Create a room
        response = service.create_room(CreateRoomRequest(host_name="alice", host_id="17"))

        # Play
        result = service.execute(response.room_id, Command.draw("17"))
    """
    directory: RoomDirectory = field(default_factory=RoomDirectory)

    def create_room(self, request: CreateRoomRequest) -> RoomResponse:
        """
        Create a room with the requester as host.

        Raises:
            ValueError: the forced room id is taken
        """
        room_id, engine = self.directory.create_room(
            request.host_name,
            request.host_id,
            forced_room_id=request.room_id,
            avatar_id=request.avatar_id,
            mode=request.mode,
        )
        return RoomResponse(
            room_id=room_id,
            mode=request.mode,
            player_id=request.host_id,
            state=state_to_response(engine.get_state(), request.host_id),
        )

    def create_bot_game(self, request: CreateBotGameRequest) -> RoomResponse:
        """Create and start a private game against bots."""
        room_id, engine = self.directory.create_bot_game(
            request.host_name,
            request.host_id,
            avatar_id=request.avatar_id,
            mode=request.mode,
            bot_count=request.bot_count,
        )
        return RoomResponse(
            room_id=room_id,
            mode=request.mode,
            player_id=request.host_id,
            state=state_to_response(engine.get_state(), request.host_id),
        )

    def list_rooms(self) -> RoomListResponse:
        """List public rooms."""
        rooms = [
            RoomSummary(
                room_id=room.room_id,
                mode=room.engine.state.mode,
                status=room.status,
                player_count=room.engine.state.num_players,
                max_players=self.directory.settings.max_players,
                created_at=room.created_at,
            )
            for room in self.directory.list_rooms()
        ]
        return RoomListResponse(rooms=rooms, count=len(rooms))

    def get_state(self, room_id: str, viewer_id: str | None = None) -> GameStateResponse | None:
        """Current table state as seen by viewer_id, None if no such room."""
        engine = self.directory.get_room(room_id)
        if engine is None:
            return None
        return state_to_response(engine.get_state(), viewer_id)

    def join(self, room_id: str, request: JoinRoomRequest) -> CommandResponse | None:
        return self.execute(room_id, Command.join(request.name, request.player_id, request.avatar_id))

    def add_bot(self, room_id: str) -> CommandResponse | None:
        engine = self.directory.get_room(room_id)
        if engine is None:
            return None
        result = self.directory.add_bot(room_id)
        return self._to_response(result, engine.get_state(), None)

    def execute(self, room_id: str, command: Command) -> CommandResponse | None:
        """
        Apply a command to a room.

        Returns None if the room does not exist. The returned state is
        seen from the commanding player's seat.
        """
        engine = self.directory.get_room(room_id)
        if engine is None:
            return None
        result = engine.apply(command)
        return self._to_response(result, engine.get_state(), command.payload.player_id)

    def handle_message(self, room_id: str, message: ClientMessage) -> CommandResponse | None:
        """
        Apply a WebSocket command message.

        Raises:
            ValueError: unknown message type
        """
        command = Command(
            command_type=CommandType(message.type),
            payload=CommandPayload(
                player_id=message.player_id,
                card_id=message.card_id,
                chosen_color=message.chosen_color,
                target_player_id=message.target_player_id,
                name=message.name,
                avatar_id=message.avatar_id,
                is_bot=message.type == CommandType.ADD_BOT.value,
            ),
        )
        return self.execute(room_id, command)

    def cleanup(self, max_age_seconds: float) -> list[str]:
        """Reclaim stale rooms; called by the periodic job."""
        return self.directory.cleanup_stale_rooms(max_age_seconds)

    def _to_response(
        self,
        result: CommandResult,
        snapshot: MatchSnapshot,
        viewer_id: str | None,
    ) -> CommandResponse:
        player_id = result.player.id if result.player is not None else None
        return CommandResponse(
            accepted=result.success,
            error=result.error,
            error_code=result.error_code.value if result.error_code else None,
            player_id=player_id,
            state=state_to_response(snapshot, viewer_id),
        )
