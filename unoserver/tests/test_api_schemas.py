"""
Tests for API Pydantic schemas.

Validates that:
- Snapshots render with only the viewer's hand
- Request models enforce their bounds
- WebSocket messages tolerate unknown fields
- Error responses are properly structured
"""

import pytest
from pydantic import ValidationError

from ..api.schemas import (
    CardInfo,
    ClientMessage,
    CommandResponse,
    CreateBotGameRequest,
    CreateRoomRequest,
    ErrorCode,
    ErrorResponse,
)
from ..api.service import state_to_response
from ..engine_core.cards import CardColor, CardValue
from ..engine_core.state import GameMode


class TestStateToResponse:
    """Tests for rendering snapshots."""

    def test_only_viewer_hand_is_visible(self, make_game):
        engine = make_game(("alice", "bob", "carol"))

        response = state_to_response(engine.get_state(), viewer_id="b")

        hands = {p.id: p.hand for p in response.players}
        assert len(hands["b"]) == 7
        assert hands["a"] == [] and hands["c"] == []
        assert all(p.hand_size == 7 for p in response.players)

    def test_spectator_sees_no_hands(self, make_game):
        response = state_to_response(make_game().get_state())

        assert all(p.hand == [] for p in response.players)

    def test_current_turn_and_table(self, make_game):
        engine = make_game()
        snapshot = engine.get_state()

        response = state_to_response(snapshot)

        assert [p.is_current_turn for p in response.players] == [True, False]
        assert response.top_card.id == snapshot.top_card.id
        assert response.active_color == snapshot.active_color
        assert response.deck_count == 93
        assert response.rules.stacking is False

    def test_lobby_has_no_top_card(self, make_engine):
        engine = make_engine()
        engine.add_player("alice", external_id="a")

        response = state_to_response(engine.get_state(), "a")

        assert response.top_card is None
        assert response.players[0].hand == []

    def test_json_uses_enum_values(self, make_game):
        data = state_to_response(make_game(mode=GameMode.NO_MERCY).get_state()).model_dump(mode="json")

        assert data["mode"] == "no-mercy"
        assert data["status"] == "PLAYING"
        assert data["api_version"] == "v1"


class TestRequestModels:
    """Tests for request validation."""

    def test_card_info_from_card(self, card):
        wild = card(CardColor.WILD, CardValue.WILD_DRAW_FOUR).stamped(12, CardColor.BLUE)

        info = CardInfo.model_validate(wild)

        assert info.id == wild.id
        assert info.chosen_color == CardColor.BLUE
        assert info.rotation == 12

    def test_create_room_defaults(self):
        request = CreateRoomRequest(host_name="alice", host_id="17")

        assert request.mode == GameMode.STANDARD
        assert request.room_id is None

    def test_create_room_mode_values(self):
        assert CreateRoomRequest(host_name="a", host_id="1", mode="2v2").mode == GameMode.TWO_VS_TWO

        with pytest.raises(ValidationError):
            CreateRoomRequest(host_name="a", host_id="1", mode="speed")

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            CreateRoomRequest(host_name="", host_id="1")

    @pytest.mark.parametrize("count", [0, 4])
    def test_bot_count_bounds(self, count):
        with pytest.raises(ValidationError):
            CreateBotGameRequest(host_name="alice", host_id="1", bot_count=count)

    def test_client_message_ignores_extra_fields(self):
        message = ClientMessage.model_validate(
            {"type": "play_card", "player_id": "a", "card_id": "card_3", "chosen_color": "RED", "seq": 9}
        )

        assert message.chosen_color == CardColor.RED
        assert not hasattr(message, "seq")

    def test_client_message_bad_color(self):
        with pytest.raises(ValidationError):
            ClientMessage.model_validate({"type": "play_card", "chosen_color": "PURPLE"})


class TestResponseModels:
    """Tests for response structure."""

    def test_error_response(self):
        error = ErrorResponse(error="Room 1234 not found", error_code=ErrorCode.ROOM_NOT_FOUND)

        data = error.model_dump(mode="json")

        assert data["success"] is False
        assert data["error_code"] == "ROOM_NOT_FOUND"

    def test_command_response_without_state(self):
        response = CommandResponse(accepted=False, error="Not a's turn", error_code="NOT_YOUR_TURN")

        assert response.state is None
        assert response.player_id is None
