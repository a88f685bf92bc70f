"""Tests for the WebSocket event dispatcher."""

from unittest.mock import patch

import pytest

from api.websocket import dispatch_event
from tests.conftest import FakeSettlement


class TestDispatchEvent:

    @pytest.mark.asyncio
    async def test_join_event(self, lifecycle, gateway):
        await dispatch_event(lifecycle, "conn-1", {
            "event": "join",
            "data": {"player_id": "P1", "name": "Alice", "profile": "a.png"},
        })

        assert gateway.replies_to("conn-1", "joined")[0]["round_id"] == "round-1"

    @pytest.mark.asyncio
    async def test_integer_player_id_is_accepted(self, lifecycle, registry):
        await dispatch_event(lifecycle, "conn-1", {"event": "join", "data": {"player_id": 7}})

        assert registry.get("7") is not None

    @pytest.mark.asyncio
    async def test_bet_event(self, lifecycle, gateway):
        await dispatch_event(lifecycle, "conn-1", {"event": "join", "data": {"player_id": "P1"}})

        await dispatch_event(lifecycle, "conn-1", {
            "event": "bet",
            "data": {"player_id": "P1", "amount": "500", "pot": "B", "asset": "chip.png"},
        })

        accepted = gateway.broadcast_events("bet_accepted")
        assert accepted[0]["amount"] == 500.0
        assert accepted[0]["pot"] == "B"

    @pytest.mark.asyncio
    async def test_invalid_bet_errors_only_to_sender(self, lifecycle, gateway):
        await dispatch_event(lifecycle, "conn-1", {"event": "join", "data": {"player_id": "P1"}})
        await dispatch_event(lifecycle, "conn-2", {"event": "join", "data": {"player_id": "P2"}})
        broadcasts = len(gateway.broadcasts)

        await dispatch_event(lifecycle, "conn-1", {
            "event": "bet",
            "data": {"player_id": "P1", "amount": "lots", "pot": "A"},
        })

        assert gateway.replies_to("conn-1", "error") == [{"message": "Invalid bet amount."}]
        assert gateway.replies_to("conn-2", "error") == []
        assert len(gateway.broadcasts) == broadcasts

    @pytest.mark.asyncio
    async def test_unknown_pot_errors(self, lifecycle, gateway):
        await dispatch_event(lifecycle, "conn-1", {"event": "join", "data": {"player_id": "P1"}})

        await dispatch_event(lifecycle, "conn-1", {
            "event": "bet",
            "data": {"player_id": "P1", "amount": 5, "pot": "Q"},
        })

        assert gateway.replies_to("conn-1", "error") == [{"message": "Unknown pot: Q"}]

    @pytest.mark.asyncio
    async def test_bet_without_round_errors(self, lifecycle, gateway):
        await dispatch_event(lifecycle, "conn-1", {
            "event": "bet",
            "data": {"player_id": "P1", "amount": 5, "pot": "A"},
        })

        assert gateway.replies_to("conn-1", "error") == [{"message": "No ongoing round."}]

    @pytest.mark.asyncio
    async def test_failed_creation_errors_to_joiner(self, make_lifecycle, gateway):
        lifecycle = make_lifecycle(settlement_override=FakeSettlement(fail_mint=True))

        await dispatch_event(lifecycle, "conn-1", {"event": "join", "data": {"player_id": "P1"}})

        assert gateway.replies_to("conn-1", "error") == [{"message": "No game is active."}]
        assert gateway.replies_to("conn-1", "joined") == []

    @pytest.mark.asyncio
    async def test_join_without_player_id_errors(self, lifecycle, gateway):
        await dispatch_event(lifecycle, "conn-1", {"event": "join", "data": {"name": "Alice"}})

        assert gateway.replies_to("conn-1", "error") == [{"message": "Invalid join payload."}]

    @pytest.mark.asyncio
    async def test_unknown_event_errors(self, lifecycle, gateway):
        await dispatch_event(lifecycle, "conn-1", {"event": "dance", "data": {}})

        assert gateway.replies_to("conn-1", "error") == [{"message": "Unknown event: dance"}]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("frame", [["join"], "join", {"event": "join", "data": [1]}])
    async def test_malformed_frame_errors(self, lifecycle, gateway, frame):
        await dispatch_event(lifecycle, "conn-1", frame)

        assert gateway.replies_to("conn-1", "error") == [{"message": "Invalid message format."}]

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_logged_and_reported(self, lifecycle, gateway):
        with patch.object(lifecycle, "join", side_effect=RuntimeError("kaboom")):
            with patch("api.websocket.logger") as mock_logger:
                await dispatch_event(
                    lifecycle, "conn-1", {"event": "join", "data": {"player_id": "P1"}}
                )
                mock_logger.error.assert_called()

        assert gateway.replies_to("conn-1", "error") == [{"message": "Internal error"}]
