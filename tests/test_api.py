"""HTTP and WebSocket tests through the FastAPI app."""

import pytest
from fastapi.testclient import TestClient

from main import create_app
from tests.conftest import FakeSettlement


@pytest.fixture
def client():
    app = create_app(settlement=FakeSettlement(winning_pot="A"))
    with TestClient(app) as test_client:
        yield test_client


def receive_until(websocket, event):
    while True:
        frame = websocket.receive_json()
        if frame["event"] == event:
            return frame["data"]


class TestHealth:

    def test_root(self, client):
        assert client.get("/").json() == {"message": "Pot Game API", "status": "ok"}

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestRoundsApi:

    def test_current_round_idle(self, client):
        response = client.get("/api/rounds/current")

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "IDLE"
        assert body["round_id"] is None

    def test_unknown_archived_round(self, client):
        assert client.get("/api/rounds/does-not-exist").status_code == 404

    def test_history_limit_validation(self, client):
        assert client.get("/api/rounds/history", params={"limit": 0}).status_code == 422


class TestWebSocketFlow:

    def test_join_and_bet(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({
                "event": "join",
                "data": {"player_id": "P1", "name": "Alice", "profile": "alice.png"},
            })
            statuses = receive_until(websocket, "player_status_updated")
            joined = receive_until(websocket, "joined")

            assert statuses["players"] == [
                {"player_id": "P1", "name": "Alice", "profile": "alice.png"}
            ]
            assert joined["round_id"] == "round-1"
            assert joined["participants"][0]["player_id"] == "P1"

            websocket.send_json({
                "event": "bet",
                "data": {"player_id": "P1", "amount": 500, "pot": "B"},
            })
            accepted = receive_until(websocket, "bet_accepted")
            assert accepted["round_id"] == "round-1"

            current = client.get("/api/rounds/current").json()
            assert current["state"] == "ACTIVE"
            assert current["bets"] == [
                {"player_id": "P1", "amount": 500.0, "pot": "B", "asset": None}
            ]

            players = client.get("/api/players").json()
            assert players == [{"player_id": "P1", "name": "Alice", "profile": "alice.png"}]

    def test_invalid_json_gets_error(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_text("not json")

            assert websocket.receive_json() == {
                "event": "error",
                "data": {"message": "Invalid JSON payload."},
            }

    def test_disconnect_removes_player(self, client):
        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({"event": "join", "data": {"player_id": "P1", "name": "Alice"}})
            receive_until(websocket, "joined")

        with client.websocket_connect("/ws") as websocket:
            websocket.send_json({"event": "join", "data": {"player_id": "P2", "name": "Bob"}})
            receive_until(websocket, "joined")

            players = client.get("/api/players").json()
            assert [p["player_id"] for p in players] == ["P2"]
