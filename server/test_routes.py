"""
Test suite for the HTTP endpoints and the WebSocket entry point.

Run with: pytest test_routes.py -v
"""

import pytest
from fastapi.testclient import TestClient

import main
from game import Player, Settings
from services.stats_service import get_stats_service


@pytest.fixture
def client():
    main.room_manager.rooms.clear()
    with TestClient(main.app) as test_client:
        yield test_client
    main.room_manager.rooms.clear()


def open_room(public=True, players=1):
    host = Player(id="host", username="Host")
    room = main.room_manager.create_room(host, Settings(public=public))
    for i in range(players):
        player = host if i == 0 else Player(id=f"p{i}", username=f"P{i}")
        player.room_code = room.code
        player.in_room = True
        room.players.append(player)
    return room


# =============================================================================
# Health endpoints
# =============================================================================

class TestHealth:

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready_after_startup(self, client):
        response = client.get("/ready")
        assert response.status_code == 200
        assert response.json()["checks"]["rooms"]["status"] == "ok"

    def test_metrics_include_rooms_and_counters(self, client):
        open_room(players=2)

        data = client.get("/metrics").json()

        assert data["active_rooms"] == 1
        assert data["total_players"] == 2
        assert data["games_in_progress"] == 0
        assert data["stats"]["lobbies_created"] == get_stats_service().counters["lobbies_created"]
        assert set(data["stats"]) == {
            "lobbies_created", "lobbies_online", "cards_played",
            "plus4s_dealt", "bots_used", "games_played",
        }


# =============================================================================
# Lobby browser
# =============================================================================

class TestPublicRooms:

    def test_lists_public_open_rooms(self, client):
        listed = open_room(public=True)
        open_room(public=False)

        data = client.get("/api/rooms").json()

        assert [r["id"] for r in data["rooms"]] == [listed.code]
        assert data["rooms"][0]["host"] == "Host"
        assert data["rooms"][0]["player_count"] == 1
        assert data["rooms"][0]["max_players"] == 4

    def test_started_rooms_hidden(self, client):
        room = open_room(public=True, players=2)
        room.started = True

        assert client.get("/api/rooms").json()["rooms"] == []


# =============================================================================
# WebSocket
# =============================================================================

class TestWebSocket:

    def test_create_room_pushes_state(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "create_room", "username": "Alice"})
            message = ws.receive_json()

        assert message["type"] == "state"
        assert message["state"]["is_host"] is True
        assert len(message["state"]["id"]) == 7

    def test_malformed_and_unknown_messages_ignored(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("not json")
            ws.send_json({"type": "fly_away"})
            ws.send_json(["create_room"])
            ws.send_json({"type": "create_room", "username": "Bob"})
            message = ws.receive_json()

        assert message["type"] == "state"
        assert message["state"]["you"]["username"] == "Bob"

    def test_join_by_code(self, client):
        with client.websocket_connect("/ws") as host_ws:
            host_ws.send_json({"type": "create_room", "username": "Host"})
            code = host_ws.receive_json()["state"]["id"]

            with client.websocket_connect("/ws") as guest_ws:
                guest_ws.send_json({"type": "join_room", "room_id": code, "username": "Guest"})
                guest_state = guest_ws.receive_json()["state"]
                host_state = host_ws.receive_json()["state"]

        assert guest_state["player_count"] == 2
        assert guest_state["is_host"] is False
        assert host_state["right"]["username"] == "Guest"
