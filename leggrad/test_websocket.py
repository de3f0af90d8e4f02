"""
WebSocket tests for the leggrad server
Drives the real FastAPI app in-process through Starlette's TestClient
"""

import pytest
from fastapi.testclient import TestClient

from leggrad.main import app


@pytest.fixture
def client():
    # One shared event loop for every socket, as under uvicorn
    with TestClient(app) as test_client:
        yield test_client


def receive_until(ws, message_type, predicate=None, limit=20):
    """Read messages until one of the wanted type (and shape) arrives"""
    for _ in range(limit):
        message = ws.receive_json()
        if message["type"] == message_type and (predicate is None or predicate(message)):
            return message
    raise AssertionError(f"No {message_type} message within {limit} messages")


def start_game(client, room, host_id, guest_id):
    host = client.websocket_connect(f"/ws/{host_id}").__enter__()
    guest = client.websocket_connect(f"/ws/{guest_id}").__enter__()

    host.send_json({"type": "create_room", "room": room, "name": "Alice"})
    created = receive_until(host, "room_created")
    assert created["game_state"]["your_side"] == "South"

    guest.send_json({"type": "join_room", "room": room, "name": "Bob"})
    started = receive_until(guest, "game_started")
    assert started["game_state"]["your_side"] == "North"
    receive_until(host, "game_started")
    return host, guest


# ============================================================================
# HTTP
# ============================================================================

def test_status(client):
    response = client.get("/status")
    assert response.status_code == 200
    assert "active_games" in response.json()


def test_variants(client):
    names = [v["name"] for v in client.get("/variants").json()["variants"]]
    assert names == ["classic", "compact", "portal"]


def test_unknown_game(client):
    assert client.get("/game/NOSUCHROOM").json() == {"error": "Game not found"}


# ============================================================================
# WEBSOCKET
# ============================================================================

def test_ping(client):
    with client.websocket_connect("/ws/pinger") as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_bad_messages_keep_the_connection(client):
    with client.websocket_connect("/ws/confused") as ws:
        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "message": "Malformed message"}

        ws.send_json({"type": "dance"})
        assert receive_until(ws, "error")["message"] == "Unknown message type: dance"

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_create_and_join(client):
    host, guest = start_game(client, "ws-join", "ws-join-alice", "ws-join-bob")
    try:
        response = client.get("/game/WSJOIN", params={"player_id": "ws-join-bob"}).json()
        assert response["room"]["status"] == "active"
        assert response["game_state"]["your_side"] == "North"
        assert response["game_state"]["turn"] == "South"
    finally:
        host.__exit__(None, None, None)
        guest.__exit__(None, None, None)


def test_play_by_clicks(client):
    host, guest = start_game(client, "ws-play", "ws-play-alice", "ws-play-bob")
    try:
        guest.send_json({"type": "make_move", "room": "WSPLAY", "from": "D8", "to": "D7"})
        assert receive_until(guest, "error")["message"] == "Not your turn"

        host.send_json({"type": "select_square", "room": "WSPLAY", "square": "D2"})
        selection = receive_until(host, "selection")
        assert selection["success"] is True
        assert selection["selection"]["selected"] == {"row": 7, "col": 3}

        host.send_json({"type": "select_square", "room": "WSPLAY", "square": "D3"})
        assert receive_until(host, "selection")["selection"]["selected"] is None

        update = receive_until(guest, "game_update", lambda m: m["game_state"]["turn"] == "North")
        assert update["game_state"]["your_turn"] is True
        assert update["game_state"]["message"] == "Turn 1: Bob (North)'s move. Select a piece."

        guest.send_json({"type": "make_move", "room": "WSPLAY", "from": "D8", "to": "D7"})
        update = receive_until(host, "game_update", lambda m: m["game_state"]["turn_number"] == 2)
        assert update["game_state"]["your_turn"] is True
    finally:
        host.__exit__(None, None, None)
        guest.__exit__(None, None, None)


def test_leaving_ends_the_game(client):
    host, guest = start_game(client, "ws-leave", "ws-leave-alice", "ws-leave-bob")
    try:
        guest.send_json({"type": "leave_room", "room": "WSLEAVE"})
        over = receive_until(host, "game_over")
        assert over["winner"] == "South"
        assert over["reason"] == "abandoned"
        assert over["message"] == "South wins! Opponent left the game."

        host.send_json({"type": "get_game_state", "room": "WSLEAVE"})
        state = receive_until(host, "game_update", lambda m: m["status"] == "finished")
        assert state["room_id"] == "WSLEAVE"
        assert state["game_state"]["phase"] == "Game Over"
    finally:
        host.__exit__(None, None, None)
        guest.__exit__(None, None, None)


def test_join_errors(client):
    with client.websocket_connect("/ws/ws-lonely") as ws:
        ws.send_json({"type": "join_room", "room": "NOWHERE", "name": "Lonely"})
        assert receive_until(ws, "error")["message"] == "Room not found"


def test_non_object_json_keeps_the_game(client):
    host, guest = start_game(client, "ws-list", "ws-list-alice", "ws-list-bob")
    try:
        host.send_text("[1, 2]")
        assert receive_until(host, "error")["message"] == "Malformed message"
        host.send_text("7")
        assert receive_until(host, "error")["message"] == "Malformed message"

        host.send_json({"type": "ping"})
        assert receive_until(host, "pong") == {"type": "pong"}
        assert client.get("/game/WSLIST").json()["room"]["status"] == "active"
    finally:
        host.__exit__(None, None, None)
        guest.__exit__(None, None, None)


def test_old_socket_closing_leaves_reconnected_player_seated(client):
    host, guest = start_game(client, "ws-again", "ws-again-alice", "ws-again-bob")
    second = client.websocket_connect("/ws/ws-again-alice").__enter__()
    try:
        host.__exit__(None, None, None)

        second.send_json({"type": "ping"})
        assert receive_until(second, "pong") == {"type": "pong"}
        assert client.get("/game/WSAGAIN").json()["room"]["status"] == "active"

        second.send_json({"type": "make_move", "room": "WSAGAIN", "from": "D2", "to": "D3"})
        update = receive_until(guest, "game_update", lambda m: m["game_state"]["turn"] == "North")
        assert update["status"] == "active"
    finally:
        second.__exit__(None, None, None)
        guest.__exit__(None, None, None)
