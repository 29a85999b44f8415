"""HTTP endpoints and the websocket room protocol."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from tianxia.api.connection_manager import ConnectionManager
from tianxia.api.main import RoomJanitor, create_app
from tianxia.api.rooms import RoomRegistry


@pytest.fixture
def client(catalog):
    app = create_app(RoomRegistry(catalog, token_secret="test-secret"), cleanup_interval=3600)
    with TestClient(app) as test_client:
        yield test_client


def _receive_until(ws, message_type, limit=10):
    for _ in range(limit):
        message = ws.receive_json()
        if message["type"] == message_type:
            return message
    raise AssertionError(f"no {message_type} message received")


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "tianxia"
    assert body["setup_id"] == "three_kingdoms"


def test_setups_and_catalog(client):
    setups = client.get("/setups").json()["setups"]
    assert "three_kingdoms" in [s["id"] for s in setups]

    catalog = client.get("/setups/three_kingdoms/catalog").json()
    assert len(catalog["territories"]) == 46
    assert catalog["cards"]["guan_yu"]["attack"] == 6

    assert client.get("/setups/atlantis/catalog").status_code == 404


def test_unknown_room_is_404(client):
    assert client.get("/rooms/ZZZZZZ").status_code == 404


def test_malformed_messages_get_errors(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("{not json")
        assert ws.receive_json() == {"type": "room:error", "payload": {"message": "Malformed message"}}

        ws.send_json({"type": "room:teleport"})
        assert ws.receive_json()["payload"]["message"] == "Malformed message"

        ws.send_json({"type": "room:join", "roomCode": "NOPE00"})
        assert ws.receive_json()["payload"]["message"] == "Room not found"


def test_two_clients_play(client):
    with client.websocket_connect("/ws") as host, client.websocket_connect("/ws") as guest:
        host.send_json({"type": "room:create", "maxPlayers": 2})
        code = _receive_until(host, "room:update")["payload"]["code"]

        host.send_json({"type": "seat:select", "roomCode": code, "seatIndex": 0, "name": "Liu Bei"})
        confirmed = _receive_until(host, "seat:confirmed")["payload"]
        assert confirmed["playerId"] == "player-0"

        guest.send_json({"type": "room:join", "roomCode": code.lower()})
        assert _receive_until(guest, "room:update")["payload"]["seats"][0]["name"] == "Liu Bei"
        guest.send_json({"type": "seat:select", "roomCode": code, "seatIndex": 1, "name": "Cao Cao"})
        _receive_until(guest, "seat:confirmed")

        room = client.get(f"/rooms/{code}").json()
        assert [s["occupied"] for s in room["seats"]] == [True, True]
        assert room["hostSeatIndex"] == 0

        host.send_json({"type": "room:start", "roomCode": code, "options": {"seed": 7}})
        host_view = _receive_until(host, "game:update")["payload"]
        assert client.app.state.registry.get_room(code).game_state.seed != 7
        guest_view = _receive_until(guest, "game:update")["payload"]
        assert len(host_view["players"][0]["hand"]) == 5
        assert host_view["players"][1]["hand"] == []
        assert guest_view["players"][0]["hand"] == []
        assert "deck" not in guest_view

        guest.send_json({
            "type": "game:action", "roomCode": code, "action": "endTurn", "actingPlayerId": "player-1",
        })
        assert _receive_until(guest, "room:error")["payload"]["message"] == "Not your turn"

        guest.send_json({
            "type": "game:action", "roomCode": code, "action": "drawCards", "actingPlayerId": "player-0",
        })
        assert _receive_until(guest, "room:error")["payload"]["message"] == "You do not hold that seat"

        host.send_json({
            "type": "game:action", "roomCode": code, "action": "drawCards", "actingPlayerId": "player-0",
        })
        assert _receive_until(host, "game:update")["payload"]["turn_phase"] == "action"
        assert _receive_until(guest, "game:update")["payload"]["players"][0]["hand_size"] == 7


def test_disconnect_reserves_seat(client):
    with client.websocket_connect("/ws") as host:
        host.send_json({"type": "room:create", "maxPlayers": 2})
        code = _receive_until(host, "room:update")["payload"]["code"]
        with client.websocket_connect("/ws") as guest:
            guest.send_json({"type": "seat:select", "roomCode": code, "seatIndex": 1, "name": "Sun Quan"})
            token = _receive_until(guest, "seat:confirmed")["payload"]["seatToken"]

        seat = _receive_until(host, "room:update")["payload"]["seats"][1]
        while seat["occupied"]:
            seat = _receive_until(host, "room:update")["payload"]["seats"][1]
        assert seat["reserved"] is True

        with client.websocket_connect("/ws") as returning:
            returning.send_json({
                "type": "seat:reclaim", "roomCode": code, "seatIndex": 1, "seatToken": token,
            })
            confirmed = _receive_until(returning, "seat:confirmed")["payload"]
            assert confirmed["playerId"] == "player-1"


def test_janitor_closes_idle_rooms(catalog):
    clock_now = [0.0]
    registry = RoomRegistry(catalog, clock=lambda: clock_now[0], empty_room_ttl=10)
    registry.create_room("conn-a", 2)
    registry.leave_room("conn-a", next(iter(registry.rooms)))
    janitor = RoomJanitor(registry, ConnectionManager(), interval_seconds=60)

    clock_now[0] = 11.0
    asyncio.run(janitor.run_once())
    assert registry.rooms == {}
