from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
import socketio
from socketio.exceptions import ConnectionRefusedError as SocketConnectionRefused

from app.api.ws import register_socketio_handlers
from app.core.realtime import SocketIOTransport, user_group


@pytest.fixture
def sio(server):
    sio = socketio.AsyncServer(async_mode="asgi")
    register_socketio_handlers(sio, server)
    return sio


def _handler(sio, event):
    return sio.handlers["/"][event]


def test_every_relay_event_is_registered(sio, server):
    registered = set(sio.handlers["/"])

    assert {"connect", "disconnect"} <= registered
    assert set(server.events()) <= registered


async def test_expired_token_refuses_the_handshake(sio, registry, make_token):
    token = make_token("u1", expires_in=timedelta(seconds=-30))

    with pytest.raises(SocketConnectionRefused) as exc:
        await _handler(sio, "connect")("c1", {}, {"token": token})

    assert exc.value.error_args["message"] == "Invalid token"
    assert registry.count() == 0


async def test_missing_token_refuses_the_handshake(sio, registry):
    with pytest.raises(SocketConnectionRefused) as exc:
        await _handler(sio, "connect")("c1", {})

    assert exc.value.error_args["message"] == "Authentication required"
    assert registry.count() == 0


async def test_group_join_failure_refuses_the_handshake(sio, registry, transport, monkeypatch, make_token):
    monkeypatch.setattr(transport, "join", AsyncMock(side_effect=RuntimeError("adapter down")))

    with pytest.raises(SocketConnectionRefused):
        await _handler(sio, "connect")("c1", {}, {"token": make_token("u1")})

    assert registry.count() == 0


async def test_connect_event_without_payload_then_disconnect(sio, registry, transport, notification_store, make_token):
    notification_store.seed("u1")
    await _handler(sio, "connect")("c1", {"HTTP_AUTHORIZATION": f"Bearer {make_token('u1')}"}, None)
    assert registry.is_online("u1")

    await _handler(sio, "notification:readAll")("c1")

    assert transport.events("c1", "notification:readAll:success") == [
        ("notification:readAll:success", {"count": 1})
    ]

    await _handler(sio, "disconnect")("c1", "client disconnect")
    assert not registry.is_online("u1")


@pytest.fixture
def recorded_sio(monkeypatch):
    sio = socketio.AsyncServer(async_mode="asgi")
    for name in ("emit", "enter_room", "leave_room"):
        monkeypatch.setattr(sio, name, AsyncMock())
    return sio


async def test_socketio_transport_rooms(recorded_sio):
    transport = SocketIOTransport(recorded_sio)

    await transport.join("c1", user_group("u1"))
    await transport.leave("c1", user_group("u1"))

    recorded_sio.enter_room.assert_awaited_once_with("c1", "user:u1")
    recorded_sio.leave_room.assert_awaited_once_with("c1", "user:u1")


async def test_socketio_transport_emits(recorded_sio):
    transport = SocketIOTransport(recorded_sio)
    payload = {"session_id": "s1", "is_typing": True}

    await transport.emit_to_group("chat:s1", "chat:typing", payload, skip="c1")
    recorded_sio.emit.assert_awaited_with("chat:typing", payload, room="chat:s1", skip_sid="c1")

    await transport.emit_to_connection("c2", "chat:joined", {"session_id": "s1"})
    recorded_sio.emit.assert_awaited_with("chat:joined", {"session_id": "s1"}, to="c2")

    await transport.emit_all("notification:broadcast", {"title": "Maintenance"})
    recorded_sio.emit.assert_awaited_with("notification:broadcast", {"title": "Maintenance"})
