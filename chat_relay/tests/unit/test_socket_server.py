# chat_relay/tests/unit/test_socket_server.py
from unittest.mock import AsyncMock, Mock

import pytest
import socketio
from socketio.exceptions import ConnectionRefusedError

from chat_relay.domain.exceptions import AuthenticationError
from chat_relay.realtime.server import SocketServer, create_asgi_app, create_socket_server


@pytest.fixture
def sio(app_config):
    return create_socket_server(app_config)


@pytest.fixture
def gateway():
    gateway = Mock()
    gateway.connect = AsyncMock()
    gateway.disconnect = AsyncMock(return_value=True)
    return gateway


@pytest.fixture
def handlers():
    handlers = Mock()
    handlers.events = ["send-message", "typing"]
    handlers.handle = AsyncMock()
    return handlers


@pytest.fixture
def socket_server(sio, gateway, handlers, logger):
    server = SocketServer(sio, gateway, handlers, logger)
    server.register()
    return server


def test_create_socket_server(sio):
    assert isinstance(sio, socketio.AsyncServer)
    assert sio.async_mode == "asgi"


def test_register_binds_every_event(socket_server, sio):
    bound = sio.handlers["/"]
    assert {"connect", "disconnect", "send-message", "typing"} <= set(bound)


@pytest.mark.asyncio
async def test_bound_event_forwards_to_handlers(socket_server, sio, handlers):
    await sio.handlers["/"]["send-message"]("sid-1", {"chatId": 1, "content": "hi"})

    handlers.handle.assert_awaited_once_with(
        "send-message", "sid-1", {"chatId": 1, "content": "hi"}
    )


@pytest.mark.asyncio
async def test_connect_forwards_handshake(socket_server, gateway):
    environ = {"QUERY_STRING": "token=abc"}

    await socket_server.on_connect("sid-1", environ, {"token": "abc"})

    gateway.connect.assert_awaited_once_with("sid-1", {"token": "abc"}, environ)


@pytest.mark.asyncio
async def test_rejected_handshake_carries_reason(socket_server, gateway):
    gateway.connect.side_effect = AuthenticationError(
        "Authentication error: token expired", reason="expired_token"
    )

    with pytest.raises(ConnectionRefusedError) as exc_info:
        await socket_server.on_connect("sid-1", {}, {"token": "old"})

    assert exc_info.value.error_args == {
        "message": "Authentication error: token expired",
        "data": {"reason": "expired_token"},
    }


@pytest.mark.asyncio
async def test_disconnect_forwards_reason(socket_server, gateway):
    await socket_server.on_disconnect("sid-1", "client disconnect")

    gateway.disconnect.assert_awaited_once_with("sid-1", "client disconnect")


def test_asgi_app_wraps_http_app(sio, app_config):
    http_app = AsyncMock()

    asgi_app = create_asgi_app(sio, http_app, app_config)

    assert isinstance(asgi_app, socketio.ASGIApp)
