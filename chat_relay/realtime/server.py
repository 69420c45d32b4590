# chat_relay/realtime/server.py
import logging
from typing import Any

import socketio
from socketio.exceptions import ConnectionRefusedError

from chat_relay.config import AppConfig
from chat_relay.domain.exceptions import AuthenticationError
from chat_relay.realtime.connection_gateway import ConnectionGateway
from chat_relay.realtime.handlers import ChatEventHandlers


def create_socket_server(config: AppConfig) -> socketio.AsyncServer:
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=config.CORS_ORIGINS,
        ping_interval=config.SOCKET_PING_INTERVAL,
        ping_timeout=config.SOCKET_PING_TIMEOUT,
        async_handlers=True,
        logger=False,
        engineio_logger=False,
    )


class SocketServer:
    """Binds the connection gateway and event handlers to a Socket.IO server."""

    def __init__(
        self,
        sio: socketio.AsyncServer,
        gateway: ConnectionGateway,
        handlers: ChatEventHandlers,
        logger: logging.Logger,
    ):
        self.sio = sio
        self.gateway = gateway
        self.handlers = handlers
        self.logger = logger

    def register(self) -> None:
        self.sio.on("connect", self.on_connect)
        self.sio.on("disconnect", self.on_disconnect)
        for event in self.handlers.events:
            self.sio.on(event, self._bind(event))

    def _bind(self, event: str):
        async def handler(sid: str, data: Any = None):
            await self.handlers.handle(event, sid, data)

        handler.__name__ = event.replace("-", "_")
        return handler

    async def on_connect(self, sid: str, environ: dict, auth: Any = None):
        try:
            await self.gateway.connect(sid, auth, environ)
        except AuthenticationError as e:
            self.logger.info(f"Rejected connection {sid}: {e.reason}")
            raise ConnectionRefusedError(e.message, {"reason": e.reason})

    async def on_disconnect(self, sid: str, reason: Any = None):
        await self.gateway.disconnect(sid, reason)


def create_asgi_app(sio: socketio.AsyncServer, app: Any, config: AppConfig) -> socketio.ASGIApp:
    return socketio.ASGIApp(sio, other_asgi_app=app, socketio_path=config.SOCKET_PATH)
