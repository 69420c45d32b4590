# chat_relay/realtime/connection_gateway.py
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional
from urllib.parse import parse_qs

from chat_relay.domain.exceptions import AuthenticationError
from chat_relay.realtime.identity import PLACEHOLDER_TOKENS, IdentityVerifier
from chat_relay.realtime.room_router import RoomRouter
from chat_relay.realtime.session import Session
from chat_relay.realtime.session_registry import SessionRegistry


def _usable(token: Any) -> Optional[str]:
    if not isinstance(token, str) or token.strip() in PLACEHOLDER_TOKENS:
        return None
    return token.strip()


def extract_token(auth: Any, environ: dict) -> Optional[str]:
    """Find the bearer token in the handshake.

    Looked up in the Socket.IO ``auth`` object first, then the
    ``Authorization`` header, then the ``token`` query parameter.
    """
    if isinstance(auth, dict):
        token = _usable(auth.get("token"))
        if token:
            return token

    scheme, _, value = environ.get("HTTP_AUTHORIZATION", "").partition(" ")
    if scheme.lower() == "bearer":
        token = _usable(value)
        if token:
            return token

    for value in parse_qs(environ.get("QUERY_STRING", "")).get("token", []):
        token = _usable(value)
        if token:
            return token
    return None


class ConnectionGateway:
    def __init__(
        self,
        verifier: IdentityVerifier,
        registry: SessionRegistry,
        router: RoomRouter,
        logger: logging.Logger,
        on_offline: Optional[Callable[[int], Awaitable[None]]] = None,
    ):
        self.verifier = verifier
        self.registry = registry
        self.router = router
        self.logger = logger
        self.on_offline = on_offline
        # sid -> closed while its token was still being verified
        self._handshakes: dict[str, bool] = {}

    async def connect(
        self, sid: str, auth: Any = None, environ: Optional[dict] = None
    ) -> Session:
        token = extract_token(auth, environ or {})
        if token is None:
            raise AuthenticationError(
                "Authentication error: token missing", reason="missing_token"
            )
        self._handshakes[sid] = False
        try:
            identity = await self.verifier.verify(token)
        finally:
            closed = self._handshakes.pop(sid)
        if closed:
            raise AuthenticationError(
                "Connection closed during handshake", reason="disconnected"
            )

        session = Session(sid=sid, user=identity)
        self.router.attach(session)
        await self.registry.register(identity.id, session)
        await self.router.emit_to_session(
            sid, "user-status", {"status": "online", "userId": identity.id}
        )
        self.logger.info(f"User {identity.username} connected with sid {sid}")
        return session

    async def disconnect(self, sid: str, reason: Any = None) -> bool:
        if sid in self._handshakes:
            self._handshakes[sid] = True
            self.logger.info(f"Connection {sid} closed before authentication finished")
            return False

        session = self.router.detach(sid)
        if session is None:
            return False

        went_offline = await self.registry.unregister(session.user_id, session)
        self.logger.info(
            f"User {session.user.username} disconnected sid {sid} ({reason or 'unknown'})"
        )
        if went_offline and self.on_offline is not None:
            try:
                await self.on_offline(session.user_id)
            except Exception:
                self.logger.exception(
                    f"Failed to record last seen for user {session.user_id}"
                )
        return True
