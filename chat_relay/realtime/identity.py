# chat_relay/realtime/identity.py
import logging
from dataclasses import dataclass
from typing import Protocol

from jwt import ExpiredSignatureError, InvalidTokenError

from chat_relay.domain.exceptions import AuthenticationError
from chat_relay.gateways.token_gateway import TokenGateway
from chat_relay.gateways.user_gateway import UserGateway
from chat_relay.infrastructure.database import Database
from chat_relay.infrastructure.security import SecurityService
from chat_relay.infrastructure.uow import UnitOfWork

PLACEHOLDER_TOKENS = frozenset({"", "null", "undefined"})


@dataclass(frozen=True)
class UserIdentity:
    id: int
    username: str
    name: str = ""
    avatar: str = ""

    @property
    def display_name(self) -> str:
        return self.name or self.username


class IdentityVerifier(Protocol):
    async def verify(self, token: str | None) -> UserIdentity: ...


class TokenIdentityVerifier:
    """Checks a bearer access token against its signature and the token table."""

    def __init__(
        self,
        database: Database,
        security_service: SecurityService,
        logger: logging.Logger,
    ):
        self.database = database
        self.security_service = security_service
        self.logger = logger

    async def verify(self, token: str | None) -> UserIdentity:
        if token is None or token.strip() in PLACEHOLDER_TOKENS:
            raise AuthenticationError(
                "Authentication error: token missing", reason="missing_token"
            )
        token = token.strip()

        try:
            username = self.security_service.read_access_token(token)
        except ExpiredSignatureError:
            raise AuthenticationError(
                "Authentication error: token expired", reason="expired_token"
            )
        except InvalidTokenError:
            raise AuthenticationError(
                "Authentication error: invalid token", reason="invalid_token"
            )

        async with self.database.session() as session:
            uow = UnitOfWork(session)
            user = await UserGateway(session, uow).get_by_username(username)
            if user is None or not user.is_active:
                raise AuthenticationError(
                    "Authentication error: user not found", reason="unknown_user"
                )
            stored = await TokenGateway(session, uow).get_by_access_token(token)
            if stored is None or stored.user_id != user.id:
                raise AuthenticationError(
                    "Authentication error: token revoked", reason="revoked_token"
                )
            return UserIdentity(
                id=user.id, username=user.username, name=user.name, avatar=user.avatar
            )
