# chat_relay/interactors/token_interactor.py
from datetime import timedelta

from chat_relay.domain.exceptions import AuthenticationError
from chat_relay.gateways.interfaces import ITokenGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.security import SecurityService
from chat_relay.infrastructure.uow import UnitOfWork


class TokenInteractor:
    def __init__(
        self,
        uow: UnitOfWork,
        token_gateway: ITokenGateway,
        security_service: SecurityService,
    ):
        self.uow = uow
        self.token_gateway = token_gateway
        self.security_service = security_service

    async def issue(self, user: schemas.User) -> schemas.TokenResponse:
        """Sign a fresh access/refresh pair for ``user`` and store it."""
        config = self.security_service.config
        claims = {"sub": user.username}
        access_token, expires_at = self.security_service.create_access_token(
            claims, expires_delta=timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
        )
        refresh_token, _ = self.security_service.create_refresh_token(claims)

        token = await self.token_gateway.create_token(
            schemas.TokenCreate(
                access_token=access_token,
                refresh_token=refresh_token,
                token_type="bearer",
                expires_at=expires_at,
                user_id=user.id,
            )
        )
        await self.uow.commit()
        return schemas.TokenResponse.model_validate(token, from_attributes=True)

    async def rotate(self, refresh_token: str) -> str:
        """Consume a refresh token and return the username it was issued to.

        The pair is deleted before a new one is issued, so a refresh token
        works exactly once.
        """
        username = self.security_service.decode_refresh_token(refresh_token)
        if username is None:
            raise AuthenticationError("Invalid refresh token", reason="invalid_token")
        if not await self.token_gateway.revoke_refresh_token(refresh_token):
            raise AuthenticationError("Invalid refresh token", reason="revoked_token")
        await self.uow.commit()
        return username

    async def revoke(self, access_token: str) -> bool:
        revoked = await self.token_gateway.revoke_access_token(access_token)
        if revoked:
            await self.uow.commit()
        return revoked

    async def get_token_by_access_token(self, access_token: str) -> schemas.Token | None:
        token = await self.token_gateway.get_by_access_token(access_token)
        return schemas.Token.model_validate(token) if token else None
