# chat_relay/gateways/token_gateway.py
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.gateways.interfaces import ITokenGateway
from chat_relay.infrastructure import models, schemas
from chat_relay.infrastructure.data_mappers import SqlAlchemyMapper
from chat_relay.infrastructure.uow import UnitOfWork


class TokenGateway(ITokenGateway):
    """Issued token pairs. One row per login, so each device signs out alone."""

    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Token] = SqlAlchemyMapper(session)

    async def create_token(self, token: schemas.TokenCreate) -> models.Token:
        db_token = self.uow.register_new(models.Token(**token.model_dump()))
        await self.uow.flush()
        return db_token

    async def _find(self, column, value: str) -> Optional[models.Token]:
        result = await self.session.execute(select(models.Token).filter(column == value))
        return result.scalar_one_or_none()

    async def get_by_access_token(self, access_token: str) -> Optional[models.Token]:
        return await self._find(models.Token.access_token, access_token)

    async def get_by_refresh_token(self, refresh_token: str) -> Optional[models.Token]:
        return await self._find(models.Token.refresh_token, refresh_token)

    async def _revoke(self, column, value: str) -> bool:
        # a single DELETE, two concurrent refreshes cannot both consume the pair
        stmt = (
            delete(models.Token)
            .where(column == value)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def revoke_access_token(self, access_token: str) -> bool:
        return await self._revoke(models.Token.access_token, access_token)

    async def revoke_refresh_token(self, refresh_token: str) -> bool:
        return await self._revoke(models.Token.refresh_token, refresh_token)
