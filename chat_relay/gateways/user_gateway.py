# chat_relay/gateways/user_gateway.py
from datetime import UTC, datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.gateways.interfaces import IUserGateway
from chat_relay.infrastructure import models, schemas
from chat_relay.infrastructure.data_mappers import SqlAlchemyMapper
from chat_relay.infrastructure.security import SecurityService
from chat_relay.infrastructure.uow import UnitOfWork


class UserGateway(IUserGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.User] = SqlAlchemyMapper(session)

    async def get_user(self, user_id: int) -> models.User | None:
        stmt = select(models.User).filter(models.User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_users(self, user_ids: list[int]) -> list[models.User]:
        if not user_ids:
            return []
        stmt = select(models.User).filter(models.User.id.in_(user_ids))
        result = await self.session.execute(stmt)
        by_id = {user.id: user for user in result.scalars().all()}
        # keep the caller's order, it becomes the participant order
        return [by_id[user_id] for user_id in dict.fromkeys(user_ids) if user_id in by_id]

    async def get_by_email(self, email: str) -> models.User | None:
        stmt = select(models.User).filter(
            func.lower(models.User.email) == func.lower(email)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_username(self, username: str) -> models.User | None:
        stmt = select(models.User).filter(
            func.lower(models.User.username) == func.lower(username)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_user(
        self, user: schemas.UserCreate, security_service: SecurityService
    ) -> models.User | None:
        username = user.username.strip()
        if await self.get_by_email(user.email):
            return None
        if await self.get_by_username(username):
            return None

        hashed_password = security_service.get_password_hash(user.password)
        db_user = models.User(
            username=username.lower(),
            email=user.email.lower(),
            name=user.name.strip() or username,
            hashed_password=hashed_password,
        )
        self.uow.register_new(db_user)
        await self.uow.flush()
        return db_user

    async def update_user(
        self,
        user: models.User,
        user_update: schemas.UserUpdate,
        security_service: SecurityService,
    ) -> models.User:
        user_update_data = user_update.model_dump(exclude_unset=True)
        if "password" in user_update_data:
            user.hashed_password = security_service.get_password_hash(
                user_update_data.pop("password")
            )
        for key, value in user_update_data.items():
            setattr(user, key, value)
        self.uow.register_dirty(user)
        await self.uow.flush()
        return user

    async def set_avatar(self, user: models.User, avatar_url: str) -> models.User:
        user.avatar = avatar_url
        self.uow.register_dirty(user)
        await self.uow.flush()
        return user

    async def update_last_seen(self, user_id: int) -> None:
        stmt = (
            update(models.User)
            .where(models.User.id == user_id)
            .values(last_seen=datetime.now(UTC))
        )
        await self.session.execute(stmt)

    async def search_users(self, query: str, current_user_id: int) -> list[models.User]:
        pattern = f"%{query}%"
        stmt = (
            select(models.User)
            .filter(
                models.User.id != current_user_id,
                or_(models.User.username.ilike(pattern), models.User.name.ilike(pattern)),
            )
            .order_by(models.User.username)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def verify_password(
        self, user: models.User, password: str, security_service: SecurityService
    ) -> bool:
        return security_service.verify_password(password, user.hashed_password)
