# chat_relay/interactors/user_interactor.py
from typing import Iterable

from chat_relay.domain.exceptions import NotFoundError, ValidationError
from chat_relay.gateways.user_gateway import UserGateway
from chat_relay.infrastructure import models, schemas
from chat_relay.infrastructure.blob_storage import BlobStorage
from chat_relay.infrastructure.security import SecurityService
from chat_relay.infrastructure.uow import UnitOfWork


class UserInteractor:
    def __init__(
        self,
        security_service: SecurityService,
        uow: UnitOfWork,
        user_gateway: UserGateway,
        blob_storage: BlobStorage | None = None,
    ):
        self.security_service = security_service
        self.uow = uow
        self.user_gateway = user_gateway
        self.blob_storage = blob_storage

    async def _require_user(self, user_id: int) -> models.User:
        user = await self.user_gateway.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def get_user(self, user_id: int) -> schemas.User | None:
        user = await self.user_gateway.get_user(user_id)
        return schemas.User.model_validate(user) if user else None

    async def get_user_by_username(self, username: str) -> schemas.User | None:
        user = await self.user_gateway.get_by_username(username)
        return schemas.User.model_validate(user) if user else None

    async def get_user_by_email(self, email: str) -> schemas.User | None:
        user = await self.user_gateway.get_by_email(email)
        return schemas.User.model_validate(user) if user else None

    async def get_public_user(
        self, user_id: int, online_user_ids: Iterable[int] = ()
    ) -> schemas.PublicUser:
        user = await self._require_user(user_id)
        public = schemas.PublicUser.model_validate(user, from_attributes=True)
        return public.model_copy(update={"is_online": user.id in set(online_user_ids)})

    async def get_public_users(
        self, user_ids: Iterable[int], online_user_ids: Iterable[int] = ()
    ) -> list[schemas.PublicUser]:
        online = set(online_user_ids)
        users = await self.user_gateway.get_users(list(user_ids))
        return [
            schemas.PublicUser.model_validate(user, from_attributes=True).model_copy(
                update={"is_online": user.id in online}
            )
            for user in users
        ]

    async def create_user(self, user: schemas.UserCreate) -> schemas.User | None:
        new_user = await self.user_gateway.create_user(user, self.security_service)
        if new_user is None:
            return None
        await self.uow.commit()
        return schemas.User.model_validate(new_user)

    async def update_user(
        self, user_id: int, user_update: schemas.UserUpdate
    ) -> schemas.User:
        user = await self._require_user(user_id)
        if user_update.email and user_update.email.lower() != user.email:
            existing = await self.user_gateway.get_by_email(user_update.email)
            if existing is not None and existing.id != user.id:
                raise ValidationError("Email already registered")
        updated_user = await self.user_gateway.update_user(
            user, user_update, self.security_service
        )
        await self.uow.commit()
        return schemas.User.model_validate(updated_user)

    async def update_avatar(
        self, user_id: int, data: bytes, filename: str, content_type: str
    ) -> schemas.User:
        if self.blob_storage is None:
            raise ValidationError("Image uploads are not enabled")
        user = await self._require_user(user_id)
        avatar_url = await self.blob_storage.store(
            data, filename, content_type, folder="avatars"
        )
        updated_user = await self.user_gateway.set_avatar(user, avatar_url)
        await self.uow.commit()
        return schemas.User.model_validate(updated_user)

    async def search_users(
        self, query: str, current_user_id: int
    ) -> list[schemas.UserBasic]:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query is required")
        users = await self.user_gateway.search_users(query, current_user_id)
        return [schemas.UserBasic.model_validate(user) for user in users]

    async def mark_last_seen(self, user_id: int) -> None:
        await self.user_gateway.update_last_seen(user_id)
        await self.uow.commit()

    async def verify_user_password(
        self, username: str, password: str
    ) -> schemas.User | None:
        user = await self.user_gateway.get_by_username(username)
        if user is None:
            # the login form also accepts an email address
            user = await self.user_gateway.get_by_email(username)
        if user is None:
            return None
        if await self.user_gateway.verify_password(
            user, password, self.security_service
        ):
            return schemas.User.model_validate(user)
        return None
