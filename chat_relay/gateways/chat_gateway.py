# chat_relay/gateways/chat_gateway.py
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.gateways.interfaces import IChatGateway
from chat_relay.infrastructure import models
from chat_relay.infrastructure.data_mappers import SqlAlchemyMapper
from chat_relay.infrastructure.models import chat_participants, utcnow
from chat_relay.infrastructure.uow import UnitOfWork


def direct_key(user_id: int, other_user_id: int) -> str:
    low, high = sorted((user_id, other_user_id))
    return f"{low}:{high}"


class ChatGateway(IChatGateway):
    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Chat] = SqlAlchemyMapper(session)

    async def get_chat(self, chat_id: int) -> Optional[models.Chat]:
        stmt = select(models.Chat).filter(models.Chat.id == chat_id)
        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def get_user_chats(self, user_id: int) -> List[models.Chat]:
        stmt = (
            select(models.Chat)
            .filter(models.Chat.participants.any(id=user_id))
            .order_by(models.Chat.updated_at.desc(), models.Chat.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())

    async def get_direct_chat(
        self, user_id: int, other_user_id: int
    ) -> Optional[models.Chat]:
        stmt = select(models.Chat).filter(
            models.Chat.direct_key == direct_key(user_id, other_user_id)
        )
        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def create_direct_chat(self, participants: List[models.User]) -> models.Chat:
        user_ids = [participant.id for participant in participants]
        db_chat = models.Chat(
            is_group=False,
            direct_key=direct_key(user_ids[0], user_ids[-1]),
        )
        db_chat.participants = list(participants)
        self.uow.register_new(db_chat)
        await self.uow.flush()
        return db_chat

    async def create_group_chat(
        self,
        name: str,
        admin: models.User,
        participants: List[models.User],
        icon: str = "",
    ) -> models.Chat:
        db_chat = models.Chat(name=name, is_group=True, admin_id=admin.id, icon=icon)
        members = [admin] + [user for user in participants if user.id != admin.id]
        db_chat.participants = members
        self.uow.register_new(db_chat)
        await self.uow.flush()
        return db_chat

    async def update_group(self, chat: models.Chat, **changes) -> models.Chat:
        for key, value in changes.items():
            setattr(chat, key, value)
        chat.updated_at = utcnow()
        self.uow.register_dirty(chat)
        await self.uow.flush()
        return chat

    async def add_participant(self, chat: models.Chat, user: models.User) -> models.Chat:
        if any(participant.id == user.id for participant in chat.participants):
            return chat
        chat.participants.append(user)
        chat.updated_at = utcnow()
        self.uow.register_dirty(chat)
        await self.uow.flush()
        return chat

    async def remove_participant(self, chat: models.Chat, user_id: int) -> models.Chat:
        chat.participants = [p for p in chat.participants if p.id != user_id]
        chat.updated_at = utcnow()
        self.uow.register_dirty(chat)
        await self.uow.flush()
        return chat

    async def get_participant_ids(self, chat_id: int) -> List[int]:
        stmt = (
            select(chat_participants.c.user_id)
            .filter(chat_participants.c.chat_id == chat_id)
            .order_by(chat_participants.c.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def is_participant(self, chat_id: int, user_id: int) -> bool:
        stmt = select(chat_participants.c.id).filter(
            chat_participants.c.chat_id == chat_id,
            chat_participants.c.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def touch(self, chat_id: int) -> None:
        stmt = (
            update(models.Chat)
            .where(models.Chat.id == chat_id)
            .values(updated_at=utcnow())
        )
        await self.session.execute(stmt)
