# chat_relay/gateways/message_gateway.py
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.gateways.interfaces import IMessageGateway
from chat_relay.infrastructure import models
from chat_relay.infrastructure.data_mappers import SqlAlchemyMapper
from chat_relay.infrastructure.database import insert_ignoring_conflicts
from chat_relay.infrastructure.schemas import TOMBSTONE
from chat_relay.infrastructure.uow import UnitOfWork


class MessageGateway(IMessageGateway):
    """Chat Store operations on the message log.

    Every mutation below is a single statement keyed by message id, never a
    read-modify-write of the row, so two handlers working on the same message
    concurrently cannot overwrite each other's changes.
    """

    def __init__(self, session: AsyncSession, uow: UnitOfWork):
        self.session = session
        self.uow = uow
        uow.mappers[models.Message] = SqlAlchemyMapper(session)

    async def get_message(self, chat_id: int, message_id: int) -> models.Message | None:
        stmt = (
            select(models.Message)
            .filter(models.Message.id == message_id, models.Message.chat_id == chat_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def get_messages(
        self, chat_id: int, skip: int = 0, limit: int = 50
    ) -> list[models.Message]:
        stmt = (
            select(models.Message)
            .filter(models.Message.chat_id == chat_id)
            .order_by(models.Message.id.asc())
            .offset(skip)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())

    async def get_media(self, chat_id: int) -> list[models.Message]:
        stmt = (
            select(models.Message)
            .filter(
                models.Message.chat_id == chat_id,
                models.Message.image != "",
                models.Message.is_deleted.is_(False),
            )
            .order_by(models.Message.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.unique().scalars().all())

    async def count_messages(self, chat_id: int) -> int:
        stmt = select(func.count(models.Message.id)).filter(
            models.Message.chat_id == chat_id
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def get_message_ids(self, chat_id: int) -> list[int]:
        stmt = (
            select(models.Message.id)
            .filter(models.Message.chat_id == chat_id)
            .order_by(models.Message.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_last_messages(self, chat_ids: list[int]) -> dict[int, models.Message]:
        if not chat_ids:
            return {}
        latest = (
            select(func.max(models.Message.id))
            .filter(models.Message.chat_id.in_(chat_ids))
            .group_by(models.Message.chat_id)
        )
        stmt = select(models.Message).filter(models.Message.id.in_(latest))
        result = await self.session.execute(stmt)
        return {message.chat_id: message for message in result.unique().scalars().all()}

    async def create_message(
        self, chat_id: int, sender_id: int, content: str, image: str
    ) -> models.Message:
        db_message = models.Message(
            chat_id=chat_id,
            sender_id=sender_id,
            content=content,
            image=image,
        )
        self.uow.register_new(db_message)
        await self.uow.flush()

        # Reload with sender, reactions and receipts populated
        message = await self.get_message(chat_id, db_message.id)
        return message

    async def update_content(
        self, message_id: int, sender_id: int, content: str, edited_at: datetime
    ) -> bool:
        stmt = (
            update(models.Message)
            .where(
                models.Message.id == message_id,
                models.Message.sender_id == sender_id,
                models.Message.is_deleted.is_(False),
            )
            .values(content=content, edited=True, edited_at=edited_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def soft_delete(self, message_id: int, sender_id: int) -> bool:
        stmt = (
            update(models.Message)
            .where(
                models.Message.id == message_id,
                models.Message.sender_id == sender_id,
            )
            .values(content=TOMBSTONE, image="", is_deleted=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def add_reaction(self, message_id: int, symbol: str, user_id: int) -> bool:
        stmt = insert_ignoring_conflicts(
            self.session, models.MessageReaction.__table__
        ).values(message_id=message_id, symbol=symbol, user_id=user_id)
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def remove_reaction(self, message_id: int, symbol: str, user_id: int) -> bool:
        stmt = (
            delete(models.MessageReaction)
            .where(
                models.MessageReaction.message_id == message_id,
                models.MessageReaction.symbol == symbol,
                models.MessageReaction.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_read(
        self, chat_id: int, user_id: int, message_ids: list[int], read_at: datetime
    ) -> list[int]:
        requested = list(dict.fromkeys(message_ids))
        if not requested:
            return []

        stmt = select(models.Message.id).filter(
            models.Message.chat_id == chat_id, models.Message.id.in_(requested)
        )
        result = await self.session.execute(stmt)
        known = set(result.scalars().all())
        valid = [message_id for message_id in requested if message_id in known]
        if not valid:
            return []

        insert_stmt = insert_ignoring_conflicts(
            self.session, models.ReadReceipt.__table__
        ).values(
            [
                {"message_id": message_id, "user_id": user_id, "read_at": read_at}
                for message_id in valid
            ]
        )
        await self.session.execute(insert_stmt)
        return valid
