# chat_relay/interactors/chat_interactor.py
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from chat_relay.domain.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from chat_relay.gateways.chat_gateway import ChatGateway
from chat_relay.gateways.message_gateway import MessageGateway
from chat_relay.gateways.user_gateway import UserGateway
from chat_relay.infrastructure import models, schemas
from chat_relay.infrastructure.blob_storage import BlobStorage
from chat_relay.infrastructure.uow import UnitOfWork


class ChatInteractor:
    def __init__(
        self,
        uow: UnitOfWork,
        chat_gateway: ChatGateway,
        user_gateway: UserGateway,
        message_gateway: MessageGateway,
        blob_storage: Optional[BlobStorage] = None,
    ):
        self.uow = uow
        self.chat_gateway = chat_gateway
        self.user_gateway = user_gateway
        self.message_gateway = message_gateway
        self.blob_storage = blob_storage

    async def _require_chat(self, chat_id: int) -> models.Chat:
        chat = await self.chat_gateway.get_chat(chat_id)
        if chat is None:
            raise NotFoundError(f"Chat {chat_id} not found")
        return chat

    async def _require_participant(self, chat_id: int, user_id: int) -> models.Chat:
        chat = await self._require_chat(chat_id)
        if all(participant.id != user_id for participant in chat.participants):
            raise AuthorizationError("You are not a participant of this chat")
        return chat

    async def _require_group_admin(self, chat_id: int, user_id: int) -> models.Chat:
        chat = await self._require_participant(chat_id, user_id)
        if not chat.is_group:
            raise ValidationError("This is not a group chat")
        if chat.admin_id != user_id:
            raise AuthorizationError("You are not the admin of this group")
        return chat

    async def _require_user(self, user_id: int) -> models.User:
        user = await self.user_gateway.get_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def get_chat(self, chat_id: int, user_id: int) -> schemas.Chat:
        chat = await self._require_participant(chat_id, user_id)
        return schemas.Chat.model_validate(chat)

    async def get_participant_ids(self, chat_id: int, user_id: int) -> List[int]:
        await self._require_participant(chat_id, user_id)
        return await self.chat_gateway.get_participant_ids(chat_id)

    async def is_participant(self, chat_id: int, user_id: int) -> bool:
        return await self.chat_gateway.is_participant(chat_id, user_id)

    async def get_chats(self, user_id: int) -> List[schemas.ChatSummary]:
        chats = await self.chat_gateway.get_user_chats(user_id)
        last_messages = await self.message_gateway.get_last_messages(
            [chat.id for chat in chats]
        )
        summaries = []
        for chat in chats:
            summary = schemas.ChatSummary.model_validate(chat)
            last_message = last_messages.get(chat.id)
            if last_message is not None:
                summary = summary.model_copy(
                    update={"last_message": schemas.Message.model_validate(last_message)}
                )
            summaries.append(summary)
        return summaries

    async def get_or_create_direct_chat(
        self, user_id: int, other_user_id: int
    ) -> Tuple[schemas.Chat, bool]:
        chat = await self.chat_gateway.get_direct_chat(user_id, other_user_id)
        if chat is not None:
            return schemas.Chat.model_validate(chat), False

        me = await self._require_user(user_id)
        participants = [me]
        if other_user_id != user_id:
            participants.append(await self._require_user(other_user_id))

        try:
            chat = await self.chat_gateway.create_direct_chat(participants)
            await self.uow.commit()
        except IntegrityError:
            # another request created the same pair first
            await self.uow.rollback()
            chat = await self.chat_gateway.get_direct_chat(user_id, other_user_id)
            if chat is None:
                raise
            return schemas.Chat.model_validate(chat), False
        return schemas.Chat.model_validate(chat), True

    async def create_group(
        self, admin_id: int, group: schemas.GroupCreate
    ) -> schemas.Chat:
        name = group.name.strip()
        if not name:
            raise ValidationError("Group name is required")
        admin = await self._require_user(admin_id)
        members = await self.user_gateway.get_users(group.participant_ids)
        missing = set(group.participant_ids) - {member.id for member in members}
        if missing:
            raise NotFoundError(f"Users not found: {sorted(missing)}")

        chat = await self.chat_gateway.create_group_chat(name, admin, members)
        await self.uow.commit()
        return schemas.Chat.model_validate(chat)

    async def rename_group(self, chat_id: int, user_id: int, name: str) -> schemas.Chat:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Group name is required")
        chat = await self._require_group_admin(chat_id, user_id)
        chat = await self.chat_gateway.update_group(chat, name=name)
        await self.uow.commit()
        return schemas.Chat.model_validate(chat)

    async def update_group_icon(
        self, chat_id: int, user_id: int, data: bytes, filename: str, content_type: str
    ) -> schemas.Chat:
        if self.blob_storage is None:
            raise ValidationError("Image uploads are not enabled")
        chat = await self._require_group_admin(chat_id, user_id)
        icon_url = await self.blob_storage.store(
            data, filename, content_type, folder="group-icons"
        )
        chat = await self.chat_gateway.update_group(chat, icon=icon_url)
        await self.uow.commit()
        return schemas.Chat.model_validate(chat)

    async def add_participant(
        self, chat_id: int, user_id: int, new_user_id: int
    ) -> schemas.Chat:
        chat = await self._require_group_admin(chat_id, user_id)
        if any(participant.id == new_user_id for participant in chat.participants):
            raise ValidationError("User already in group")
        new_user = await self._require_user(new_user_id)

        chat = await self.chat_gateway.add_participant(chat, new_user)
        await self.uow.commit()
        return schemas.Chat.model_validate(chat)

    async def remove_participant(
        self, chat_id: int, user_id: int, removed_user_id: int
    ) -> schemas.Chat:
        chat = await self._require_group_admin(chat_id, user_id)
        participant_ids = [participant.id for participant in chat.participants]
        if removed_user_id not in participant_ids:
            raise NotFoundError("User is not a participant of this group")
        if len(participant_ids) == 1:
            raise ValidationError("Cannot remove the last member of a group")

        chat = await self.chat_gateway.remove_participant(chat, removed_user_id)
        if chat.admin_id == removed_user_id:
            # the admin left, hand the group to the longest-standing member
            chat = await self.chat_gateway.update_group(
                chat, admin_id=chat.participants[0].id
            )
        await self.uow.commit()
        return schemas.Chat.model_validate(chat)
