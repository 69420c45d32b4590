# chat_relay/interactors/message_interactor.py
import math
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import List, Optional

from chat_relay.domain.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
)
from chat_relay.gateways.chat_gateway import ChatGateway
from chat_relay.gateways.message_gateway import MessageGateway
from chat_relay.infrastructure import models, schemas
from chat_relay.infrastructure.blob_storage import BlobStorage
from chat_relay.infrastructure.schemas import MAX_REACTION_LENGTH
from chat_relay.infrastructure.uow import UnitOfWork


@dataclass
class Attachment:
    data: bytes
    filename: str
    content_type: str


@dataclass
class SentMessage:
    message: schemas.Message
    participant_ids: List[int]


class MessageInteractor:
    def __init__(
        self,
        uow: UnitOfWork,
        chat_gateway: ChatGateway,
        message_gateway: MessageGateway,
        blob_storage: Optional[BlobStorage] = None,
    ):
        self.uow = uow
        self.chat_gateway = chat_gateway
        self.message_gateway = message_gateway
        self.blob_storage = blob_storage

    async def _require_participant(self, chat_id: int, user_id: int) -> models.Chat:
        chat = await self.chat_gateway.get_chat(chat_id)
        if chat is None:
            raise NotFoundError(f"Chat {chat_id} not found")
        if all(participant.id != user_id for participant in chat.participants):
            raise AuthorizationError("You are not a participant of this chat")
        return chat

    async def _require_message(self, chat_id: int, message_id: int) -> models.Message:
        message = await self.message_gateway.get_message(chat_id, message_id)
        if message is None:
            raise NotFoundError(f"Message {message_id} not found")
        return message

    async def _require_own_message(
        self, chat_id: int, message_id: int, user_id: int
    ) -> models.Message:
        await self._require_participant(chat_id, user_id)
        message = await self._require_message(chat_id, message_id)
        if message.sender_id != user_id:
            raise AuthorizationError("You can only change your own messages")
        return message

    @staticmethod
    def _clean_reaction(reaction: str) -> str:
        reaction = (reaction or "").strip()
        if not reaction or len(reaction) > MAX_REACTION_LENGTH:
            raise ValidationError(
                f"Reaction must be 1 to {MAX_REACTION_LENGTH} characters"
            )
        return reaction

    async def get_messages(
        self, chat_id: int, user_id: int, page: int = 1, limit: int = 50
    ) -> schemas.MessagePage:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be positive")
        await self._require_participant(chat_id, user_id)

        total = await self.message_gateway.count_messages(chat_id)
        messages = await self.message_gateway.get_messages(
            chat_id, skip=(page - 1) * limit, limit=limit
        )
        return schemas.MessagePage(
            messages=[schemas.Message.model_validate(m) for m in messages],
            total_pages=math.ceil(total / limit),
            current_page=page,
        )

    async def get_media(self, chat_id: int, user_id: int) -> List[schemas.Message]:
        await self._require_participant(chat_id, user_id)
        messages = await self.message_gateway.get_media(chat_id)
        return [schemas.Message.model_validate(m) for m in messages]

    async def send_message(
        self,
        chat_id: int,
        user_id: int,
        content: Optional[str] = None,
        image: Optional[str] = None,
        attachment: Optional[Attachment] = None,
    ) -> SentMessage:
        chat = await self._require_participant(chat_id, user_id)

        content = (content or "").strip()
        image = (image or "").strip()
        if not content and not image and attachment is None:
            raise ValidationError("Message content or image is required")

        # upload before anything is written, a failed upload leaves no row
        if attachment is not None:
            if self.blob_storage is None:
                raise ValidationError("Image uploads are not enabled")
            image = await self.blob_storage.store(
                attachment.data,
                attachment.filename,
                attachment.content_type,
                folder="messages",
            )

        message = await self.message_gateway.create_message(
            chat_id, user_id, content, image
        )
        await self.chat_gateway.touch(chat_id)
        await self.uow.commit()

        return SentMessage(
            message=schemas.Message.model_validate(message),
            participant_ids=[participant.id for participant in chat.participants],
        )

    async def edit_message(
        self, chat_id: int, message_id: int, user_id: int, content: str
    ) -> schemas.Message:
        message = await self._require_own_message(chat_id, message_id, user_id)
        if message.is_deleted:
            raise ValidationError("Deleted messages cannot be edited")

        content = (content or "").strip()
        if not content and not message.image:
            raise ValidationError("Message content cannot be empty")

        updated = await self.message_gateway.update_content(
            message_id, user_id, content, datetime.now(UTC)
        )
        if not updated:
            # deleted by a concurrent request after the lookup above
            raise ValidationError("Deleted messages cannot be edited")
        await self.uow.commit()

        message = await self._require_message(chat_id, message_id)
        return schemas.Message.model_validate(message)

    async def delete_message(
        self, chat_id: int, message_id: int, user_id: int
    ) -> schemas.Message:
        await self._require_own_message(chat_id, message_id, user_id)
        await self.message_gateway.soft_delete(message_id, user_id)
        await self.uow.commit()

        message = await self._require_message(chat_id, message_id)
        return schemas.Message.model_validate(message)

    async def add_reaction(
        self, chat_id: int, message_id: int, user_id: int, reaction: str
    ) -> schemas.Message:
        reaction = self._clean_reaction(reaction)
        await self._require_participant(chat_id, user_id)
        await self._require_message(chat_id, message_id)

        await self.message_gateway.add_reaction(message_id, reaction, user_id)
        await self.uow.commit()

        message = await self._require_message(chat_id, message_id)
        return schemas.Message.model_validate(message)

    async def remove_reaction(
        self, chat_id: int, message_id: int, user_id: int, reaction: str
    ) -> schemas.Message:
        reaction = self._clean_reaction(reaction)
        await self._require_participant(chat_id, user_id)
        await self._require_message(chat_id, message_id)

        await self.message_gateway.remove_reaction(message_id, reaction, user_id)
        await self.uow.commit()

        message = await self._require_message(chat_id, message_id)
        return schemas.Message.model_validate(message)

    async def mark_read(
        self, chat_id: int, user_id: int, message_ids: Optional[List[int]] = None
    ) -> List[int]:
        await self._require_participant(chat_id, user_id)
        if message_ids is None:
            message_ids = await self.message_gateway.get_message_ids(chat_id)

        marked = await self.message_gateway.mark_read(
            chat_id, user_id, message_ids, datetime.now(UTC)
        )
        await self.uow.commit()
        return marked
