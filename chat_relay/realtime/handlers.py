# chat_relay/realtime/handlers.py
import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, AsyncIterator, Awaitable, Callable, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PayloadError

from chat_relay.domain.events import (
    MessageCreated,
    MessageDeleted,
    MessageEdited,
    MessagesRead,
    ReactionAdded,
    ReactionRemoved,
)
from chat_relay.domain.exceptions import (
    AuthorizationError,
    ChatError,
    ValidationError,
)
from chat_relay.gateways.chat_gateway import ChatGateway
from chat_relay.gateways.message_gateway import MessageGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.blob_storage import BlobStorage
from chat_relay.infrastructure.database import Database
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.uow import UnitOfWork
from chat_relay.interactors.message_interactor import MessageInteractor
from chat_relay.realtime.room_router import RoomRouter
from chat_relay.realtime.session import Session

PayloadT = TypeVar("PayloadT", bound=BaseModel)

INTERNAL_ERROR = {"message": "Internal server error", "kind": "internal"}


def parse_payload(model: Type[PayloadT], data: Any) -> PayloadT:
    try:
        return model.model_validate(data)
    except PayloadError as e:
        error = e.errors()[0]
        location = ".".join(str(part) for part in error["loc"]) or "payload"
        raise ValidationError(f"Invalid {location}: {error['msg']}")


def parse_chat_id(data: Any) -> int:
    if isinstance(data, dict):
        data = data.get("chatId", data.get("chat_id"))
    if isinstance(data, bool):
        raise ValidationError("Invalid chat id")
    try:
        return int(data)
    except (TypeError, ValueError):
        raise ValidationError("Invalid chat id")


class ChatEventHandlers:
    """Inbound socket events.

    Every event gets its own database session. Mutations are committed by
    the interactor before the domain event is dispatched, so nothing is
    broadcast for a change that did not persist.
    """

    def __init__(
        self,
        database: Database,
        router: RoomRouter,
        dispatcher: EventDispatcher,
        logger: logging.Logger,
        blob_storage: Optional[BlobStorage] = None,
    ):
        self.database = database
        self.router = router
        self.dispatcher = dispatcher
        self.logger = logger
        self.blob_storage = blob_storage
        self.handlers: dict[str, Callable[[Session, Any], Awaitable[None]]] = {
            "join-chat": self.join_chat,
            "join-chats": self.join_chats,
            "leave-chat": self.leave_chat,
            "send-message": self.send_message,
            "typing": self.typing,
            "edit-message": self.edit_message,
            "delete-message": self.delete_message,
            "add-reaction": self.add_reaction,
            "remove-reaction": self.remove_reaction,
            "mark-read": self.mark_read,
        }

    @property
    def events(self) -> list[str]:
        return list(self.handlers)

    @asynccontextmanager
    async def _store(self) -> AsyncIterator[tuple[MessageInteractor, ChatGateway]]:
        async with self.database.session() as db_session:
            uow = UnitOfWork(db_session)
            chat_gateway = ChatGateway(db_session, uow)
            message_gateway = MessageGateway(db_session, uow)
            yield (
                MessageInteractor(uow, chat_gateway, message_gateway, self.blob_storage),
                chat_gateway,
            )

    async def handle(self, event: str, sid: str, data: Any = None) -> None:
        session = self.router.get_session(sid)
        if session is None:
            self.logger.warning(f"Dropping {event} from unknown sid {sid}")
            return
        handler = self.handlers[event]
        try:
            await handler(session, data)
        except ChatError as e:
            self.logger.info(
                f"{event} from user {session.user_id} rejected ({e.kind}): {e.message}"
            )
            await self.router.emit_to_session(sid, "error", e.to_payload())
        except Exception:
            self.logger.exception(f"Unhandled error in {event} from user {session.user_id}")
            await self.router.emit_to_session(sid, "error", dict(INTERNAL_ERROR))

    async def join_chat(self, session: Session, data: Any) -> None:
        chat_id = parse_chat_id(data)
        async with self._store() as (_, chats):
            if not await chats.is_participant(chat_id, session.user_id):
                raise AuthorizationError("You are not a participant of this chat")
        if not self.router.join_room(session, chat_id):
            self.logger.info(f"Sid {session.sid} closed before joining chat {chat_id}")

    async def join_chats(self, session: Session, data: Any) -> None:
        if not isinstance(data, list):
            raise ValidationError("join-chats expects a list of chat ids")
        chat_ids = [parse_chat_id(item) for item in data]
        async with self._store() as (_, chats):
            for chat_id in chat_ids:
                if not await chats.is_participant(chat_id, session.user_id):
                    self.logger.info(
                        f"User {session.user_id} skipped chat {chat_id}, not a participant"
                    )
                elif not self.router.join_room(session, chat_id):
                    self.logger.info(f"Sid {session.sid} closed before joining chat {chat_id}")
                    return

    async def leave_chat(self, session: Session, data: Any) -> None:
        self.router.leave_room(session, parse_chat_id(data))

    async def send_message(self, session: Session, data: Any) -> None:
        payload = parse_payload(schemas.SendMessagePayload, data)
        async with self._store() as (messages, _):
            sent = await messages.send_message(
                payload.chat_id, session.user_id, payload.content, payload.image
            )
        await self.dispatcher.dispatch(
            MessageCreated(
                origin_sid=session.sid,
                chat_id=payload.chat_id,
                user_id=session.user_id,
                message=sent.message,
                participant_ids=sent.participant_ids,
                temp_id=payload.temp_id,
            )
        )

    async def typing(self, session: Session, data: Any) -> None:
        payload = parse_payload(schemas.TypingPayload, data)
        async with self._store() as (_, chats):
            if not await chats.is_participant(payload.chat_id, session.user_id):
                raise AuthorizationError("You are not a participant of this chat")
        await self.router.broadcast_except_sender(
            payload.chat_id,
            "user-typing",
            {
                "userId": session.user_id,
                "isTyping": payload.is_typing,
                "chatId": payload.chat_id,
                "userName": session.user.display_name,
            },
            session,
        )

    async def edit_message(self, session: Session, data: Any) -> None:
        payload = parse_payload(schemas.EditMessagePayload, data)
        async with self._store() as (messages, _):
            message = await messages.edit_message(
                payload.chat_id, payload.message_id, session.user_id, payload.content
            )
        await self.dispatcher.dispatch(
            MessageEdited(
                origin_sid=session.sid,
                chat_id=payload.chat_id,
                user_id=session.user_id,
                message_id=message.id,
                content=message.content,
                edited_at=message.edited_at,
            )
        )

    async def delete_message(self, session: Session, data: Any) -> None:
        payload = parse_payload(schemas.DeleteMessagePayload, data)
        async with self._store() as (messages, _):
            message = await messages.delete_message(
                payload.chat_id, payload.message_id, session.user_id
            )
        await self.dispatcher.dispatch(
            MessageDeleted(
                origin_sid=session.sid,
                chat_id=payload.chat_id,
                user_id=session.user_id,
                message_id=message.id,
            )
        )

    async def add_reaction(self, session: Session, data: Any) -> None:
        payload = parse_payload(schemas.ReactionPayload, data)
        async with self._store() as (messages, _):
            await messages.add_reaction(
                payload.chat_id, payload.message_id, session.user_id, payload.reaction
            )
        await self.dispatcher.dispatch(
            ReactionAdded(
                origin_sid=session.sid,
                chat_id=payload.chat_id,
                user_id=session.user_id,
                message_id=payload.message_id,
                reaction=payload.reaction.strip(),
            )
        )

    async def remove_reaction(self, session: Session, data: Any) -> None:
        payload = parse_payload(schemas.ReactionPayload, data)
        async with self._store() as (messages, _):
            await messages.remove_reaction(
                payload.chat_id, payload.message_id, session.user_id, payload.reaction
            )
        await self.dispatcher.dispatch(
            ReactionRemoved(
                origin_sid=session.sid,
                chat_id=payload.chat_id,
                user_id=session.user_id,
                message_id=payload.message_id,
                reaction=payload.reaction.strip(),
            )
        )

    async def mark_read(self, session: Session, data: Any) -> None:
        payload = parse_payload(schemas.MarkReadPayload, data)
        async with self._store() as (messages, _):
            marked = await messages.mark_read(
                payload.chat_id, session.user_id, payload.message_ids
            )
        if not marked:
            return
        await self.dispatcher.dispatch(
            MessagesRead(
                origin_sid=session.sid,
                chat_id=payload.chat_id,
                user_id=session.user_id,
                message_ids=marked,
                read_at=datetime.now(UTC),
            )
        )
