# chat_relay/realtime/fanout.py
import logging

from chat_relay.domain.events import (
    GroupChatCreated,
    GroupUpdated,
    MessageCreated,
    MessageDeleted,
    MessageEdited,
    MessagesRead,
    ParticipantAdded,
    ParticipantRemoved,
    ReactionAdded,
    ReactionRemoved,
)
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.realtime.room_router import RoomRouter


def _participants(chat: schemas.Chat) -> list[dict]:
    return [participant.model_dump(mode="json") for participant in chat.participants]


class RealtimeFanout:
    """Turns committed domain events into socket broadcasts."""

    def __init__(self, router: RoomRouter, logger: logging.Logger):
        self.router = router
        self.logger = logger

    def register(self, dispatcher: EventDispatcher) -> None:
        dispatcher.register("MessageCreated", self.on_message_created)
        dispatcher.register("MessageEdited", self.on_message_edited)
        dispatcher.register("MessageDeleted", self.on_message_deleted)
        dispatcher.register("ReactionAdded", self.on_reaction_added)
        dispatcher.register("ReactionRemoved", self.on_reaction_removed)
        dispatcher.register("MessagesRead", self.on_messages_read)
        dispatcher.register("GroupChatCreated", self.on_group_chat_created)
        dispatcher.register("GroupUpdated", self.on_group_updated)
        dispatcher.register("ParticipantAdded", self.on_participant_added)
        dispatcher.register("ParticipantRemoved", self.on_participant_removed)

    async def on_message_created(self, event: MessageCreated):
        message = event.message.model_dump(mode="json")
        await self.router.broadcast_to_room(
            event.chat_id,
            "receive-message",
            {**message, "chatId": event.chat_id, "tempId": event.temp_id},
        )

        notification = {"chatId": event.chat_id, "message": message}
        for user_id in event.participant_ids:
            if user_id == event.user_id:
                continue
            # participants viewing the chat already got receive-message
            if self.router.user_in_room(user_id, event.chat_id):
                continue
            await self.router.broadcast_to_user(
                user_id, "new-message-notification", notification
            )

    async def on_message_edited(self, event: MessageEdited):
        await self.router.broadcast_to_room(
            event.chat_id,
            "message-edited",
            {
                "messageId": event.message_id,
                "content": event.content,
                "edited": True,
                "editedAt": event.edited_at.isoformat(),
            },
        )

    async def on_message_deleted(self, event: MessageDeleted):
        await self.router.broadcast_to_room(
            event.chat_id, "message-deleted", {"messageId": event.message_id}
        )

    async def on_reaction_added(self, event: ReactionAdded):
        await self.router.broadcast_to_room(
            event.chat_id,
            "reaction-added",
            {
                "messageId": event.message_id,
                "reaction": event.reaction,
                "userId": event.user_id,
            },
        )

    async def on_reaction_removed(self, event: ReactionRemoved):
        await self.router.broadcast_to_room(
            event.chat_id,
            "reaction-removed",
            {
                "messageId": event.message_id,
                "reaction": event.reaction,
                "userId": event.user_id,
            },
        )

    async def on_messages_read(self, event: MessagesRead):
        await self.router.broadcast_to_room(
            event.chat_id,
            "messages-read",
            {"messageIds": event.message_ids, "userId": event.user_id},
            skip_sid=event.origin_sid,
        )

    async def on_group_chat_created(self, event: GroupChatCreated):
        chat = event.chat.model_dump(mode="json")
        for user_id in event.chat.participant_ids:
            if user_id != event.user_id:
                await self.router.broadcast_to_user(user_id, "new-group-chat", chat)

    async def on_group_updated(self, event: GroupUpdated):
        await self.router.broadcast_to_room(
            event.chat_id, "group-updated", {"chatId": event.chat_id, **event.changes}
        )

    async def on_participant_added(self, event: ParticipantAdded):
        await self.router.broadcast_to_user(
            event.participant_id, "added-to-chat", event.chat.model_dump(mode="json")
        )
        await self.router.broadcast_to_room(
            event.chat_id,
            "group-updated",
            {"chatId": event.chat_id, "participants": _participants(event.chat)},
        )

    async def on_participant_removed(self, event: ParticipantRemoved):
        self.router.remove_user_from_room(event.participant_id, event.chat_id)
        await self.router.broadcast_to_user(
            event.participant_id, "removed-from-chat", {"chatId": event.chat_id}
        )
        await self.router.broadcast_to_room(
            event.chat_id,
            "group-updated",
            {
                "chatId": event.chat_id,
                "participants": _participants(event.chat),
                "adminId": event.chat.admin_id,
            },
        )
