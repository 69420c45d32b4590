# chat_relay/infrastructure/event_handlers.py
import logging
from typing import Any, Protocol

import redis.asyncio as redis

from chat_relay.domain.events import GroupChatCreated, MessageCreated, ParticipantAdded
from chat_relay.infrastructure.redis_client import RedisClient

PREVIEW_LENGTH = 100


class Presence(Protocol):
    def is_online(self, user_id: int) -> bool: ...


def notification_channel(user_id: int) -> str:
    return f"notifications:{user_id}"


class EventHandlers:
    """Publishes push notifications for users without a live connection.

    A push worker subscribed to ``notifications:<user_id>`` turns these into
    device notifications. Online users already got the event over their
    socket, so they are skipped.
    """

    def __init__(
        self, redis_client: RedisClient, presence: Presence, logger: logging.Logger
    ):
        self.redis_client = redis_client
        self.presence = presence
        self.logger = logger

    async def _push(self, user_id: int, payload: dict[str, Any]) -> None:
        if self.presence.is_online(user_id):
            return
        try:
            await self.redis_client.publish_json(notification_channel(user_id), payload)
        except (redis.RedisError, RuntimeError) as e:
            self.logger.warning(f"Push notification for user {user_id} dropped: {e!s}")

    async def publish_message_created(self, event: MessageCreated):
        message = event.message
        sender_name = message.sender.name or message.sender.username
        body = message.content[:PREVIEW_LENGTH] if message.content else "Sent an image"
        payload = {
            "type": "message",
            "title": f"New message from {sender_name}",
            "body": body,
            "chat_id": event.chat_id,
            "message_id": message.id,
            "sender_id": message.sender.id,
        }
        for user_id in event.participant_ids:
            if user_id != event.user_id:
                await self._push(user_id, payload)

    async def publish_group_chat_created(self, event: GroupChatCreated):
        payload = {
            "type": "group",
            "title": "Added to a new group",
            "body": event.chat.name or "",
            "chat_id": event.chat_id,
        }
        for user_id in event.chat.participant_ids:
            if user_id != event.user_id:
                await self._push(user_id, payload)

    async def publish_participant_added(self, event: ParticipantAdded):
        await self._push(
            event.participant_id,
            {
                "type": "group",
                "title": "Added to a group",
                "body": event.chat.name or "",
                "chat_id": event.chat_id,
            },
        )
