# chat_relay/tests/unit/test_event_handlers.py
import json
import logging
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
import redis

from chat_relay.domain.events import GroupChatCreated, MessageCreated, ParticipantAdded
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.event_handlers import EventHandlers, notification_channel
from chat_relay.infrastructure.redis_client import RedisClient


class StaticPresence:
    def __init__(self, online=()):
        self.online = set(online)

    def is_online(self, user_id):
        return user_id in self.online


@pytest.fixture
def published(redis_client):
    redis_client.client = AsyncMock()
    return redis_client.client.publish


def make_message(content="Hello there", image=""):
    return schemas.Message(
        id=5,
        chat_id=1,
        sender=schemas.UserBasic(id=1, username="alice", name="Alice"),
        content=content,
        image=image,
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


def make_chat(participant_ids, name="Trip"):
    return schemas.Chat(
        id=3,
        name=name,
        is_group=True,
        admin_id=participant_ids[0],
        created_at=datetime(2024, 1, 1, tzinfo=UTC),
        updated_at=datetime(2024, 1, 1, tzinfo=UTC),
        participants=[schemas.UserBasic(id=i, username=f"user{i}") for i in participant_ids],
    )


def pushes(published):
    return {call.args[0]: json.loads(call.args[1]) for call in published.call_args_list}


def test_notification_channel():
    assert notification_channel(42) == "notifications:42"


@pytest.mark.asyncio
async def test_message_push_skips_sender_and_online_users(redis_client, published, logger):
    handlers = EventHandlers(redis_client, StaticPresence(online={2}), logger)

    await handlers.publish_message_created(
        MessageCreated(chat_id=1, user_id=1, message=make_message(), participant_ids=[1, 2, 3])
    )

    assert pushes(published) == {
        "notifications:3": {
            "type": "message",
            "title": "New message from Alice",
            "body": "Hello there",
            "chat_id": 1,
            "message_id": 5,
            "sender_id": 1,
        }
    }


@pytest.mark.asyncio
async def test_message_preview_is_truncated(redis_client, published, logger):
    handlers = EventHandlers(redis_client, StaticPresence(), logger)

    await handlers.publish_message_created(
        MessageCreated(chat_id=1, user_id=1, message=make_message("x" * 250), participant_ids=[1, 2])
    )

    assert pushes(published)["notifications:2"]["body"] == "x" * 100


@pytest.mark.asyncio
async def test_image_message_preview(redis_client, published, logger):
    handlers = EventHandlers(redis_client, StaticPresence(), logger)

    await handlers.publish_message_created(
        MessageCreated(
            chat_id=1, user_id=1, message=make_message("", "/media/a.png"), participant_ids=[1, 2]
        )
    )

    assert pushes(published)["notifications:2"]["body"] == "Sent an image"


@pytest.mark.asyncio
async def test_group_pushes(redis_client, published, logger):
    handlers = EventHandlers(redis_client, StaticPresence(), logger)
    chat = make_chat([1, 2, 3])

    await handlers.publish_group_chat_created(GroupChatCreated(chat_id=3, user_id=1, chat=chat))
    await handlers.publish_participant_added(
        ParticipantAdded(chat_id=3, user_id=1, chat=chat, participant_id=3)
    )

    channels = [call.args[0] for call in published.call_args_list]
    assert channels == ["notifications:2", "notifications:3", "notifications:3"]
    assert json.loads(published.call_args_list[-1].args[1])["title"] == "Added to a group"


@pytest.mark.asyncio
async def test_redis_failure_is_swallowed(redis_client, published, logger, caplog):
    caplog.set_level(logging.WARNING)
    published.side_effect = redis.ConnectionError("Connection refused")
    handlers = EventHandlers(redis_client, StaticPresence(), logger)

    await handlers.publish_message_created(
        MessageCreated(chat_id=1, user_id=1, message=make_message(), participant_ids=[1, 2])
    )

    assert "Push notification for user 2 dropped" in caplog.text


@pytest.mark.asyncio
async def test_disconnected_client_is_swallowed(logger, caplog):
    caplog.set_level(logging.WARNING)
    handlers = EventHandlers(RedisClient("localhost", 6379, logger), StaticPresence(), logger)

    await handlers.publish_participant_added(
        ParticipantAdded(chat_id=3, user_id=1, chat=make_chat([1, 2]), participant_id=2)
    )

    assert "Redis client not connected" in caplog.text
