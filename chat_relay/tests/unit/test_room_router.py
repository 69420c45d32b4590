# chat_relay/tests/unit/test_room_router.py
import logging

import pytest

from chat_relay.realtime.identity import UserIdentity
from chat_relay.realtime.room_router import RoomRouter, chat_room, user_room
from chat_relay.realtime.session import Session


def attach(router, sid, user_id):
    session = Session(sid=sid, user=UserIdentity(id=user_id, username=f"user{user_id}"))
    router.attach(session)
    return session


def test_room_names():
    assert chat_room(12) == "chat:12"
    assert user_room(3) == "user:3"


def test_attach_joins_private_room(room_router):
    session = attach(room_router, "sid-1", 1)

    assert room_router.get_session("sid-1") is session
    assert room_router.room_members(user_room(1)) == frozenset({"sid-1"})
    assert session.rooms == {user_room(1)}


def test_detach_leaves_every_room(room_router):
    session = attach(room_router, "sid-1", 1)
    room_router.join_room(session, 10)
    room_router.join_room(session, 11)

    detached = room_router.detach("sid-1")

    assert detached is session
    assert room_router.get_session("sid-1") is None
    assert room_router.rooms == {}
    assert room_router.detach("sid-1") is None


def test_user_in_room_checks_any_session(room_router):
    phone = attach(room_router, "sid-phone", 1)
    attach(room_router, "sid-laptop", 1)

    assert not room_router.user_in_room(1, 10)
    room_router.join_room(phone, 10)
    assert room_router.user_in_room(1, 10)
    assert not room_router.user_in_room(2, 10)


def test_remove_user_from_room_covers_all_sessions(room_router):
    phone = attach(room_router, "sid-phone", 1)
    laptop = attach(room_router, "sid-laptop", 1)
    other = attach(room_router, "sid-other", 2)
    for session in (phone, laptop, other):
        room_router.join_room(session, 10)

    room_router.remove_user_from_room(1, 10)

    assert room_router.room_members(chat_room(10)) == frozenset({"sid-other"})
    assert chat_room(10) not in phone.rooms
    assert chat_room(10) not in laptop.rooms


@pytest.mark.asyncio
async def test_room_broadcast_reaches_only_members(room_router, transport):
    alice = attach(room_router, "sid-a", 1)
    bob = attach(room_router, "sid-b", 2)
    attach(room_router, "sid-c", 3)
    room_router.join_room(alice, 10)
    room_router.join_room(bob, 10)

    delivered = await room_router.broadcast_to_room(10, "ping", {"n": 1})

    assert delivered == 2
    assert sorted(transport.recipients("ping")) == ["sid-a", "sid-b"]


@pytest.mark.asyncio
async def test_broadcast_except_sender(room_router, transport):
    alice = attach(room_router, "sid-a", 1)
    bob = attach(room_router, "sid-b", 2)
    room_router.join_room(alice, 10)
    room_router.join_room(bob, 10)

    await room_router.broadcast_except_sender(10, "user-typing", {}, alice)

    assert transport.recipients("user-typing") == ["sid-b"]


@pytest.mark.asyncio
async def test_broadcast_to_user_reaches_every_session(room_router, transport):
    attach(room_router, "sid-phone", 1)
    attach(room_router, "sid-laptop", 1)
    attach(room_router, "sid-other", 2)

    delivered = await room_router.broadcast_to_user(1, "hello", "hi")

    assert delivered == 2
    assert sorted(transport.recipients("hello")) == ["sid-laptop", "sid-phone"]


@pytest.mark.asyncio
async def test_broadcast_all_with_skip(room_router, transport):
    attach(room_router, "sid-a", 1)
    attach(room_router, "sid-b", 2)

    await room_router.broadcast_all("user-online", 1, skip_sid="sid-a")

    assert transport.recipients("user-online") == ["sid-b"]


@pytest.mark.asyncio
async def test_empty_room_delivers_nothing(room_router, transport):
    assert await room_router.broadcast_to_room(99, "ping", {}) == 0
    assert transport.sent == []


@pytest.mark.asyncio
async def test_failed_send_does_not_block_other_recipients(room_router, transport, caplog):
    caplog.set_level(logging.WARNING)
    for sid, user_id in [("sid-a", 1), ("sid-b", 2), ("sid-c", 3)]:
        room_router.join_room(attach(room_router, sid, user_id), 10)
    transport.failing.add("sid-b")

    delivered = await room_router.broadcast_to_room(10, "receive-message", {"id": 1})

    assert delivered == 3
    assert sorted(transport.recipients("receive-message")) == ["sid-a", "sid-c"]
    assert "Failed to deliver receive-message to sid-b" in caplog.text


@pytest.mark.asyncio
async def test_membership_change_during_delivery_uses_snapshot(logger):
    sent = []

    class DetachingTransport:
        async def emit(self, event, data, to):
            # the first recipient leaves while the broadcast is still running
            router.detach("sid-b")
            sent.append(to)

    router = RoomRouter(DetachingTransport(), logger)
    for sid, user_id in [("sid-a", 1), ("sid-b", 2), ("sid-c", 3)]:
        router.join_room(attach(router, sid, user_id), 10)

    delivered = await router.broadcast_to_room(10, "receive-message", {})

    assert delivered == 3
    assert sorted(sent) == ["sid-a", "sid-b", "sid-c"]
    assert router.room_members(chat_room(10)) == frozenset({"sid-a", "sid-c"})


def test_join_room_ignores_detached_session(room_router):
    alice = attach(room_router, "sid-alice", 1)
    bob = attach(room_router, "sid-bob", 2)
    room_router.join_room(alice, 10)
    room_router.detach("sid-bob")

    assert room_router.join_room(bob, 10) is False
    assert room_router.room_members(chat_room(10)) == frozenset({"sid-alice"})
    assert bob.rooms == set()
