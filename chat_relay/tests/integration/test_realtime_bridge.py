import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


@pytest.fixture
def online(application, make_token):
    """Connect ``user`` to the app's socket gateway under ``sid``."""

    async def _online(sid, user, *chat_ids):
        token = await make_token(user)
        await application.connection_gateway.connect(sid, {"token": token}, {})
        for chat_id in chat_ids:
            await application.chat_handlers.handle("join-chat", sid, {"chatId": chat_id})

    return _online


async def test_rest_send_reaches_socket_room(client: AsyncClient, online, transport, auth_header, test_chat, test_user2):
    await online("bob-sid", test_user2, test_chat.id)
    transport.clear()

    response = await client.post(
        f"/api/v1/chats/{test_chat.id}/messages",
        headers=auth_header,
        data={"content": "over http", "temp_id": "tmp-1"},
    )
    assert response.status_code == 201

    delivered = transport.events("bob-sid", "receive-message")
    assert len(delivered) == 1
    assert delivered[0]["id"] == response.json()["id"]
    assert delivered[0]["content"] == "over http"
    assert delivered[0]["chatId"] == test_chat.id
    assert delivered[0]["tempId"] == "tmp-1"


async def test_rest_send_notifies_outside_room(client: AsyncClient, online, transport, auth_header, test_chat, test_user2):
    await online("bob-sid", test_user2)
    transport.clear()

    await client.post(
        f"/api/v1/chats/{test_chat.id}/messages", headers=auth_header, data={"content": "psst"}
    )

    assert transport.names("bob-sid") == ["new-message-notification"]
    notification = transport.events("bob-sid")[0]
    assert notification["chatId"] == test_chat.id
    assert notification["message"]["content"] == "psst"


async def test_rest_edits_and_reactions_reach_room(client: AsyncClient, online, transport, auth_header, test_chat, test_user, test_user2):
    await online("bob-sid", test_user2, test_chat.id)
    sent = await client.post(
        f"/api/v1/chats/{test_chat.id}/messages", headers=auth_header, data={"content": "draft"}
    )
    message_id = sent.json()["id"]
    transport.clear()

    await client.put(
        f"/api/v1/chats/{test_chat.id}/messages/{message_id}",
        headers=auth_header,
        json={"content": "final"},
    )
    await client.post(
        f"/api/v1/chats/{test_chat.id}/messages/{message_id}/reactions",
        headers=auth_header,
        json={"reaction": "🎉"},
    )
    await client.delete(
        f"/api/v1/chats/{test_chat.id}/messages/{message_id}", headers=auth_header
    )

    assert transport.names("bob-sid") == ["message-edited", "reaction-added", "message-deleted"]
    edited, reaction, deleted = transport.events("bob-sid")
    assert edited["messageId"] == message_id
    assert edited["content"] == "final"
    assert reaction == {
        "messageId": message_id,
        "reaction": "🎉",
        "userId": test_user.id,
    }
    assert deleted == {"messageId": message_id}


async def test_rest_mark_read_reaches_room(client: AsyncClient, online, transport, auth_header, auth_header2, test_chat, test_user, test_user2):
    await online("alice-sid", test_user, test_chat.id)
    sent = await client.post(
        f"/api/v1/chats/{test_chat.id}/messages", headers=auth_header, data={"content": "seen?"}
    )
    transport.clear()

    await client.post(
        f"/api/v1/chats/{test_chat.id}/messages/read",
        headers=auth_header2,
        json={"message_ids": [sent.json()["id"]]},
    )

    assert transport.events("alice-sid", "messages-read") == [
        {"messageIds": [sent.json()["id"]], "userId": test_user2.id}
    ]


async def test_health(client: AsyncClient, online, test_user):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "redis": True, "online_users": 0}

    await online("alice-sid", test_user)
    response = await client.get("/health")
    assert response.json()["online_users"] == 1
