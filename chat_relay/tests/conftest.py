# chat_relay/tests/conftest.py
import logging
import os
import random
import string
from datetime import timedelta

# chat_relay.main builds the ASGI app at import time
os.environ.setdefault("SECRET_KEY", "test_secret_key")
os.environ.setdefault("REFRESH_SECRET_KEY", "test_refresh_secret_key")
os.environ.setdefault("REDIS_HOST", "localhost")
os.environ.setdefault("REDIS_PORT", "6379")

import pytest
from fakeredis import FakeAsyncRedis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from chat_relay.config import AppConfig
from chat_relay.gateways.chat_gateway import ChatGateway
from chat_relay.gateways.token_gateway import TokenGateway
from chat_relay.gateways.user_gateway import UserGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.database import create_database
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.redis_client import RedisClient
from chat_relay.infrastructure.security import SecurityService
from chat_relay.infrastructure.uow import UnitOfWork
from chat_relay.main import Application
from chat_relay.realtime.connection_gateway import ConnectionGateway
from chat_relay.realtime.fanout import RealtimeFanout
from chat_relay.realtime.handlers import ChatEventHandlers
from chat_relay.realtime.identity import TokenIdentityVerifier
from chat_relay.realtime.room_router import RoomRouter
from chat_relay.realtime.session_registry import SessionRegistry


class FakeTransport:
    """Records every emit instead of writing to a socket."""

    def __init__(self):
        self.sent: list[tuple[str, object, str]] = []
        self.failing: set[str] = set()

    async def emit(self, event, data, to):
        if to in self.failing:
            raise ConnectionResetError(f"socket {to} is gone")
        self.sent.append((event, data, to))

    def events(self, sid: str, event: str | None = None) -> list:
        return [
            data for name, data, to in self.sent
            if to == sid and (event is None or name == event)
        ]

    def names(self, sid: str) -> list[str]:
        return [name for name, _, to in self.sent if to == sid]

    def recipients(self, event: str) -> list[str]:
        return [to for name, _, to in self.sent if name == event]

    def clear(self):
        self.sent.clear()


def _random_suffix(k: int = 8) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=k))


@pytest.fixture(scope="function")
def app_config(tmp_path):
    return AppConfig(
        DATABASE_URL="sqlite+aiosqlite://",
        REDIS_HOST="localhost",
        REDIS_PORT=6379,
        SECRET_KEY="test_secret_key",
        REFRESH_SECRET_KEY="test_refresh_secret_key",
        PROJECT_NAME="Test Chat Relay",
        ACCESS_TOKEN_EXPIRE_MINUTES=5,
        MEDIA_ROOT=str(tmp_path / "media"),
        MEDIA_URL="/media",
        MAX_UPLOAD_BYTES=1024,
        MESSAGES_PAGE_SIZE=20,
    )


@pytest.fixture(scope="function")
def logger():
    return logging.getLogger("ChatRelay.tests")


@pytest.fixture(scope="function")
async def mock_redis():
    """Provide a fake Redis client for testing."""
    redis = FakeAsyncRedis(decode_responses=True)
    yield redis
    await redis.flushall()
    await redis.aclose()


@pytest.fixture(scope="function")
async def redis_client(mock_redis, logger):
    client = RedisClient("localhost", 6379, logger)
    client.client = mock_redis
    return client


@pytest.fixture(scope="function")
async def engine():
    """In-memory SQLite shared by every session through one connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
async def database(engine):
    database = create_database(engine)
    await database.connect()
    return database


@pytest.fixture(scope="function")
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture(scope="function")
async def uow(db_session):
    return UnitOfWork(db_session)


@pytest.fixture(scope="function")
def security_service(app_config):
    return SecurityService(app_config)


@pytest.fixture(scope="function")
def make_user(database, security_service):
    async def _make_user(username: str | None = None, password: str = "testpassword"):
        username = username or f"user_{_random_suffix()}"
        async with database.session() as session:
            uow = UnitOfWork(session)
            user = await UserGateway(session, uow).create_user(
                schemas.UserCreate(
                    username=username,
                    email=f"{username}@example.com",
                    password=password,
                    name=username.title(),
                ),
                security_service,
            )
            await uow.commit()
            return user

    return _make_user


@pytest.fixture(scope="function")
async def test_user(make_user):
    return await make_user("alice")


@pytest.fixture(scope="function")
async def test_user2(make_user):
    return await make_user("bob")


@pytest.fixture(scope="function")
async def test_user3(make_user):
    return await make_user("carol")


@pytest.fixture(scope="function")
def make_token(database, security_service):
    """Issue and store an access token, the same way a login does."""

    async def _make_token(user, expires_delta: timedelta = timedelta(minutes=5)):
        access_token, expires_at = security_service.create_access_token(
            data={"sub": user.username}, expires_delta=expires_delta
        )
        refresh_token, _ = security_service.create_refresh_token(
            data={"sub": user.username}
        )
        async with database.session() as session:
            uow = UnitOfWork(session)
            await TokenGateway(session, uow).create_token(
                schemas.TokenCreate(
                    access_token=access_token,
                    refresh_token=refresh_token,
                    token_type="bearer",
                    expires_at=expires_at,
                    user_id=user.id,
                )
            )
            await uow.commit()
        return access_token

    return _make_token


@pytest.fixture(scope="function")
def make_direct_chat(database):
    async def _make_direct_chat(user, other_user):
        async with database.session() as session:
            uow = UnitOfWork(session)
            users = UserGateway(session, uow)
            participants = [await users.get_user(user.id)]
            if other_user.id != user.id:
                participants.append(await users.get_user(other_user.id))
            chat = await ChatGateway(session, uow).create_direct_chat(participants)
            await uow.commit()
            return schemas.Chat.model_validate(chat)

    return _make_direct_chat


@pytest.fixture(scope="function")
def make_group_chat(database):
    async def _make_group_chat(admin, members, name: str = "Weekend plans"):
        async with database.session() as session:
            uow = UnitOfWork(session)
            users = UserGateway(session, uow)
            admin_model = await users.get_user(admin.id)
            member_models = await users.get_users([member.id for member in members])
            chat = await ChatGateway(session, uow).create_group_chat(
                name, admin_model, member_models
            )
            await uow.commit()
            return schemas.Chat.model_validate(chat)

    return _make_group_chat


@pytest.fixture(scope="function")
async def test_chat(make_direct_chat, test_user, test_user2):
    return await make_direct_chat(test_user, test_user2)


# Realtime core wired to a recording transport


@pytest.fixture(scope="function")
def transport():
    return FakeTransport()


@pytest.fixture(scope="function")
def room_router(transport, logger):
    return RoomRouter(transport, logger)


@pytest.fixture(scope="function")
def session_registry(room_router, logger):
    return SessionRegistry(room_router, logger)


@pytest.fixture(scope="function")
def event_dispatcher(room_router, logger):
    dispatcher = EventDispatcher(logger)
    RealtimeFanout(room_router, logger).register(dispatcher)
    return dispatcher


@pytest.fixture(scope="function")
def connection_gateway(database, security_service, session_registry, room_router, logger):
    return ConnectionGateway(
        TokenIdentityVerifier(database, security_service, logger),
        session_registry,
        room_router,
        logger,
    )


@pytest.fixture(scope="function")
def chat_handlers(database, room_router, event_dispatcher, logger):
    return ChatEventHandlers(database, room_router, event_dispatcher, logger)


@pytest.fixture(scope="function")
def connect(connection_gateway, make_token):
    """Open a socket session for ``user`` under ``sid``."""

    async def _connect(sid: str, user):
        token = await make_token(user)
        return await connection_gateway.connect(sid, {"token": token}, {})

    return _connect


# HTTP app


@pytest.fixture(scope="function")
async def application(app_config, database, redis_client, transport):
    application = Application(
        config=app_config, database=database, redis_client=redis_client
    )
    # observe socket broadcasts caused by REST calls
    application.room_router.transport = transport
    return application


@pytest.fixture(scope="function")
async def app(application):
    return application.create_app()


@pytest.fixture(scope="function")
async def client(app):
    """Provide an HTTP client with the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


@pytest.fixture(scope="function")
async def auth_header(client, test_user):
    """Provide an authorization header for authenticated requests."""
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": test_user.username, "password": "testpassword"},
    )
    assert response.status_code == 200, f"Login failed: {response.json()}"
    access_token = response.json().get("access_token")
    assert access_token is not None
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture(scope="function")
async def auth_header2(client, test_user2):
    response = await client.post(
        "/api/v1/auth/login",
        data={"username": test_user2.username, "password": "testpassword"},
    )
    assert response.status_code == 200, f"Login failed: {response.json()}"
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
