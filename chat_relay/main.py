# chat_relay/main.py
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import create_async_engine

from chat_relay.api import auth, chats, messages, users
from chat_relay.config import AppConfig
from chat_relay.domain.exceptions import AuthenticationError, ChatError
from chat_relay.gateways.user_gateway import UserGateway
from chat_relay.infrastructure.blob_storage import LocalBlobStorage
from chat_relay.infrastructure.database import Database, create_database
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.event_handlers import EventHandlers
from chat_relay.infrastructure.redis_client import RedisClient
from chat_relay.infrastructure.security import SecurityService
from chat_relay.infrastructure.uow import UnitOfWork
from chat_relay.interactors.user_interactor import UserInteractor
from chat_relay.realtime.connection_gateway import ConnectionGateway
from chat_relay.realtime.fanout import RealtimeFanout
from chat_relay.realtime.handlers import ChatEventHandlers
from chat_relay.realtime.identity import TokenIdentityVerifier
from chat_relay.realtime.room_router import RoomRouter, SocketIOTransport
from chat_relay.realtime.server import SocketServer, create_asgi_app, create_socket_server
from chat_relay.realtime.session_registry import SessionRegistry


class Application:
    def __init__(
        self,
        config: AppConfig,
        database: Optional[Database] = None,
        redis_client: Optional[RedisClient] = None,
    ):
        self.config = config
        self.logger = self.setup_logger()
        if database is None:
            engine = create_async_engine(config.DATABASE_URL, echo=False)
            database = create_database(engine)
        self.database = database
        self.redis_client = redis_client or RedisClient(
            config.REDIS_HOST, config.REDIS_PORT, self.logger
        )
        self.security_service = SecurityService(config)
        self.event_dispatcher = EventDispatcher(self.logger.getChild("events"))
        self.blob_storage = LocalBlobStorage(
            config.MEDIA_ROOT,
            config.MEDIA_URL,
            config.MAX_UPLOAD_BYTES,
            self.logger.getChild("media"),
        )

        # Realtime core
        self.sio = create_socket_server(config)
        self.room_router = RoomRouter(
            SocketIOTransport(self.sio), self.logger.getChild("rooms")
        )
        self.session_registry = SessionRegistry(
            self.room_router, self.logger.getChild("presence")
        )
        self.connection_gateway = ConnectionGateway(
            TokenIdentityVerifier(self.database, self.security_service, self.logger),
            self.session_registry,
            self.room_router,
            self.logger.getChild("gateway"),
            on_offline=self.record_last_seen,
        )
        self.chat_handlers = ChatEventHandlers(
            self.database,
            self.room_router,
            self.event_dispatcher,
            self.logger.getChild("handlers"),
            self.blob_storage,
        )
        self.socket_server = SocketServer(
            self.sio, self.connection_gateway, self.chat_handlers, self.logger
        )
        self.socket_server.register()

        # Register event handlers
        self.fanout = RealtimeFanout(self.room_router, self.logger.getChild("fanout"))
        self.fanout.register(self.event_dispatcher)
        self.event_handlers = EventHandlers(
            self.redis_client, self.session_registry, self.logger.getChild("push")
        )
        self.event_dispatcher.register(
            "MessageCreated", self.event_handlers.publish_message_created
        )
        self.event_dispatcher.register(
            "GroupChatCreated", self.event_handlers.publish_group_chat_created
        )
        self.event_dispatcher.register(
            "ParticipantAdded", self.event_handlers.publish_participant_added
        )

    async def record_last_seen(self, user_id: int) -> None:
        async with self.database.session() as session:
            uow = UnitOfWork(session)
            user_interactor = UserInteractor(
                self.security_service, uow, UserGateway(session, uow)
            )
            await user_interactor.mark_last_seen(user_id)

    @asynccontextmanager
    async def lifespan(self, app: FastAPI):
        await self.database.connect()
        await self.redis_client.connect()
        yield
        await self.database.disconnect()
        await self.redis_client.disconnect()

    def setup_logger(self):
        logger = logging.getLogger("ChatRelay")
        logger.setLevel(self.config.LOG_LEVEL.upper())

        if not logger.handlers:
            c_handler = logging.StreamHandler(sys.stdout)
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            c_handler.setFormatter(formatter)
            logger.addHandler(c_handler)

        return logger

    def create_app(self) -> FastAPI:
        app = FastAPI(
            title=self.config.PROJECT_NAME,
            version=self.config.PROJECT_VERSION,
            description=self.config.PROJECT_DESCRIPTION,
            openapi_url=f"{self.config.API_V1_STR}/openapi.json",
            lifespan=self.lifespan,
        )

        app.state.config = self.config
        app.state.security_service = self.security_service
        app.state.event_dispatcher = self.event_dispatcher
        app.state.database = self.database
        app.state.logger = self.logger
        app.state.session_registry = self.session_registry
        app.state.room_router = self.room_router
        app.state.blob_storage = self.blob_storage
        app.state.redis_client = self.redis_client

        # Create routers
        app.include_router(
            auth.router, prefix=f"{self.config.API_V1_STR}/auth", tags=["auth"]
        )
        app.include_router(
            users.router, prefix=f"{self.config.API_V1_STR}/users", tags=["users"]
        )
        app.include_router(
            chats.router, prefix=f"{self.config.API_V1_STR}/chats", tags=["chats"]
        )
        app.include_router(
            messages.router,
            prefix=f"{self.config.API_V1_STR}/chats",
            tags=["messages"],
        )
        app.mount(
            self.config.MEDIA_URL,
            StaticFiles(directory=self.config.MEDIA_ROOT, check_dir=False),
            name="media",
        )

        @app.get("/health")
        async def health():
            return {
                "status": "ok",
                "redis": await self.redis_client.is_healthy(),
                "online_users": len(self.session_registry.online_user_ids()),
            }

        @app.exception_handler(ChatError)
        async def chat_error_handler(request: Request, exc: ChatError):
            headers = None
            if isinstance(exc, AuthenticationError):
                headers = {"WWW-Authenticate": "Bearer"}
            return JSONResponse(
                status_code=exc.status_code,
                content={"message": exc.message, "kind": exc.kind},
                headers=headers,
            )

        @app.exception_handler(Exception)
        async def global_exception_handler(request: Request, exc: Exception):
            self.logger.exception(f"Unhandled error on {request.url.path}")
            return JSONResponse(
                status_code=500,
                content={"message": f"An unexpected error occurred: {str(exc)}"},
            )

        return app


def create():
    config = AppConfig()
    application = Application(config)
    app = application.create_app()
    application.logger.info("Application created and configured")

    return create_asgi_app(application.sio, app, config)


app = create()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)
