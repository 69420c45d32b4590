# chat_relay/api/dependencies.py
from typing import AsyncGenerator

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from chat_relay.config import AppConfig
from chat_relay.domain.exceptions import AuthenticationError
from chat_relay.gateways.chat_gateway import ChatGateway
from chat_relay.gateways.message_gateway import MessageGateway
from chat_relay.gateways.token_gateway import TokenGateway
from chat_relay.gateways.user_gateway import UserGateway
from chat_relay.infrastructure import schemas
from chat_relay.infrastructure.blob_storage import BlobStorage
from chat_relay.infrastructure.event_dispatcher import EventDispatcher
from chat_relay.infrastructure.security import SecurityService
from chat_relay.infrastructure.uow import UnitOfWork
from chat_relay.interactors.chat_interactor import ChatInteractor
from chat_relay.interactors.message_interactor import MessageInteractor
from chat_relay.interactors.token_interactor import TokenInteractor
from chat_relay.interactors.user_interactor import UserInteractor
from chat_relay.realtime.session_registry import SessionRegistry

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/v1/auth/login")


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_security_service(request: Request) -> SecurityService:
    return request.app.state.security_service


def get_event_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.event_dispatcher


def get_session_registry(request: Request) -> SessionRegistry:
    return request.app.state.session_registry


def get_blob_storage(request: Request) -> BlobStorage:
    return request.app.state.blob_storage


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.database.session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_uow(session: AsyncSession = Depends(get_session)) -> UnitOfWork:
    return UnitOfWork(session)


async def get_user_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return UserGateway(session, uow)


async def get_chat_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return ChatGateway(session, uow)


async def get_message_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return MessageGateway(session, uow)


async def get_token_gateway(
    session: AsyncSession = Depends(get_session), uow: UnitOfWork = Depends(get_uow)
):
    return TokenGateway(session, uow)


async def get_user_interactor(
    security_service: SecurityService = Depends(get_security_service),
    uow: UnitOfWork = Depends(get_uow),
    user_gateway: UserGateway = Depends(get_user_gateway),
    blob_storage: BlobStorage = Depends(get_blob_storage),
):
    return UserInteractor(security_service, uow, user_gateway, blob_storage)


async def get_chat_interactor(
    uow: UnitOfWork = Depends(get_uow),
    chat_gateway: ChatGateway = Depends(get_chat_gateway),
    user_gateway: UserGateway = Depends(get_user_gateway),
    message_gateway: MessageGateway = Depends(get_message_gateway),
    blob_storage: BlobStorage = Depends(get_blob_storage),
):
    return ChatInteractor(uow, chat_gateway, user_gateway, message_gateway, blob_storage)


async def get_message_interactor(
    uow: UnitOfWork = Depends(get_uow),
    chat_gateway: ChatGateway = Depends(get_chat_gateway),
    message_gateway: MessageGateway = Depends(get_message_gateway),
    blob_storage: BlobStorage = Depends(get_blob_storage),
):
    return MessageInteractor(uow, chat_gateway, message_gateway, blob_storage)


async def get_token_interactor(
    uow: UnitOfWork = Depends(get_uow),
    token_gateway: TokenGateway = Depends(get_token_gateway),
    security_service: SecurityService = Depends(get_security_service),
):
    return TokenInteractor(uow, token_gateway, security_service)


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    security_service: SecurityService = Depends(get_security_service),
    user_gateway: UserGateway = Depends(get_user_gateway),
    token_gateway: TokenGateway = Depends(get_token_gateway),
) -> schemas.User:
    username = security_service.decode_access_token(token)
    if username is None:
        raise AuthenticationError("Could not validate credentials")

    user_model = await user_gateway.get_by_username(username)
    valid_token = await token_gateway.get_by_access_token(token)
    if user_model is None:
        raise AuthenticationError("User not found", reason="unknown_user")
    if valid_token is None:
        raise AuthenticationError("Invalid or expired token", reason="revoked_token")
    if not user_model.is_active:
        raise AuthenticationError("Inactive user", reason="unknown_user")
    return schemas.User.model_validate(user_model)
