# chat_relay/gateways/interfaces.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from chat_relay.infrastructure import models, schemas
from chat_relay.infrastructure.security import SecurityService


class IChatGateway(ABC):
    @abstractmethod
    async def get_chat(self, chat_id: int) -> Optional[models.Chat]:
        pass

    @abstractmethod
    async def get_user_chats(self, user_id: int) -> List[models.Chat]:
        pass

    @abstractmethod
    async def get_direct_chat(self, user_id: int, other_user_id: int) -> Optional[models.Chat]:
        pass

    @abstractmethod
    async def create_direct_chat(self, participants: List[models.User]) -> models.Chat:
        pass

    @abstractmethod
    async def create_group_chat(
        self, name: str, admin: models.User, participants: List[models.User], icon: str = ""
    ) -> models.Chat:
        pass

    @abstractmethod
    async def update_group(self, chat: models.Chat, **changes) -> models.Chat:
        pass

    @abstractmethod
    async def add_participant(self, chat: models.Chat, user: models.User) -> models.Chat:
        pass

    @abstractmethod
    async def remove_participant(self, chat: models.Chat, user_id: int) -> models.Chat:
        pass

    @abstractmethod
    async def get_participant_ids(self, chat_id: int) -> List[int]:
        pass


class IMessageGateway(ABC):
    @abstractmethod
    async def get_message(self, chat_id: int, message_id: int) -> Optional[models.Message]:
        pass

    @abstractmethod
    async def get_messages(
        self, chat_id: int, skip: int = 0, limit: int = 50
    ) -> List[models.Message]:
        pass

    @abstractmethod
    async def count_messages(self, chat_id: int) -> int:
        pass

    @abstractmethod
    async def create_message(
        self, chat_id: int, sender_id: int, content: str, image: str
    ) -> models.Message:
        pass

    @abstractmethod
    async def update_content(
        self, message_id: int, sender_id: int, content: str, edited_at: datetime
    ) -> bool:
        pass

    @abstractmethod
    async def soft_delete(self, message_id: int, sender_id: int) -> bool:
        pass

    @abstractmethod
    async def add_reaction(self, message_id: int, symbol: str, user_id: int) -> bool:
        pass

    @abstractmethod
    async def remove_reaction(self, message_id: int, symbol: str, user_id: int) -> bool:
        pass

    @abstractmethod
    async def mark_read(
        self, chat_id: int, user_id: int, message_ids: List[int], read_at: datetime
    ) -> List[int]:
        pass


class IUserGateway(ABC):
    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[models.User]:
        pass

    @abstractmethod
    async def get_users(self, user_ids: List[int]) -> List[models.User]:
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> Optional[models.User]:
        pass

    @abstractmethod
    async def get_by_username(self, username: str) -> Optional[models.User]:
        pass

    @abstractmethod
    async def create_user(
        self, user: schemas.UserCreate, security_service: SecurityService
    ) -> Optional[models.User]:
        pass

    @abstractmethod
    async def update_user(
        self,
        user: models.User,
        user_update: schemas.UserUpdate,
        security_service: SecurityService,
    ) -> models.User:
        pass

    @abstractmethod
    async def search_users(self, query: str, current_user_id: int) -> List[models.User]:
        pass


class ITokenGateway(ABC):
    @abstractmethod
    async def create_token(self, token: schemas.TokenCreate) -> models.Token:
        pass

    @abstractmethod
    async def get_by_access_token(self, access_token: str) -> Optional[models.Token]:
        pass

    @abstractmethod
    async def get_by_refresh_token(self, refresh_token: str) -> Optional[models.Token]:
        pass

    @abstractmethod
    async def revoke_access_token(self, access_token: str) -> bool:
        pass

    @abstractmethod
    async def revoke_refresh_token(self, refresh_token: str) -> bool:
        pass
