# chat_relay/infrastructure/schemas.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

TOMBSTONE = "[Message deleted]"
MAX_REACTION_LENGTH = 32


class UserBase(BaseModel):
    username: str
    email: EmailStr


class UserBasic(BaseModel):
    id: int
    username: str
    name: str = ""
    avatar: str = ""

    model_config = ConfigDict(from_attributes=True)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)
    name: str = ""


class UserUpdate(BaseModel):
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=8)
    name: str | None = None
    bio: str | None = None


class User(UserBase):
    id: int
    name: str = ""
    avatar: str = ""
    bio: str = ""
    last_seen: datetime | None = None
    created_at: datetime
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class PublicUser(UserBasic):
    bio: str = ""
    last_seen: datetime | None = None
    is_online: bool = False


class ReadReceipt(BaseModel):
    user_id: int
    read_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Message(BaseModel):
    id: int
    chat_id: int
    sender: UserBasic
    content: str = ""
    image: str = ""
    created_at: datetime
    edited: bool = False
    edited_at: datetime | None = None
    is_deleted: bool = False
    reactions: dict[str, list[int]] = Field(default_factory=dict)
    read_by: list[ReadReceipt] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("reactions", mode="before")
    @classmethod
    def group_reactions(cls, value: Any) -> Any:
        # ORM rows arrive as a flat list ordered by insertion; keys keep the
        # order of each symbol's first reaction
        if isinstance(value, dict):
            return value
        grouped: dict[str, list[int]] = {}
        for reaction in value:
            grouped.setdefault(reaction.symbol, []).append(reaction.user_id)
        return grouped


class MessagePage(BaseModel):
    messages: list[Message]
    total_pages: int
    current_page: int


class Chat(BaseModel):
    id: int
    name: str | None = None
    is_group: bool
    admin_id: int | None = None
    icon: str = ""
    created_at: datetime
    updated_at: datetime
    participants: list[UserBasic] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)

    @property
    def participant_ids(self) -> list[int]:
        return [participant.id for participant in self.participants]


class ChatSummary(Chat):
    last_message: Message | None = None


class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1)
    participant_ids: list[int] = Field(..., min_length=1)


class GroupRename(BaseModel):
    name: str = Field(..., min_length=1)


class GroupMember(BaseModel):
    user_id: int


class MessageUpdate(BaseModel):
    content: str


class ReactionRequest(BaseModel):
    reaction: str = Field(..., min_length=1, max_length=MAX_REACTION_LENGTH)


class MarkReadRequest(BaseModel):
    message_ids: list[int] | None = None


class TokenBase(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str


class TokenCreate(TokenBase):
    expires_at: datetime
    user_id: int


class Token(TokenBase):
    id: int
    expires_at: datetime
    user_id: int

    model_config = ConfigDict(from_attributes=True)


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str
    expires_at: datetime
    user_id: int


class RefreshTokenRequest(BaseModel):
    refresh_token: str


# Socket.IO payloads use camelCase keys on the wire


class SocketPayload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendMessagePayload(SocketPayload):
    chat_id: int
    content: str | None = None
    image: str | None = None
    temp_id: str | None = None


class TypingPayload(SocketPayload):
    chat_id: int
    is_typing: bool


class EditMessagePayload(SocketPayload):
    chat_id: int
    message_id: int
    content: str


class DeleteMessagePayload(SocketPayload):
    chat_id: int
    message_id: int


class ReactionPayload(SocketPayload):
    chat_id: int
    message_id: int
    reaction: str = Field(..., min_length=1, max_length=MAX_REACTION_LENGTH)


class MarkReadPayload(SocketPayload):
    chat_id: int
    message_ids: list[int]
