# chat_relay/domain/events.py
from datetime import datetime

from pydantic import BaseModel

from chat_relay.infrastructure import schemas


class Event(BaseModel):
    # sid of the socket that caused the event, None for REST requests
    origin_sid: str | None = None


class ChatEvent(Event):
    chat_id: int
    user_id: int


class MessageCreated(ChatEvent):
    message: schemas.Message
    participant_ids: list[int]
    temp_id: str | None = None


class MessageEdited(ChatEvent):
    message_id: int
    content: str
    edited_at: datetime


class MessageDeleted(ChatEvent):
    message_id: int


class ReactionAdded(ChatEvent):
    message_id: int
    reaction: str


class ReactionRemoved(ChatEvent):
    message_id: int
    reaction: str


class MessagesRead(ChatEvent):
    message_ids: list[int]
    read_at: datetime


class GroupChatCreated(ChatEvent):
    chat: schemas.Chat


class GroupUpdated(ChatEvent):
    changes: dict


class ParticipantAdded(ChatEvent):
    chat: schemas.Chat
    participant_id: int


class ParticipantRemoved(ChatEvent):
    chat: schemas.Chat
    participant_id: int
