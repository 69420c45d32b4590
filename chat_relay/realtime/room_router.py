# chat_relay/realtime/room_router.py
"""Room membership and scoped delivery.

Two kinds of rooms exist: ``chat:<id>`` for sessions viewing a chat, and
``user:<id>`` for every session of one user. The router keeps membership
itself and delivers to individual sids through a transport, so the same
code runs against Socket.IO in production and a recording fake in tests.
"""
import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Protocol

import socketio

from chat_relay.realtime.session import Session


def chat_room(chat_id: int) -> str:
    return f"chat:{chat_id}"


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


class Transport(Protocol):
    async def emit(self, event: str, data: Any, to: str) -> None: ...


class SocketIOTransport:
    def __init__(self, sio: socketio.AsyncServer):
        self.sio = sio

    async def emit(self, event: str, data: Any, to: str) -> None:
        await self.sio.emit(event, data, to=to)


class RoomRouter:
    def __init__(self, transport: Transport, logger: logging.Logger):
        self.transport = transport
        self.logger = logger
        self.sessions: dict[str, Session] = {}
        self.rooms: dict[str, set[str]] = {}

    def _join(self, session: Session, room: str) -> None:
        self.rooms.setdefault(room, set()).add(session.sid)
        session.rooms.add(room)

    def _leave(self, session: Session, room: str) -> None:
        members = self.rooms.get(room)
        if members is not None:
            members.discard(session.sid)
            if not members:
                del self.rooms[room]
        session.rooms.discard(room)

    def attach(self, session: Session) -> None:
        self.sessions[session.sid] = session
        self._join(session, user_room(session.user_id))

    def detach(self, sid: str) -> Session | None:
        session = self.sessions.pop(sid, None)
        if session is None:
            return None
        for room in list(session.rooms):
            self._leave(session, room)
        return session

    def get_session(self, sid: str) -> Session | None:
        return self.sessions.get(sid)

    def join_room(self, session: Session, chat_id: int) -> bool:
        # the socket may have closed while the caller was awaiting
        if self.sessions.get(session.sid) is not session:
            return False
        self._join(session, chat_room(chat_id))
        return True

    def leave_room(self, session: Session, chat_id: int) -> None:
        self._leave(session, chat_room(chat_id))

    def remove_user_from_room(self, user_id: int, chat_id: int) -> None:
        for sid in self.room_members(user_room(user_id)):
            session = self.sessions.get(sid)
            if session is not None:
                self._leave(session, chat_room(chat_id))

    def room_members(self, room: str) -> frozenset[str]:
        return frozenset(self.rooms.get(room, ()))

    def user_in_room(self, user_id: int, chat_id: int) -> bool:
        members = self.rooms.get(chat_room(chat_id), set())
        return any(sid in members for sid in self.rooms.get(user_room(user_id), ()))

    async def _deliver(self, sids: Iterable[str], event: str, data: Any) -> int:
        # snapshot first, membership may change while sends are in flight
        recipients = list(sids)
        if not recipients:
            return 0
        results = await asyncio.gather(
            *(self.transport.emit(event, data, to=sid) for sid in recipients),
            return_exceptions=True,
        )
        for sid, result in zip(recipients, results):
            if isinstance(result, BaseException):
                self.logger.warning(f"Failed to deliver {event} to {sid}: {result!r}")
        return len(recipients)

    async def emit_to_session(self, sid: str, event: str, data: Any) -> int:
        return await self._deliver([sid], event, data)

    async def broadcast_to_room(
        self, chat_id: int, event: str, data: Any, skip_sid: str | None = None
    ) -> int:
        members = self.room_members(chat_room(chat_id))
        return await self._deliver(
            (sid for sid in members if sid != skip_sid), event, data
        )

    async def broadcast_to_user(self, user_id: int, event: str, data: Any) -> int:
        return await self._deliver(self.room_members(user_room(user_id)), event, data)

    async def broadcast_except_sender(
        self, chat_id: int, event: str, data: Any, sender_session: Session
    ) -> int:
        return await self.broadcast_to_room(
            chat_id, event, data, skip_sid=sender_session.sid
        )

    async def broadcast_all(
        self, event: str, data: Any, skip_sid: str | None = None
    ) -> int:
        return await self._deliver(
            [sid for sid in self.sessions if sid != skip_sid], event, data
        )
