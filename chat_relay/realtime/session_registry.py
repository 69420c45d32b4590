# chat_relay/realtime/session_registry.py
import logging

from chat_relay.realtime.room_router import RoomRouter
from chat_relay.realtime.session import Session


class SessionRegistry:
    """Tracks which users are online and announces presence changes.

    A user is online while at least one of their sessions is registered.
    Only the first session coming up and the last one going away change
    presence; the sessions in between are invisible to other users.

    The maps are only touched between awaits, which the event loop already
    serializes. Driving the registry from several OS threads would need a
    lock around ``register`` and ``unregister``.
    """

    def __init__(self, router: RoomRouter, logger: logging.Logger):
        self.router = router
        self.logger = logger
        self._sessions: dict[int, set[str]] = {}

    def is_online(self, user_id: int) -> bool:
        return bool(self._sessions.get(user_id))

    def online_user_ids(self) -> frozenset[int]:
        return frozenset(self._sessions)

    def session_count(self, user_id: int) -> int:
        return len(self._sessions.get(user_id, ()))

    def snapshot(self) -> list[int]:
        return sorted(self._sessions)

    async def register(self, user_id: int, session: Session) -> bool:
        sids = self._sessions.setdefault(user_id, set())
        came_online = not sids
        sids.add(session.sid)
        snapshot = self.snapshot()

        if came_online:
            self.logger.info(f"User {user_id} is online")
            await self.router.broadcast_all("user-online", user_id, skip_sid=session.sid)
            await self.router.broadcast_all(
                "online-users", snapshot, skip_sid=session.sid
            )
        await self.router.emit_to_session(session.sid, "online-users", snapshot)
        return came_online

    async def unregister(self, user_id: int, session: Session) -> bool:
        sids = self._sessions.get(user_id)
        if not sids or session.sid not in sids:
            return False
        sids.discard(session.sid)
        if sids:
            return False

        del self._sessions[user_id]
        snapshot = self.snapshot()
        self.logger.info(f"User {user_id} is offline")
        await self.router.broadcast_all("user-offline", user_id)
        await self.router.broadcast_all("online-users", snapshot)
        return True
