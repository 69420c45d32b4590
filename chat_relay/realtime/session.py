# chat_relay/realtime/session.py
from dataclasses import dataclass, field
from datetime import UTC, datetime

from chat_relay.realtime.identity import UserIdentity


@dataclass(eq=False)
class Session:
    """One authenticated socket connection."""

    sid: str
    user: UserIdentity
    rooms: set[str] = field(default_factory=set)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def user_id(self) -> int:
        return self.user.id
