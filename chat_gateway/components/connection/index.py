"""
Session Index - live sessions and the device -> active session map.

The live set is what the broadcast hub fans out to; removing a session
here is the first step of every teardown path.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chat_gateway.components.connection.session import ChatSession

logger = logging.getLogger(__name__)


class SessionIndex:
    """
    Indices maintained:
    - live: ordered set of sessions not yet torn down (insertion order)
    - by_device: device token -> the one open session bound to it

    No locking of its own; the ConnectionManager serializes mutations.
    """

    def __init__(self) -> None:
        # dict used as an ordered set
        self._live: dict[ChatSession, None] = {}
        self._by_device: dict[str, ChatSession] = {}
        self._total_connections = 0

    @property
    def by_device(self) -> MappingProxyType[str, "ChatSession"]:
        """Active session per device (immutable view)."""
        return MappingProxyType(self._by_device)

    @property
    def live_count(self) -> int:
        return len(self._live)

    @property
    def total_connections(self) -> int:
        """Connections registered since startup."""
        return self._total_connections

    def add(self, session: "ChatSession") -> None:
        self._live[session] = None
        self._total_connections += 1

    def discard(self, session: "ChatSession") -> bool:
        """
        Remove a session from the live set and its device slot.

        The device slot is only cleared if it still points at this session,
        so a preempted session cannot evict its replacement.

        Returns:
            True if the session was live.
        """
        was_live = session in self._live
        self._live.pop(session, None)
        if session.device and self._by_device.get(session.device) is session:
            del self._by_device[session.device]
        return was_live

    def contains(self, session: "ChatSession") -> bool:
        return session in self._live

    def bind_device(self, device: str, session: "ChatSession") -> "ChatSession | None":
        """
        Make `session` the active session for `device`.

        Returns:
            The previously bound session, if it was a different one.
        """
        previous = self._by_device.get(device)
        self._by_device[device] = session
        return previous if previous is not session else None

    def session_for_device(self, device: str | None) -> "ChatSession | None":
        if not device:
            return None
        return self._by_device.get(device)

    def find_by_name(self, name: str) -> "ChatSession | None":
        """Live authenticated session bound to `name`, if any."""
        for session in self._live:
            if session.authenticated and session.name == name:
                return session
        return None

    def find_device_by_name(self, name: str) -> str | None:
        session = self.find_by_name(name)
        return session.device if session else None

    def sessions(self) -> list["ChatSession"]:
        """Snapshot of live sessions in connection order."""
        return list(self._live)

    def authenticated_sessions(self) -> list["ChatSession"]:
        """Snapshot of live, authenticated, open sessions (broadcast recipients)."""
        return [s for s in self._live if s.authenticated and s.is_open]

    def get_stats(self) -> dict[str, int]:
        authenticated = sum(1 for s in self._live if s.authenticated)
        return {
            "live_sessions": len(self._live),
            "authenticated_sessions": authenticated,
            "device_bindings": len(self._by_device),
            "total_connections": self._total_connections,
        }
