"""
Heartbeat Tracker for the chat gateway.

Tracks last activity time for each session and identifies sessions that
have gone silent. Stale sessions are handed to the network-loss teardown
by the connection manager's cleanup loop.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Callable, Hashable

from chat_gateway.components.core.constants import MSG_PING_PLAIN, RelayConstants

if TYPE_CHECKING:
    from chat_gateway.components.connection.channel import Channel

logger = logging.getLogger(__name__)


class HeartbeatTracker:
    """
    Tracks heartbeat timestamps for chat sessions.

    Each session's last activity is recorded when it connects and whenever
    any frame is received. Sessions without recent activity are stale.

    Guarded by a threading.Lock so the health endpoint can read stats
    from outside the manager lock.
    """

    def __init__(
        self,
        timeout_seconds: float = RelayConstants.HEARTBEAT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize heartbeat tracker.

        Args:
            timeout_seconds: Seconds without activity before a session is stale.
            clock: Time source, injectable for tests.
        """
        self._timeout = timeout_seconds
        self._clock = clock
        self._last_heartbeat: dict[Hashable, float] = {}
        self._lock = threading.Lock()

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def tracked_count(self) -> int:
        with self._lock:
            return len(self._last_heartbeat)

    def record(self, session: Hashable, timestamp: float | None = None) -> None:
        """
        Record activity from a session.

        Args:
            session: The session to record.
            timestamp: Optional Unix timestamp. If None, uses the clock.
        """
        with self._lock:
            self._last_heartbeat[session] = timestamp if timestamp is not None else self._clock()

    def remove(self, session: Hashable) -> None:
        """Stop tracking a session."""
        with self._lock:
            self._last_heartbeat.pop(session, None)

    def get_last_activity(self, session: Hashable) -> float | None:
        with self._lock:
            return self._last_heartbeat.get(session)

    def is_stale(self, session: Hashable) -> bool:
        """True if the session has no activity within the timeout. Unknown sessions are stale."""
        with self._lock:
            last_time = self._last_heartbeat.get(session)
        if last_time is None:
            return True
        return self._clock() - last_time > self._timeout

    def cleanup_stale(self) -> list[Hashable]:
        """
        Remove and return stale sessions from tracking.

        Identification and removal happen under one lock acquisition.
        """
        now = self._clock()
        stale = []
        with self._lock:
            for session, last_time in list(self._last_heartbeat.items()):
                if now - last_time > self._timeout:
                    stale.append(session)
                    del self._last_heartbeat[session]
        return stale

    def get_stats(self) -> dict[str, float | int]:
        """Get heartbeat tracker statistics."""
        with self._lock:
            now = self._clock()
            ages = [now - t for t in self._last_heartbeat.values()]
            tracked = len(self._last_heartbeat)

        return {
            "tracked_sessions": tracked,
            "timeout_seconds": self._timeout,
            "oldest_heartbeat_age": max(ages) if ages else 0,
            "newest_heartbeat_age": min(ages) if ages else 0,
            "average_heartbeat_age": sum(ages) / len(ages) if ages else 0,
        }


def is_plain_ping(data: str) -> bool:
    """True for the bare-text heartbeat frame."""
    return data.strip() == MSG_PING_PLAIN


def handle_heartbeat(channel: "Channel", server_start_time: int) -> bool:
    """
    Reply to a heartbeat with pong.

    Send failures are not fatal here: the receive loop notices the closed
    connection and runs teardown.

    Returns:
        True if the pong was queued.
    """
    try:
        channel.send({"type": "pong", "serverStartTime": server_start_time})
    except ConnectionError as e:
        logger.debug("Heartbeat response not delivered", error=type(e).__name__)
        return False
    return True
