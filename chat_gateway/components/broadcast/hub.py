"""
Broadcast Hub.

Fan-out of chat lines to every authenticated, open session, with a bounded
history that is replayed to each session right after it authenticates.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any, Callable, Iterable, TYPE_CHECKING

from chat_gateway.components.core.constants import RelayConstants

if TYPE_CHECKING:
    from chat_gateway.components.connection.session import ChatSession
    from chat_gateway.components.metrics.collector import MetricsCollector

logger = logging.getLogger(__name__)

RecipientsProvider = Callable[[], Iterable["ChatSession"]]


def now_ms() -> int:
    """Current epoch time in integer milliseconds."""
    return int(time.time() * 1000)


class BroadcastHub:
    """
    Delivers lines to the live session set supplied by `recipients`.

    A failing peer is logged and counted, never allowed to abort delivery
    to the rest. Ordering follows the order of send() calls because every
    call runs to completion inside the manager lock.
    """

    def __init__(
        self,
        recipients: RecipientsProvider,
        history_capacity: int = RelayConstants.HISTORY_CAPACITY,
        metrics: "MetricsCollector | None" = None,
        clock_ms: Callable[[], int] = now_ms,
    ) -> None:
        """
        Args:
            recipients: Returns the current broadcast recipients.
            history_capacity: Lines retained; oldest evicted first.
            metrics: Optional collector for broadcast counters.
            clock_ms: Millisecond clock used for line timestamps.
        """
        if history_capacity < 1:
            raise ValueError("history_capacity must be positive")
        self._recipients = recipients
        self._history: deque[dict[str, Any]] = deque(maxlen=history_capacity)
        self._metrics = metrics
        self._clock_ms = clock_ms

        self._total_sent = 0
        self._total_failed = 0

    @property
    def capacity(self) -> int:
        return self._history.maxlen or 0

    @property
    def history_size(self) -> int:
        return len(self._history)

    def send(self, text: str) -> int:
        """
        Record a line in history and deliver it to all eligible sessions.

        Args:
            text: Fully formatted line, e.g. "[alice]: hi".

        Returns:
            Number of sessions the line was queued for.
        """
        timestamp = self._clock_ms()
        self._history.append({"text": text, "timestamp": timestamp})
        payload = {"type": "chat", "text": text, "timestamp": timestamp}

        delivered = 0
        failed = 0
        for session in list(self._recipients()):
            if not (session.authenticated and session.is_open):
                continue
            try:
                session.channel.send(payload)
                delivered += 1
            except ConnectionError as e:
                failed += 1
                logger.debug(
                    "Broadcast delivery failed",
                    name=session.name,
                    session_id=session.session_id,
                    error=type(e).__name__,
                )

        self._total_sent += 1
        self._total_failed += failed
        if self._metrics is not None:
            self._metrics.increment_broadcast_total_sync()
            if failed:
                self._metrics.add_failed_recipients_sync(failed)
        return delivered

    def history(self) -> list[dict[str, Any]]:
        """History entries in insertion order (copies)."""
        return [dict(entry) for entry in self._history]

    def clear_history(self) -> int:
        """Drop all history. Returns how many lines were removed."""
        count = len(self._history)
        self._history.clear()
        return count

    def get_stats(self) -> dict[str, int]:
        return {
            "history_size": len(self._history),
            "history_capacity": self.capacity,
            "total_broadcasts": self._total_sent,
            "total_failed_recipients": self._total_failed,
        }
