"""
Chat Rate Limiter.

Per-identity spam gate: fixed window that restarts on the first message
after it lapses, plus a temporary mute once the window overflows.

Keyed by display name, not device. A renamed session therefore starts
with a fresh bucket.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from chat_gateway.components.core.constants import RelayConstants

logger = logging.getLogger(__name__)


@dataclass
class RateState:
    """Rate bookkeeping for one display name."""

    count: int
    window_start: float
    muted_until: float = 0.0


class ChatRateLimiter:
    """
    Sliding-window-with-mute limiter for chat messages.

    On each message for a name:
    - muted (now < muted_until): reject.
    - mute has lapsed, or the window is older than W: restart the window
      with this message and accept.
    - otherwise count it; above N, mute for M seconds and reject.

    State is created lazily on the first message and dropped only by
    clear(), which the session layer calls when the identity is released.
    No locking: callers serialize access.
    """

    def __init__(
        self,
        max_messages: int = RelayConstants.CHAT_RATE_MAX_MESSAGES,
        window_seconds: float = RelayConstants.CHAT_RATE_WINDOW_SECONDS,
        mute_seconds: float = RelayConstants.CHAT_RATE_MUTE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the rate limiter.

        Args:
            max_messages: Maximum messages accepted per window (N).
            window_seconds: Window length in seconds (W).
            mute_seconds: Mute duration after an overflow (M).
            clock: Time source, injectable for tests.
        """
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self._max_messages = max_messages
        self._window_seconds = window_seconds
        self._mute_seconds = mute_seconds
        self._clock = clock

        self._states: dict[str, RateState] = {}

        # Metrics
        self._total_allowed = 0
        self._total_rejected = 0
        self._total_mutes = 0

    @property
    def max_messages(self) -> int:
        return self._max_messages

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def mute_seconds(self) -> float:
        return self._mute_seconds

    @property
    def tracked_count(self) -> int:
        """Number of names currently tracked."""
        return len(self._states)

    def is_allowed(self, name: str) -> bool:
        """
        Record a message attempt for `name` and decide whether it is accepted.

        Args:
            name: Display name of the sender.

        Returns:
            True if the message is accepted, False if the sender is
            (or just became) muted.
        """
        now = self._clock()
        state = self._states.get(name)

        if state is None:
            self._states[name] = RateState(count=1, window_start=now)
            self._total_allowed += 1
            return True

        if now < state.muted_until:
            self._total_rejected += 1
            return False

        if state.muted_until or now - state.window_start > self._window_seconds:
            state.count = 1
            state.window_start = now
            state.muted_until = 0.0
            self._total_allowed += 1
            return True

        state.count += 1
        if state.count > self._max_messages:
            state.muted_until = now + self._mute_seconds
            self._total_rejected += 1
            self._total_mutes += 1
            logger.info("Sender muted for flooding", name=name, mute_seconds=self._mute_seconds)
            return False

        self._total_allowed += 1
        return True

    def muted_until(self, name: str) -> float:
        """Mute deadline for a name (0.0 when never muted)."""
        state = self._states.get(name)
        return state.muted_until if state else 0.0

    def retry_after(self, name: str) -> int:
        """Whole seconds until a muted sender may speak again (0 if not muted)."""
        state = self._states.get(name)
        if state is None:
            return 0
        remaining = state.muted_until - self._clock()
        return max(0, math.ceil(remaining))

    def clear(self, name: str | None) -> None:
        """Drop rate state for a released identity."""
        if name:
            self._states.pop(name, None)

    def get_stats(self) -> dict[str, int | float]:
        """Get rate limiter statistics."""
        return {
            "tracked_names": len(self._states),
            "max_messages_per_window": self._max_messages,
            "window_seconds": self._window_seconds,
            "mute_seconds": self._mute_seconds,
            "total_allowed": self._total_allowed,
            "total_rejected": self._total_rejected,
            "total_mutes": self._total_mutes,
        }
