"""
Grace-Period Tracker.

Implements "disconnect now, decide later": when a session with a bound
identity loses its connection, its device gets a pending entry. If the
device reconnects before the timer fires, the entry is canceled and nobody
sees the blip. Otherwise the expiry callback releases the identity and
announces the departure.

Per device: NONE -> PENDING -> (CANCELED | EXPIRED) -> NONE.

The tracker only owns timing. Cleanup policy lives in the expiry callback
supplied by the caller.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from chat_gateway.components.core.constants import RelayConstants
from shared.config.logging import mask_device

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """Subset of asyncio.TimerHandle used by the tracker."""

    def cancel(self) -> None: ...


Scheduler = Callable[..., TimerHandle]
ExpiryCallback = Callable[[str], Any]


@dataclass
class GraceEntry:
    """One pending departure."""

    device: str
    name: str
    scheduled_at: float
    expires_at: float
    handle: TimerHandle | None = None

    def remaining_seconds(self, now: float) -> int:
        return max(0, math.ceil(self.expires_at - now))


class GracePeriodTracker:
    """
    Pending-departure timers keyed by device token.

    At most one entry exists per device. Scheduling over an existing entry
    cancels the old timer first, so for any single scheduling at most one
    of {cancel, expire} ever happens.

    Timers are created through `call_later`, which defaults to the running
    event loop's `call_later`. Tests inject a manual scheduler.
    """

    def __init__(
        self,
        grace_seconds: float = RelayConstants.GRACE_PERIOD_SECONDS,
        clock: Callable[[], float] = time.time,
        call_later: Scheduler | None = None,
    ) -> None:
        """
        Initialize the tracker.

        Args:
            grace_seconds: Delay between disconnect and expiry.
            clock: Wall clock used for scheduled_at and remaining time.
            call_later: Function with asyncio's call_later signature.
        """
        if grace_seconds < 0:
            raise ValueError("grace_seconds must not be negative")
        self._grace_seconds = grace_seconds
        self._clock = clock
        self._call_later = call_later
        self._entries: dict[str, GraceEntry] = {}

        # Metrics
        self._total_scheduled = 0
        self._total_canceled = 0
        self._total_expired = 0
        self._total_replaced = 0
        self._callback_errors = 0

    @property
    def grace_seconds(self) -> float:
        return self._grace_seconds

    @property
    def pending_count(self) -> int:
        return len(self._entries)

    def _schedule_timer(self, delay: float, callback: Callable[..., None], *args: Any) -> TimerHandle:
        if self._call_later is not None:
            return self._call_later(delay, callback, *args)
        return asyncio.get_running_loop().call_later(delay, callback, *args)

    def schedule(self, device: str, name: str, on_expire: ExpiryCallback) -> GraceEntry | None:
        """
        Start (or restart) the grace timer for a device.

        Args:
            device: Device token of the disconnected session.
            name: Display name held during the grace period.
            on_expire: Called with `name` exactly once if the timer fires.

        Returns:
            The entry that was replaced, or None.
        """
        replaced = self._entries.pop(device, None)
        if replaced is not None:
            if replaced.handle is not None:
                replaced.handle.cancel()
            self._total_replaced += 1
            logger.debug(
                "Grace entry replaced",
                device=mask_device(device),
                old_name=replaced.name,
                new_name=name,
            )

        now = self._clock()
        entry = GraceEntry(
            device=device,
            name=name,
            scheduled_at=now,
            expires_at=now + self._grace_seconds,
        )
        self._entries[device] = entry
        entry.handle = self._schedule_timer(self._grace_seconds, self._fire, device, entry, on_expire)
        self._total_scheduled += 1

        logger.debug(
            "Grace period started",
            device=mask_device(device),
            name=name,
            grace_seconds=self._grace_seconds,
        )
        return replaced

    def cancel(self, device: str | None) -> bool:
        """
        Cancel a pending entry.

        Returns:
            True if an entry existed (a quick reconnect); False otherwise,
            with no side effect.
        """
        if not device:
            return False
        entry = self._entries.pop(device, None)
        if entry is None:
            return False
        if entry.handle is not None:
            entry.handle.cancel()
        self._total_canceled += 1
        logger.debug("Grace period canceled", device=mask_device(device), name=entry.name)
        return True

    def is_pending(self, device: str | None) -> bool:
        return bool(device) and device in self._entries

    def pending_name(self, device: str | None) -> str | None:
        """Name held by a device's pending entry, if any."""
        if not device:
            return None
        entry = self._entries.get(device)
        return entry.name if entry else None

    def find_device_by_name(self, name: str) -> str | None:
        """Device whose pending entry holds `name`, if any."""
        for device, entry in self._entries.items():
            if entry.name == name:
                return device
        return None

    def holds_name(self, name: str) -> bool:
        return self.find_device_by_name(name) is not None

    def cancel_all(self) -> int:
        """Cancel every pending timer without firing callbacks. Used on shutdown."""
        count = len(self._entries)
        for entry in self._entries.values():
            if entry.handle is not None:
                entry.handle.cancel()
        self._entries.clear()
        return count

    def _fire(self, device: str, entry: GraceEntry, on_expire: ExpiryCallback) -> None:
        """
        Timer callback.

        Ignores timers whose entry has been canceled or replaced. The entry is
        cleared before the callback runs so the callback observes NONE.
        """
        if self._entries.get(device) is not entry:
            return
        del self._entries[device]
        self._total_expired += 1

        logger.info("Grace period expired", device=mask_device(device), name=entry.name)
        try:
            on_expire(entry.name)
        except Exception:
            self._callback_errors += 1
            logger.error(
                "Grace expiry callback failed",
                device=mask_device(device),
                name=entry.name,
                exc_info=True,
            )

    def snapshot(self) -> list[dict[str, Any]]:
        """Pending entries with remaining time, oldest first."""
        now = self._clock()
        return [
            {
                "name": entry.name,
                "device": entry.device,
                "remainingSeconds": entry.remaining_seconds(now),
            }
            for entry in sorted(self._entries.values(), key=lambda e: e.scheduled_at)
        ]

    def get_stats(self) -> dict[str, int | float]:
        """Get tracker statistics."""
        return {
            "pending": len(self._entries),
            "grace_seconds": self._grace_seconds,
            "total_scheduled": self._total_scheduled,
            "total_canceled": self._total_canceled,
            "total_expired": self._total_expired,
            "total_replaced": self._total_replaced,
            "callback_errors": self._callback_errors,
        }
