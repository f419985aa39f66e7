"""
Ban Store.

Device token -> expiry plus the display name active at ban time.
Independent of the registry and the grace tracker: a ban outlives any
session, and expired bans are evicted lazily on lookup (and periodically
by the heartbeat cleanup loop).
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from shared.config.logging import mask_device

logger = logging.getLogger(__name__)

DeviceResolver = Callable[[str], "str | None"]


@dataclass(frozen=True)
class BanEntry:
    device: str
    name: str | None
    expires_at: float


@dataclass(frozen=True)
class BanCheck:
    """
    Result of a ban lookup.

    Attributes:
        banned: Whether the device is currently banned.
        remaining_seconds: Whole seconds left, rounded up (0 when not banned).
        name: Display name recorded when the ban was issued.
    """

    banned: bool
    remaining_seconds: int = 0
    name: str | None = None


@dataclass(frozen=True)
class UnbanResult:
    ok: bool
    name: str | None = None
    device: str | None = None


class BanStore:
    """In-memory device bans with lazy expiry."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._bans: dict[str, BanEntry] = {}

        # Metrics
        self._total_bans = 0
        self._total_unbans = 0
        self._total_expired = 0
        self._total_blocked = 0

    @property
    def active_count(self) -> int:
        """Number of stored bans (may include not-yet-evicted expired ones)."""
        return len(self._bans)

    def ban(self, device: str, name: str | None, duration_seconds: float) -> BanEntry:
        """
        Ban a device until now + duration, overwriting any existing ban.

        Raises:
            ValueError: If device is empty or duration is not positive.
        """
        if not device:
            raise ValueError("device is required")
        if duration_seconds <= 0:
            raise ValueError("duration_seconds must be positive")

        entry = BanEntry(device=device, name=name, expires_at=self._clock() + duration_seconds)
        self._bans[device] = entry
        self._total_bans += 1
        logger.info(
            "Device banned",
            device=mask_device(device),
            name=name,
            duration_seconds=duration_seconds,
        )
        return entry

    def _evict_if_expired(self, device: str, now: float) -> BanEntry | None:
        entry = self._bans.get(device)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._bans[device]
            self._total_expired += 1
            logger.debug("Ban expired", device=mask_device(device), name=entry.name)
            return None
        return entry

    def check(self, device: str | None) -> BanCheck:
        """Whether a device is banned right now. Evicts an expired ban first."""
        if not device:
            return BanCheck(banned=False)
        now = self._clock()
        entry = self._evict_if_expired(device, now)
        if entry is None:
            return BanCheck(banned=False)
        self._total_blocked += 1
        return BanCheck(
            banned=True,
            remaining_seconds=max(1, math.ceil(entry.expires_at - now)),
            name=entry.name,
        )

    def unban(self, device: str | None) -> UnbanResult:
        """Lift a ban. Returns ok=False if the device was not (or no longer) banned."""
        if not device:
            return UnbanResult(ok=False)
        entry = self._evict_if_expired(device, self._clock())
        if entry is None:
            return UnbanResult(ok=False)
        del self._bans[device]
        self._total_unbans += 1
        logger.info("Device unbanned", device=mask_device(device), name=entry.name)
        return UnbanResult(ok=True, name=entry.name, device=device)

    def find_device_by_name(self, name: str) -> str | None:
        """Device of the unexpired ban recorded under `name`, if any."""
        now = self._clock()
        for device, entry in list(self._bans.items()):
            if entry.name == name and self._evict_if_expired(device, now) is not None:
                return device
        return None

    def resolve_device_by_name(
        self,
        name: str,
        sources: Iterable[DeviceResolver] = (),
    ) -> str | None:
        """
        Best-effort reverse lookup of a device from a display name.

        Checks the ban table first, since a banned device may have no
        session or registry entry left and a live session may have since
        taken the name on another device. Then tries each source in order
        (live sessions, registry, grace entries).
        """
        device = self.find_device_by_name(name)
        if device:
            return device
        for source in sources:
            device = source(name)
            if device:
                return device
        return None

    def purge_expired(self) -> int:
        """Evict every expired ban. Returns how many were removed."""
        now = self._clock()
        expired = [device for device, entry in self._bans.items() if entry.expires_at <= now]
        for device in expired:
            del self._bans[device]
        self._total_expired += len(expired)
        return len(expired)

    def snapshot(self) -> list[dict[str, Any]]:
        """Unexpired bans with remaining time."""
        now = self._clock()
        return [
            {
                "name": entry.name,
                "device": entry.device,
                "remainingSeconds": max(1, math.ceil(entry.expires_at - now)),
            }
            for entry in self._bans.values()
            if entry.expires_at > now
        ]

    def get_stats(self) -> dict[str, int]:
        """Get ban store statistics."""
        return {
            "active_bans": len(self._bans),
            "total_bans": self._total_bans,
            "total_unbans": self._total_unbans,
            "total_expired": self._total_expired,
            "total_blocked_claims": self._total_blocked,
        }
