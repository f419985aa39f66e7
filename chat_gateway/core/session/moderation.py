"""
Administrative operations: kick, ban, unban, broadcast, history reset.

Targets are addressed by display name. A name may belong to a live
session, to a pending grace entry, or only to a remembered device binding
or ban record; each case is handled so an admin never needs the device.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chat_gateway.components.events.types import (
    banned_line,
    kicked_line,
    server_line,
    unbanned_line,
)
from chat_gateway.components.identity.bans import UnbanResult
from shared.config.logging import audit_moderation_event

if TYPE_CHECKING:
    from chat_gateway.components.broadcast.hub import BroadcastHub
    from chat_gateway.components.connection.index import SessionIndex
    from chat_gateway.components.identity.bans import BanStore
    from chat_gateway.components.identity.grace import GracePeriodTracker
    from chat_gateway.components.identity.registry import IdentityRegistry
    from chat_gateway.components.metrics.collector import MetricsCollector
    from chat_gateway.core.session.teardown import SessionTeardown

logger = logging.getLogger(__name__)


class TargetNotFoundError(LookupError):
    """No session, grace entry, device binding or ban matches the target."""


@dataclass(frozen=True)
class KickResult:
    """
    Attributes:
        name: Targeted display name.
        banned: Whether a ban was recorded.
        target: "session", "grace" or "device" (ban-only, nobody online).
    """

    name: str
    banned: bool
    target: str


class Moderation:
    """Admin-facing operations over the shared session state."""

    def __init__(
        self,
        index: "SessionIndex",
        registry: "IdentityRegistry",
        grace: "GracePeriodTracker",
        bans: "BanStore",
        hub: "BroadcastHub",
        teardown: "SessionTeardown",
        metrics: "MetricsCollector",
    ) -> None:
        self._index = index
        self._registry = registry
        self._grace = grace
        self._bans = bans
        self._hub = hub
        self._teardown = teardown
        self._metrics = metrics

    def kick(self, target_name: str, duration_seconds: int = 0) -> KickResult:
        """
        Remove a user immediately and optionally ban their device.

        Args:
            target_name: Display name to remove.
            duration_seconds: Ban length; 0 kicks without banning.

        Raises:
            ValueError: If duration_seconds is negative.
            TargetNotFoundError: If nothing matches target_name.
        """
        if duration_seconds < 0:
            raise ValueError("duration_seconds must not be negative")

        session = self._index.find_by_name(target_name)
        if session is not None:
            device = session.device
            banned = self._teardown.kick(session, duration_seconds)
            self._audit(target_name, device, duration_seconds, banned)
            return KickResult(name=target_name, banned=banned, target="session")

        device = self._grace.find_device_by_name(target_name)
        if device is not None:
            self._teardown.purge_identity(target_name, device)
            banned = self._ban_and_announce(target_name, device, duration_seconds)
            self._metrics.increment_teardown_sync("kicks")
            self._audit(target_name, device, duration_seconds, banned)
            return KickResult(name=target_name, banned=banned, target="grace")

        if duration_seconds > 0:
            device = self._bans.resolve_device_by_name(
                target_name,
                sources=(self._registry.find_device_by_name,),
            )
            if device is not None:
                self._ban_and_announce(target_name, device, duration_seconds)
                self._audit(target_name, device, duration_seconds, True)
                return KickResult(name=target_name, banned=True, target="device")

        raise TargetNotFoundError(target_name)

    def _ban_and_announce(self, name: str, device: str, duration_seconds: int) -> bool:
        if duration_seconds > 0:
            self._bans.ban(device, name, duration_seconds)
            self._metrics.increment_teardown_sync("bans")
            self._hub.send(banned_line(name, duration_seconds))
            return True
        self._hub.send(kicked_line(name))
        return False

    def _audit(self, name: str, device: str | None, duration_seconds: int, banned: bool) -> None:
        audit_moderation_event(
            "BAN" if banned else "KICK",
            name=name,
            device=device,
            duration_seconds=duration_seconds if banned else None,
        )

    def kick_all(self) -> int:
        """Kick every authenticated session without banning. Returns the count."""
        sessions = [s for s in self._index.sessions() if s.authenticated]
        for session in sessions:
            self._teardown.kick(session, 0)
        audit_moderation_event("KICK_ALL", count=len(sessions))
        return len(sessions)

    def unban(self, name: str | None = None, device: str | None = None) -> UnbanResult:
        """
        Lift a ban by device token or by the name recorded with it.

        Raises:
            ValueError: If neither name nor device is given.
            TargetNotFoundError: If no active ban matches.
        """
        if not name and not device:
            raise ValueError("Provide a name or a device")

        if not device:
            device = self._bans.resolve_device_by_name(
                name,
                sources=(
                    self._index.find_device_by_name,
                    self._registry.find_device_by_name,
                    self._grace.find_device_by_name,
                ),
            )

        result = self._bans.unban(device)
        if not result.ok:
            raise TargetNotFoundError(name or "device")

        announced_name = result.name or name
        if announced_name:
            self._hub.send(unbanned_line(announced_name))
        audit_moderation_event("UNBAN", name=announced_name, device=device)
        return result

    def admin_broadcast(self, text: str) -> str:
        """
        Send a server line to everyone.

        Raises:
            ValueError: If the text is empty after trimming.
        """
        text = text.strip()
        if not text:
            raise ValueError("Broadcast message must not be empty")
        line = server_line(text)
        self._hub.send(line)
        return line

    def clear_history(self) -> int:
        count = self._hub.clear_history()
        audit_moderation_event("CLEAR_HISTORY", count=count)
        return count
