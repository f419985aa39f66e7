"""
Session Teardown.

The three ways a session ends, each with its own release policy:

    trigger          identity release      announcement
    logout           immediate             "left", immediate
    network loss     after grace period    "left" at expiry, none on quick reconnect
    admin kick/ban   immediate             "kicked"/"banned", immediate

Every path starts with detach(): the session leaves the live set before
anything else happens, so it can never receive or be counted in a later
broadcast.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from chat_gateway.components.core.constants import ForceCloseReason, WSCloseCode
from chat_gateway.components.events.types import (
    OutboundType,
    banned_line,
    event,
    kicked_line,
    left_line,
)
from shared.config.logging import audit_ws_connection, mask_device

if TYPE_CHECKING:
    from chat_gateway.components.broadcast.hub import BroadcastHub
    from chat_gateway.components.connection.heartbeat import HeartbeatTracker
    from chat_gateway.components.connection.index import SessionIndex
    from chat_gateway.components.connection.rate_limiter import ChatRateLimiter
    from chat_gateway.components.connection.session import ChatSession
    from chat_gateway.components.identity.bans import BanStore
    from chat_gateway.components.identity.grace import GracePeriodTracker
    from chat_gateway.components.identity.registry import IdentityRegistry
    from chat_gateway.components.metrics.collector import MetricsCollector

logger = logging.getLogger(__name__)

ENDPOINT = "/ws"


class SessionTeardown:
    """
    Implements logout, network loss, grace expiry, preemption and kick.

    All methods except on_grace_expired() are called with the manager lock
    already held. on_grace_expired() runs from an event loop timer and takes
    the lock itself; the lock is re-entrant so direct calls are safe too.
    """

    def __init__(
        self,
        lock: threading.RLock,
        index: "SessionIndex",
        registry: "IdentityRegistry",
        grace: "GracePeriodTracker",
        bans: "BanStore",
        rate_limiter: "ChatRateLimiter",
        hub: "BroadcastHub",
        heartbeat: "HeartbeatTracker",
        metrics: "MetricsCollector",
    ) -> None:
        self._lock = lock
        self._index = index
        self._registry = registry
        self._grace = grace
        self._bans = bans
        self._rate_limiter = rate_limiter
        self._hub = hub
        self._heartbeat = heartbeat
        self._metrics = metrics

    # =========================================================================
    # Building blocks
    # =========================================================================

    def detach(self, session: "ChatSession") -> bool:
        """
        Remove a session from every live structure and mark it closed.

        Returns:
            False if the session had already been torn down.
        """
        self._index.discard(session)
        self._heartbeat.remove(session)
        if session.closed:
            return False
        session.closed = True
        return True

    def release_identity(self, name: str | None) -> None:
        """Free a name and its rate state."""
        if name:
            self._registry.release(name)
            self._rate_limiter.clear(name)

    def reject(self, session: "ChatSession", code: int, reason: str) -> None:
        """Close a session that never got an identity."""
        self.detach(session)
        session.channel.close(code, reason)

    def _defer_release(self, session: "ChatSession") -> None:
        """Grace period for sessions with a device; immediate release otherwise."""
        name = session.name
        if not session.authenticated or not name:
            return

        if not session.device:
            self.release_identity(name)
            self._hub.send(left_line(name))
            return

        replaced = self._grace.schedule(session.device, name, self.on_grace_expired)
        if replaced is not None and replaced.name != name:
            # Superseded entry would otherwise never be released or announced.
            logger.warning(
                "Grace entry replaced with a different name",
                device=mask_device(session.device),
                old_name=replaced.name,
                new_name=name,
            )
            self.release_identity(replaced.name)
            self._hub.send(left_line(replaced.name))

    # =========================================================================
    # Teardown paths
    # =========================================================================

    def logout(self, session: "ChatSession") -> bool:
        """
        Explicit logout: immediate release, immediate "left" broadcast.

        The device association is dropped too, so a later reconnect hint
        does not bring the name back.

        Returns:
            False if the session was not authenticated.
        """
        if not session.authenticated or session.closed:
            session.send(event(OutboundType.ERROR, reason="Not authenticated"))
            return False

        self.detach(session)
        name, device = session.name, session.device
        self._grace.cancel(device)
        self.release_identity(name)
        self._registry.unbind_device(device)

        session.send(event(OutboundType.LOGGED_OUT))
        session.channel.close(WSCloseCode.NORMAL, "logout")
        self._hub.send(left_line(name))

        self._metrics.increment_teardown_sync("logouts")
        audit_ws_connection("LOGOUT", ENDPOINT, name=name, device=device)
        logger.info("Session logged out", name=name, device=mask_device(device))
        return True

    def network_close(self, session: "ChatSession") -> bool:
        """
        Ordinary close or transport error.

        Sessions with a device enter the grace period; legacy sessions
        without one are released and announced immediately. No-op for a
        session that an earlier path already tore down.

        Returns:
            True if this call performed the teardown.
        """
        if not self.detach(session):
            return False

        self._defer_release(session)
        self._metrics.increment_teardown_sync("network_closes")
        logger.info(
            "Session disconnected",
            name=session.name,
            device=mask_device(session.device),
            grace=bool(session.authenticated and session.device),
        )
        return True

    def preempt(self, previous: "ChatSession") -> None:
        """
        Force-close an older session of a device that is claiming again.

        The old session is treated like a network loss, so the claim that
        follows finds a pending grace entry and reconnects silently.
        """
        if not self.detach(previous):
            return

        previous.send(event(OutboundType.FORCE_CLOSED, reason=ForceCloseReason.REPLACED))
        previous.channel.close(WSCloseCode.REPLACED, ForceCloseReason.REPLACED)
        self._defer_release(previous)

        self._metrics.increment_claim_sync("preemptions")
        audit_ws_connection(
            "PREEMPTED",
            ENDPOINT,
            name=previous.name,
            device=previous.device,
            reason=ForceCloseReason.REPLACED,
        )

    def on_grace_expired(self, name: str) -> None:
        """
        Grace timer fired: release the identity and announce the departure.

        The device association is kept so a later reconnect hint can
        recover the name if it is still free.
        """
        with self._lock:
            holder = self._index.find_by_name(name)
            if holder is not None:
                logger.warning(
                    "Grace expiry for a name held by a live session; ignoring",
                    name=name,
                    session_id=holder.session_id,
                )
                return
            if self._grace.holds_name(name):
                logger.warning("Grace expiry for a name with another pending entry; ignoring", name=name)
                return

            self.release_identity(name)
            self._hub.send(left_line(name))
            self._metrics.increment_teardown_sync("grace_expiries")

    def purge_identity(self, name: str, device: str | None) -> None:
        """Immediate cleanup shared by kick paths: cancel grace, unbind, release."""
        if device:
            self._grace.cancel(device)
            self._registry.unbind_device(device)
        self.release_identity(name)

    def kick(self, session: "ChatSession", duration_seconds: int = 0) -> bool:
        """
        Administrative removal of a live session.

        With a positive duration and a device token the device is also banned.

        Returns:
            True if a ban was recorded.
        """
        self.detach(session)
        name, device = session.name, session.device
        self.purge_identity(name, device)

        banned = bool(duration_seconds > 0 and device)
        if banned:
            self._bans.ban(device, name, duration_seconds)
            session.send(event(
                OutboundType.FORCE_CLOSED,
                reason=ForceCloseReason.BANNED,
                banSeconds=duration_seconds,
            ))
            session.channel.close(WSCloseCode.BANNED, ForceCloseReason.BANNED)
        else:
            session.send(event(OutboundType.FORCE_CLOSED, reason=ForceCloseReason.KICKED))
            session.channel.close(WSCloseCode.KICKED, ForceCloseReason.KICKED)

        if name:
            self._hub.send(banned_line(name, duration_seconds) if banned else kicked_line(name))

        self._metrics.increment_teardown_sync("kicks")
        if banned:
            self._metrics.increment_teardown_sync("bans")
        return banned
