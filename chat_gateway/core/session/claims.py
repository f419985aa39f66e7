"""
Identity claim resolution.

Turns (requestedName, device, reconnectHint) into a final display name and
an "announce arrival" decision. Steps run in order and the first match wins:

1. Ban check: a banned device is told the remaining seconds and closed.
2. Preemption: an open session already bound to the device is force-closed.
3. Quick reconnect: a pending grace entry for the device is canceled; if its
   name is still the device's bound name it is reused silently.
4. Stale reconnect: with a reconnect hint, the device's remembered name is
   reused (and announced) if nobody took it meanwhile.
5. Fresh allocation from the requested name, announced.

Preemption runs before the grace lookup so a device never "reconnects"
against its own still-open socket. The quick-reconnect cancel runs before
the stale check because canceling removes the entry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from chat_gateway.components.core.constants import ForceCloseReason, RelayConstants, WSCloseCode
from chat_gateway.components.events.types import OutboundType, event, joined_line, left_line
from shared.config.logging import audit_ws_connection, mask_device

if TYPE_CHECKING:
    from chat_gateway.components.broadcast.hub import BroadcastHub
    from chat_gateway.components.connection.heartbeat import HeartbeatTracker
    from chat_gateway.components.connection.index import SessionIndex
    from chat_gateway.components.connection.session import ChatSession
    from chat_gateway.components.events.types import ClaimIdentity
    from chat_gateway.components.identity.bans import BanStore
    from chat_gateway.components.identity.grace import GracePeriodTracker
    from chat_gateway.components.identity.registry import IdentityRegistry
    from chat_gateway.components.metrics.collector import MetricsCollector
    from chat_gateway.core.session.teardown import SessionTeardown

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimResult:
    """
    Outcome of a successful claim.

    Attributes:
        name: Final display name.
        announced: Whether an arrival line was broadcast.
        outcome: fresh, quick_reconnect or stale_reconnect.
    """

    name: str
    announced: bool
    outcome: str

    @property
    def reconnected(self) -> bool:
        return self.outcome != "fresh"


def normalize_device(raw: str | None, max_length: int = RelayConstants.DEVICE_MAX_LENGTH) -> str | None:
    """Strip and clamp a device token; empty becomes None."""
    if raw is None:
        return None
    device = raw.strip()[:max_length]
    return device or None


class ClaimResolver:
    """Runs the claim procedure against the shared identity state."""

    def __init__(
        self,
        index: "SessionIndex",
        registry: "IdentityRegistry",
        grace: "GracePeriodTracker",
        bans: "BanStore",
        hub: "BroadcastHub",
        heartbeat: "HeartbeatTracker",
        teardown: "SessionTeardown",
        metrics: "MetricsCollector",
        server_start_time: int,
        device_max_length: int = RelayConstants.DEVICE_MAX_LENGTH,
    ) -> None:
        self._index = index
        self._registry = registry
        self._grace = grace
        self._bans = bans
        self._hub = hub
        self._heartbeat = heartbeat
        self._teardown = teardown
        self._metrics = metrics
        self._server_start_time = server_start_time
        self._device_max_length = device_max_length

    def _reject(self, session: "ChatSession", reason: str) -> None:
        session.send(event(OutboundType.IDENTITY_REJECTED, reason=reason))
        self._metrics.increment_claim_sync("rejected_invalid")

    def claim(self, session: "ChatSession", intent: "ClaimIdentity") -> ClaimResult | None:
        """
        Resolve a claim for `session`.

        Rejections are reported to the session itself and return None.
        """
        if session.closed:
            return None
        if session.authenticated:
            self._reject(session, "Already authenticated; use change_identity to rename")
            return None

        device = normalize_device(intent.device, self._device_max_length)
        if intent.reconnect_hint and not device:
            self._reject(session, "Reconnect requires a device token")
            self._teardown.reject(session, WSCloseCode.POLICY_VIOLATION, "device required")
            return None

        # 1. Ban check
        if device:
            check = self._bans.check(device)
            if check.banned:
                session.send(event(
                    OutboundType.REJECTED_AS_BANNED,
                    remainingSeconds=check.remaining_seconds,
                ))
                self._teardown.reject(session, WSCloseCode.BANNED, ForceCloseReason.BANNED)
                self._metrics.increment_claim_sync("rejected_banned")
                audit_ws_connection(
                    "CLAIM_REJECTED",
                    "/ws",
                    device=device,
                    reason="banned",
                    remaining_seconds=check.remaining_seconds,
                )
                return None

        # 2. Preemption
        if device:
            previous = self._index.session_for_device(device)
            if previous is not None and previous is not session:
                logger.info(
                    "Preempting previous session for device",
                    device=mask_device(device),
                    previous_session=previous.session_id,
                )
                self._teardown.preempt(previous)

        name: str | None = None
        outcome = "fresh"

        # 3. Quick reconnect
        if device:
            pending = self._grace.pending_name(device)
            if self._grace.cancel(device):
                if pending == self._registry.lookup_device(device) and not self._registry.is_available(pending):
                    name = pending
                    outcome = "quick_reconnect"
                else:
                    # The canceled timer will never announce this departure.
                    logger.warning(
                        "Pending grace name no longer bound to device",
                        device=mask_device(device),
                        pending_name=pending,
                    )
                    self._teardown.release_identity(pending)
                    if pending:
                        self._hub.send(left_line(pending))

        # 4. Stale reconnect
        if name is None and intent.reconnect_hint:
            remembered = self._registry.lookup_device(device)
            if remembered and self._registry.claim_exact(remembered):
                name = remembered
                outcome = "stale_reconnect"

        # 5. Fresh allocation
        if name is None:
            name = self._registry.allocate(intent.requested_name)

        if device:
            self._registry.bind_device(device, name)
            self._index.bind_device(device, session)
        session.name = name
        session.device = device
        session.authenticated = True
        self._heartbeat.record(session)

        announce = outcome != "quick_reconnect"
        session.send(event(
            OutboundType.IDENTITY_CONFIRMED,
            name=name,
            reconnected=outcome != "fresh",
            serverStartTime=self._server_start_time,
        ))
        session.send(event(OutboundType.HISTORY_REPLAY, entries=self._hub.history()))
        if announce:
            self._hub.send(joined_line(name))

        self._metrics.increment_claim_sync(outcome)
        logger.info(
            "Identity claimed",
            name=name,
            device=mask_device(device),
            outcome=outcome,
            announced=announce,
        )
        return ClaimResult(name=name, announced=announce, outcome=outcome)
