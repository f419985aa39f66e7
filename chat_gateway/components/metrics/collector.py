"""
Metrics Collector for the chat gateway.

Centralizes lifecycle counters for observability. Increments happen on the
event loop inside the manager lock; snapshots may be taken from anywhere,
so counters are guarded by a threading.Lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, fields
from typing import Any


@dataclass
class ClaimMetrics:
    """Identity claim outcomes."""
    fresh: int = 0
    quick_reconnect: int = 0
    stale_reconnect: int = 0
    rejected_banned: int = 0
    rejected_invalid: int = 0
    preemptions: int = 0


@dataclass
class TeardownMetrics:
    """Session endings by cause."""
    logouts: int = 0
    network_closes: int = 0
    grace_expiries: int = 0
    kicks: int = 0
    bans: int = 0
    stale_reaped: int = 0


@dataclass
class ChatMetrics:
    accepted: int = 0
    rate_limited: int = 0
    too_long: int = 0
    commands: int = 0
    renames: int = 0


@dataclass
class BroadcastMetrics:
    """Metrics for broadcast operations."""
    total: int = 0
    recipients_failed: int = 0


@dataclass
class ConnectionMetrics:
    """Connections refused or dropped by the transport layer."""
    rejected_limit: int = 0
    rejected_origin: int = 0
    timeouts: int = 0
    oversized_frames: int = 0
    invalid_frames: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector()
        metrics.increment_claim_sync("fresh")
        stats = metrics.get_snapshot_sync()
    """

    def __init__(self) -> None:
        self._sync_lock = threading.Lock()
        self._claims = ClaimMetrics()
        self._teardown = TeardownMetrics()
        self._chat = ChatMetrics()
        self._broadcast = BroadcastMetrics()
        self._connection = ConnectionMetrics()

    @staticmethod
    def _bump(group: Any, field_name: str, count: int) -> None:
        # Unknown field names are programming errors; fail loudly.
        setattr(group, field_name, getattr(group, field_name) + count)

    # ==========================================================================
    # Lifecycle Metrics
    # ==========================================================================

    def increment_claim_sync(self, outcome: str, count: int = 1) -> None:
        """Count a claim outcome (fresh, quick_reconnect, rejected_banned, ...)."""
        with self._sync_lock:
            self._bump(self._claims, outcome, count)

    def increment_teardown_sync(self, cause: str, count: int = 1) -> None:
        """Count a teardown by cause (logouts, network_closes, kicks, ...)."""
        with self._sync_lock:
            self._bump(self._teardown, cause, count)

    def increment_chat_sync(self, outcome: str, count: int = 1) -> None:
        with self._sync_lock:
            self._bump(self._chat, outcome, count)

    # ==========================================================================
    # Broadcast Metrics
    # ==========================================================================

    def increment_broadcast_total_sync(self) -> None:
        with self._sync_lock:
            self._broadcast.total += 1

    def add_failed_recipients_sync(self, count: int) -> None:
        """Add count of recipients a broadcast could not reach."""
        with self._sync_lock:
            self._broadcast.recipients_failed += count

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_connection_sync(self, reason: str, count: int = 1) -> None:
        """Count a transport-level rejection (rejected_limit, timeouts, ...)."""
        with self._sync_lock:
            self._bump(self._connection, reason, count)

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot_sync(self) -> dict[str, Any]:
        """
        Get a snapshot of all metrics.

        Keys follow {category}_{metric}: claims_fresh, teardown_kicks,
        chat_rate_limited, broadcasts_total, connections_timeouts, ...
        """
        with self._sync_lock:
            snapshot: dict[str, Any] = {}
            for prefix, group in (
                ("claims", self._claims),
                ("teardown", self._teardown),
                ("chat", self._chat),
                ("broadcasts", self._broadcast),
                ("connections", self._connection),
            ):
                for f in fields(group):
                    snapshot[f"{prefix}_{f.name}"] = getattr(group, f.name)
            return snapshot
