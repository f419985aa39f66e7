"""
Session Statistics.

Aggregates statistics from the lifecycle components: the admin snapshot
(camelCase, consumed by the admin UI) and the flat stats dict used by the
health and Prometheus endpoints.
"""

from __future__ import annotations

from typing import Any, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from chat_gateway.components.broadcast.hub import BroadcastHub
    from chat_gateway.components.connection.heartbeat import HeartbeatTracker
    from chat_gateway.components.connection.index import SessionIndex
    from chat_gateway.components.connection.rate_limiter import ChatRateLimiter
    from chat_gateway.components.identity.bans import BanStore
    from chat_gateway.components.identity.grace import GracePeriodTracker
    from chat_gateway.components.identity.registry import IdentityRegistry
    from chat_gateway.components.metrics.collector import MetricsCollector


class SessionStats:
    """Read-only views over the shared state. Callers hold the manager lock."""

    def __init__(
        self,
        index: "SessionIndex",
        registry: "IdentityRegistry",
        grace: "GracePeriodTracker",
        bans: "BanStore",
        hub: "BroadcastHub",
        rate_limiter: "ChatRateLimiter",
        heartbeat: "HeartbeatTracker",
        metrics: "MetricsCollector",
        started_at_ms: int,
        max_connections: int,
        clock_ms: Callable[[], int],
    ) -> None:
        self._index = index
        self._registry = registry
        self._grace = grace
        self._bans = bans
        self._hub = hub
        self._rate_limiter = rate_limiter
        self._heartbeat = heartbeat
        self._metrics = metrics
        self._started_at_ms = started_at_ms
        self._max_connections = max_connections
        self._clock_ms = clock_ms

    def snapshot(self) -> dict[str, Any]:
        """
        Administrative snapshot.

        Returns:
            userCount, messageCount, uptime (ms), users, pendingGrace,
            bannedUsers, messages and connection counters.
        """
        users = [s.to_dict() for s in self._index.sessions() if s.authenticated]
        messages = self._hub.history()
        index_stats = self._index.get_stats()
        return {
            "userCount": len(users),
            "messageCount": len(messages),
            "uptime": self._clock_ms() - self._started_at_ms,
            "users": users,
            "pendingGrace": self._grace.snapshot(),
            "bannedUsers": self._bans.snapshot(),
            "messages": messages,
            "connections": {
                "live": index_stats["live_sessions"],
                "authenticated": index_stats["authenticated_sessions"],
                "total": index_stats["total_connections"],
                "max": self._max_connections,
            },
        }

    def get_stats_sync(self) -> dict[str, Any]:
        """Flat statistics for health checks and Prometheus export."""
        index_stats = self._index.get_stats()
        live = index_stats["live_sessions"]
        return {
            "live_sessions": live,
            "authenticated_sessions": index_stats["authenticated_sessions"],
            "total_connections": index_stats["total_connections"],
            "max_connections": self._max_connections,
            "utilization_percent": round(live / self._max_connections * 100, 1) if self._max_connections else 0,
            "claimed_names": self._registry.claimed_count,
            "pending_grace": self._grace.pending_count,
            "active_bans": self._bans.active_count,
            "history_size": self._hub.history_size,
            "rate_limiter_tracked": self._rate_limiter.tracked_count,
            "uptime_seconds": round((self._clock_ms() - self._started_at_ms) / 1000, 1),
            "metrics": self._metrics.get_snapshot_sync(),
            "heartbeat_stats": self._heartbeat.get_stats(),
            "registry_stats": self._registry.get_stats(),
            "grace_stats": self._grace.get_stats(),
            "ban_stats": self._bans.get_stats(),
            "rate_limiter_stats": self._rate_limiter.get_stats(),
            "hub_stats": self._hub.get_stats(),
        }
