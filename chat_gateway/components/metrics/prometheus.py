"""
Prometheus Metrics Export for the chat gateway.

Formats internal metrics in Prometheus text exposition format.
No client library required.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from chat_gateway.connection_manager import ConnectionManager


class MetricType(str, Enum):
    """Prometheus metric types."""

    COUNTER = "counter"
    GAUGE = "gauge"


@dataclass(frozen=True)
class MetricDefinition:
    """
    Definition of one exported series.

    Attributes:
        name: Metric name without prefix.
        help_text: HELP line text.
        metric_type: Prometheus metric type.
        source: Key in the stats dict ("metrics." prefix reads the collector snapshot,
            "heartbeat." the heartbeat stats).
    """

    name: str
    help_text: str
    metric_type: MetricType
    source: str


# =============================================================================
# Metric Definitions
# =============================================================================

GAUGES: tuple[MetricDefinition, ...] = (
    MetricDefinition("sessions_live", "Open connections, authenticated or not", MetricType.GAUGE, "live_sessions"),
    MetricDefinition("sessions_authenticated", "Connections bound to an identity", MetricType.GAUGE, "authenticated_sessions"),
    MetricDefinition("connections_max", "Maximum allowed connections", MetricType.GAUGE, "max_connections"),
    MetricDefinition("names_claimed", "Display names currently claimed", MetricType.GAUGE, "claimed_names"),
    MetricDefinition("grace_pending", "Devices inside their reconnection grace period", MetricType.GAUGE, "pending_grace"),
    MetricDefinition("bans_active", "Devices currently banned", MetricType.GAUGE, "active_bans"),
    MetricDefinition("history_size", "Lines retained in chat history", MetricType.GAUGE, "history_size"),
    MetricDefinition("rate_limiter_tracked", "Names tracked by the chat rate limiter", MetricType.GAUGE, "rate_limiter_tracked"),
    MetricDefinition("heartbeat_tracked_sessions", "Sessions tracked by heartbeat", MetricType.GAUGE, "heartbeat.tracked_sessions"),
    MetricDefinition("heartbeat_oldest_age_seconds", "Oldest heartbeat age in seconds", MetricType.GAUGE, "heartbeat.oldest_heartbeat_age"),
    MetricDefinition("uptime_seconds", "Seconds since the relay started", MetricType.GAUGE, "uptime_seconds"),
)

COUNTERS: tuple[MetricDefinition, ...] = (
    MetricDefinition("preemptions_total", "Sessions replaced by a newer connection from the same device", MetricType.COUNTER, "metrics.claims_preemptions"),
    MetricDefinition("logouts_total", "Explicit logouts", MetricType.COUNTER, "metrics.teardown_logouts"),
    MetricDefinition("network_closes_total", "Connections lost without logout", MetricType.COUNTER, "metrics.teardown_network_closes"),
    MetricDefinition("grace_expiries_total", "Grace periods that expired into a departure", MetricType.COUNTER, "metrics.teardown_grace_expiries"),
    MetricDefinition("kicks_total", "Sessions removed by an administrator", MetricType.COUNTER, "metrics.teardown_kicks"),
    MetricDefinition("bans_total", "Bans issued", MetricType.COUNTER, "metrics.teardown_bans"),
    MetricDefinition("stale_sessions_reaped_total", "Sessions closed for missing heartbeats", MetricType.COUNTER, "metrics.teardown_stale_reaped"),
    MetricDefinition("messages_accepted_total", "Chat messages broadcast", MetricType.COUNTER, "metrics.chat_accepted"),
    MetricDefinition("messages_rate_limited_total", "Chat messages refused by the rate limiter", MetricType.COUNTER, "metrics.chat_rate_limited"),
    MetricDefinition("broadcasts_total", "Broadcast operations", MetricType.COUNTER, "metrics.broadcasts_total"),
    MetricDefinition("broadcasts_failed_recipients_total", "Recipients a broadcast could not reach", MetricType.COUNTER, "metrics.broadcasts_recipients_failed"),
)

# claims_<outcome> keys exported under one labelled series
CLAIM_OUTCOMES: tuple[str, ...] = (
    "fresh",
    "quick_reconnect",
    "stale_reconnect",
    "rejected_banned",
    "rejected_invalid",
)

CONNECTION_REJECTIONS: tuple[str, ...] = (
    "rejected_limit",
    "rejected_origin",
    "timeouts",
    "oversized_frames",
    "invalid_frames",
)


class PrometheusFormatter:
    """
    Formats metrics in Prometheus text exposition format.

    Reference: https://prometheus.io/docs/instrumenting/exposition_formats/

    Usage:
        formatter = PrometheusFormatter()
        output = formatter.format_all_metrics(manager.get_stats_sync())
    """

    def __init__(self, prefix: str = "chatrelay"):
        self._prefix = prefix

    def _full_name(self, name: str) -> str:
        return f"{self._prefix}_{name}"

    def format_metric(
        self,
        name: str,
        value: float | int,
        help_text: str,
        metric_type: MetricType,
        labels: dict[str, str] | None = None,
    ) -> str:
        """Format a single metric with HELP and TYPE lines."""
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} {metric_type.value}",
        ]
        if labels:
            label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
            lines.append(f"{name}{{{label_str}}} {value}")
        else:
            lines.append(f"{name} {value}")
        return "\n".join(lines)

    def format_labelled(
        self,
        name: str,
        help_text: str,
        metric_type: MetricType,
        label: str,
        values: dict[str, float | int],
    ) -> str:
        """Format one metric family with a single label dimension."""
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} {metric_type.value}",
        ]
        for label_value, value in values.items():
            lines.append(f'{name}{{{label}="{label_value}"}} {value}')
        return "\n".join(lines)

    @staticmethod
    def _lookup(stats: dict[str, Any], source: str) -> float | int:
        if source.startswith("metrics."):
            return stats.get("metrics", {}).get(source[len("metrics."):], 0)
        if source.startswith("heartbeat."):
            return stats.get("heartbeat_stats", {}).get(source[len("heartbeat."):], 0)
        return stats.get(source, 0)

    def format_all_metrics(self, stats: dict[str, Any]) -> str:
        """
        Format all metrics from ConnectionManager stats.

        Args:
            stats: Stats dictionary from ConnectionManager.get_stats_sync().

        Returns:
            Complete Prometheus exposition format string.
        """
        metrics = stats.get("metrics", {})
        blocks: list[str] = []

        for definition in GAUGES + COUNTERS:
            blocks.append(self.format_metric(
                self._full_name(definition.name),
                self._lookup(stats, definition.source),
                definition.help_text,
                definition.metric_type,
            ))

        blocks.append(self.format_labelled(
            self._full_name("claims_total"),
            "Identity claims by outcome",
            MetricType.COUNTER,
            "outcome",
            {outcome: metrics.get(f"claims_{outcome}", 0) for outcome in CLAIM_OUTCOMES},
        ))

        blocks.append(self.format_labelled(
            self._full_name("connections_rejected_total"),
            "Connections refused or dropped by the transport layer",
            MetricType.COUNTER,
            "reason",
            {reason: metrics.get(f"connections_{reason}", 0) for reason in CONNECTION_REJECTIONS},
        ))

        blocks.append(self.format_metric(
            self._full_name("scrape_timestamp"),
            int(time.time()),
            "Timestamp of metrics scrape",
            MetricType.GAUGE,
        ))

        return "\n".join(blocks) + "\n"


_formatter: PrometheusFormatter | None = None


def get_prometheus_formatter() -> PrometheusFormatter:
    """Get singleton Prometheus formatter."""
    global _formatter
    if _formatter is None:
        _formatter = PrometheusFormatter()
    return _formatter


def generate_prometheus_metrics(manager: "ConnectionManager") -> str:
    """Generate Prometheus exposition text from a ConnectionManager."""
    return get_prometheus_formatter().format_all_metrics(manager.get_stats_sync())
