"""
Metrics components.

Counters for the relay and their Prometheus text exposition.
"""

from chat_gateway.components.metrics.collector import MetricsCollector
from chat_gateway.components.metrics.prometheus import (
    PrometheusFormatter,
    generate_prometheus_metrics,
    get_prometheus_formatter,
)

__all__ = [
    "MetricsCollector",
    "PrometheusFormatter",
    "generate_prometheus_metrics",
    "get_prometheus_formatter",
]
