"""
Chat Gateway Components.

Organized into domain-specific modules:
- core/       - Foundational components (constants, context)
- identity/   - Name registry, grace periods, device bans
- connection/ - Channels, sessions, index, heartbeat, rate limiting
- events/     - Intent models and outbound events
- broadcast/  - Fan-out and chat history
- endpoints/  - WebSocket endpoints (base, mixins, handlers)
- metrics/    - Observability (collector, prometheus)

New code should import from specific submodules; the most used symbols
are re-exported here.
"""

from chat_gateway.components.core.constants import WSCloseCode, RelayConstants, validate_websocket_origin
from chat_gateway.components.core.context import SessionContext, sanitize_log_data
from chat_gateway.components.identity.registry import IdentityRegistry
from chat_gateway.components.identity.grace import GracePeriodTracker
from chat_gateway.components.identity.bans import BanStore
from chat_gateway.components.connection.channel import WebSocketChannel
from chat_gateway.components.connection.session import ChatSession
from chat_gateway.components.connection.index import SessionIndex
from chat_gateway.components.connection.heartbeat import HeartbeatTracker
from chat_gateway.components.connection.rate_limiter import ChatRateLimiter
from chat_gateway.components.events.types import OutboundType, parse_intent, event
from chat_gateway.components.broadcast.hub import BroadcastHub
from chat_gateway.components.metrics.collector import MetricsCollector
from chat_gateway.components.metrics.prometheus import PrometheusFormatter

__all__ = [
    # Core
    "WSCloseCode",
    "RelayConstants",
    "validate_websocket_origin",
    "SessionContext",
    "sanitize_log_data",
    # Identity
    "IdentityRegistry",
    "GracePeriodTracker",
    "BanStore",
    # Connection
    "WebSocketChannel",
    "ChatSession",
    "SessionIndex",
    "HeartbeatTracker",
    "ChatRateLimiter",
    # Events
    "OutboundType",
    "parse_intent",
    "event",
    # Broadcast
    "BroadcastHub",
    # Metrics
    "MetricsCollector",
    "PrometheusFormatter",
]
