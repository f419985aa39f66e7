"""
Connection management components.

Handles per-connection state: channels, sessions, index, heartbeat, rate limiting.
"""

from chat_gateway.components.connection.channel import (
    Channel,
    ChannelBackpressureError,
    ChannelClosedError,
    WebSocketChannel,
)
from chat_gateway.components.connection.heartbeat import HeartbeatTracker, handle_heartbeat
from chat_gateway.components.connection.index import SessionIndex
from chat_gateway.components.connection.rate_limiter import ChatRateLimiter
from chat_gateway.components.connection.session import ChatSession

__all__ = [
    "Channel",
    "ChannelBackpressureError",
    "ChannelClosedError",
    "WebSocketChannel",
    "HeartbeatTracker",
    "handle_heartbeat",
    "SessionIndex",
    "ChatRateLimiter",
    "ChatSession",
]
