"""
Broadcast components.

Fan-out of chat lines to authenticated sessions with bounded history.
"""

from chat_gateway.components.broadcast.hub import BroadcastHub, now_ms

__all__ = ["BroadcastHub", "now_ms"]
