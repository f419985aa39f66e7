"""
Event handling components.

Inbound intent models and outbound event construction.
"""

from chat_gateway.components.events.types import (
    InboundType,
    OutboundType,
    ClaimIdentity,
    ChangeIdentity,
    SendChat,
    Logout,
    Heartbeat,
    IntentError,
    parse_intent,
    event,
)

__all__ = [
    "InboundType",
    "OutboundType",
    "ClaimIdentity",
    "ChangeIdentity",
    "SendChat",
    "Logout",
    "Heartbeat",
    "IntentError",
    "parse_intent",
    "event",
]
