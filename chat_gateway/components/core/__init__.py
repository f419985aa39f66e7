"""
Core chat gateway components.

Foundational components: constants and connection context.
"""

from chat_gateway.components.core.constants import (
    WSCloseCode,
    ForceCloseReason,
    RelayConstants,
    validate_websocket_origin,
    parse_allowed_origins,
)
from chat_gateway.components.core.context import SessionContext, sanitize_log_data

__all__ = [
    # Constants
    "WSCloseCode",
    "ForceCloseReason",
    "RelayConstants",
    "validate_websocket_origin",
    "parse_allowed_origins",
    # Context
    "SessionContext",
    "sanitize_log_data",
]
