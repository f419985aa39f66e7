"""
WebSocket endpoint components.

Base lifecycle, single-concern mixins and the concrete chat endpoint.
"""

from chat_gateway.components.endpoints.base import ChatEndpointBase
from chat_gateway.components.endpoints.mixins import (
    MessageValidationMixin,
    OriginValidationMixin,
    ConnectionLifecycleMixin,
)
from chat_gateway.components.endpoints.handlers import ChatEndpoint

__all__ = [
    # Base class
    "ChatEndpointBase",
    # Mixins
    "MessageValidationMixin",
    "OriginValidationMixin",
    "ConnectionLifecycleMixin",
    # Handlers
    "ChatEndpoint",
]
