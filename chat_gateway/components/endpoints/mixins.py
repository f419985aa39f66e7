"""
Chat Endpoint Mixins.

Each mixin handles a single concern for the WebSocket endpoint.

Mixins:
    MessageValidationMixin: Inbound frame size checks
    OriginValidationMixin: WebSocket origin header validation
    ConnectionLifecycleMixin: Lifecycle logging and audit

Usage:
    class MyEndpoint(MessageValidationMixin, OriginValidationMixin, ChatEndpointBase):
        ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from fastapi import WebSocket

from chat_gateway.components.core.constants import WSCloseCode

if TYPE_CHECKING:
    from chat_gateway.components.connection.channel import WebSocketChannel
    from chat_gateway.components.core.context import SessionContext
    from chat_gateway.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


# =============================================================================
# Protocols for mixin dependencies
# =============================================================================


class HasWebSocket(Protocol):
    """Protocol for classes with websocket attribute."""

    websocket: WebSocket
    endpoint_name: str
    context: "SessionContext | None"


class HasChannel(Protocol):
    """Protocol for classes with an outbound channel and manager."""

    channel: "WebSocketChannel | None"
    manager: "ConnectionManager"
    max_message_size: int


# =============================================================================
# MessageValidationMixin
# =============================================================================


class MessageValidationMixin:
    """
    Mixin for inbound frame validation.

    Requires:
        - self.channel: WebSocketChannel
        - self.manager: ConnectionManager
        - self.max_message_size: int
        - self.endpoint_name: str
        - self.context: SessionContext | None
    """

    def validate_message_size(self: "HasWebSocket & HasChannel", data: str) -> bool:
        """
        Validate frame size against the configured limit.

        Returns:
            True if valid, False if too large (close queued).
        """
        if len(data) > self.max_message_size:
            logger.warning(
                "Message size exceeded limit",
                endpoint=self.endpoint_name,
                identifier=self.context.identifier if self.context else "unknown",
                size=len(data),
                max_size=self.max_message_size,
            )
            self.manager.record_transport_error("oversized_frames")
            if self.channel is not None:
                self.channel.close(WSCloseCode.MESSAGE_TOO_BIG, "Message too large")
            return False
        return True


# =============================================================================
# OriginValidationMixin
# =============================================================================


class OriginValidationMixin:
    """
    Mixin for WebSocket origin header validation.

    Requires:
        - self.websocket: WebSocket
    """

    def validate_origin(self: HasWebSocket) -> bool:
        """
        Validate WebSocket origin header against allowed origins.

        Returns:
            True if origin is allowed, False otherwise.
        """
        from shared.config.settings import settings
        from chat_gateway.components.core.constants import validate_websocket_origin

        return validate_websocket_origin(self.get_origin(), settings)

    def get_origin(self: HasWebSocket) -> str | None:
        """Get origin header from websocket."""
        return self.websocket.headers.get("origin")


# =============================================================================
# ConnectionLifecycleMixin
# =============================================================================


class ConnectionLifecycleMixin:
    """
    Mixin for connection lifecycle logging.

    Requires:
        - self.endpoint_name: str
        - self.context: SessionContext | None
    """

    def log_connect(self: HasWebSocket) -> None:
        """Log connection event."""
        logger.info(
            "Chat client connected",
            **self.context.to_audit_dict("CONNECT") if self.context else {},
        )
        if self.context:
            self.context.audit("CONNECT")

    def log_disconnect(self: HasWebSocket, reason: str = "client_disconnect") -> None:
        """Log disconnection event."""
        logger.info(
            "Chat client disconnected",
            **(
                self.context.to_audit_dict("DISCONNECT", reason=reason)
                if self.context
                else {}
            ),
        )
        if self.context:
            self.context.audit("DISCONNECT", reason=reason)

    def log_connect_rejected(self: HasWebSocket, reason: str) -> None:
        """Log connection rejection event."""
        logger.warning(
            "Connection rejected",
            endpoint=self.endpoint_name,
            identifier=self.context.identifier if self.context else "unknown",
            reason=reason,
        )
        if self.context:
            self.context.audit("CONNECT_REJECTED", reason=reason)


# =============================================================================
# Exports
# =============================================================================


__all__ = [
    "MessageValidationMixin",
    "OriginValidationMixin",
    "ConnectionLifecycleMixin",
    # Protocols
    "HasWebSocket",
    "HasChannel",
]
