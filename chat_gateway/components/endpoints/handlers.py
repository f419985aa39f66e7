"""
Concrete chat endpoint.

One endpoint serves both client modes; the mode only changes how the
client renders events and is echoed in the admin snapshot.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import WebSocket

from chat_gateway.components.core.constants import WSCloseCode
from chat_gateway.components.endpoints.base import ChatEndpointBase
from chat_gateway.components.endpoints.mixins import OriginValidationMixin

if TYPE_CHECKING:
    from chat_gateway.components.connection.channel import WebSocketChannel
    from chat_gateway.components.connection.session import ChatSession
    from chat_gateway.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)

CLIENT_MODES = frozenset({"rich", "plain"})


class ChatEndpoint(OriginValidationMixin, ChatEndpointBase):
    """
    WebSocket endpoint for chat clients.

    Features:
    - Origin validation before the handshake completes
    - server_info greeting on registration
    - Identity claims, chat, renames and logout over JSON frames
    - Plain-text "ping" keepalive
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        mode: str | None = None,
    ):
        from shared.config.settings import settings

        super().__init__(
            websocket=websocket,
            manager=manager,
            endpoint_name="/ws",
            mode=mode if mode in CLIENT_MODES else "rich",
            receive_timeout=settings.ws_receive_timeout,
            max_message_size=settings.ws_max_message_size,
            outbound_queue_size=settings.ws_outbound_queue_size,
        )

    async def admit(self) -> bool:
        """Refuse the handshake for disallowed origins."""
        if self.validate_origin():
            return True

        self.manager.record_transport_error("rejected_origin")
        self.log_connect_rejected("invalid_origin")
        await self.websocket.close(
            code=WSCloseCode.POLICY_VIOLATION,
            reason="Origin not allowed",
        )
        return False

    def register_connection(self, channel: "WebSocketChannel") -> "ChatSession":
        return self.manager.register(channel, mode=self.mode)

    def handle_message(self, data: str) -> None:
        self.manager.handle_message(self.session, data)
