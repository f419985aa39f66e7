"""
WebSocket Endpoint Base Class.

Owns the transport side of a chat connection: handshake, outbound
channel, receive loop with timeout, and teardown on exit. What a frame
means is left to subclasses.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from fastapi import WebSocket, WebSocketDisconnect

from chat_gateway.components.connection.channel import WebSocketChannel
from chat_gateway.components.core.constants import RelayConstants, WSCloseCode
from chat_gateway.components.core.context import SessionContext
from chat_gateway.components.endpoints.mixins import (
    ConnectionLifecycleMixin,
    MessageValidationMixin,
)

if TYPE_CHECKING:
    from chat_gateway.components.connection.session import ChatSession
    from chat_gateway.connection_manager import ConnectionManager

logger = logging.getLogger(__name__)


class ChatEndpointBase(
    MessageValidationMixin,
    ConnectionLifecycleMixin,
    ABC,
):
    """
    Base class for chat WebSocket endpoints.

    Encapsulates:
    - Connection lifecycle (admission, accept, message loop, disconnect)
    - Inbound frame size validation
    - Receive timeout for silent peers
    - Audit logging

    Subclasses implement:
    - admit(): Decide before accept whether the handshake proceeds
    - register_connection(): Register the channel with ConnectionManager
    - handle_message(): Process one inbound text frame

    Usage:
        endpoint = ChatEndpoint(websocket, manager, mode="plain")
        await endpoint.run()
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str,
        mode: str = "rich",
        receive_timeout: float = RelayConstants.WS_RECEIVE_TIMEOUT,
        max_message_size: int = 16 * 1024,
        outbound_queue_size: int = RelayConstants.OUTBOUND_QUEUE_SIZE,
    ):
        """
        Initialize the endpoint handler.

        Args:
            websocket: The WebSocket connection.
            manager: ConnectionManager instance.
            endpoint_name: Name for logging (e.g., "/ws").
            mode: Client presentation mode ("rich" or "plain").
            receive_timeout: Seconds without any inbound frame before closing.
            max_message_size: Largest accepted inbound frame, in characters.
            outbound_queue_size: Pending outbound frames before sends fail.
        """
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        self.mode = mode
        self.receive_timeout = receive_timeout
        self.max_message_size = max_message_size
        self.outbound_queue_size = outbound_queue_size

        self.context: SessionContext | None = None
        self.channel: WebSocketChannel | None = None
        self.session: "ChatSession | None" = None

    @abstractmethod
    async def admit(self) -> bool:
        """
        Pre-accept check. Close the WebSocket and return False to refuse.
        """

    @abstractmethod
    def register_connection(self, channel: WebSocketChannel) -> "ChatSession":
        """
        Register the connection with ConnectionManager.

        Raises:
            ConnectionError: If registration is refused.
        """

    @abstractmethod
    def handle_message(self, data: str) -> None:
        """Handle one inbound text frame."""

    def unregister_connection(self) -> None:
        """Run network-loss teardown for the session."""
        if self.session is not None:
            self.manager.disconnect(self.session)

    async def run(self) -> None:
        """
        Main entry point - run the WebSocket endpoint.

        Handles the complete lifecycle:
        1. Admission (origin)
        2. Accept and start the outbound channel
        3. Register connection
        4. Message loop
        5. Unregister and drain the channel
        """
        self.context = SessionContext.from_websocket(self.websocket, self.endpoint_name, mode=self.mode)

        # Step 1: Admission
        if not await self.admit():
            return

        # Step 2: Accept
        await self.websocket.accept()
        self.channel = WebSocketChannel(self.websocket, max_queue=self.outbound_queue_size)
        self.channel.start()

        # Step 3: Register connection
        try:
            self.session = self.register_connection(self.channel)
        except ConnectionError as e:
            self.log_connect_rejected(str(e))
            self.channel.close(WSCloseCode.SERVER_OVERLOADED, "Server unavailable")
            await self.channel.shutdown()
            return

        self.context.session_id = self.session.session_id
        self.log_connect()

        # Step 4: Message loop
        reason = "client_disconnect"
        try:
            reason = await self._message_loop()
        except WebSocketDisconnect:
            reason = "client_disconnect"
        except RuntimeError as e:
            # Receive after the socket was closed underneath us
            logger.debug("Receive on closed socket", error=str(e))
            reason = "socket_closed"
        finally:
            # Step 5: Unregister
            self.context.name = self.session.name
            self.context.device = self.session.device
            self.unregister_connection()
            await self.channel.shutdown()
            self.log_disconnect(reason)

    async def _message_loop(self) -> str:
        """
        Main message processing loop.

        Returns:
            Why the loop ended (timeout, oversized_frame, server_closed).
        """
        while True:
            data = await self._receive_with_timeout()
            if data is None:
                logger.info(
                    "Connection timed out (no messages)",
                    endpoint=self.endpoint_name,
                    identifier=self.context.identifier if self.context else "unknown",
                    timeout=self.receive_timeout,
                )
                self.manager.record_transport_error("timeouts")
                self.channel.close(WSCloseCode.GOING_AWAY, "Connection timeout")
                return "timeout"

            if not self.validate_message_size(data):
                return "oversized_frame"

            self.handle_message(data)

            if self.session.closed:
                return "server_closed"

    async def _receive_with_timeout(self) -> str | None:
        """
        Receive one frame with timeout.

        Binary frames are decoded as UTF-8 text.

        Returns:
            Message data, or None on timeout.

        Raises:
            WebSocketDisconnect: If the peer disconnected.
        """
        try:
            message = await asyncio.wait_for(
                self.websocket.receive(),
                timeout=self.receive_timeout,
            )
        except asyncio.TimeoutError:
            return None

        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(code=message.get("code", WSCloseCode.NORMAL))
        if message.get("text") is not None:
            return message["text"]
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")
