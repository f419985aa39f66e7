"""
Outbound message channels.

The lifecycle core never awaits I/O. It talks to a Channel whose send() and
close() return immediately; WebSocketChannel queues frames and a writer
task drains them onto the socket in order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, TYPE_CHECKING

from starlette.websockets import WebSocketDisconnect, WebSocketState

from chat_gateway.components.core.constants import RelayConstants, WSCloseCode

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ChannelClosedError(ConnectionError):
    """Send attempted on a channel that is closed or closing."""


class ChannelBackpressureError(ConnectionError):
    """Send attempted while the outbound queue is full."""


class Channel(Protocol):
    """Non-blocking outbound side of one connection."""

    @property
    def is_open(self) -> bool: ...

    def send(self, payload: dict[str, Any]) -> None:
        """Queue a JSON payload. Raises ConnectionError subclasses on failure."""
        ...

    def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None:
        """Queue a close frame. Idempotent."""
        ...


def is_ws_connected(ws: "WebSocket") -> bool:
    """
    Check if a Starlette WebSocket is connected on both sides.

    Transitional states are not exposed, so a socket may look connected
    briefly after the peer went away; the writer handles the resulting errors.
    """
    return (
        ws.client_state == WebSocketState.CONNECTED
        and ws.application_state == WebSocketState.CONNECTED
    )


_SEND = "send"
_CLOSE = "close"
_STOP = "stop"


class WebSocketChannel:
    """
    Channel backed by a FastAPI WebSocket.

    Frames go through a bounded queue so a slow peer cannot stall the
    event sequence that produces them. A full queue makes send() raise,
    which the broadcast hub counts as a failed recipient.

    Usage:
        channel = WebSocketChannel(websocket, max_queue=settings.ws_outbound_queue_size)
        channel.start()
        ...
        await channel.shutdown()
    """

    def __init__(
        self,
        websocket: "WebSocket",
        max_queue: int = RelayConstants.OUTBOUND_QUEUE_SIZE,
    ) -> None:
        self._ws = websocket
        self._queue: asyncio.Queue[tuple[Any, ...]] = asyncio.Queue(maxsize=max_queue)
        self._writer: asyncio.Task | None = None
        self._closing = False
        self._close_code: int | None = None

        # Metrics
        self._frames_sent = 0
        self._frames_rejected = 0

    @property
    def is_open(self) -> bool:
        return not self._closing and is_ws_connected(self._ws)

    @property
    def close_code(self) -> int | None:
        """Close code requested by the server, if any."""
        return self._close_code

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        """Start the writer task. Call once, after websocket.accept()."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._write_loop(), name="ws_channel_writer")

    def send(self, payload: dict[str, Any]) -> None:
        if self._closing:
            self._frames_rejected += 1
            raise ChannelClosedError("channel is closed")
        try:
            self._queue.put_nowait((_SEND, payload))
        except asyncio.QueueFull:
            self._frames_rejected += 1
            raise ChannelBackpressureError(
                f"outbound queue full ({self._queue.maxsize} frames)"
            ) from None

    def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None:
        if self._closing:
            return
        self._closing = True
        self._close_code = int(code)
        self._enqueue_terminal((_CLOSE, int(code), reason))

    def _enqueue_terminal(self, item: tuple[Any, ...]) -> None:
        # A terminal item must always fit; drop the undelivered backlog if needed.
        if self._queue.full():
            dropped = 0
            while not self._queue.empty():
                self._queue.get_nowait()
                dropped += 1
            logger.debug("Dropped pending frames before close", dropped=dropped)
        self._queue.put_nowait(item)

    async def _write_loop(self) -> None:
        while True:
            item = await self._queue.get()
            kind = item[0]
            try:
                if kind == _SEND:
                    await self._ws.send_json(item[1])
                    self._frames_sent += 1
                    continue
                if kind == _CLOSE and self._ws.application_state == WebSocketState.CONNECTED:
                    await self._ws.close(code=item[1], reason=item[2])
                return
            except (WebSocketDisconnect, ConnectionError, RuntimeError, OSError) as e:
                # Peer went away; the receive loop runs teardown.
                logger.debug("Channel write failed", error=type(e).__name__)
                self._closing = True
                return

    async def shutdown(self, timeout: float = RelayConstants.SHUTDOWN_DRAIN_TIMEOUT) -> None:
        """
        Stop the writer after flushing what is queued.

        Called by the endpoint once the connection is finished. Waits at
        most `timeout` seconds before cancelling the writer.
        """
        if self._writer is None:
            return
        if not self._writer.done():
            if not self._closing:
                self._closing = True
                self._enqueue_terminal((_STOP,))
            try:
                await asyncio.wait_for(asyncio.shield(self._writer), timeout=timeout)
            except asyncio.TimeoutError:
                self._writer.cancel()
                await asyncio.gather(self._writer, return_exceptions=True)

    def get_stats(self) -> dict[str, int | bool]:
        return {
            "open": self.is_open,
            "pending": self._queue.qsize(),
            "frames_sent": self._frames_sent,
            "frames_rejected": self._frames_rejected,
        }
