"""
Per-connection session record.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from chat_gateway.components.connection.channel import Channel


@dataclass(eq=False)
class ChatSession:
    """
    One live connection and the identity bound to it.

    Compared and hashed by identity so it can key the heartbeat tracker
    and the session index.

    Attributes:
        channel: Outbound side of the connection.
        mode: Presentation tag forwarded to clients ("rich" or "plain").
        name: Bound display name, None until authenticated.
        device: Device token presented in the claim, if any.
        authenticated: Set once a claim resolves.
        closed: Set by teardown; a closed session never receives broadcasts.
    """

    channel: "Channel"
    mode: str = "rich"
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str | None = None
    device: str | None = None
    authenticated: bool = False
    connected_at: float = field(default_factory=time.time)
    closed: bool = False

    @property
    def is_open(self) -> bool:
        return not self.closed and self.channel.is_open

    def send(self, payload: dict[str, Any]) -> bool:
        """
        Best-effort direct send to this session.

        Returns:
            False if the channel refused the frame.
        """
        try:
            self.channel.send(payload)
        except ConnectionError:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "device": self.device,
            "mode": self.mode,
            "connectedAt": int(self.connected_at * 1000),
        }
