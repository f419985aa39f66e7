"""
Session context for audit logging.

Encapsulates connection metadata so audit calls do not repeat the same
origin/mode/name/device arguments at every lifecycle step.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import WebSocket


# Control characters, zero-width marks, bidi overrides and BOM
_CONTROL_CHAR_PATTERN = re.compile(
    r'[\x00-\x1f\x7f-\x9f'
    r'​-‏'
    r'‪-‮'
    r'⁦-⁩'
    r'﻿]'
)


def sanitize_log_data(data: str, max_length: int = 100) -> str:
    """
    Sanitize user-provided data before logging.

    Truncates first, then strips control characters and escapes
    JSON-dangerous characters, so the output length is predictable.

    Args:
        data: Raw user data (chat text, requested names).
        max_length: Maximum length to include in logs.

    Returns:
        Sanitized, truncated string safe for structured logging.
    """
    was_truncated = len(data) > max_length
    truncated = data[:max_length] if was_truncated else data

    sanitized = _CONTROL_CHAR_PATTERN.sub('', truncated)

    # Backslashes first to avoid double-escaping
    sanitized = sanitized.replace('\\', '\\\\')
    sanitized = sanitized.replace('"', '\\"')

    if was_truncated:
        return sanitized + "..."
    return sanitized


@dataclass
class SessionContext:
    """
    Audit metadata for one chat connection.

    Usage:
        ctx = SessionContext.from_websocket(websocket, "/ws", mode="plain")
        ctx.audit("CONNECT")
        # ... after the claim resolves
        ctx.name, ctx.device = session.name, session.device
        ctx.audit("DISCONNECT", reason="network")
    """

    endpoint: str
    origin: str | None = None
    mode: str | None = None
    session_id: str | None = None
    name: str | None = None
    device: str | None = None

    @classmethod
    def from_websocket(
        cls,
        websocket: "WebSocket",
        endpoint: str,
        mode: str | None = None,
    ) -> "SessionContext":
        return cls(
            endpoint=endpoint,
            origin=websocket.headers.get("origin"),
            mode=mode,
        )

    def to_audit_dict(self, event_type: str, **extra: Any) -> dict[str, Any]:
        """
        Convert to keyword arguments for audit_ws_connection.

        Only non-empty optional fields are included to reduce log noise.
        """
        result: dict[str, Any] = {
            "event_type": event_type,
            "endpoint": self.endpoint,
        }
        if self.origin:
            result["origin"] = self.origin
        if self.name:
            result["name"] = self.name
        if self.device:
            result["device"] = self.device
        if self.mode:
            result["mode"] = self.mode
        if self.session_id:
            result["session_id"] = self.session_id

        result.update(extra)
        return result

    def audit(
        self,
        event_type: str,
        logger_func: Callable[..., None] | None = None,
        **extra: Any,
    ) -> None:
        """
        Log an audit event with all context fields.

        Args:
            event_type: The audit event type (CONNECT, CLAIMED, DISCONNECT...).
            logger_func: Optional logger function (default: audit_ws_connection).
            **extra: Additional fields to log.
        """
        if logger_func is None:
            from shared.config.logging import audit_ws_connection
            logger_func = audit_ws_connection

        logger_func(**self.to_audit_dict(event_type, **extra))

    @property
    def identifier(self) -> str:
        """Human-readable identifier: the display name once claimed."""
        if self.name:
            return f"name:{self.name}"
        if self.session_id:
            return f"session:{self.session_id}"
        return "anonymous"
