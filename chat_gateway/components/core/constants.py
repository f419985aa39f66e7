"""
Chat Gateway Constants.

Centralized constants with documentation explaining the rationale for each value.
Runtime values come from shared.config.settings; the defaults here are used
when a component is constructed without explicit arguments (tests, scripts).
"""

import logging
from enum import IntEnum
from typing import Final

__all__ = [
    "WSCloseCode",
    "RelayConstants",
    "ForceCloseReason",
    "MSG_PING_PLAIN",
    "DEFAULT_ALLOWED_ORIGINS",
    "parse_allowed_origins",
    "validate_websocket_origin",
]

logger = logging.getLogger(__name__)


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the relay.

    Standard codes (1000-1999) from RFC 6455.
    Custom codes (4000-4999) carry relay-specific meanings that clients use
    to decide whether to reconnect automatically.
    """

    # Standard codes (RFC 6455)
    NORMAL = 1000  # Normal closure (logout)
    GOING_AWAY = 1001  # Server shutting down or idle connection reaped
    POLICY_VIOLATION = 1008  # Malformed claim that cannot proceed
    MESSAGE_TOO_BIG = 1009  # Inbound frame above ws_max_message_size
    SERVER_ERROR = 1011  # Unexpected server error
    SERVER_OVERLOADED = 1013  # ws_max_total_connections reached

    # Custom application codes (4000-4999)
    BANNED = 4003  # Device is banned; do not reconnect until the ban lapses
    KICKED = 4004  # Removed by an administrator
    REPLACED = 4009  # Same device opened a newer connection; do not reconnect


class ForceCloseReason:
    """Reasons carried by force_closed events."""

    REPLACED: Final[str] = "replaced"
    KICKED: Final[str] = "kicked"
    BANNED: Final[str] = "banned"


class RelayConstants:
    """
    Relay operational defaults.

    Each constant is documented with the rationale for its value.
    At runtime the ConnectionManager reads the matching settings keys,
    which take precedence.
    """

    # ==========================================================================
    # Identity
    # ==========================================================================

    # NAME_MAX_LENGTH: 20
    # Rationale: Display names are rendered inline before every chat line.
    # 20 characters keeps terminal clients aligned and suffixes ("alice12")
    # still fit after truncation of the base.
    NAME_MAX_LENGTH: Final[int] = 20

    # DEFAULT_NAME: "anon"
    # Base token used when the requested name sanitizes to nothing or is reserved.
    DEFAULT_NAME: Final[str] = "anon"

    # DEVICE_MAX_LENGTH: 128
    # Rationale: Device tokens are opaque client-generated identifiers
    # (typically UUIDs, 36 chars). 128 leaves room for other formats while
    # bounding the memory an attacker can pin per table entry.
    DEVICE_MAX_LENGTH: Final[int] = 128

    # ==========================================================================
    # Reconnection grace period
    # ==========================================================================

    # GRACE_PERIOD_SECONDS: 10 seconds
    # Rationale: Mobile clients switching networks or a page reload usually
    # reconnect within 2-5 seconds. 10 seconds absorbs those blips without
    # leaving a departed user's name reserved for long.
    GRACE_PERIOD_SECONDS: Final[float] = 10.0

    # ==========================================================================
    # Chat rate limiting
    # ==========================================================================

    # CHAT_RATE_MAX_MESSAGES / CHAT_RATE_WINDOW_SECONDS: 5 per 10 seconds
    # Rationale: A person typing quickly sends one line every 2-3 seconds.
    # Five lines in ten seconds tolerates bursts (pasting a few lines) and
    # stops scripted flooding.
    CHAT_RATE_MAX_MESSAGES: Final[int] = 5
    CHAT_RATE_WINDOW_SECONDS: Final[float] = 10.0

    # CHAT_RATE_MUTE_SECONDS: 15 seconds
    # Rationale: Longer than the window so a flooder cannot simply resume
    # at the next window boundary.
    CHAT_RATE_MUTE_SECONDS: Final[float] = 15.0

    # ==========================================================================
    # History
    # ==========================================================================

    # HISTORY_CAPACITY: 100 lines
    # Rationale: Enough scrollback for a newcomer to follow the conversation.
    # At 500 chars per line the worst case is ~50KB replayed per claim.
    HISTORY_CAPACITY: Final[int] = 100

    # CHAT_MAX_MESSAGE_LENGTH: 500 characters
    CHAT_MAX_MESSAGE_LENGTH: Final[int] = 500

    # ==========================================================================
    # Transport
    # ==========================================================================

    # WS_RECEIVE_TIMEOUT: 90 seconds
    # Rationale: Must be longer than the client ping interval (30s) to avoid
    # false positives. At 3x the interval it tolerates jitter while still
    # detecting dead connections.
    WS_RECEIVE_TIMEOUT: Final[float] = 90.0

    # OUTBOUND_QUEUE_SIZE: 256 frames
    # Rationale: A full history replay is 100 lines plus a handful of control
    # frames. 256 absorbs that plus a burst of broadcasts. A peer that falls
    # further behind is treated as a failed recipient.
    OUTBOUND_QUEUE_SIZE: Final[int] = 256

    # HEARTBEAT_CLEANUP_INTERVAL: 30 seconds
    # Rationale: Matches the typical client ping interval.
    HEARTBEAT_CLEANUP_INTERVAL: Final[float] = 30.0

    # HEARTBEAT_TIMEOUT: 60 seconds (two missed pings)
    HEARTBEAT_TIMEOUT: Final[float] = 60.0

    # SHUTDOWN_DRAIN_TIMEOUT: 2 seconds
    # Rationale: Writer tasks get a short window to flush close frames on
    # shutdown before being cancelled.
    SHUTDOWN_DRAIN_TIMEOUT: Final[float] = 2.0


# Plain-text heartbeat accepted in addition to {"type": "heartbeat"}
MSG_PING_PLAIN: Final[str] = "ping"


# Default development origins. Tuple to prevent mutation.
DEFAULT_ALLOWED_ORIGINS: Final[tuple[str, ...]] = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8080",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8080",
)


def parse_allowed_origins(settings: object) -> list[str]:
    """Allowed origins from settings, falling back to DEFAULT_ALLOWED_ORIGINS."""
    allowed_origins_str = getattr(settings, "allowed_origins", None)
    if allowed_origins_str:
        return [o.strip() for o in allowed_origins_str.split(",") if o.strip()]
    return list(DEFAULT_ALLOWED_ORIGINS)


def validate_websocket_origin(origin: str | None, settings: object) -> bool:
    """
    Validate WebSocket origin header against allowed origins.

    A missing Origin header is accepted in development only; terminal
    clients connect without one.

    Args:
        origin: The Origin header value, or None if not present.
        settings: Settings object with environment and allowed_origins attributes.

    Returns:
        True if origin is allowed, False otherwise.
    """
    allowed = parse_allowed_origins(settings)

    if not origin:
        is_dev = getattr(settings, "environment", "production") == "development"
        if not is_dev:
            logger.warning("WebSocket connection rejected: missing Origin header in production")
        return is_dev

    if origin in allowed:
        return True

    logger.warning(
        "WebSocket connection rejected: origin not in allowed list",
        origin=origin,
        allowed_count=len(allowed),
    )
    return False
