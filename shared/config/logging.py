"""
Centralized structured logging for the relay.
Uses Python's standard logging with JSON formatting for production.

Loggers created after this module is imported accept keyword context:

    logger.info("Identity claimed", name="alice", device=mask_device(device))
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.
    Outputs logs in a format easily parseable by log aggregation tools.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "extra_data") and record.extra_data:
            log_data["data"] = record.extra_data

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add source location in debug mode
        if settings.debug:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now().strftime("%H:%M:%S")

        message = f"{color}[{timestamp}] {record.levelname:8}{self.RESET} {record.name}: {record.getMessage()}"

        if hasattr(record, "extra_data") and record.extra_data:
            data_str = " | ".join(f"{k}={v}" for k, v in record.extra_data.items())
            message += f" ({data_str})"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


class StructuredLogger(logging.Logger):
    """
    Custom logger that supports structured data.
    """

    def _log_with_data(
        self,
        level: int,
        msg: str,
        args: tuple,
        exc_info: Any = None,
        extra: dict | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **kwargs: Any,
    ) -> None:
        """Log with optional structured data."""
        if not self.isEnabledFor(level):
            return
        if extra is None:
            extra = {}
        extra["extra_data"] = kwargs if kwargs else None
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.DEBUG, msg, args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.INFO, msg, args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.WARNING, msg, args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.ERROR, msg, args, **kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log_with_data(logging.CRITICAL, msg, args, **kwargs)


# Set custom logger class
logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """
    Configure logging for the application.
    Call this once at application startup.
    """
    log_level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    if settings.environment == "production":
        formatter = StructuredFormatter()
    else:
        formatter = DevelopmentFormatter()

    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.info("Identity claimed", name="alice", device=mask_device(device))
        logger.error("Grace expiry callback failed", name="bob", exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore


def mask_device(device: str | None) -> str:
    """
    Mask a device token for logging.

    Shows only the first 6 characters so log lines can be correlated
    without exposing the full token, which acts as a reconnection credential.
    """
    if not device:
        return "<no-device>"

    if len(device) <= 6:
        return device[0] + "***"
    return f"{device[:6]}..."


# Pre-configured loggers for common modules
chat_gateway_logger = get_logger("chat_gateway")
admin_logger = get_logger("chat_gateway.admin")

# Dedicated security audit logger
security_audit_logger = get_logger("security.audit")


# =============================================================================
# Security Audit Logging Functions
# =============================================================================


def audit_ws_connection(
    event_type: str,
    endpoint: str,
    name: str | None = None,
    device: str | None = None,
    origin: str | None = None,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """
    Log WebSocket connection security events.

    Args:
        event_type: Type of event (CONNECT, DISCONNECT, CLAIM_REJECTED, PREEMPTED, etc.)
        endpoint: WebSocket endpoint path.
        name: Display name (for authenticated sessions).
        device: Device token (masked automatically).
        origin: Origin header value.
        reason: Reason for event (especially for failures).
        **extra: Additional context data.
    """
    security_audit_logger.info(
        f"WS_AUDIT: {event_type}",
        event_type=event_type,
        endpoint=endpoint,
        name=name,
        device=mask_device(device) if device else None,
        origin=origin,
        reason=reason,
        **extra,
    )


def audit_moderation_event(
    event_type: str,
    name: str | None = None,
    device: str | None = None,
    duration_seconds: int | None = None,
    **extra: Any,
) -> None:
    """
    Log administrative moderation events (KICK, BAN, UNBAN, KICK_ALL, CLEAR_HISTORY).

    Args:
        event_type: Type of moderation action.
        name: Display name targeted by the action.
        device: Device token (masked automatically).
        duration_seconds: Ban duration, if any.
        **extra: Additional context data.
    """
    security_audit_logger.warning(
        f"MODERATION_AUDIT: {event_type}",
        event_type=event_type,
        name=name,
        device=mask_device(device) if device else None,
        duration_seconds=duration_seconds,
        **extra,
    )


def audit_auth_event(
    event_type: str,
    success: bool = True,
    reason: str | None = None,
    ip_address: str | None = None,
    **extra: Any,
) -> None:
    """
    Log admin authentication events (LOGIN, TOKEN_REJECTED).

    Args:
        event_type: Type of event.
        success: Whether the operation succeeded.
        reason: Reason for failure (if applicable).
        ip_address: Client IP address.
        **extra: Additional context data.
    """
    log_level = logging.INFO if success else logging.WARNING

    security_audit_logger._log_with_data(
        log_level,
        f"AUTH_AUDIT: {event_type}",
        args=(),
        event_type=event_type,
        success=success,
        reason=reason,
        ip_address=ip_address,
        **extra,
    )
