"""
Centralized HTTP exceptions for consistent error handling in the admin API.

Usage:
    from shared.utils.exceptions import NotFoundError, UnauthorizedError

    raise NotFoundError("User", "alice")
    raise UnauthorizedError("Invalid password")
    raise ValidationError("Ban duration must not be negative", seconds=-5)
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        # Log the error with context
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("User", "alice")
        raise NotFoundError("Ban", device=mask_device(device))
    """

    def __init__(self, entity: str, identifier: str | None = None, **log_context: Any):
        if identifier is not None:
            detail = f"{entity} '{identifier}' not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="info",
            entity=entity,
            identifier=identifier,
            **log_context,
        )


# =============================================================================
# 401 Unauthorized Errors
# =============================================================================


class UnauthorizedError(AppException):
    """Missing, malformed, expired or invalid credentials (401)."""

    def __init__(self, detail: str = "Not authenticated", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            log_level="warning",
            headers={"WWW-Authenticate": "Bearer"},
            **log_context,
        )


# =============================================================================
# 400 / 422 Validation Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (422).

    Usage:
        raise ValidationError("Provide either username or device")
    """

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            log_level="warning",
            **log_context,
        )


# =============================================================================
# 503 Service Unavailable
# =============================================================================


class ServiceUnavailableError(AppException):
    """Feature disabled by configuration or server shutting down (503)."""

    def __init__(self, feature: str, retry_after: int | None = None, **log_context: Any):
        headers = None
        if retry_after:
            headers = {"Retry-After": str(retry_after)}

        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{feature} is not available",
            log_level="error",
            headers=headers,
            feature=feature,
            **log_context,
        )
