"""
Chat gateway core module.

Operations over the shared session state:
- session/: claims, messaging, teardown, moderation, stats
"""

from chat_gateway.core.session import (
    ClaimResolver,
    ClaimResult,
    SessionMessaging,
    SessionTeardown,
    Moderation,
    KickResult,
    TargetNotFoundError,
    SessionStats,
)

__all__ = [
    "ClaimResolver",
    "ClaimResult",
    "SessionMessaging",
    "SessionTeardown",
    "Moderation",
    "KickResult",
    "TargetNotFoundError",
    "SessionStats",
]
