"""
Session operations.

Each class works on state owned by the ConnectionManager and assumes the
caller holds its lock.
"""

from chat_gateway.core.session.claims import ClaimResolver, ClaimResult, normalize_device
from chat_gateway.core.session.messaging import SessionMessaging
from chat_gateway.core.session.moderation import KickResult, Moderation, TargetNotFoundError
from chat_gateway.core.session.stats import SessionStats
from chat_gateway.core.session.teardown import SessionTeardown

__all__ = [
    "ClaimResolver",
    "ClaimResult",
    "normalize_device",
    "SessionMessaging",
    "KickResult",
    "Moderation",
    "TargetNotFoundError",
    "SessionStats",
    "SessionTeardown",
]
