"""
Identity lifecycle components.

Display name registry, reconnection grace periods and device bans.
"""

from chat_gateway.components.identity.bans import BanCheck, BanEntry, BanStore, UnbanResult
from chat_gateway.components.identity.grace import GraceEntry, GracePeriodTracker
from chat_gateway.components.identity.registry import IdentityRegistry

__all__ = [
    "BanCheck",
    "BanEntry",
    "BanStore",
    "UnbanResult",
    "GraceEntry",
    "GracePeriodTracker",
    "IdentityRegistry",
]
