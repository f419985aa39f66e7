"""
Chat relay gateway.

Real-time group chat over WebSocket with an identity lifecycle: name
claims, reconnection grace periods, device bans and per-name rate limits.
"""

# Installs the structured logger class before any module-level logger exists.
import shared.config.logging  # noqa: F401
