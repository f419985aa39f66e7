"""
Chat and rename handling for authenticated sessions.

Chat text is trimmed and, unless it is a slash command, passes the rate
limiter before reaching the broadcast hub. Supported commands:

    /nick NAME   change display name
    /logout      explicit logout
    /who         list online names (sender only)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from chat_gateway.components.broadcast.hub import now_ms
from chat_gateway.components.core.constants import RelayConstants
from chat_gateway.components.core.context import sanitize_log_data
from chat_gateway.components.events.types import OutboundType, chat_line, event, renamed_line

if TYPE_CHECKING:
    from chat_gateway.components.broadcast.hub import BroadcastHub
    from chat_gateway.components.connection.index import SessionIndex
    from chat_gateway.components.connection.rate_limiter import ChatRateLimiter
    from chat_gateway.components.connection.session import ChatSession
    from chat_gateway.components.identity.registry import IdentityRegistry
    from chat_gateway.components.metrics.collector import MetricsCollector
    from chat_gateway.core.session.teardown import SessionTeardown

logger = logging.getLogger(__name__)

RATE_LIMIT_NOTICE = "You are sending messages too fast. Please wait a moment."


class SessionMessaging:
    """change-identity and send-chat intents."""

    def __init__(
        self,
        index: "SessionIndex",
        registry: "IdentityRegistry",
        rate_limiter: "ChatRateLimiter",
        hub: "BroadcastHub",
        teardown: "SessionTeardown",
        metrics: "MetricsCollector",
        max_message_length: int = RelayConstants.CHAT_MAX_MESSAGE_LENGTH,
    ) -> None:
        self._index = index
        self._registry = registry
        self._rate_limiter = rate_limiter
        self._hub = hub
        self._teardown = teardown
        self._metrics = metrics
        self._max_message_length = max_message_length

    @staticmethod
    def _error(session: "ChatSession", reason: str) -> None:
        session.send(event(OutboundType.ERROR, reason=reason))

    def _require_auth(self, session: "ChatSession") -> bool:
        if session.authenticated and not session.closed:
            return True
        self._error(session, "Not authenticated")
        return False

    def change_identity(self, session: "ChatSession", new_name: str) -> str | None:
        """
        Rename an authenticated session.

        The old name and its rate state are released first, so asking for
        the current name gives it back unchanged.

        Returns:
            The new name, or None if the session is not authenticated.
        """
        if not self._require_auth(session):
            return None

        old_name = session.name
        self._teardown.release_identity(old_name)
        final_name = self._registry.allocate(new_name)
        session.name = final_name
        if session.device:
            self._registry.bind_device(session.device, final_name)

        session.send(event(OutboundType.IDENTITY_CHANGED, oldName=old_name, newName=final_name))
        if final_name != old_name:
            self._hub.send(renamed_line(old_name, final_name))
            self._metrics.increment_chat_sync("renames")
            logger.info("Identity changed", old_name=old_name, new_name=final_name)
        return final_name

    def send_chat(self, session: "ChatSession", text: str) -> bool:
        """
        Handle one chat message.

        Returns:
            True if the message was broadcast.
        """
        if not self._require_auth(session):
            return False

        text = text.strip()
        if not text:
            return False

        if text.startswith("/"):
            self._metrics.increment_chat_sync("commands")
            self._handle_command(session, text)
            return False

        if len(text) > self._max_message_length:
            self._metrics.increment_chat_sync("too_long")
            self._error(session, f"Message too long (max {self._max_message_length} characters)")
            return False

        name = session.name
        if not self._rate_limiter.is_allowed(name):
            self._metrics.increment_chat_sync("rate_limited")
            session.send(event(
                OutboundType.NOTICE,
                text=RATE_LIMIT_NOTICE,
                timestamp=now_ms(),
                retryAfter=self._rate_limiter.retry_after(name),
            ))
            logger.debug("Chat message rate limited", name=name)
            return False

        self._hub.send(chat_line(name, text))
        self._metrics.increment_chat_sync("accepted")
        return True

    def _handle_command(self, session: "ChatSession", text: str) -> None:
        command, _, argument = text.partition(" ")
        command = command.lower()
        argument = argument.strip()

        if command == "/nick":
            if not argument:
                self._error(session, "Usage: /nick NAME")
                return
            self.change_identity(session, argument)
        elif command == "/logout":
            self._teardown.logout(session)
        elif command == "/who":
            names = sorted(s.name for s in self._index.authenticated_sessions() if s.name)
            session.send(event(
                OutboundType.NOTICE,
                text=f"Online ({len(names)}): {', '.join(names)}",
                timestamp=now_ms(),
            ))
        else:
            logger.debug("Unknown chat command", command=sanitize_log_data(command, 32))
            self._error(session, f"Unknown command: {command[:32]}")
