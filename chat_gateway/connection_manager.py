"""
Chat Connection Manager.

Thin orchestrator that composes the lifecycle components:
- IdentityRegistry, GracePeriodTracker, BanStore: identity state
- ChatRateLimiter, HeartbeatTracker, SessionIndex: per-connection state
- BroadcastHub: fan-out and history
- ClaimResolver, SessionMessaging, SessionTeardown, Moderation, SessionStats:
  the operations over that state

Every public operation runs under one re-entrant lock, so each inbound
frame, disconnect, timer expiry or admin call is one atomic step. No
operation awaits; I/O is queued on the session channels.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, TYPE_CHECKING

from chat_gateway.components.broadcast.hub import BroadcastHub
from chat_gateway.components.connection.heartbeat import HeartbeatTracker, handle_heartbeat, is_plain_ping
from chat_gateway.components.connection.index import SessionIndex
from chat_gateway.components.connection.rate_limiter import ChatRateLimiter
from chat_gateway.components.connection.session import ChatSession
from chat_gateway.components.core.constants import WSCloseCode
from chat_gateway.components.events.types import (
    ChangeIdentity,
    ClaimIdentity,
    Heartbeat,
    IntentError,
    Logout,
    OutboundType,
    SendChat,
    event,
    parse_intent,
)
from chat_gateway.components.identity.bans import BanStore, UnbanResult
from chat_gateway.components.identity.grace import GracePeriodTracker, Scheduler
from chat_gateway.components.identity.registry import IdentityRegistry
from chat_gateway.components.metrics.collector import MetricsCollector
from chat_gateway.core.session.claims import ClaimResolver, ClaimResult
from chat_gateway.core.session.messaging import SessionMessaging
from chat_gateway.core.session.moderation import KickResult, Moderation
from chat_gateway.core.session.stats import SessionStats
from chat_gateway.core.session.teardown import SessionTeardown
from shared.config.settings import Settings, settings as default_settings

if TYPE_CHECKING:
    from chat_gateway.components.connection.channel import Channel

logger = logging.getLogger(__name__)

__all__ = ["ConnectionManager"]


class ConnectionManager:
    """
    Owns the relay's shared state and serializes every operation on it.

    Configuration from settings:
    - grace_period_seconds: reconnection grace period (default: 10)
    - chat_rate_max_messages / chat_rate_window_seconds / chat_rate_mute_seconds
    - history_capacity: retained chat lines (default: 100)
    - name_max_length / default_name / reserved_names / device_max_length
    - ws_heartbeat_timeout: seconds before a silent session is stale (default: 60)
    - ws_max_total_connections: global connection limit (default: 1000)

    Args:
        config: Settings instance; defaults to the process settings.
        clock: Wall clock in seconds, injectable for tests.
        call_later: Timer scheduler with asyncio's call_later signature.
            Defaults to the running loop's.
    """

    def __init__(
        self,
        config: Settings | None = None,
        clock: Callable[[], float] = time.time,
        call_later: Scheduler | None = None,
    ) -> None:
        config = config or default_settings
        self._config = config
        self._clock = clock
        self._lock = threading.RLock()
        self._shutdown = False

        self.server_start_time = int(clock() * 1000)
        self.max_total_connections = config.ws_max_total_connections

        # Components
        self._metrics = MetricsCollector()
        self._index = SessionIndex()
        self._registry = IdentityRegistry(
            max_length=config.name_max_length,
            default_name=config.default_name,
            reserved=config.reserved_name_set,
        )
        self._grace = GracePeriodTracker(
            grace_seconds=config.grace_period_seconds,
            clock=clock,
            call_later=call_later,
        )
        self._bans = BanStore(clock=clock)
        self._rate_limiter = ChatRateLimiter(
            max_messages=config.chat_rate_max_messages,
            window_seconds=config.chat_rate_window_seconds,
            mute_seconds=config.chat_rate_mute_seconds,
            clock=clock,
        )
        self._heartbeat = HeartbeatTracker(timeout_seconds=config.ws_heartbeat_timeout, clock=clock)
        self._hub = BroadcastHub(
            recipients=self._index.authenticated_sessions,
            history_capacity=config.history_capacity,
            metrics=self._metrics,
            clock_ms=self._clock_ms,
        )

        # Operations
        self._teardown = SessionTeardown(
            lock=self._lock,
            index=self._index,
            registry=self._registry,
            grace=self._grace,
            bans=self._bans,
            rate_limiter=self._rate_limiter,
            hub=self._hub,
            heartbeat=self._heartbeat,
            metrics=self._metrics,
        )
        self._claims = ClaimResolver(
            index=self._index,
            registry=self._registry,
            grace=self._grace,
            bans=self._bans,
            hub=self._hub,
            heartbeat=self._heartbeat,
            teardown=self._teardown,
            metrics=self._metrics,
            server_start_time=self.server_start_time,
            device_max_length=config.device_max_length,
        )
        self._messaging = SessionMessaging(
            index=self._index,
            registry=self._registry,
            rate_limiter=self._rate_limiter,
            hub=self._hub,
            teardown=self._teardown,
            metrics=self._metrics,
            max_message_length=config.chat_max_message_length,
        )
        self._moderation = Moderation(
            index=self._index,
            registry=self._registry,
            grace=self._grace,
            bans=self._bans,
            hub=self._hub,
            teardown=self._teardown,
            metrics=self._metrics,
        )
        self._stats = SessionStats(
            index=self._index,
            registry=self._registry,
            grace=self._grace,
            bans=self._bans,
            hub=self._hub,
            rate_limiter=self._rate_limiter,
            heartbeat=self._heartbeat,
            metrics=self._metrics,
            started_at_ms=self.server_start_time,
            max_connections=self.max_total_connections,
            clock_ms=self._clock_ms,
        )

    def _clock_ms(self) -> int:
        return int(self._clock() * 1000)

    # =========================================================================
    # Component access (read-mostly; tests and stats)
    # =========================================================================

    @property
    def registry(self) -> IdentityRegistry:
        return self._registry

    @property
    def grace(self) -> GracePeriodTracker:
        return self._grace

    @property
    def bans(self) -> BanStore:
        return self._bans

    @property
    def rate_limiter(self) -> ChatRateLimiter:
        return self._rate_limiter

    @property
    def hub(self) -> BroadcastHub:
        return self._hub

    @property
    def index(self) -> SessionIndex:
        return self._index

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def heartbeat(self) -> HeartbeatTracker:
        return self._heartbeat

    @property
    def live_count(self) -> int:
        return self._index.live_count

    def is_shutting_down(self) -> bool:
        return self._shutdown

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    def register(self, channel: "Channel", mode: str = "rich") -> ChatSession:
        """
        Register a new, unauthenticated connection and greet it with server_info.

        Raises:
            ConnectionError: If the server is shutting down or at capacity.
        """
        with self._lock:
            if self._shutdown:
                raise ConnectionError("Server is shutting down")
            if self._index.live_count >= self.max_total_connections:
                self._metrics.increment_connection_sync("rejected_limit")
                logger.warning(
                    "Connection rejected: server at capacity",
                    live=self._index.live_count,
                    max_connections=self.max_total_connections,
                )
                raise ConnectionError("Server at capacity")

            session = ChatSession(channel=channel, mode=mode, connected_at=self._clock())
            self._index.add(session)
            self._heartbeat.record(session)
            session.send(event(OutboundType.SERVER_INFO, startTime=self.server_start_time))
            return session

    def disconnect(self, session: ChatSession) -> bool:
        """Network loss or ordinary close. No-op if already torn down."""
        with self._lock:
            return self._teardown.network_close(session)

    def record_transport_error(self, reason: str) -> None:
        """Count a transport-level drop (timeouts, oversized_frames, rejected_origin)."""
        self._metrics.increment_connection_sync(reason)

    # =========================================================================
    # Inbound frames
    # =========================================================================

    def handle_message(self, session: ChatSession, data: str) -> None:
        """
        Process one inbound text frame.

        Malformed input is answered with an error event to the sender;
        nothing here raises to the transport.
        """
        with self._lock:
            if session.closed:
                return
            self._heartbeat.record(session)

            if is_plain_ping(data):
                handle_heartbeat(session.channel, self.server_start_time)
                return

            try:
                intent = parse_intent(data)
            except IntentError as e:
                self._metrics.increment_connection_sync("invalid_frames")
                session.send(event(OutboundType.ERROR, reason=str(e)))
                return

            self.dispatch(session, intent)

    def dispatch(self, session: ChatSession, intent: Any) -> None:
        """Route a validated intent to its operation."""
        with self._lock:
            if isinstance(intent, ClaimIdentity):
                self._claims.claim(session, intent)
            elif isinstance(intent, SendChat):
                self._messaging.send_chat(session, intent.text)
            elif isinstance(intent, ChangeIdentity):
                self._messaging.change_identity(session, intent.new_name)
            elif isinstance(intent, Logout):
                self._teardown.logout(session)
            elif isinstance(intent, Heartbeat):
                handle_heartbeat(session.channel, self.server_start_time)
            else:
                raise TypeError(f"Unsupported intent: {type(intent).__name__}")

    # Direct entry points, mostly for tests and internal callers

    def claim(
        self,
        session: ChatSession,
        requested_name: str | None = None,
        device: str | None = None,
        reconnect_hint: bool = False,
    ) -> ClaimResult | None:
        with self._lock:
            return self._claims.claim(
                session,
                ClaimIdentity(requested_name=requested_name, device=device, reconnect_hint=reconnect_hint),
            )

    def change_identity(self, session: ChatSession, new_name: str) -> str | None:
        with self._lock:
            return self._messaging.change_identity(session, new_name)

    def send_chat(self, session: ChatSession, text: str) -> bool:
        with self._lock:
            return self._messaging.send_chat(session, text)

    def logout(self, session: ChatSession) -> bool:
        with self._lock:
            return self._teardown.logout(session)

    # =========================================================================
    # Administrative operations
    # =========================================================================

    def kick(self, target_name: str, duration_seconds: int = 0) -> KickResult:
        with self._lock:
            return self._moderation.kick(target_name, duration_seconds)

    def kick_all(self) -> int:
        with self._lock:
            return self._moderation.kick_all()

    def unban(self, name: str | None = None, device: str | None = None) -> UnbanResult:
        with self._lock:
            return self._moderation.unban(name=name, device=device)

    def admin_broadcast(self, text: str) -> str:
        with self._lock:
            return self._moderation.admin_broadcast(text)

    def clear_history(self) -> int:
        with self._lock:
            return self._moderation.clear_history()

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return self._stats.snapshot()

    # =========================================================================
    # Maintenance
    # =========================================================================

    def cleanup_stale_sessions(self) -> int:
        """
        Close sessions that stopped sending frames and run network-loss teardown.

        Returns:
            Number of sessions reaped.
        """
        with self._lock:
            reaped = 0
            for session in self._heartbeat.cleanup_stale():
                if not isinstance(session, ChatSession) or session.closed:
                    continue
                session.channel.close(WSCloseCode.GOING_AWAY, "heartbeat timeout")
                self._teardown.network_close(session)
                self._metrics.increment_teardown_sync("stale_reaped")
                reaped += 1
            return reaped

    def purge_expired_bans(self) -> int:
        with self._lock:
            return self._bans.purge_expired()

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats_sync(self) -> dict[str, Any]:
        """Get connection statistics (health check and Prometheus)."""
        with self._lock:
            return self._stats.get_stats_sync()

    # =========================================================================
    # Shutdown
    # =========================================================================

    def shutdown(self) -> int:
        """
        Graceful shutdown: cancel grace timers and close every connection.

        No departure lines are broadcast; nobody is left to receive them.

        Returns:
            Number of connections closed.
        """
        with self._lock:
            self._shutdown = True
            logger.info("Chat gateway shutting down...")
            canceled = self._grace.cancel_all()
            sessions = self._index.sessions()
            for session in sessions:
                self._teardown.detach(session)
                session.channel.close(WSCloseCode.GOING_AWAY, "Server shutdown")
            logger.info(
                "Chat gateway shutdown complete",
                closed=len(sessions),
                grace_canceled=canceled,
            )
            return len(sessions)
