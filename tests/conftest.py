"""
Pytest configuration and fixtures for chat gateway tests.

Core tests drive a ConnectionManager through in-memory channels, a manual
clock and a manual timer scheduler, so grace expiry happens exactly when
a test fires it.
"""

from typing import Any

import pytest

from chat_gateway.components.connection.channel import ChannelClosedError
from chat_gateway.components.core.constants import WSCloseCode
from chat_gateway.connection_manager import ConnectionManager
from shared.config.settings import Settings


class FakeClock:
    """Manually advanced wall clock (seconds)."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    def __init__(self, delay: float, callback, args: tuple):
        self.delay = delay
        self.callback = callback
        self.args = args
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Stand-in for loop.call_later that only runs timers on demand."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, delay: float, callback, *args: Any) -> FakeTimer:
        timer = FakeTimer(delay, callback, args)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire(self, timer: FakeTimer) -> None:
        timer.fired = True
        timer.callback(*timer.args)

    def fire_all(self) -> int:
        pending = self.pending
        for timer in pending:
            self.fire(timer)
        return len(pending)


class FakeChannel:
    """Records outbound frames; refuses sends once closed."""

    def __init__(self, fail_sends: bool = False):
        self.sent: list[dict[str, Any]] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.fail_sends = fail_sends

    @property
    def is_open(self) -> bool:
        return self.close_code is None

    def send(self, payload: dict[str, Any]) -> None:
        if self.close_code is not None:
            raise ChannelClosedError("channel is closed")
        if self.fail_sends:
            raise ConnectionError("peer gone")
        self.sent.append(payload)

    def close(self, code: int = WSCloseCode.NORMAL, reason: str = "") -> None:
        if self.close_code is None:
            self.close_code = int(code)
            self.close_reason = reason

    # Helpers

    def of_type(self, event_type: str) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if frame.get("type") == event_type]

    def last(self, event_type: str) -> dict[str, Any] | None:
        frames = self.of_type(event_type)
        return frames[-1] if frames else None

    def lines(self) -> list[str]:
        return [frame["text"] for frame in self.of_type("chat")]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def relay_settings():
    """Settings with the documented defaults and a tiny connection cap."""
    return Settings(
        environment="development",
        grace_period_seconds=10.0,
        chat_rate_max_messages=5,
        chat_rate_window_seconds=10.0,
        chat_rate_mute_seconds=15.0,
        history_capacity=100,
        ws_max_total_connections=50,
    )


@pytest.fixture
def manager(relay_settings, clock, scheduler):
    return ConnectionManager(config=relay_settings, clock=clock, call_later=scheduler)


@pytest.fixture
def connect(manager):
    """Open a connection: returns (session, channel)."""

    def _connect(mode: str = "rich", fail_sends: bool = False):
        channel = FakeChannel(fail_sends=fail_sends)
        session = manager.register(channel, mode=mode)
        return session, channel

    return _connect


@pytest.fixture
def join(manager, connect):
    """Open a connection and claim an identity: returns (session, channel)."""

    def _join(name: str | None = None, device: str | None = None, reconnect: bool = False):
        session, channel = connect()
        manager.claim(session, requested_name=name, device=device, reconnect_hint=reconnect)
        return session, channel

    return _join


# =============================================================================
# Application fixtures
# =============================================================================


@pytest.fixture
def app_manager(monkeypatch):
    """Fresh ConnectionManager installed into the FastAPI app."""
    import chat_gateway.main as main_module

    fresh = ConnectionManager()
    monkeypatch.setattr(main_module, "manager", fresh)
    monkeypatch.setattr(main_module.app.state, "manager", fresh)
    return fresh


@pytest.fixture
def client(app_manager):
    """
    Test client sharing one event loop between HTTP and WebSocket calls.
    """
    from fastapi.testclient import TestClient
    from chat_gateway.main import app
    from shared.security.rate_limit import limiter

    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    limiter.reset()


@pytest.fixture
def admin_password(monkeypatch):
    from shared.config.settings import settings

    monkeypatch.setattr(settings, "admin_password", "correct-horse")
    return "correct-horse"


@pytest.fixture
def admin_headers(client, admin_password):
    response = client.post("/api/admin/login", json={"password": admin_password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}
