"""
Tests for broadcast fan-out and history.
"""

from chat_gateway.components.broadcast.hub import BroadcastHub
from chat_gateway.components.connection.session import ChatSession
from chat_gateway.components.metrics.collector import MetricsCollector

from conftest import FakeChannel


def make_session(name, authenticated=True, fail_sends=False):
    session = ChatSession(channel=FakeChannel(fail_sends=fail_sends), name=name)
    session.authenticated = authenticated
    return session


class TestFanOut:
    def test_delivers_to_authenticated_open_sessions(self):
        alice, bob = make_session("alice"), make_session("bob")
        anonymous = make_session(None, authenticated=False)
        hub = BroadcastHub(lambda: [alice, bob, anonymous], clock_ms=lambda: 1000)

        assert hub.send("[alice]: hi") == 2
        assert alice.channel.sent == [{"type": "chat", "text": "[alice]: hi", "timestamp": 1000}]
        assert anonymous.channel.sent == []

    def test_closed_sessions_are_skipped(self):
        alice = make_session("alice")
        alice.closed = True
        hub = BroadcastHub(lambda: [alice])
        assert hub.send("line") == 0

    def test_failing_peer_does_not_abort_delivery(self):
        metrics = MetricsCollector()
        broken, bob = make_session("broken", fail_sends=True), make_session("bob")
        hub = BroadcastHub(lambda: [broken, bob], metrics=metrics)

        assert hub.send("line") == 1
        assert bob.channel.lines() == ["line"]
        snapshot = metrics.get_snapshot_sync()
        assert snapshot["broadcasts_total"] == 1
        assert snapshot["broadcasts_recipients_failed"] == 1


class TestHistory:
    def test_history_is_bounded(self):
        hub = BroadcastHub(lambda: [], history_capacity=3)
        for i in range(5):
            hub.send(f"line {i}")
        assert [entry["text"] for entry in hub.history()] == ["line 2", "line 3", "line 4"]

    def test_history_returns_copies(self):
        hub = BroadcastHub(lambda: [])
        hub.send("line")
        hub.history()[0]["text"] = "tampered"
        assert hub.history()[0]["text"] == "line"

    def test_clear_history(self):
        hub = BroadcastHub(lambda: [])
        hub.send("a")
        hub.send("b")
        assert hub.clear_history() == 2
        assert hub.history_size == 0
