"""
Tests for heartbeat tracking.
"""

from chat_gateway.components.connection.heartbeat import HeartbeatTracker, handle_heartbeat, is_plain_ping

from conftest import FakeChannel


class TestHeartbeatTracker:
    def test_record_and_stale(self, clock):
        tracker = HeartbeatTracker(timeout_seconds=60, clock=clock)
        tracker.record("s1")
        assert not tracker.is_stale("s1")
        clock.advance(61)
        assert tracker.is_stale("s1")

    def test_unknown_session_is_stale(self, clock):
        assert HeartbeatTracker(clock=clock).is_stale("missing")

    def test_cleanup_stale_removes_only_stale(self, clock):
        tracker = HeartbeatTracker(timeout_seconds=60, clock=clock)
        tracker.record("old")
        clock.advance(50)
        tracker.record("fresh")
        clock.advance(20)
        assert tracker.cleanup_stale() == ["old"]
        assert tracker.tracked_count == 1

    def test_stats(self, clock):
        tracker = HeartbeatTracker(timeout_seconds=60, clock=clock)
        tracker.record("s1")
        assert tracker.get_stats()["tracked_sessions"] == 1


class TestHeartbeatReply:
    def test_plain_ping(self):
        assert is_plain_ping("ping")
        assert is_plain_ping(" ping\n")
        assert not is_plain_ping('{"type": "ping"}')

    def test_pong_carries_server_start_time(self):
        channel = FakeChannel()
        assert handle_heartbeat(channel, 123) is True
        assert channel.sent == [{"type": "pong", "serverStartTime": 123}]

    def test_closed_channel(self):
        channel = FakeChannel()
        channel.close()
        assert handle_heartbeat(channel, 123) is False
