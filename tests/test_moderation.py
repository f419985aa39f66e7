"""
Tests for administrative kick, ban, unban, broadcast and history reset.
"""

import pytest

from chat_gateway.components.core.constants import WSCloseCode
from chat_gateway.core.session.moderation import TargetNotFoundError


class TestKickLiveSession:
    def test_kick_without_ban(self, manager, join):
        _, bob_channel = join("bob")
        alice, alice_channel = join("alice", device="dev-1")

        result = manager.kick("alice")

        assert (result.name, result.banned, result.target) == ("alice", False, "session")
        assert alice_channel.last("force_closed") == {"type": "force_closed", "reason": "kicked"}
        assert alice_channel.close_code == WSCloseCode.KICKED
        assert bob_channel.lines()[-1] == "[alice] was kicked from the chat."
        assert manager.registry.is_available("alice")
        assert manager.registry.lookup_device("dev-1") is None
        assert alice.closed

    def test_kick_is_distinct_from_departure(self, manager, join, scheduler):
        _, bob_channel = join("bob")
        join("alice", device="dev-1")
        manager.kick("alice")
        scheduler.fire_all()
        assert "[alice] left the chat." not in bob_channel.lines()

    def test_ban_with_duration(self, manager, join):
        _, bob_channel = join("bob")
        _, alice_channel = join("alice", device="dev-1")

        result = manager.kick("alice", 300)

        assert result.banned
        assert alice_channel.last("force_closed") == {
            "type": "force_closed",
            "reason": "banned",
            "banSeconds": 300,
        }
        assert alice_channel.close_code == WSCloseCode.BANNED
        assert bob_channel.lines()[-1] == "[alice] was banned for 300 seconds."
        assert manager.bans.check("dev-1").banned

    def test_ban_without_device_only_kicks(self, manager, join):
        join("alice")
        result = manager.kick("alice", 300)
        assert result.banned is False
        assert manager.bans.active_count == 0

    def test_disconnect_after_kick_is_noop(self, manager, join):
        alice, _ = join("alice", device="dev-1")
        manager.kick("alice")
        assert manager.disconnect(alice) is False
        assert manager.grace.pending_count == 0


class TestKickOfflineTargets:
    def test_kick_grace_entry_cancels_timer(self, manager, join, scheduler):
        _, bob_channel = join("bob")
        alice, _ = join("alice", device="dev-1")
        manager.disconnect(alice)

        result = manager.kick("alice")

        assert result.target == "grace"
        assert manager.grace.pending_count == 0
        assert scheduler.pending == []
        assert manager.registry.is_available("alice")
        assert bob_channel.lines()[-1] == "[alice] was kicked from the chat."

    def test_ban_grace_entry_blocks_reconnect(self, manager, join, connect):
        alice, _ = join("alice", device="dev-1")
        manager.disconnect(alice)
        manager.kick("alice", 60)

        session, channel = connect()
        manager.claim(session, requested_name="alice", device="dev-1", reconnect_hint=True)
        assert channel.last("rejected_as_banned") is not None

    def test_ban_by_remembered_device(self, manager, join, scheduler):
        alice, _ = join("alice", device="dev-1")
        manager.disconnect(alice)
        scheduler.fire_all()

        result = manager.kick("alice", 60)

        assert (result.banned, result.target) == (True, "device")
        assert manager.bans.check("dev-1").banned

    def test_plain_kick_of_offline_name_is_not_found(self, manager, join, scheduler):
        alice, _ = join("alice", device="dev-1")
        manager.disconnect(alice)
        scheduler.fire_all()
        with pytest.raises(TargetNotFoundError):
            manager.kick("alice")

    def test_unknown_target(self, manager):
        with pytest.raises(TargetNotFoundError):
            manager.kick("nobody", 60)

    def test_negative_duration(self, manager, join):
        join("alice")
        with pytest.raises(ValueError):
            manager.kick("alice", -1)


class TestKickAll:
    def test_kicks_authenticated_sessions_only(self, manager, join, connect):
        _, alice_channel = join("alice", device="dev-1")
        _, bob_channel = join("bob")
        _, lurker = connect()

        assert manager.kick_all() == 2
        assert alice_channel.close_code == WSCloseCode.KICKED
        assert bob_channel.close_code == WSCloseCode.KICKED
        assert lurker.close_code is None
        assert manager.bans.active_count == 0


class TestUnban:
    def test_unban_by_name(self, manager, join):
        _, bob_channel = join("bob")
        join("alice", device="dev-1")
        manager.kick("alice", 300)

        result = manager.unban(name="alice")

        assert result.ok and result.device == "dev-1"
        assert not manager.bans.check("dev-1").banned
        assert bob_channel.lines()[-1] == "[alice] was unbanned."

    def test_unban_by_name_after_name_reused(self, manager, join):
        join("alice", device="dev-1")
        manager.kick("alice", 300)
        join("alice", device="dev-2")

        result = manager.unban(name="alice")
        assert result.device == "dev-1"

    def test_unban_by_device(self, manager, join):
        join("alice", device="dev-1")
        manager.kick("alice", 300)
        assert manager.unban(device="dev-1").name == "alice"

    def test_unban_then_claim(self, manager, join):
        join("alice", device="dev-1")
        manager.kick("alice", 300)
        manager.unban(name="alice")
        session, _ = join("alice", device="dev-1")
        assert session.authenticated

    def test_unban_unknown(self, manager):
        with pytest.raises(TargetNotFoundError):
            manager.unban(name="nobody")

    def test_unban_requires_target(self, manager):
        with pytest.raises(ValueError):
            manager.unban()


class TestBroadcastAndHistory:
    def test_admin_broadcast(self, manager, join):
        _, channel = join("alice")
        assert manager.admin_broadcast("  maintenance at 5  ") == "[server]: maintenance at 5"
        assert channel.lines()[-1] == "[server]: maintenance at 5"

    def test_empty_broadcast(self, manager):
        with pytest.raises(ValueError):
            manager.admin_broadcast("   ")

    def test_clear_history(self, manager, join):
        join("alice")
        join("bob")
        assert manager.clear_history() == 2
        _, channel = join("carol")
        assert channel.last("history_replay")["entries"] == []


class TestSnapshot:
    def test_snapshot_fields(self, manager, join, connect, clock):
        join("alice", device="dev-1")
        bob, _ = join("bob", device="dev-2")
        join("carol", device="dev-3")
        connect(mode="plain")
        manager.disconnect(bob)
        manager.kick("carol", 120)
        clock.advance(4)

        snapshot = manager.snapshot()

        assert snapshot["userCount"] == 1
        assert snapshot["users"][0]["name"] == "alice"
        assert snapshot["users"][0]["device"] == "dev-1"
        assert snapshot["pendingGrace"] == [{"name": "bob", "device": "dev-2", "remainingSeconds": 6}]
        assert snapshot["bannedUsers"] == [{"name": "carol", "device": "dev-3", "remainingSeconds": 116}]
        assert snapshot["messageCount"] == len(snapshot["messages"])
        assert snapshot["uptime"] == 4000
        assert snapshot["connections"]["live"] == 2
        assert snapshot["connections"]["authenticated"] == 1
