"""
Tests for chat delivery, rate limiting, renames and slash commands.
"""

import json

import pytest


def frame(**fields):
    return json.dumps(fields)


class TestChat:
    def test_chat_is_broadcast(self, manager, join):
        _, bob_channel = join("bob")
        alice, _ = join("alice")
        manager.handle_message(alice, frame(type="chat", text="  hello  "))
        assert bob_channel.lines()[-1] == "[alice]: hello"
        assert manager.hub.history()[-1]["text"] == "[alice]: hello"

    def test_unauthenticated_chat_is_refused(self, manager, connect):
        session, channel = connect()
        manager.handle_message(session, frame(type="chat", text="hi"))
        assert channel.last("error")["reason"] == "Not authenticated"
        assert manager.hub.history_size == 0

    def test_empty_chat_is_ignored(self, manager, join):
        alice, channel = join("alice")
        before = manager.hub.history_size
        assert manager.send_chat(alice, "   ") is False
        assert manager.hub.history_size == before
        assert channel.last("error") is None

    def test_too_long_message(self, manager, join):
        alice, channel = join("alice")
        assert manager.send_chat(alice, "x" * 501) is False
        assert channel.last("error")["reason"] == "Message too long (max 500 characters)"

    def test_flood_is_muted(self, manager, join, clock):
        alice, channel = join("alice")
        results = [manager.send_chat(alice, f"m{i}") for i in range(6)]
        assert results == [True] * 5 + [False]

        notice = channel.last("notice")
        assert notice["retryAfter"] == 15
        assert "too fast" in notice["text"]
        assert manager.metrics.get_snapshot_sync()["chat_rate_limited"] == 1

        clock.advance(15)
        assert manager.send_chat(alice, "back") is True


class TestChangeIdentity:
    def test_rename_is_announced(self, manager, join):
        _, bob_channel = join("bob")
        alice, alice_channel = join("alice", device="dev-1")
        manager.handle_message(alice, frame(type="change_identity", newName="alicia"))

        assert alice_channel.last("identity_changed") == {
            "type": "identity_changed",
            "oldName": "alice",
            "newName": "alicia",
        }
        assert bob_channel.lines()[-1] == "[alice] is now known as [alicia]."
        assert manager.registry.is_available("alice")
        assert manager.registry.lookup_device("dev-1") == "alicia"

    def test_rename_to_taken_name_gets_suffix(self, manager, join):
        join("bob")
        alice, _ = join("alice")
        assert manager.change_identity(alice, "bob") == "bob1"

    def test_rename_to_same_name_is_silent(self, manager, join):
        _, bob_channel = join("bob")
        alice, _ = join("alice")
        bob_channel.clear()
        assert manager.change_identity(alice, "alice") == "alice"
        assert bob_channel.lines() == []

    def test_rename_starts_fresh_rate_bucket(self, manager, join):
        alice, _ = join("alice")
        for i in range(6):
            manager.send_chat(alice, f"m{i}")
        manager.change_identity(alice, "alicia")
        assert manager.send_chat(alice, "hello again") is True


class TestCommands:
    def test_who_lists_online_names(self, manager, join):
        join("bob")
        alice, channel = join("alice")
        manager.send_chat(alice, "/who")
        assert channel.last("notice")["text"] == "Online (2): alice, bob"

    def test_nick(self, manager, join):
        alice, _ = join("alice")
        manager.send_chat(alice, "/nick zed")
        assert alice.name == "zed"

    def test_nick_requires_argument(self, manager, join):
        alice, channel = join("alice")
        manager.send_chat(alice, "/nick")
        assert channel.last("error")["reason"] == "Usage: /nick NAME"

    def test_logout_command(self, manager, join):
        alice, channel = join("alice")
        manager.send_chat(alice, "/logout")
        assert alice.closed
        assert channel.last("logged_out") is not None

    def test_unknown_command(self, manager, join):
        alice, channel = join("alice")
        manager.send_chat(alice, "/dance")
        assert channel.last("error")["reason"] == "Unknown command: /dance"

    def test_commands_are_not_broadcast(self, manager, join):
        alice, _ = join("alice")
        before = manager.hub.history_size
        manager.send_chat(alice, "/who")
        assert manager.hub.history_size == before


class TestFrameHandling:
    def test_plain_ping(self, manager, connect):
        session, channel = connect()
        manager.handle_message(session, "ping")
        assert channel.last("pong") == {"type": "pong", "serverStartTime": manager.server_start_time}

    def test_json_heartbeat(self, manager, connect):
        session, channel = connect()
        manager.handle_message(session, frame(type="heartbeat"))
        assert channel.last("pong") is not None

    @pytest.mark.parametrize(
        "raw",
        [
            "{oops",
            '{"type": "teleport"}',
            '"just a string"',
            '{"type": "chat", "text": "hi", "n": ' + "9" * 5000 + "}",
            "[" * 5000 + "]" * 5000,
        ],
    )
    def test_invalid_frames_answer_error(self, manager, connect, raw):
        session, channel = connect()
        manager.handle_message(session, raw)
        assert channel.last("error") is not None
        assert manager.metrics.get_snapshot_sync()["connections_invalid_frames"] == 1
        assert not session.closed

    def test_legacy_auth_frame(self, manager, connect):
        session, channel = connect()
        manager.handle_message(session, frame(type="auth", username="old", deviceId="dev-9"))
        assert channel.last("identity_confirmed")["name"] == "old"

    def test_frames_after_close_are_ignored(self, manager, join):
        alice, channel = join("alice")
        manager.disconnect(alice)
        channel.clear()
        manager.handle_message(alice, frame(type="chat", text="ghost"))
        assert channel.sent == []

    def test_server_info_on_register(self, manager, connect):
        _, channel = connect()
        assert channel.sent[0] == {"type": "server_info", "startTime": manager.server_start_time}
