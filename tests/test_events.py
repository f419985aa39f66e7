"""
Tests for inbound intent parsing and outbound event helpers.
"""

import json

import pytest

from chat_gateway.components.events.types import (
    ChangeIdentity,
    ClaimIdentity,
    Heartbeat,
    IntentError,
    Logout,
    OutboundType,
    SendChat,
    banned_line,
    chat_line,
    event,
    parse_intent,
)


class TestParseIntent:
    def test_claim_identity(self):
        intent = parse_intent(json.dumps({
            "type": "claim_identity",
            "requestedName": "alice",
            "device": "dev-1",
            "reconnectHint": True,
        }))
        assert intent == ClaimIdentity(requested_name="alice", device="dev-1", reconnect_hint=True)

    def test_legacy_auth_frame(self):
        intent = parse_intent({"type": "auth", "username": "bob", "deviceId": "dev-2", "isReconnect": False})
        assert isinstance(intent, ClaimIdentity)
        assert intent.requested_name == "bob"
        assert intent.device == "dev-2"

    def test_claim_fields_are_optional(self):
        intent = parse_intent({"type": "claim_identity"})
        assert intent.requested_name is None
        assert intent.device is None
        assert intent.reconnect_hint is False

    def test_change_identity_and_legacy_alias(self):
        assert parse_intent({"type": "change_identity", "newName": "x"}) == ChangeIdentity(new_name="x")
        assert parse_intent({"type": "changeUsername", "newUsername": "y"}).new_name == "y"

    def test_chat_accepts_msg_alias(self):
        assert parse_intent({"type": "chat", "msg": "hello"}) == SendChat(text="hello")

    def test_logout_and_heartbeat(self):
        assert isinstance(parse_intent({"type": "logout"}), Logout)
        assert isinstance(parse_intent({"type": "heartbeat"}), Heartbeat)
        assert isinstance(parse_intent({"type": "ping"}), Heartbeat)

    def test_extra_fields_are_ignored(self):
        assert parse_intent({"type": "chat", "text": "hi", "color": "red"}).text == "hi"

    @pytest.mark.parametrize(
        "frame, message",
        [
            ("{not json", "Malformed JSON"),
            ("[1, 2]", "Message must be a JSON object"),
            ('{"text": "hi"}', "Missing message type"),
            ('{"type": "teleport"}', "Unknown message type: teleport"),
            ('{"type": "chat", "text": "hi", "n": ' + "1" * 5000 + "}", "Malformed JSON"),
            ("[" * 5000 + "]" * 5000, "Malformed JSON"),
        ],
    )
    def test_malformed_frames(self, frame, message):
        with pytest.raises(IntentError, match=message):
            parse_intent(frame)

    def test_schema_violation(self):
        with pytest.raises(IntentError, match="Invalid change_identity"):
            parse_intent({"type": "change_identity"})


class TestOutbound:
    def test_event_builds_typed_frame(self):
        assert event(OutboundType.PONG, serverStartTime=5) == {"type": "pong", "serverStartTime": 5}

    def test_line_formats(self):
        assert chat_line("alice", "hi") == "[alice]: hi"
        assert banned_line("bob", 60) == "[bob] was banned for 60 seconds."
