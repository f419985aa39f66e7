"""
Wire protocol types for the chat gateway.

Inbound frames are JSON objects discriminated by "type" and validated into
pydantic models. Legacy field and type names sent by older clients are
accepted as aliases. Outbound frames are plain dicts built by `event()`.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class InboundType(str, Enum):
    """Intents a client may send."""

    CLAIM_IDENTITY = "claim_identity"
    CHANGE_IDENTITY = "change_identity"
    CHAT = "chat"
    LOGOUT = "logout"
    HEARTBEAT = "heartbeat"


# Type names used by older clients
LEGACY_TYPE_ALIASES: dict[str, InboundType] = {
    "auth": InboundType.CLAIM_IDENTITY,
    "changeUsername": InboundType.CHANGE_IDENTITY,
    "ping": InboundType.HEARTBEAT,
}


class OutboundType(str, Enum):
    """Events the server sends to a single session."""

    SERVER_INFO = "server_info"
    IDENTITY_CONFIRMED = "identity_confirmed"
    IDENTITY_REJECTED = "identity_rejected"
    HISTORY_REPLAY = "history_replay"
    CHAT = "chat"
    NOTICE = "notice"
    REJECTED_AS_BANNED = "rejected_as_banned"
    FORCE_CLOSED = "force_closed"
    IDENTITY_CHANGED = "identity_changed"
    LOGGED_OUT = "logged_out"
    PONG = "pong"
    ERROR = "error"


class _Intent(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class ClaimIdentity(_Intent):
    """claim_identity{requestedName, device, reconnectHint}"""

    requested_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("requestedName", "username", "requested_name"),
    )
    device: str | None = Field(
        default=None,
        validation_alias=AliasChoices("device", "deviceId"),
    )
    reconnect_hint: bool = Field(
        default=False,
        validation_alias=AliasChoices("reconnectHint", "isReconnect", "reconnect_hint"),
    )


class ChangeIdentity(_Intent):
    """change_identity{newName}"""

    new_name: str = Field(validation_alias=AliasChoices("newName", "newUsername", "new_name"))


class SendChat(_Intent):
    """chat{text}"""

    text: str = Field(default="", validation_alias=AliasChoices("text", "msg"))


class Logout(_Intent):
    pass


class Heartbeat(_Intent):
    pass


Intent = Union[ClaimIdentity, ChangeIdentity, SendChat, Logout, Heartbeat]

INTENT_MODELS: dict[InboundType, type[_Intent]] = {
    InboundType.CLAIM_IDENTITY: ClaimIdentity,
    InboundType.CHANGE_IDENTITY: ChangeIdentity,
    InboundType.CHAT: SendChat,
    InboundType.LOGOUT: Logout,
    InboundType.HEARTBEAT: Heartbeat,
}


class IntentError(ValueError):
    """Inbound frame that cannot be turned into an intent. The message is client-safe."""


def resolve_type(raw_type: Any) -> InboundType:
    """Map a raw "type" value (current or legacy name) to an InboundType."""
    if not isinstance(raw_type, str):
        raise IntentError("Missing message type")
    legacy = LEGACY_TYPE_ALIASES.get(raw_type)
    if legacy is not None:
        return legacy
    try:
        return InboundType(raw_type)
    except ValueError:
        raise IntentError(f"Unknown message type: {raw_type[:32]}") from None


def parse_intent(data: str | dict[str, Any]) -> Intent:
    """
    Parse and validate one inbound frame.

    Args:
        data: Raw text frame or an already-decoded JSON object.

    Returns:
        The validated intent model.

    Raises:
        IntentError: On malformed JSON, unknown type or schema violation.
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except (ValueError, RecursionError):
            raise IntentError("Malformed JSON") from None

    if not isinstance(data, dict):
        raise IntentError("Message must be a JSON object")

    intent_type = resolve_type(data.get("type"))
    model = INTENT_MODELS[intent_type]
    try:
        return model.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or intent_type.value
        logger.debug("Inbound frame failed validation", intent=intent_type.value, error_count=e.error_count())
        raise IntentError(f"Invalid {intent_type.value}: {location}") from None


def event(event_type: OutboundType, **fields: Any) -> dict[str, Any]:
    """
    Build an outbound frame.

    Usage:
        session.send(event(OutboundType.IDENTITY_CONFIRMED, name="alice", reconnected=False))
    """
    return {"type": event_type.value, **fields}


# =============================================================================
# Broadcast line formats
# =============================================================================


def joined_line(name: str) -> str:
    return f"[{name}] joined the chat."


def left_line(name: str) -> str:
    return f"[{name}] left the chat."


def kicked_line(name: str) -> str:
    return f"[{name}] was kicked from the chat."


def banned_line(name: str, seconds: int) -> str:
    return f"[{name}] was banned for {seconds} seconds."


def unbanned_line(name: str) -> str:
    return f"[{name}] was unbanned."


def renamed_line(old_name: str, new_name: str) -> str:
    return f"[{old_name}] is now known as [{new_name}]."


def chat_line(name: str, text: str) -> str:
    return f"[{name}]: {text}"


def server_line(text: str) -> str:
    return f"[server]: {text}"
