"""
Pydantic schemas for the admin API.

Field names follow the admin UI's JSON (camelCase on the wire where the
UI expects it).
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# =============================================================================
# Auth Schemas
# =============================================================================


class LoginRequest(BaseModel):
    password: str


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    expires_in: int


class VerifyResponse(BaseModel):
    valid: bool = True
    expires_at: int


# =============================================================================
# Moderation Schemas
# =============================================================================


class KickRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=1)
    seconds: int = Field(
        default=0,
        validation_alias=AliasChoices("seconds", "durationSeconds"),
        description="Ban length in seconds; 0 kicks without banning",
    )


class KickResponse(BaseModel):
    success: bool = True
    username: str
    banned: bool
    target: str


class UnbanRequest(BaseModel):
    username: str | None = None
    device: str | None = None


class UnbanResponse(BaseModel):
    success: bool = True
    username: str | None = None
    device: str | None = None


class BroadcastRequest(BaseModel):
    message: str


class BroadcastResponse(BaseModel):
    success: bool = True
    line: str


class CountResponse(BaseModel):
    success: bool = True
    count: int


# =============================================================================
# Stats Schemas
# =============================================================================


class UserOutput(BaseModel):
    name: str | None
    device: str | None
    mode: str
    connectedAt: int


class TimedEntryOutput(BaseModel):
    name: str | None
    device: str
    remainingSeconds: int


class HistoryEntryOutput(BaseModel):
    text: str
    timestamp: int


class StatsResponse(BaseModel):
    userCount: int
    messageCount: int
    uptime: int
    users: list[UserOutput]
    pendingGrace: list[TimedEntryOutput]
    bannedUsers: list[TimedEntryOutput]
    messages: list[HistoryEntryOutput]
    connections: dict[str, Any]
