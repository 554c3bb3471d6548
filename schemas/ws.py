from __future__ import annotations

from typing import Any, Literal, Optional
from pydantic import BaseModel, field_validator


def _as_text(value: Any) -> str:
    """Read a scalar JSON value as text; objects and arrays are rejected."""
    # Falsy values (missing, null, false, 0, "") all read as empty
    if not value:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    raise ValueError(f"expected a string, got {type(value).__name__}")


# ---- client -> server ----

class JoinIn(BaseModel):
    type: Literal["join"] = "join"
    room: str = ""
    name: Optional[str] = None

    @field_validator("room", mode="before")
    @classmethod
    def _coerce_room(cls, v: Any) -> str:
        return _as_text(v)

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, v: Any) -> Optional[str]:
        return _as_text(v) or None


class MsgIn(BaseModel):
    type: Literal["msg"] = "msg"
    text: str = ""

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> str:
        return _as_text(v)


# ---- server -> clients ----

class JoinedOut(BaseModel):
    type: Literal["joined"] = "joined"
    room: str
    you: str


class ErrorOut(BaseModel):
    type: Literal["error"] = "error"
    reason: Literal["invalid_room", "room_full"]


class SystemOut(BaseModel):
    type: Literal["system"] = "system"
    text: str


class ChatMessageOut(BaseModel):
    type: Literal["msg"] = "msg"
    name: str
    text: str
    ts: int  # epoch ms


class PongOut(BaseModel):
    type: Literal["pong"] = "pong"
