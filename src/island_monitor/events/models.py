"""Typed hook events received from agent CLI hook scripts."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class EventKind(str, Enum):
    """The closed set of event kinds accepted on the transport."""

    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    TOOL_START = "ToolStart"
    TOOL_END = "ToolEnd"
    PERMISSION_REQUEST = "PermissionRequest"
    PERMISSION_RESPONSE = "PermissionResponse"
    STOP = "Stop"
    COMPACT_START = "CompactStart"
    COMPACT_END = "CompactEnd"
    SUBAGENT_START = "SubagentStart"
    SUBAGENT_END = "SubagentEnd"
    MESSAGE = "Message"


KIND_ALIASES: dict[str, str] = {
    "GenerationStart": EventKind.USER_PROMPT_SUBMIT.value,
    "GenerationComplete": EventKind.STOP.value,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseHookEvent(BaseModel):
    """Fields shared by every hook event."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    session_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("session_id", "sessionId"),
        description="Session id as reported by the agent CLI; not unique across resumes.",
    )
    pid: int | None = Field(default=None, description="Process id of the agent CLI.")
    cwd: str | None = Field(default=None, description="Working directory of the session.")
    transcript_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("transcript_path", "transcriptPath"),
    )
    timestamp: datetime = Field(default_factory=_utcnow)

    @field_validator("session_id", "cwd", "transcript_path")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None

    @field_validator("pid")
    @classmethod
    def _positive_pid(cls, value: int | None) -> int | None:
        if value is None or value <= 0:
            return None
        return value

    @field_validator("timestamp")
    @classmethod
    def _aware_timestamp(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SessionStart(BaseHookEvent):
    kind: Literal["SessionStart"] = "SessionStart"
    source: Literal["startup", "resume", "clear", "compact"] = "startup"
    resume_of: str | None = Field(
        default=None,
        description="Raw session id of the conversation this start continues.",
    )


class SessionEnd(BaseHookEvent):
    kind: Literal["SessionEnd"] = "SessionEnd"
    reason: str | None = None


class UserPromptSubmit(BaseHookEvent):
    kind: Literal["UserPromptSubmit"] = "UserPromptSubmit"
    prompt: str | None = None


class ToolStart(BaseHookEvent):
    kind: Literal["ToolStart"] = "ToolStart"
    tool_use_id: str | None = None
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)
    needs_approval: bool = False


class ToolEnd(BaseHookEvent):
    kind: Literal["ToolEnd"] = "ToolEnd"
    tool_use_id: str | None = None
    tool_name: str | None = None
    tool_input: dict[str, Any] | None = None
    message: str | None = None


class PermissionRequest(BaseHookEvent):
    kind: Literal["PermissionRequest"] = "PermissionRequest"
    tool_use_id: str | None = None
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)


class PermissionResponse(BaseHookEvent):
    kind: Literal["PermissionResponse"] = "PermissionResponse"
    tool_use_id: str | None = None
    decision: Literal["approved", "denied"]


class Stop(BaseHookEvent):
    kind: Literal["Stop"] = "Stop"


class CompactStart(BaseHookEvent):
    kind: Literal["CompactStart"] = "CompactStart"
    trigger: Literal["manual", "auto"] | None = None


class CompactEnd(BaseHookEvent):
    kind: Literal["CompactEnd"] = "CompactEnd"
    trigger: Literal["manual", "auto"] | None = None


class SubagentStart(BaseHookEvent):
    kind: Literal["SubagentStart"] = "SubagentStart"
    task_id: str
    description: str | None = None
    subagent_type: str | None = None


class SubagentEnd(BaseHookEvent):
    kind: Literal["SubagentEnd"] = "SubagentEnd"
    task_id: str


class Message(BaseHookEvent):
    kind: Literal["Message"] = "Message"
    text: str | None = None


HookEvent = Annotated[
    Union[
        SessionStart,
        SessionEnd,
        UserPromptSubmit,
        ToolStart,
        ToolEnd,
        PermissionRequest,
        PermissionResponse,
        Stop,
        CompactStart,
        CompactEnd,
        SubagentStart,
        SubagentEnd,
        Message,
    ],
    Field(discriminator="kind"),
]


_MAX_VALUE_CHARS = 200


def summarize_tool_input(tool_input: dict[str, Any] | None) -> str | None:
    """Render a tool input mapping as ``key: value`` lines.

    Non-string values are JSON encoded; each value is clipped so one large
    argument (file contents, for example) cannot dominate the summary.
    """

    if not tool_input:
        return None
    lines: list[str] = []
    for key, value in tool_input.items():
        if value is None:
            continue
        if isinstance(value, str):
            text = value.strip()
        else:
            text = json.dumps(value, default=str)
        if len(text) > _MAX_VALUE_CHARS:
            text = text[: _MAX_VALUE_CHARS - 3] + "..."
        lines.append(f"{key}: {text}")
    return "\n".join(lines) or None


__all__ = [
    "BaseHookEvent",
    "CompactEnd",
    "CompactStart",
    "EventKind",
    "HookEvent",
    "KIND_ALIASES",
    "Message",
    "PermissionRequest",
    "PermissionResponse",
    "SessionEnd",
    "SessionStart",
    "Stop",
    "SubagentEnd",
    "SubagentStart",
    "ToolEnd",
    "ToolStart",
    "UserPromptSubmit",
    "summarize_tool_input",
]
