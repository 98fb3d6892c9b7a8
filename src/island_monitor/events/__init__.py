"""Hook event model, codec and transcript helpers."""

from .codec import EventDecodeError, decode_event, decode_payload, encode_event
from .models import (
    BaseHookEvent,
    CompactEnd,
    CompactStart,
    EventKind,
    HookEvent,
    Message,
    PermissionRequest,
    PermissionResponse,
    SessionEnd,
    SessionStart,
    Stop,
    SubagentEnd,
    SubagentStart,
    ToolEnd,
    ToolStart,
    UserPromptSubmit,
    summarize_tool_input,
)
from .transcript import extract_cwd

__all__ = [
    "BaseHookEvent",
    "CompactEnd",
    "CompactStart",
    "EventDecodeError",
    "EventKind",
    "HookEvent",
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
    "decode_event",
    "decode_payload",
    "encode_event",
    "extract_cwd",
    "summarize_tool_input",
]
