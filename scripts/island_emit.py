"""Forward an agent CLI hook invocation to the Island Monitor socket.

Install as the command for every hook. The hook input is read from stdin as
JSON; one or more events are sent to the monitor. The script always exits 0
so that a monitor which is not running never blocks the agent.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any

from island_monitor.config import IslandSettings
from island_monitor.transport import send_payload

HOOK_KIND_MAP = {
    "PreToolUse": "ToolStart",
    "PostToolUse": "ToolEnd",
    "PreCompact": "CompactStart",
    "Notification": "Message",
}

PASSTHROUGH_KINDS = {
    "SessionStart",
    "SessionEnd",
    "UserPromptSubmit",
    "ToolStart",
    "ToolEnd",
    "PermissionRequest",
    "PermissionResponse",
    "Stop",
    "CompactStart",
    "CompactEnd",
    "SubagentStart",
    "SubagentEnd",
    "Message",
}

SUBAGENT_TOOLS = {"Task", "Agent"}


def resolve_kind(hook_input: dict[str, Any], override: str | None = None) -> str | None:
    name = override or hook_input.get("hook_event_name") or hook_input.get("kind")
    if not isinstance(name, str):
        return None
    if name in HOOK_KIND_MAP:
        return HOOK_KIND_MAP[name]
    if name in PASSTHROUGH_KINDS:
        return name
    return None


def build_events(
    hook_input: dict[str, Any],
    *,
    pid: int,
    kind_override: str | None = None,
) -> list[dict[str, Any]]:
    """Translate one hook input into the monitor's wire events."""

    kind = resolve_kind(hook_input, kind_override)
    if kind is None:
        return []

    base: dict[str, Any] = {
        "kind": kind,
        "session_id": hook_input.get("session_id"),
        "pid": pid,
        "cwd": hook_input.get("cwd"),
        "transcript_path": hook_input.get("transcript_path"),
    }
    event = {key: value for key, value in base.items() if value is not None}

    tool_name = hook_input.get("tool_name")
    tool_input = hook_input.get("tool_input") if isinstance(hook_input.get("tool_input"), dict) else {}
    tool_use_id = hook_input.get("tool_use_id")

    if kind == "SessionStart":
        for key in ("source", "resume_of"):
            if hook_input.get(key):
                event[key] = hook_input[key]
    elif kind == "SessionEnd":
        if hook_input.get("reason"):
            event["reason"] = str(hook_input["reason"])
    elif kind in ("ToolStart", "ToolEnd", "PermissionRequest"):
        if not tool_name:
            return []
        event["tool_name"] = tool_name
        event["tool_input"] = tool_input
        if tool_use_id:
            event["tool_use_id"] = tool_use_id
        if kind == "ToolStart" and hook_input.get("needs_approval"):
            event["needs_approval"] = True
    elif kind == "PermissionResponse":
        decision = hook_input.get("decision")
        if decision not in ("approved", "denied"):
            return []
        event["decision"] = decision
        if tool_use_id:
            event["tool_use_id"] = tool_use_id
    elif kind in ("CompactStart", "CompactEnd"):
        if hook_input.get("trigger") in ("manual", "auto"):
            event["trigger"] = hook_input["trigger"]
    elif kind in ("SubagentStart", "SubagentEnd"):
        if not hook_input.get("task_id"):
            return []
        event["task_id"] = hook_input["task_id"]
        if kind == "SubagentStart" and hook_input.get("description"):
            event["description"] = hook_input["description"]
    elif kind == "Message":
        if hook_input.get("message"):
            event["text"] = str(hook_input["message"])

    events = [event]
    if kind in ("ToolStart", "ToolEnd") and tool_name in SUBAGENT_TOOLS and tool_use_id:
        subagent = {key: event[key] for key in ("session_id", "pid", "cwd") if key in event}
        subagent["task_id"] = tool_use_id
        if kind == "ToolStart":
            subagent["kind"] = "SubagentStart"
            if tool_input.get("description"):
                subagent["description"] = str(tool_input["description"])
            if tool_input.get("subagent_type"):
                subagent["subagent_type"] = str(tool_input["subagent_type"])
            events.append(subagent)
        else:
            subagent["kind"] = "SubagentEnd"
            events.insert(0, subagent)
    return events


def emit(args: argparse.Namespace, stdin_text: str) -> int:
    try:
        hook_input = json.loads(stdin_text) if stdin_text.strip() else {}
    except json.JSONDecodeError as exc:
        print(f"island_emit: ignoring malformed hook input: {exc}", file=sys.stderr)
        return 0
    if not isinstance(hook_input, dict):
        return 0

    socket_path = Path(args.socket) if args.socket else IslandSettings().socket_path
    for event in build_events(hook_input, pid=args.pid or os.getppid(), kind_override=args.kind):
        if not send_payload(socket_path, event, timeout=args.timeout):
            break
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send the hook input on stdin to the Island Monitor socket."
    )
    parser.add_argument("--socket", help="Socket path (default: ISLAND_SOCKET_PATH or /tmp/claude-island.sock)")
    parser.add_argument("--kind", help="Force the event kind instead of reading hook_event_name")
    parser.add_argument("--pid", type=int, default=None, help="Agent process id (default: parent pid)")
    parser.add_argument("--timeout", type=float, default=1.0, help="Socket timeout in seconds")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    raise SystemExit(emit(args, sys.stdin.read()))


if __name__ == "__main__":
    main()
