"""Human-readable activity strings for sessions."""

from __future__ import annotations

import os
from typing import Sequence
from urllib.parse import urlparse

from ..sessions.models import SessionPhase, SessionState

_PARAM_PREFIXES = (
    "command: ",
    "description: ",
    "file_path: ",
    "pattern: ",
    "query: ",
    "url: ",
    "prompt: ",
    "old_string: ",
    "new_string: ",
    "content: ",
    "body: ",
    "path: ",
)


def format_tool_name(name: str) -> str:
    """Render ``mcp__server__tool_name`` as ``server: tool name``."""

    if not name.startswith("mcp__"):
        return name
    parts = [part for part in name.split("__")[1:] if part]
    if len(parts) < 2:
        return name
    server = parts[0].replace("_", " ")
    tool = " ".join(parts[1:]).replace("_", " ")
    return f"{server}: {tool}"


def strip_param_prefix(line: str) -> str:
    for prefix in _PARAM_PREFIXES:
        if line.startswith(prefix):
            return line[len(prefix):]
    return line


def _line_value(lines: Sequence[str], prefix: str) -> str | None:
    for line in lines:
        if line.startswith(prefix):
            return line[len(prefix):]
    return None


def pick_best_line(lines: Sequence[str], tool_name: str) -> str:
    """Pick the most informative line of a multi-line tool input summary."""

    if tool_name in ("Bash", "BashOutput"):
        command = _line_value(lines, "command: ")
        if command is not None:
            return command
    if tool_name in ("Read", "Edit", "Write"):
        path = _line_value(lines, "file_path: ")
        if path is not None:
            return os.path.basename(path)
    if tool_name in ("Grep", "Glob"):
        pattern = _line_value(lines, "pattern: ")
        if pattern is not None:
            return pattern
    return strip_param_prefix(min(lines, key=len))


def enrich_message(message: str, tool_name: str) -> str:
    trimmed = message.strip()
    lines = [line for line in trimmed.split("\n") if line]
    if len(lines) > 1:
        cleaned = pick_best_line(lines, tool_name)
    else:
        cleaned = strip_param_prefix(trimmed)

    if cleaned.startswith(("http://", "https://")):
        parsed = urlparse(cleaned)
        if parsed.hostname:
            if len(parsed.path) > 1:
                return f"{parsed.hostname}{parsed.path[:30]}"
            return parsed.hostname
    return cleaned


def pending_context(session: SessionState) -> str | None:
    tool_name = session.pending_tool_name
    if tool_name is None:
        return None
    formatted = format_tool_name(tool_name)

    if tool_name == "AskUserQuestion":
        permission = session.active_permission
        questions = permission.tool_input.get("questions") if permission else None
        if isinstance(questions, list) and questions and isinstance(questions[0], dict):
            question = questions[0].get("question")
            if isinstance(question, str):
                return f"Asking: {question}"
        return "Asking a question"

    if session.pending_tool_input:
        enriched = enrich_message(session.pending_tool_input, tool_name)
        if enriched and enriched != "...":
            return f"{formatted} {enriched}"
    return formatted


def last_tool_summary(session: SessionState) -> str | None:
    if session.last_tool_name is None:
        return None
    formatted = format_tool_name(session.last_tool_name)
    if session.last_message:
        return f"{formatted} {enrich_message(session.last_message, session.last_tool_name)}"
    return formatted


def tool_context(session: SessionState) -> str | None:
    """Describe what an active session is doing right now."""

    task = session.subagent_state.innermost()
    if task is not None and task.description:
        return f"Agent: {task.description}"

    in_flight = sorted(
        session.tool_tracker.in_progress.values(), key=lambda tool: tool.start_time, reverse=True
    )
    if in_flight:
        current = in_flight[0]
        formatted = format_tool_name(current.name)
        # The tracker only knows names; reuse the last message when it came from the same tool.
        if session.last_message and session.last_tool_name:
            if format_tool_name(session.last_tool_name) == formatted:
                return f"{formatted} {enrich_message(session.last_message, current.name)}"
        return formatted

    return last_tool_summary(session)


def project_prefix(session: SessionState, sessions: Sequence[SessionState]) -> str:
    busy = [s for s in sessions if s.phase not in (SessionPhase.ENDED, SessionPhase.IDLE)]
    if len(busy) > 1:
        return f"{session.best_project_name}: "
    return ""


def status_line(sessions: Sequence[SessionState]) -> str | None:
    """One line describing the session that most needs attention."""

    for session in sessions:
        if session.phase.is_waiting_for_approval:
            return pending_context(session)

    for session in sessions:
        if session.phase.is_active:
            prefix = project_prefix(session, sessions)
            if session.phase is SessionPhase.COMPACTING:
                return f"{prefix}compacting..."
            context = tool_context(session)
            return f"{prefix}{context}" if context else f"{prefix}thinking..."

    for session in sessions:
        if session.phase is SessionPhase.WAITING_FOR_INPUT:
            prefix = project_prefix(session, sessions)
            summary = last_tool_summary(session)
            return f"{prefix}{summary} ✓" if summary else f"{prefix}done"

    open_sessions = [s for s in sessions if s.phase is not SessionPhase.ENDED]
    if open_sessions:
        return f"{len(open_sessions)} sessions idle"
    return None


__all__ = [
    "enrich_message",
    "format_tool_name",
    "last_tool_summary",
    "pending_context",
    "pick_best_line",
    "project_prefix",
    "status_line",
    "strip_param_prefix",
    "tool_context",
]
