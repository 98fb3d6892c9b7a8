"""Phase transitions for a single session.

``apply_event`` mutates one ``SessionState`` in place. It never raises for
events that do not fit the current phase: the parts of the event that can
still be applied safely (``last_seen_at``, ``cwd``, bookkeeping) are applied
and the phase change is skipped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from ..events.models import (
    BaseHookEvent,
    CompactEnd,
    CompactStart,
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
from .models import PermissionContext, SessionPhase, SessionState, TaskDescriptor

logger = logging.getLogger(__name__)

_PROMPTABLE = (SessionPhase.IDLE, SessionPhase.WAITING_FOR_INPUT, SessionPhase.PROCESSING)


@dataclass(slots=True)
class Outcome:
    """Result of applying one event to one session."""

    applied: bool = True
    notes: list[str] = field(default_factory=list)

    def note(self, message: str) -> None:
        self.notes.append(message)


def _tool_key(tool_use_id: str | None, tool_name: str, at: datetime) -> str:
    return tool_use_id or f"{tool_name}@{at.isoformat()}"


def _has_pending_work(state: SessionState) -> bool:
    return len(state.tool_tracker) > 0 or state.subagent_state.has_active_subagent


def _reset_activity(state: SessionState, outcome: Outcome) -> None:
    stale_tools = state.tool_tracker.clear()
    stale_tasks = state.subagent_state.clear()
    if stale_tools:
        outcome.note(f"cleared {stale_tools} in-flight tool(s)")
    if stale_tasks:
        outcome.note(f"cleared {stale_tasks} active subagent(s)")
    state.clear_pending_permission()


def _finish_compaction(state: SessionState, trigger: str | None, now: datetime) -> None:
    if _has_pending_work(state) or trigger == "auto":
        state.set_phase(SessionPhase.PROCESSING, now)
    else:
        state.set_phase(SessionPhase.IDLE, now)


def _on_session_start(state: SessionState, event: SessionStart, now: datetime, outcome: Outcome) -> None:
    if event.pid is not None:
        state.pid = event.pid
    if event.source == "compact":
        if state.phase is SessionPhase.COMPACTING:
            _finish_compaction(state, None, now)
        return
    if event.source == "resume":
        return
    _reset_activity(state, outcome)
    state.set_phase(SessionPhase.IDLE, now)


def _on_session_end(state: SessionState, event: SessionEnd, now: datetime, outcome: Outcome) -> None:
    _reset_activity(state, outcome)
    state.set_phase(SessionPhase.ENDED, now)
    state.ended_at = now


def _on_user_prompt(state: SessionState, event: UserPromptSubmit, now: datetime, outcome: Outcome) -> None:
    if state.phase in _PROMPTABLE:
        state.set_phase(SessionPhase.PROCESSING, now)
    else:
        outcome.note(f"prompt ignored while {state.phase.value}")


def _request_permission(
    state: SessionState,
    *,
    tool_use_id: str | None,
    tool_name: str,
    tool_input: dict,
    now: datetime,
) -> None:
    state.active_permission = PermissionContext(
        tool_use_id=tool_use_id,
        tool_name=tool_name,
        tool_input=dict(tool_input),
        requested_at=now,
    )
    state.pending_tool_use_id = tool_use_id
    state.pending_tool_name = tool_name
    state.pending_tool_input = summarize_tool_input(tool_input)
    state.set_phase(SessionPhase.WAITING_FOR_APPROVAL, now)


def _on_tool_start(state: SessionState, event: ToolStart, now: datetime, outcome: Outcome) -> None:
    if event.needs_approval:
        _request_permission(
            state,
            tool_use_id=event.tool_use_id,
            tool_name=event.tool_name,
            tool_input=event.tool_input,
            now=now,
        )
        return

    state.tool_tracker.start(_tool_key(event.tool_use_id, event.tool_name, now), event.tool_name, now)
    if state.phase in _PROMPTABLE:
        state.set_phase(SessionPhase.PROCESSING, now)


def _on_permission_request(
    state: SessionState, event: PermissionRequest, now: datetime, outcome: Outcome
) -> None:
    _request_permission(
        state,
        tool_use_id=event.tool_use_id,
        tool_name=event.tool_name,
        tool_input=event.tool_input,
        now=now,
    )


def _on_permission_response(
    state: SessionState, event: PermissionResponse, now: datetime, outcome: Outcome
) -> None:
    permission = state.active_permission
    if permission is None:
        outcome.note("permission response without a pending request")
        return
    if event.tool_use_id and permission.tool_use_id and event.tool_use_id != permission.tool_use_id:
        outcome.note(f"permission response for {event.tool_use_id} does not match pending request")
        return

    key = _tool_key(permission.tool_use_id, permission.tool_name, permission.requested_at)
    if event.decision == "approved":
        if key not in state.tool_tracker.in_progress:
            state.tool_tracker.start(key, permission.tool_name, now)
        state.clear_pending_permission()
        state.set_phase(SessionPhase.PROCESSING, now)
        return

    state.tool_tracker.finish(key)
    state.clear_pending_permission()
    if _has_pending_work(state):
        state.set_phase(SessionPhase.PROCESSING, now)
    else:
        state.set_phase(SessionPhase.IDLE, now)


def _matches_pending(state: SessionState, event: ToolEnd) -> bool:
    if state.active_permission is None:
        return False
    if event.tool_use_id is not None:
        return event.tool_use_id == state.pending_tool_use_id
    return state.pending_tool_use_id is None and event.tool_name == state.pending_tool_name


def _on_tool_end(state: SessionState, event: ToolEnd, now: datetime, outcome: Outcome) -> None:
    finished = state.tool_tracker.finish(
        event.tool_use_id, event.tool_name if event.tool_use_id is None else None
    )
    pending = _matches_pending(state, event)

    name = event.tool_name or (finished.name if finished else None)
    message = event.message or summarize_tool_input(event.tool_input)
    if pending:
        # Finishing the tool that was waiting for approval means it was approved.
        name = name or state.pending_tool_name
        message = message or state.pending_tool_input
        state.clear_pending_permission()
        state.set_phase(SessionPhase.PROCESSING, now)
    elif finished is None:
        outcome.note(f"tool end without a matching start ({event.tool_use_id or event.tool_name})")

    if name:
        state.last_tool_name = name
        state.last_message = message


def _on_compact_start(state: SessionState, event: CompactStart, now: datetime, outcome: Outcome) -> None:
    state.set_phase(SessionPhase.COMPACTING, now)


def _on_compact_end(state: SessionState, event: CompactEnd, now: datetime, outcome: Outcome) -> None:
    if state.phase is not SessionPhase.COMPACTING:
        outcome.note(f"compaction end ignored while {state.phase.value}")
        return
    _finish_compaction(state, event.trigger, now)


def _on_stop(state: SessionState, event: Stop, now: datetime, outcome: Outcome) -> None:
    _reset_activity(state, outcome)
    state.set_phase(SessionPhase.WAITING_FOR_INPUT, now)


def _on_subagent_start(state: SessionState, event: SubagentStart, now: datetime, outcome: Outcome) -> None:
    state.subagent_state.push(
        TaskDescriptor(
            task_id=event.task_id,
            description=event.description,
            subagent_type=event.subagent_type,
            started_at=now,
        )
    )


def _on_subagent_end(state: SessionState, event: SubagentEnd, now: datetime, outcome: Outcome) -> None:
    if not state.subagent_state.finish(event.task_id):
        outcome.note(f"subagent end for unknown task {event.task_id}")


def _on_message(state: SessionState, event: Message, now: datetime, outcome: Outcome) -> None:
    # cwd is applied for every event before dispatch.
    return None


_Handler = Callable[[SessionState, BaseHookEvent, datetime, Outcome], None]

_HANDLERS: dict[type[BaseHookEvent], _Handler] = {
    SessionStart: _on_session_start,
    SessionEnd: _on_session_end,
    UserPromptSubmit: _on_user_prompt,
    ToolStart: _on_tool_start,
    ToolEnd: _on_tool_end,
    PermissionRequest: _on_permission_request,
    PermissionResponse: _on_permission_response,
    Stop: _on_stop,
    CompactStart: _on_compact_start,
    CompactEnd: _on_compact_end,
    SubagentStart: _on_subagent_start,
    SubagentEnd: _on_subagent_end,
    Message: _on_message,
}


def apply_event(state: SessionState, event: BaseHookEvent, now: datetime) -> Outcome:
    """Apply ``event`` to ``state`` and report what happened."""

    if state.is_ended:
        logger.warning(
            "Rejected event for ended session",
            extra={"stable_id": state.stable_id, "kind": event.kind},
        )
        return Outcome(applied=False, notes=["session has ended"])

    handler = _HANDLERS.get(type(event))
    if handler is None:
        logger.warning("No transition defined for event", extra={"kind": event.kind})
        return Outcome(applied=False, notes=[f"unsupported event {event.kind}"])

    outcome = Outcome()
    state.last_seen_at = now
    if event.cwd:
        state.cwd = event.cwd
    if state.pid is None and event.pid is not None:
        state.pid = event.pid

    handler(state, event, now, outcome)

    if outcome.notes:
        logger.debug(
            "Applied %s with adjustments: %s",
            event.kind,
            "; ".join(outcome.notes),
            extra={"stable_id": state.stable_id},
        )
    return outcome


__all__ = ["Outcome", "apply_event"]
