"""Session aggregate models."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SessionPhase(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    WAITING_FOR_APPROVAL = "waitingForApproval"
    WAITING_FOR_INPUT = "waitingForInput"
    COMPACTING = "compacting"
    ENDED = "ended"

    @property
    def is_active(self) -> bool:
        return self in (SessionPhase.PROCESSING, SessionPhase.COMPACTING)

    @property
    def is_waiting_for_approval(self) -> bool:
        return self is SessionPhase.WAITING_FOR_APPROVAL


@dataclass(slots=True)
class PermissionContext:
    """A tool invocation waiting for the user's approval."""

    tool_use_id: str | None
    tool_name: str
    tool_input: dict[str, Any]
    requested_at: datetime


@dataclass(slots=True)
class ToolInFlight:
    name: str
    start_time: datetime


@dataclass(slots=True)
class ToolTracker:
    """Tool invocations that have started and not yet ended, keyed by tool-use id."""

    in_progress: dict[str, ToolInFlight] = field(default_factory=dict)

    def start(self, tool_use_id: str, name: str, start_time: datetime) -> None:
        self.in_progress[tool_use_id] = ToolInFlight(name=name, start_time=start_time)

    def finish(self, tool_use_id: str | None, name: str | None = None) -> ToolInFlight | None:
        """Remove and return the matching invocation.

        Without an id, the oldest in-flight invocation with the same tool name
        is taken.
        """

        if tool_use_id is not None:
            return self.in_progress.pop(tool_use_id, None)
        if name is None:
            return None
        candidates = sorted(
            (item for item in self.in_progress.items() if item[1].name == name),
            key=lambda item: item[1].start_time,
        )
        if not candidates:
            return None
        return self.in_progress.pop(candidates[0][0])

    def clear(self) -> int:
        count = len(self.in_progress)
        self.in_progress.clear()
        return count

    def __len__(self) -> int:
        return len(self.in_progress)


@dataclass(slots=True)
class TaskDescriptor:
    task_id: str
    description: str | None
    subagent_type: str | None
    started_at: datetime


@dataclass(slots=True)
class SubagentState:
    """Nested delegated tasks; the last stack entry is the innermost active task."""

    task_stack: list[str] = field(default_factory=list)
    active_tasks: dict[str, TaskDescriptor] = field(default_factory=dict)

    @property
    def has_active_subagent(self) -> bool:
        return bool(self.active_tasks)

    @property
    def depth(self) -> int:
        return len(self.task_stack)

    def push(self, task: TaskDescriptor) -> None:
        if task.task_id in self.active_tasks:
            self.active_tasks[task.task_id] = task
            return
        self.active_tasks[task.task_id] = task
        self.task_stack.append(task.task_id)

    def finish(self, task_id: str) -> bool:
        """End ``task_id`` and restore a stack made only of active tasks.

        Returns False when the task was not known.
        """

        known = self.active_tasks.pop(task_id, None) is not None
        if self.task_stack and self.task_stack[-1] == task_id:
            self.task_stack.pop()
        elif task_id in self.task_stack:
            self.task_stack.remove(task_id)
        while self.task_stack and self.task_stack[-1] not in self.active_tasks:
            self.task_stack.pop()
        return known

    def innermost(self) -> TaskDescriptor | None:
        for task_id in reversed(self.task_stack):
            task = self.active_tasks.get(task_id)
            if task is not None:
                return task
        return None

    def clear(self) -> int:
        count = len(self.active_tasks)
        self.task_stack.clear()
        self.active_tasks.clear()
        return count


@dataclass(slots=True)
class SessionState:
    """Everything known about one logical agent session."""

    stable_id: str
    raw_session_id: str
    created_at: datetime
    last_seen_at: datetime
    phase_changed_at: datetime
    pid: int | None = None
    cwd: str | None = None
    phase: SessionPhase = SessionPhase.IDLE
    ended_at: datetime | None = None
    known_session_ids: list[str] = field(default_factory=list)
    active_permission: PermissionContext | None = None
    pending_tool_name: str | None = None
    pending_tool_input: str | None = None
    pending_tool_use_id: str | None = None
    last_tool_name: str | None = None
    last_message: str | None = None
    tool_tracker: ToolTracker = field(default_factory=ToolTracker)
    subagent_state: SubagentState = field(default_factory=SubagentState)

    @property
    def best_project_name(self) -> str:
        if self.cwd:
            name = os.path.basename(self.cwd.rstrip("/\\"))
            if name:
                return name
        if self.raw_session_id:
            return self.raw_session_id[:8]
        return "unknown"

    @property
    def is_ended(self) -> bool:
        return self.phase is SessionPhase.ENDED

    def set_phase(self, phase: SessionPhase, at: datetime) -> None:
        if phase is not self.phase:
            self.phase = phase
            self.phase_changed_at = at

    def remember_session_id(self, raw_session_id: str) -> None:
        self.raw_session_id = raw_session_id
        if raw_session_id not in self.known_session_ids:
            self.known_session_ids.append(raw_session_id)

    def clear_pending_permission(self) -> None:
        self.active_permission = None
        self.pending_tool_name = None
        self.pending_tool_input = None
        self.pending_tool_use_id = None


__all__ = [
    "PermissionContext",
    "SessionPhase",
    "SessionState",
    "SubagentState",
    "TaskDescriptor",
    "ToolInFlight",
    "ToolTracker",
]
