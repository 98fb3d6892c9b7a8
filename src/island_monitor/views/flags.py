"""Aggregate flags and ordering computed from a store snapshot."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Sequence

from ..sessions.models import SessionPhase, SessionState

_PHASE_PRIORITY = {
    SessionPhase.WAITING_FOR_APPROVAL: 0,
    SessionPhase.PROCESSING: 1,
    SessionPhase.COMPACTING: 1,
    SessionPhase.WAITING_FOR_INPUT: 2,
    SessionPhase.IDLE: 3,
    SessionPhase.ENDED: 4,
}


def is_any_processing(sessions: Iterable[SessionState]) -> bool:
    return any(session.phase.is_active for session in sessions)


def has_pending_permission(sessions: Iterable[SessionState]) -> bool:
    return any(session.phase.is_waiting_for_approval for session in sessions)


def has_recent_ready(
    sessions: Iterable[SessionState],
    now: datetime,
    window_seconds: float = 30.0,
    acknowledged_at: datetime | None = None,
) -> bool:
    """Whether a session became ready for input within the last ``window_seconds``.

    Sessions that became ready at or before ``acknowledged_at`` (when the
    user last looked at them) do not count.
    """

    window = timedelta(seconds=window_seconds)
    return any(
        session.phase is SessionPhase.WAITING_FOR_INPUT
        and now - session.phase_changed_at < window
        and (acknowledged_at is None or session.phase_changed_at > acknowledged_at)
        for session in sessions
    )


def phase_priority(phase: SessionPhase) -> int:
    """Lower numbers need the user's attention sooner."""

    return _PHASE_PRIORITY[phase]


def sort_for_display(sessions: Iterable[SessionState]) -> list[SessionState]:
    return sorted(sessions, key=lambda s: (phase_priority(s.phase), s.created_at, s.stable_id))


def summary_text(sessions: Sequence[SessionState]) -> str:
    pending = sum(1 for s in sessions if s.phase.is_waiting_for_approval)
    active = sum(1 for s in sessions if s.phase.is_active)
    ready = sum(1 for s in sessions if s.phase is SessionPhase.WAITING_FOR_INPUT)

    parts: list[str] = []
    if pending:
        parts.append(f"{pending} pending")
    if active:
        parts.append(f"{active} active")
    if ready:
        parts.append(f"{ready} ready")
    if not parts:
        return f"{len(sessions)} sessions"
    return " · ".join(parts)


__all__ = [
    "has_pending_permission",
    "has_recent_ready",
    "is_any_processing",
    "phase_priority",
    "sort_for_display",
    "summary_text",
]
