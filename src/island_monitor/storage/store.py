"""The aggregation store: single owner of all session state."""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable

from ..events.models import BaseHookEvent, SessionEnd
from ..sessions.identity import IdentityResolver
from ..sessions.machine import apply_event
from ..sessions.models import SessionPhase, SessionState

logger = logging.getLogger(__name__)

Subscriber = Callable[[int], None]


@dataclass(slots=True)
class ApplyResult:
    """What ``SessionStore.apply_event`` did with one event."""

    stable_id: str
    applied: bool
    created: bool = False
    merged: bool = False
    superseded: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class SweepCandidate:
    stable_id: str
    pid: int | None
    phase: SessionPhase
    ended_at: datetime | None


class SessionStore:
    """Serialize every mutation of the session table behind one lock.

    Readers only ever receive deep copies, so a snapshot can be held and
    inspected on any thread while events keep arriving.
    """

    def __init__(
        self,
        *,
        grace_seconds: float = 60.0,
        resolver: IdentityResolver | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._grace_seconds = grace_seconds
        self._resolver = resolver or IdentityResolver(grace_seconds=grace_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.Lock()
        self._sessions: dict[str, SessionState] = {}
        self._subscribers: list[Subscriber] = []
        self._revision = 0

    @property
    def grace_seconds(self) -> float:
        return self._grace_seconds

    @property
    def revision(self) -> int:
        """Counter bumped on every committed change; cheap to poll."""

        with self._lock:
            return self._revision

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def now(self) -> datetime:
        return self._clock()

    def _retire(self, stable_id: str, now: datetime, *, reason: str) -> None:
        session = self._sessions.get(stable_id)
        if session is None:
            return
        if not session.is_ended:
            apply_event(
                session,
                SessionEnd(session_id=session.raw_session_id, pid=session.pid, reason=reason, timestamp=now),
                now,
            )
        del self._sessions[stable_id]
        logger.info(
            "Removed superseded session",
            extra={
                "stable_id": stable_id,
                "pid": session.pid,
                "phase": session.phase.value,
                "ended_at": session.ended_at.isoformat() if session.ended_at else None,
                "reason": reason,
            },
        )

    def apply_event(self, event: BaseHookEvent) -> ApplyResult:
        """Resolve the event's identity, run the state machine and commit."""

        with self._lock:
            now = self._clock()
            resolution = self._resolver.resolve(event, self._sessions, now)

            for stable_id in resolution.superseded:
                self._retire(stable_id, now, reason="pid taken over by a new session")

            if resolution.created:
                session = SessionState(
                    stable_id=resolution.stable_id,
                    raw_session_id=resolution.raw_session_id,
                    created_at=now,
                    last_seen_at=now,
                    phase_changed_at=now,
                    pid=event.pid,
                    known_session_ids=[resolution.raw_session_id],
                )
                self._sessions[session.stable_id] = session
                logger.info(
                    "Tracking new session",
                    extra={
                        "stable_id": session.stable_id,
                        "session_id": session.raw_session_id,
                        "pid": session.pid,
                    },
                )
            else:
                session = self._sessions[resolution.stable_id]

            if resolution.merged:
                previous_pid = session.pid
                session.remember_session_id(resolution.raw_session_id)
                if event.pid is not None:
                    session.pid = event.pid
                if session.is_ended:
                    session.ended_at = None
                    session.set_phase(SessionPhase.IDLE, now)
                logger.info(
                    "Resumed session",
                    extra={
                        "stable_id": session.stable_id,
                        "session_id": session.raw_session_id,
                        "previous_pid": previous_pid,
                        "pid": session.pid,
                    },
                )

            outcome = apply_event(session, event, now)
            changed = bool(outcome.applied or resolution.created or resolution.merged or resolution.superseded)
            if changed:
                self._revision += 1
            revision = self._revision

            result = ApplyResult(
                stable_id=session.stable_id,
                applied=outcome.applied,
                created=resolution.created,
                merged=resolution.merged,
                superseded=list(resolution.superseded),
                notes=list(outcome.notes),
            )

        if changed:
            self._notify(revision)
        return result

    def snapshot(self) -> tuple[SessionState, ...]:
        """Return deep copies of all sessions ordered by creation time."""

        with self._lock:
            ordered = sorted(self._sessions.values(), key=lambda s: (s.created_at, s.stable_id))
            return tuple(copy.deepcopy(session) for session in ordered)

    def get(self, stable_id: str) -> SessionState | None:
        with self._lock:
            session = self._sessions.get(stable_id)
            return copy.deepcopy(session) if session is not None else None

    def sweep_candidates(self) -> list[SweepCandidate]:
        with self._lock:
            return [
                SweepCandidate(
                    stable_id=session.stable_id,
                    pid=session.pid,
                    phase=session.phase,
                    ended_at=session.ended_at,
                )
                for session in self._sessions.values()
            ]

    def end_session(self, stable_id: str, *, expected_pid: int | None, reason: str) -> bool:
        """End a session through the state machine.

        Nothing happens if the session is gone, already ended, or its pid
        changed since the caller looked (a resume may have rebound it).
        """

        with self._lock:
            session = self._sessions.get(stable_id)
            if session is None or session.is_ended or session.pid != expected_pid:
                return False
            now = self._clock()
            event = SessionEnd(
                session_id=session.raw_session_id,
                pid=session.pid,
                reason=reason,
                timestamp=now,
            )
            apply_event(session, event, now)
            self._revision += 1
            revision = self._revision

        logger.info("Ended session", extra={"stable_id": stable_id, "pid": expected_pid, "reason": reason})
        self._notify(revision)
        return True

    def remove_if_ended(self, stable_id: str, grace_seconds: float | None = None) -> bool:
        """Drop an ended session once it has been ended for ``grace_seconds``."""

        grace = timedelta(seconds=self._grace_seconds if grace_seconds is None else grace_seconds)
        with self._lock:
            session = self._sessions.get(stable_id)
            if session is None or not session.is_ended:
                return False
            ended_at = session.ended_at or session.last_seen_at
            if self._clock() - ended_at < grace:
                return False
            del self._sessions[stable_id]
            self._revision += 1
            revision = self._revision

        logger.info("Removed ended session", extra={"stable_id": stable_id})
        self._notify(revision)
        return True

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback(revision)`` after every committed change.

        Returns a function that removes the subscription.
        """

        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._revision += 1

    def _notify(self, revision: int) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(revision)
            except Exception:
                logger.exception("Session store subscriber failed")


__all__ = ["ApplyResult", "SessionStore", "SweepCandidate"]
