"""Mapping of raw (session id, pid) pairs onto stable session identities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, Mapping
from uuid import uuid4

from ..events.models import BaseHookEvent, SessionStart
from .models import SessionState


@dataclass(slots=True)
class Resolution:
    """Where an event belongs.

    ``created`` means no session exists yet for ``stable_id``; ``merged``
    means a start event continues an earlier session (resume); ``superseded``
    lists sessions that must be retired because the resolved session now owns
    their pid.
    """

    stable_id: str
    raw_session_id: str
    created: bool = False
    merged: bool = False
    superseded: list[str] = field(default_factory=list)


def _default_id_factory() -> str:
    return uuid4().hex


class IdentityResolver:
    """Resolve events to stable identities against the current sessions.

    Two sessions are only ever merged on an explicit continuity marker: the
    ``resume_of`` field of a start event, or a start event with
    ``source="resume"`` repeating a known raw session id. Pid and working
    directory alone never cause a merge.
    """

    def __init__(
        self,
        *,
        grace_seconds: float,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._grace = timedelta(seconds=grace_seconds)
        self._id_factory = id_factory or _default_id_factory

    @property
    def grace_seconds(self) -> float:
        return self._grace.total_seconds()

    def new_stable_id(self) -> str:
        return self._id_factory()

    def _is_retained(self, session: SessionState, now: datetime) -> bool:
        if not session.is_ended:
            return True
        return session.ended_at is not None and now - session.ended_at <= self._grace

    @staticmethod
    def _owners(raw_session_id: str, sessions: Iterable[SessionState]) -> list[SessionState]:
        owners = [s for s in sessions if raw_session_id in s.known_session_ids]
        # Live owners first, then the most recently seen.
        owners.sort(key=lambda s: (s.is_ended, -s.last_seen_at.timestamp()))
        return owners

    def _continuity_target(
        self,
        event: SessionStart,
        sessions: Iterable[SessionState],
        now: datetime,
    ) -> SessionState | None:
        markers: list[str] = []
        if event.resume_of:
            markers.append(event.resume_of)
        if event.source == "resume" and event.session_id:
            markers.append(event.session_id)
        for marker in markers:
            for owner in self._owners(marker, sessions):
                if self._is_retained(owner, now):
                    return owner
        return None

    def _superseded(
        self,
        pid: int | None,
        stable_id: str,
        sessions: Iterable[SessionState],
    ) -> list[str]:
        if pid is None:
            return []
        return [
            s.stable_id
            for s in sessions
            if s.pid == pid and s.stable_id != stable_id and not s.is_ended
        ]

    def _fallback_raw_id(self, event: BaseHookEvent) -> str:
        if event.pid is not None:
            return f"pid-{event.pid}"
        return f"anonymous-{self._id_factory()[:12]}"

    def resolve(
        self,
        event: BaseHookEvent,
        sessions: Mapping[str, SessionState],
        now: datetime,
    ) -> Resolution:
        """Return the identity ``event`` belongs to; deterministic for given sessions."""

        known = list(sessions.values())

        if isinstance(event, SessionStart):
            target = self._continuity_target(event, known, now)
            if target is not None:
                return Resolution(
                    stable_id=target.stable_id,
                    raw_session_id=event.session_id or target.raw_session_id,
                    merged=True,
                    superseded=self._superseded(event.pid, target.stable_id, known),
                )

            if event.session_id:
                live = [s for s in self._owners(event.session_id, known) if not s.is_ended]
                if live:
                    return Resolution(
                        stable_id=live[0].stable_id,
                        raw_session_id=event.session_id,
                        superseded=self._superseded(event.pid, live[0].stable_id, known),
                    )

            stable_id = self.new_stable_id()
            return Resolution(
                stable_id=stable_id,
                raw_session_id=event.session_id or self._fallback_raw_id(event),
                created=True,
                superseded=self._superseded(event.pid, stable_id, known),
            )

        if event.session_id:
            owners = self._owners(event.session_id, known)
            if owners:
                return Resolution(stable_id=owners[0].stable_id, raw_session_id=event.session_id)
        elif event.pid is not None:
            for session in known:
                if session.pid == event.pid and not session.is_ended:
                    return Resolution(stable_id=session.stable_id, raw_session_id=session.raw_session_id)

        return Resolution(
            stable_id=self.new_stable_id(),
            raw_session_id=event.session_id or self._fallback_raw_id(event),
            created=True,
        )


__all__ = ["IdentityResolver", "Resolution"]
