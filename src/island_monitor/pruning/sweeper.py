"""Periodic pruning of sessions whose processes have gone away."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable

from ..sessions.models import SessionPhase
from ..storage.store import SessionStore
from .liveness import is_pid_alive

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SweepReport:
    ended: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


class PruningSweeper:
    """End sessions whose process died and drop ended sessions after a grace period.

    Liveness is probed without holding the store lock; each resulting change is
    committed as one whole store operation, so cancelling the sweep between
    operations never leaves a session half updated.
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        interval_seconds: float = 10.0,
        grace_seconds: float | None = None,
        liveness: Callable[[int], bool] | None = None,
    ) -> None:
        self._store = store
        self._interval = interval_seconds
        self._grace_seconds = store.grace_seconds if grace_seconds is None else grace_seconds
        self._liveness = liveness or is_pid_alive
        self._task: asyncio.Task[None] | None = None
        self.sweeps = 0

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _probe(self, pids: list[int]) -> dict[int, bool]:
        return {pid: self._liveness(pid) for pid in pids}

    async def sweep_once(self) -> SweepReport:
        report = SweepReport()
        candidates = self._store.sweep_candidates()
        pids = sorted({c.pid for c in candidates if c.pid is not None})
        alive = await asyncio.to_thread(self._probe, pids) if pids else {}

        for candidate in candidates:
            if candidate.pid is None or candidate.phase is SessionPhase.ENDED:
                continue
            if alive.get(candidate.pid, True):
                continue
            if self._store.end_session(
                candidate.stable_id,
                expected_pid=candidate.pid,
                reason="process exited",
            ):
                report.ended.append(candidate.stable_id)

        remaining = self._store.sweep_candidates()
        # A live pid held by an open session belongs to that session, not to ended records on it.
        owned_pids = {c.pid for c in remaining if c.pid is not None and c.phase is not SessionPhase.ENDED}
        for candidate in remaining:
            if candidate.phase is not SessionPhase.ENDED:
                continue
            if (
                candidate.pid is not None
                and candidate.pid not in owned_pids
                and alive.get(candidate.pid, True)
            ):
                continue
            if self._store.remove_if_ended(candidate.stable_id, self._grace_seconds):
                report.removed.append(candidate.stable_id)

        self.sweeps += 1
        if report.ended or report.removed:
            logger.info(
                "Sweep pruned sessions",
                extra={"ended": len(report.ended), "removed": len(report.removed)},
            )
        return report

    async def run(self) -> None:
        """Sweep forever, once per interval, until cancelled."""

        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Session sweep failed")

    def start(self) -> asyncio.Task[None]:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="island-sweeper")
        return self._task

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


__all__ = ["PruningSweeper", "SweepReport"]
