"""Service bootstrap for Island Monitor."""

import asyncio
import logging
import signal
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from . import __version__
from .config import IslandSettings, get_settings
from .pruning import PruningSweeper
from .storage import SessionStore
from .transport import EventListener, ListenerError
from .views import (
    has_pending_permission,
    has_recent_ready,
    is_any_processing,
    sort_for_display,
    status_line,
    summary_text,
)


def configure_logging(level: str) -> None:
    """Configure root logging for the monitor."""

    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


class IslandMonitor:
    """The aggregation process: one store, its listener and its sweeper."""

    def __init__(
        self,
        settings: IslandSettings,
        *,
        store: SessionStore,
        listener: EventListener,
        sweeper: PruningSweeper,
    ) -> None:
        self.settings = settings
        self.store = store
        self.listener = listener
        self.sweeper = sweeper
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        await self.listener.start()
        self.sweeper.start()

    async def stop(self) -> None:
        await self.sweeper.stop()
        await self.listener.stop()
        self._stopped.set()

    def request_stop(self) -> None:
        self._stopped.set()

    async def serve(self) -> None:
        """Run until ``request_stop`` is called, then shut down cleanly."""

        await self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.stop()

    def status(self) -> dict[str, Any]:
        """Summarize runtime state as a JSON-serializable mapping."""

        sessions = self.store.snapshot()
        now = self.store.now()
        phase_counts: dict[str, int] = {}
        for session in sessions:
            phase_counts[session.phase.value] = phase_counts.get(session.phase.value, 0) + 1

        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "server_version": __version__,
            "log_level": self.settings.log_level,
            "socket_path": str(self.settings.socket_path),
            "revision": self.store.revision,
            "listener": {
                "serving": self.listener.serving,
                "accepted": self.listener.accepted,
                "dropped": self.listener.dropped,
            },
            "sweeper": {
                "running": self.sweeper.running,
                "interval_seconds": self.sweeper.interval_seconds,
                "sweeps": self.sweeper.sweeps,
            },
            "sessions": {
                "count": len(sessions),
                "phase_counts": phase_counts,
                "summary": summary_text(sessions),
                "status_line": status_line(sort_for_display(sessions)),
                "any_processing": is_any_processing(sessions),
                "pending_permission": has_pending_permission(sessions),
                "recent_ready": has_recent_ready(
                    sessions, now, self.settings.ready_window_seconds
                ),
                "items": [
                    {
                        "stable_id": session.stable_id,
                        "session_id": session.raw_session_id,
                        "pid": session.pid,
                        "project": session.best_project_name,
                        "phase": session.phase.value,
                        "last_tool": session.last_tool_name,
                        "tools_in_flight": len(session.tool_tracker),
                        "subagent_depth": session.subagent_state.depth,
                        "last_seen_at": session.last_seen_at.isoformat(),
                    }
                    for session in sort_for_display(sessions)
                ],
            },
        }


def create_monitor(
    settings: Optional[IslandSettings] = None,
    *,
    store: SessionStore | None = None,
    liveness: Callable[[int], bool] | None = None,
) -> IslandMonitor:
    """Wire the store, listener and sweeper from settings."""

    settings = settings or get_settings()
    store = store or SessionStore(grace_seconds=settings.ended_grace_seconds)
    listener = EventListener(
        store,
        settings.socket_path,
        read_timeout=settings.read_timeout_seconds,
        max_event_bytes=settings.max_event_bytes,
    )
    sweeper = PruningSweeper(
        store,
        interval_seconds=settings.sweep_interval_seconds,
        grace_seconds=settings.ended_grace_seconds,
        liveness=liveness,
    )
    return IslandMonitor(settings, store=store, listener=listener, sweeper=sweeper)


async def _serve(monitor: IslandMonitor) -> None:
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, monitor.request_stop)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - platform specific
            pass
    await monitor.serve()


def main() -> None:
    """Entry point for running the monitor via CLI."""

    settings = get_settings()
    configure_logging(settings.log_level)

    monitor = create_monitor(settings)
    logger = logging.getLogger(__name__)
    logger.info(
        "Launching Island Monitor",
        extra={
            "version": __version__,
            "log_level": settings.log_level,
            "socket_path": str(settings.socket_path),
            "sweep_interval": settings.sweep_interval_seconds,
            "ended_grace": settings.ended_grace_seconds,
        },
    )
    try:
        asyncio.run(_serve(monitor))
    except ListenerError as exc:
        logger.error("Cannot start monitor: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
