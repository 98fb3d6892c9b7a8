from __future__ import annotations

import asyncio
import json
import shutil
import tempfile
from pathlib import Path

import pytest

from island_monitor import __version__
from island_monitor.config import IslandSettings
from island_monitor.server import create_monitor
from island_monitor.transport import send_payload


@pytest.fixture
def settings(monkeypatch):
    directory = Path(tempfile.mkdtemp(prefix="isl-", dir="/tmp"))
    monkeypatch.setenv("ISLAND_SOCKET_PATH", str(directory / "monitor.sock"))
    monkeypatch.setenv("ISLAND_SWEEP_INTERVAL", "0.05")
    yield IslandSettings()
    shutil.rmtree(directory, ignore_errors=True)


def test_status_of_idle_monitor(settings: IslandSettings) -> None:
    monitor = create_monitor(settings, liveness=lambda pid: True)

    status = monitor.status()

    assert status["server_version"] == __version__
    assert status["socket_path"] == str(settings.socket_path)
    assert status["listener"]["serving"] is False
    assert status["sweeper"]["running"] is False
    assert status["sessions"]["count"] == 0
    assert status["sessions"]["summary"] == "0 sessions"
    assert status["sessions"]["status_line"] is None
    json.dumps(status)


def test_serve_ingests_events_and_prunes_dead_processes(settings: IslandSettings) -> None:
    dead: set[int] = set()
    monitor = create_monitor(settings, liveness=lambda pid: pid not in dead)

    async def scenario() -> dict:
        serve = asyncio.create_task(monitor.serve())
        for _ in range(100):
            if monitor.listener.serving:
                break
            await asyncio.sleep(0.01)

        for payload in (
            {"kind": "SessionStart", "session_id": "s1", "pid": 9001, "cwd": "/work/alpha"},
            {"kind": "ToolStart", "session_id": "s1", "tool_use_id": "t1", "tool_name": "Bash",
             "tool_input": {"command": "make"}, "needs_approval": True},
        ):
            assert await asyncio.to_thread(send_payload, settings.socket_path, payload)
        for _ in range(100):
            if monitor.listener.accepted == 2:
                break
            await asyncio.sleep(0.01)

        status = monitor.status()

        dead.add(9001)
        for _ in range(100):
            if monitor.sweeper.sweeps >= 1 and monitor.store.snapshot()[0].is_ended:
                break
            await asyncio.sleep(0.02)

        monitor.request_stop()
        await serve
        return status

    status = asyncio.run(scenario())

    assert status["listener"]["serving"] is True
    assert status["sweeper"]["running"] is True
    assert status["sessions"]["pending_permission"] is True
    assert status["sessions"]["summary"] == "1 pending"
    assert status["sessions"]["status_line"] == "Bash make"
    (item,) = status["sessions"]["items"]
    assert item["project"] == "alpha"
    assert item["phase"] == "waitingForApproval"

    (session,) = monitor.store.snapshot()
    assert session.is_ended
    assert not monitor.listener.serving
    assert not monitor.sweeper.running
    assert not settings.socket_path.exists()
