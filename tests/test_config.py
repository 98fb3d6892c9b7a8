from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from island_monitor.config import IslandSettings, get_settings


def test_defaults(monkeypatch) -> None:
    for name in (
        "ISLAND_SOCKET_PATH",
        "ISLAND_SWEEP_INTERVAL",
        "ISLAND_ENDED_GRACE",
        "ISLAND_READY_WINDOW",
        "ISLAND_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = IslandSettings()

    assert settings.socket_path == Path("/tmp/claude-island.sock")
    assert settings.sweep_interval_seconds == 10.0
    assert settings.ended_grace_seconds == 60.0
    assert settings.ready_window_seconds == 30.0
    assert settings.log_level == "INFO"


def test_environment_overrides(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("ISLAND_SOCKET_PATH", str(tmp_path / "island.sock"))
    monkeypatch.setenv("ISLAND_SWEEP_INTERVAL", "2.5")
    monkeypatch.setenv("ISLAND_ENDED_GRACE", "0")
    monkeypatch.setenv("ISLAND_LOG_LEVEL", " debug ")

    settings = IslandSettings()

    assert settings.socket_path == tmp_path / "island.sock"
    assert settings.sweep_interval_seconds == 2.5
    assert settings.ended_grace_seconds == 0
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("ISLAND_SWEEP_INTERVAL", "0"),
        ("ISLAND_READ_TIMEOUT", "-1"),
        ("ISLAND_ENDED_GRACE", "-5"),
        ("ISLAND_MAX_EVENT_BYTES", "10"),
        ("ISLAND_LOG_LEVEL", "LOUD"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        IslandSettings()


def test_get_settings_is_cached_and_expands_home(monkeypatch) -> None:
    monkeypatch.setenv("ISLAND_SOCKET_PATH", "~/island.sock")
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings is get_settings()
        assert settings.socket_path == Path("~/island.sock").expanduser()
    finally:
        get_settings.cache_clear()
