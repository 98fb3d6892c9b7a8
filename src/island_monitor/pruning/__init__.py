"""Staleness pruning for the session store."""

from .liveness import is_pid_alive
from .sweeper import PruningSweeper, SweepReport

__all__ = ["PruningSweeper", "SweepReport", "is_pid_alive"]
