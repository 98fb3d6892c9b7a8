"""Process liveness checks."""

from __future__ import annotations

import logging

import psutil

logger = logging.getLogger(__name__)


def is_pid_alive(pid: int) -> bool:
    """Return whether ``pid`` belongs to a running process.

    Exited and zombie processes count as dead. When the answer cannot be
    determined (permissions, platform errors) the process is reported alive,
    so live session state is never discarded on a failed probe.
    """

    try:
        process = psutil.Process(pid)
        return process.status() != psutil.STATUS_ZOMBIE
    except psutil.NoSuchProcess:
        return False
    except psutil.AccessDenied:
        return True
    except psutil.Error as exc:
        logger.debug("Liveness probe for pid %s failed: %s", pid, exc)
        return True
    except (OSError, ValueError) as exc:
        logger.debug("Liveness probe for pid %s failed: %s", pid, exc)
        return True


__all__ = ["is_pid_alive"]
