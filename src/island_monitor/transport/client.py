"""Client side of the hook event transport, used by hook scripts."""

from __future__ import annotations

import json
import socket
from pathlib import Path
from typing import Any


def send_payload(socket_path: Path | str, payload: dict[str, Any] | bytes, *, timeout: float = 1.0) -> bool:
    """Deliver one event to the monitor; returns False if nobody is listening.

    Delivery is fire-and-forget: the listener never replies.
    """

    if isinstance(payload, bytes):
        data = payload if payload.endswith(b"\n") else payload + b"\n"
    else:
        data = json.dumps(payload).encode("utf-8") + b"\n"

    client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    client.settimeout(timeout)
    try:
        client.connect(str(socket_path))
        client.sendall(data)
        client.shutdown(socket.SHUT_WR)
    except OSError:
        return False
    finally:
        client.close()
    return True


def is_listening(socket_path: Path | str, *, timeout: float = 1.0) -> bool:
    client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    client.settimeout(timeout)
    try:
        client.connect(str(socket_path))
    except OSError:
        return False
    finally:
        client.close()
    return True


__all__ = ["is_listening", "send_payload"]
