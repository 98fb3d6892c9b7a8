"""Local transport for hook events."""

from .client import is_listening, send_payload
from .listener import EventListener, ListenerError

__all__ = ["EventListener", "ListenerError", "is_listening", "send_payload"]
