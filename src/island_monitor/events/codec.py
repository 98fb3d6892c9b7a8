"""Decoding of single transport messages into hook events."""

from __future__ import annotations

import json
from typing import Any

from pydantic import TypeAdapter, ValidationError

from .models import KIND_ALIASES, BaseHookEvent, EventKind, HookEvent


class EventDecodeError(ValueError):
    """Raised when a transport message cannot be turned into a hook event."""


_ADAPTER: TypeAdapter[HookEvent] = TypeAdapter(HookEvent)
_KNOWN_KINDS = {kind.value for kind in EventKind}


def normalize_kind(payload: dict[str, Any]) -> dict[str, Any]:
    """Return ``payload`` with legacy kind aliases mapped onto canonical kinds."""

    kind = payload.get("kind")
    if isinstance(kind, str) and kind in KIND_ALIASES:
        payload = {**payload, "kind": KIND_ALIASES[kind]}
    return payload


def decode_payload(payload: Any) -> BaseHookEvent:
    """Validate an already parsed JSON payload."""

    if not isinstance(payload, dict):
        raise EventDecodeError(f"Expected a JSON object, got {type(payload).__name__}")

    payload = normalize_kind(payload)
    kind = payload.get("kind")
    if kind not in _KNOWN_KINDS:
        raise EventDecodeError(f"Unknown event kind {kind!r}")

    try:
        return _ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise EventDecodeError(f"Invalid {kind} event: {exc}") from exc


def decode_event(data: bytes) -> BaseHookEvent:
    """Decode one UTF-8 JSON object, as written by a hook script, into an event."""

    try:
        text = data.decode("utf-8").strip()
    except UnicodeDecodeError as exc:
        raise EventDecodeError(f"Payload is not valid UTF-8: {exc}") from exc
    if not text:
        raise EventDecodeError("Empty payload")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise EventDecodeError(f"Malformed JSON payload: {exc}") from exc

    return decode_payload(payload)


def encode_event(event: BaseHookEvent) -> bytes:
    """Serialize an event into the newline-terminated wire form."""

    return event.model_dump_json(exclude_none=True).encode("utf-8") + b"\n"


__all__ = ["EventDecodeError", "decode_event", "decode_payload", "encode_event", "normalize_kind"]
