"""Working-directory lookup from an agent transcript file."""

from __future__ import annotations

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

_TAIL_BYTES = 64 * 1024
_HEAD_LINES = 50


def _cwd_from_line(line: str) -> str | None:
    line = line.strip()
    if not line:
        return None
    try:
        record = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(record, dict):
        return None
    cwd = record.get("cwd")
    if isinstance(cwd, str) and cwd.strip():
        return cwd.strip()
    return None


def extract_cwd(transcript_path: str | Path) -> str | None:
    """Return the most recent ``cwd`` recorded in a JSONL transcript.

    Only the tail of the file is scanned first since transcripts grow without
    bound; the head is used as a fallback for short or unusual files.
    Unreadable files yield ``None``.
    """

    path = Path(transcript_path).expanduser()
    try:
        with path.open("rb") as handle:
            handle.seek(0, 2)
            size = handle.tell()
            handle.seek(max(0, size - _TAIL_BYTES))
            tail = handle.read().decode("utf-8", errors="replace")
            lines = tail.splitlines()
            if size > _TAIL_BYTES and lines:
                lines = lines[1:]
            for line in reversed(lines):
                cwd = _cwd_from_line(line)
                if cwd:
                    return cwd

            handle.seek(0)
            for _ in range(_HEAD_LINES):
                raw = handle.readline()
                if not raw:
                    break
                cwd = _cwd_from_line(raw.decode("utf-8", errors="replace"))
                if cwd:
                    return cwd
    except OSError as exc:
        logger.debug("Could not read transcript %s: %s", path, exc)
    return None


__all__ = ["extract_cwd"]
