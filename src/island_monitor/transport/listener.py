"""Unix domain socket listener for hook events."""

from __future__ import annotations

import asyncio
import logging
import stat
from pathlib import Path

from ..events.codec import EventDecodeError, decode_event
from ..events.models import BaseHookEvent
from ..events.transcript import extract_cwd
from ..storage.store import SessionStore

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class ListenerError(RuntimeError):
    """Raised when the listener cannot take ownership of its socket."""


class EventListener:
    """Accept one JSON event per connection and hand it to the store.

    Hook scripts connect, write a single JSON object (terminated by a newline
    or by closing their end) and disconnect. Nothing is written back. A bad
    message only affects its own connection.
    """

    def __init__(
        self,
        store: SessionStore,
        socket_path: Path,
        *,
        read_timeout: float = 5.0,
        max_event_bytes: int = 1024 * 1024,
        enrich_cwd: bool = True,
    ) -> None:
        self._store = store
        self._socket_path = Path(socket_path)
        self._read_timeout = read_timeout
        self._max_event_bytes = max_event_bytes
        self._enrich_cwd = enrich_cwd
        self._server: asyncio.AbstractServer | None = None
        self.accepted = 0
        self.dropped = 0

    @property
    def socket_path(self) -> Path:
        return self._socket_path

    @property
    def serving(self) -> bool:
        return self._server is not None and self._server.is_serving()

    async def _is_socket_live(self) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_unix_connection(str(self._socket_path)), timeout=1.0
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def start(self) -> None:
        """Bind the socket, replacing a stale socket file left by a dead process."""

        if self._server is not None:
            return

        self._socket_path.parent.mkdir(parents=True, exist_ok=True)
        if self._socket_path.exists():
            if not stat.S_ISSOCK(self._socket_path.stat().st_mode):
                raise ListenerError(f"{self._socket_path} exists and is not a socket")
            if await self._is_socket_live():
                raise ListenerError(f"Another monitor is already listening on {self._socket_path}")
            self._socket_path.unlink(missing_ok=True)

        try:
            self._server = await asyncio.start_unix_server(
                self._handle_connection, path=str(self._socket_path)
            )
        except OSError as exc:
            raise ListenerError(f"Could not bind {self._socket_path}: {exc}") from exc
        self._socket_path.chmod(0o600)
        logger.info("Listening for hook events", extra={"socket_path": str(self._socket_path)})

    async def stop(self) -> None:
        server, self._server = self._server, None
        if server is None:
            return
        server.close()
        await server.wait_closed()
        self._socket_path.unlink(missing_ok=True)
        logger.info(
            "Stopped listening for hook events",
            extra={"accepted": self.accepted, "dropped": self.dropped},
        )

    async def _read_message(self, reader: asyncio.StreamReader) -> bytes:
        buffer = bytearray()
        while True:
            chunk = await asyncio.wait_for(reader.read(_CHUNK_SIZE), timeout=self._read_timeout)
            if not chunk:
                break
            newline = chunk.find(b"\n")
            if newline >= 0:
                buffer.extend(chunk[:newline])
                break
            buffer.extend(chunk)
            if len(buffer) > self._max_event_bytes:
                raise EventDecodeError(f"Event exceeds {self._max_event_bytes} bytes")
        if len(buffer) > self._max_event_bytes:
            raise EventDecodeError(f"Event exceeds {self._max_event_bytes} bytes")
        return bytes(buffer)

    async def _enrich(self, event: BaseHookEvent) -> BaseHookEvent:
        if not self._enrich_cwd or event.cwd or not event.transcript_path:
            return event
        cwd = await asyncio.to_thread(extract_cwd, event.transcript_path)
        if cwd:
            return event.model_copy(update={"cwd": cwd})
        return event

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            data = await self._read_message(reader)
            if not data.strip():
                logger.debug("Connection closed without an event")
                return
            event = await self._enrich(decode_event(data))
            self._store.apply_event(event)
            self.accepted += 1
        except EventDecodeError as exc:
            self.dropped += 1
            logger.warning("Dropped malformed hook event: %s", exc)
        except asyncio.TimeoutError:
            self.dropped += 1
            logger.warning("Dropped hook event: client sent no complete message in time")
        except ConnectionError as exc:
            self.dropped += 1
            logger.debug("Hook connection lost before an event was read: %s", exc)
        except Exception:
            self.dropped += 1
            logger.exception("Failed to apply hook event")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass


__all__ = ["EventListener", "ListenerError"]
