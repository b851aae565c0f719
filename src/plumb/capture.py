"""Bounded, append-only byte capture with concurrent re-readable cursors.

A :class:`CaptureBuffer` is filled by exactly one background thread reading
from a byte source, and can be read from offset 0 by any number of
independent :class:`CaptureReader` cursors at the same time.  Committed bytes
are never rewritten, so every reader always observes a prefix of the final
content.
"""

import bisect
import io
import logging
import threading
from enum import Enum
from typing import BinaryIO, Callable

from plumb.config import DEFAULT_BUFFER_SIZE
from plumb.exceptions import CaptureError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class CaptureStatus(str, Enum):
    """Lifecycle state of a capture buffer."""

    CAPTURING = "capturing"
    PAUSED = "paused"
    COMPLETE = "complete"


class CaptureBuffer:
    """Fixed-capacity byte store fed by a single capture loop.

    Only ``_n`` and ``_status`` are shared mutable state; both are guarded by
    ``_cond``.  Committed bytes live in an append-only list of immutable
    chunks, so readers copy them after releasing the lock.
    """

    def __init__(self, capacity: int = DEFAULT_BUFFER_SIZE) -> None:
        if capacity <= 0:
            raise CaptureError(f"Capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._chunks: list[bytes] = []
        self._offsets: list[int] = []
        self._cond = threading.Condition()
        self._status = CaptureStatus.CAPTURING
        self._n = 0
        self._newlines = 0
        self._thread: threading.Thread | None = None

    @property
    def capacity(self) -> int:
        """Maximum number of bytes this buffer will ever hold."""
        return self._capacity

    @property
    def size(self) -> int:
        """Number of bytes committed so far."""
        with self._cond:
            return self._n

    @property
    def status(self) -> CaptureStatus:
        with self._cond:
            return self._status

    @property
    def full(self) -> bool:
        """Whether capture stopped because the capacity was reached."""
        with self._cond:
            return self._n >= self._capacity

    def line_count(self) -> int:
        """Number of newline-delimited lines committed so far."""
        with self._cond:
            return self._newlines + 1

    def status_glyph(self) -> str:
        """One-character status: ``~`` reading, ``#`` paused, ``+`` full, blank when done."""
        with self._cond:
            if self._status is CaptureStatus.PAUSED:
                return "#"
            if self._n >= self._capacity:
                return "+"
            if self._status is CaptureStatus.COMPLETE:
                return " "
            return "~"

    def start_capturing(self, source: BinaryIO, on_data: Callable[[], None]) -> "CaptureBuffer":
        """Bind the buffer to ``source`` and start the background read loop.

        ``on_data`` is called after every successful read.  It may be called
        at a high rate from the capture thread, so the receiver must coalesce.
        """
        with self._cond:
            if self._thread is not None:
                raise CaptureError("Capture buffer is already bound to a source")
            self._thread = threading.Thread(
                target=self._capture,
                args=(source, on_data),
                name="plumb-capture",
                daemon=True,
            )
        self._thread.start()
        return self

    def _wait_while_paused(self) -> None:
        with self._cond:
            while self._status is CaptureStatus.PAUSED:
                self._cond.wait()

    def _capture(self, source: BinaryIO, on_data: Callable[[], None]) -> None:
        """Read ``source`` into the buffer until EOF, error or capacity."""
        try:
            while True:
                self._wait_while_paused()
                with self._cond:
                    free = self._capacity - self._n
                error = None
                try:
                    chunk = source.read1(min(CHUNK_SIZE, free))
                except (OSError, ValueError) as e:
                    error = e
                    chunk = b""

                done = self._commit(chunk, eof=not chunk, error=error)
                if chunk or error is not None:
                    on_data()
                if done:
                    return
        finally:
            source.close()

    def _commit(self, chunk: bytes, eof: bool, error: Exception | None = None) -> bool:
        """Append ``chunk`` and update status; return True when capture is over."""
        with self._cond:
            # Pausing mid-read keeps the chunk; it is committed after resume.
            while self._status is CaptureStatus.PAUSED:
                self._cond.wait()
            if error is not None:
                message = f"\nplumb: read error: {error}\n".encode()
                chunk = message[: self._capacity - self._n]
                logger.warning("capture read error after %d bytes: %s", self._n, error)
            if chunk:
                self._offsets.append(self._n)
                self._chunks.append(bytes(chunk))
            self._n += len(chunk)
            self._newlines += chunk.count(b"\n")
            if eof or self._n >= self._capacity:
                if self._n >= self._capacity and not eof:
                    logger.debug("capture truncated at capacity %d", self._capacity)
                else:
                    logger.debug("capture EOF after %d bytes", self._n)
                self._status = CaptureStatus.COMPLETE
            self._cond.notify_all()
            return self._status is CaptureStatus.COMPLETE

    def pause(self, pause: bool) -> None:
        """Pause or resume capturing.

        Pausing wakes all blocked readers, which then report end-of-stream.
        Resuming wakes the capture loop so it continues reading the source.
        Committed bytes are never discarded.
        """
        with self._cond:
            if pause and self._status is CaptureStatus.CAPTURING:
                self._status = CaptureStatus.PAUSED
                self._cond.notify_all()
            elif not pause and self._status is CaptureStatus.PAUSED:
                self._status = CaptureStatus.CAPTURING
                self._cond.notify_all()

    def new_reader(self, blocking: bool = False) -> "CaptureReader":
        """Return a new sequential cursor starting at offset 0."""
        return CaptureReader(self, blocking)

    def snapshot(self) -> bytes:
        """Return a copy of every byte committed so far."""
        return self.new_reader(blocking=False).read()

    def wait_complete(self, timeout: float | None = None) -> bool:
        """Block until the buffer is complete; return False on timeout."""
        with self._cond:
            return self._cond.wait_for(
                lambda: self._status is CaptureStatus.COMPLETE, timeout=timeout
            )

    def _read_from(self, pos: int, size: int, blocking: bool, reader: "CaptureReader") -> bytes:
        """Copy up to ``size`` committed bytes starting at ``pos``."""
        with self._cond:
            end = self._n
            while (
                blocking
                and end == pos
                and not reader.closed
                and self._status is CaptureStatus.CAPTURING
                and end < self._capacity
            ):
                self._cond.wait()
                end = self._n
        if size >= 0:
            end = min(end, pos + size)
        return self._copy(pos, end)

    def _copy(self, pos: int, end: int) -> bytes:
        """Join committed bytes ``[pos, end)``; called without holding the lock."""
        if pos >= end:
            return b""
        i = bisect.bisect_right(self._offsets, pos) - 1
        parts = []
        while pos < end:
            start = self._offsets[i]
            chunk = self._chunks[i]
            part = chunk[pos - start : end - start]
            parts.append(part)
            pos += len(part)
            i += 1
        return parts[0] if len(parts) == 1 else b"".join(parts)

    def _wake_readers(self) -> None:
        with self._cond:
            self._cond.notify_all()


class CaptureReader(io.RawIOBase):
    """Independent read cursor over a :class:`CaptureBuffer`.

    A snapshot reader (``blocking=False``) returns the bytes committed so far
    and then reports end-of-stream.  A blocking reader waits for more bytes
    until the buffer completes or is paused, or the reader is closed.
    """

    def __init__(self, buffer: CaptureBuffer, blocking: bool) -> None:
        super().__init__()
        self._buffer = buffer
        self._blocking = blocking
        self._pos = 0

    @property
    def blocking(self) -> bool:
        return self._blocking

    def readable(self) -> bool:
        return True

    @property
    def position(self) -> int:
        """Offset of the next byte this cursor will return."""
        return self._pos

    def _next_chunk(self, size: int) -> bytes:
        if self.closed:
            return b""
        chunk = self._buffer._read_from(self._pos, size, self._blocking, self)
        self._pos += len(chunk)
        if not chunk and self._blocking:
            logger.debug("blocking reader emitting EOF at offset %d", self._pos)
        return chunk

    def readinto(self, b: bytearray | memoryview) -> int:
        view = memoryview(b).cast("B")
        chunk = self._next_chunk(len(view))
        view[: len(chunk)] = chunk
        return len(chunk)

    def readall(self) -> bytes:
        chunks = []
        while True:
            chunk = self._next_chunk(-1)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def close(self) -> None:
        """Close the cursor, waking it if it is blocked waiting for data."""
        if self.closed:
            return
        super().close()
        self._buffer._wake_readers()
