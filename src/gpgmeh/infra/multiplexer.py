"""Deadline-bounded I/O multiplexing over a child's pipes.

The session registers the child's stdin (writer) and stdout, stderr and status
channel (readers) in an explicit fd → handler table.  ``Multiplexer.run``
blocks in ``selectors`` until something is ready or the deadline passes, then
dispatches each ready descriptor.  It returns once every registration has
been removed: readers at EOF, writers when their payload is fully written.

Reads never raise for "would block" or EOF; they return a :class:`ReadResult`.

Dependencies: deadline
Wired in: infra/session.py → GpgSession.run()
"""

from __future__ import annotations

import contextlib
import enum
import logging
import os
import selectors
from collections.abc import Callable
from dataclasses import dataclass

from gpgmeh.deadline import Deadline

_log = logging.getLogger(__name__)

READ_SIZE = 64 * 1024


class ReadStatus(enum.Enum):
    DATA = "data"
    WOULD_BLOCK = "would_block"
    EOF = "eof"


@dataclass(frozen=True)
class ReadResult:
    """Outcome of one non-blocking read."""

    status: ReadStatus
    data: bytes = b""


WOULD_BLOCK = ReadResult(ReadStatus.WOULD_BLOCK)
EOF = ReadResult(ReadStatus.EOF)


def read_chunk(fd: int, size: int = READ_SIZE) -> ReadResult:
    """Read up to *size* bytes from a non-blocking *fd*."""
    try:
        data = os.read(fd, size)
    except BlockingIOError:
        return WOULD_BLOCK
    if not data:
        return EOF
    return ReadResult(ReadStatus.DATA, data)


def close_fd(fd: int) -> None:
    """Close *fd*, ignoring descriptors that are already closed."""
    with contextlib.suppress(OSError):
        os.close(fd)


@dataclass
class _Reader:
    name: str
    on_data: Callable[[bytes], None]
    on_eof: Callable[[], None] | None = None


@dataclass
class _Writer:
    name: str
    payload: memoryview
    offset: int = 0

    @property
    def done(self) -> bool:
        return self.offset >= len(self.payload)


class Multiplexer:
    """Single-use event loop over a fixed set of pipe descriptors."""

    def __init__(self, *, debug: bool = False) -> None:
        self._selector = selectors.DefaultSelector()
        self._registrations: dict[int, _Reader | _Writer] = {}
        self._debug = debug
        self._closed = False

    @property
    def active(self) -> int:
        """Number of descriptors still registered."""
        return len(self._registrations)

    def add_reader(
        self,
        fd: int,
        on_data: Callable[[bytes], None],
        *,
        on_eof: Callable[[], None] | None = None,
        name: str = "",
    ) -> None:
        """Register *fd* for reading; *on_data* receives every chunk in order."""
        self._registrations[fd] = _Reader(name or f"fd{fd}", on_data, on_eof)
        os.set_blocking(fd, False)
        self._selector.register(fd, selectors.EVENT_READ)

    def add_writer(self, fd: int, payload: bytes, *, name: str = "") -> None:
        """Register *fd* for writing *payload*; it is closed once fully written."""
        writer = _Writer(name or f"fd{fd}", memoryview(payload))
        if writer.done:
            close_fd(fd)
            return
        self._registrations[fd] = writer
        os.set_blocking(fd, False)
        self._selector.register(fd, selectors.EVENT_WRITE)

    def run(self, deadline: Deadline) -> None:
        """Dispatch I/O until no registrations remain or *deadline* passes.

        Raises ``GpgTimeoutError`` when the deadline is reached first; any
        handler exception propagates.  Every descriptor still registered is
        closed on the way out.
        """
        try:
            while self._registrations:
                remaining = deadline.check("gpg I/O")
                ready = self._selector.select(remaining)
                if not ready and self._debug:
                    _log.debug("gpgmeh: select woke with nothing ready")
                for key, _events in ready:
                    if key.fd in self._registrations:
                        self._dispatch(key.fd)
        finally:
            self.close()

    def close(self) -> None:
        """Deregister and close every remaining descriptor."""
        for fd in list(self._registrations):
            self._remove(fd)
        if not self._closed:
            self._closed = True
            self._selector.close()

    def _dispatch(self, fd: int) -> None:
        registration = self._registrations[fd]
        if isinstance(registration, _Writer):
            self._write(fd, registration)
        else:
            self._read(fd, registration)

    def _read(self, fd: int, reader: _Reader) -> None:
        result = read_chunk(fd)
        if result.status is ReadStatus.WOULD_BLOCK:
            return
        if result.status is ReadStatus.EOF:
            if self._debug:
                _log.debug("gpgmeh: %s eof", reader.name)
            self._remove(fd)
            if reader.on_eof is not None:
                reader.on_eof()
            return
        if self._debug:
            _log.debug("gpgmeh: %s read %d bytes: %r", reader.name, len(result.data), result.data)
        reader.on_data(result.data)

    def _write(self, fd: int, writer: _Writer) -> None:
        try:
            written = os.write(fd, writer.payload[writer.offset : writer.offset + READ_SIZE])
        except BlockingIOError:
            return
        except BrokenPipeError:
            # The child stopped reading; its exit status tells the rest.
            _log.debug("gpgmeh: %s closed by child after %d bytes", writer.name, writer.offset)
            self._remove(fd)
            return
        writer.offset += written
        if self._debug:
            _log.debug("gpgmeh: %s wrote %d/%d bytes", writer.name, writer.offset, len(writer.payload))
        if writer.done:
            self._remove(fd)

    def _remove(self, fd: int) -> None:
        if self._registrations.pop(fd, None) is None:
            return
        with contextlib.suppress(KeyError, ValueError):
            self._selector.unregister(fd)
        close_fd(fd)
