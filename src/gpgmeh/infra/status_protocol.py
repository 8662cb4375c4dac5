"""gpg ``--status-fd`` parser that answers passphrase prompts on ``--command-fd``.

Status output arrives in arbitrary chunks.  Complete lines are handled in
order; the bytes after the last newline wait for the next chunk.  A prompt is
answered (provider call plus write to the command channel) before the next
line is looked at, so requests are never pipelined.
"""

from __future__ import annotations

import enum
import logging
import os
import re

from gpgmeh.errors import NoPassphraseError
from gpgmeh.infra.multiplexer import close_fd
from gpgmeh.passphrase import PassphraseProvider, PassphraseRequest

_log = logging.getLogger(__name__)

_NEED_PASSPHRASE = re.compile(rb"NEED_PASSPHRASE (?P<sub_key_id>\S+) (?P<key_id>\S+)")
_NEED_PASSPHRASE_SYM = re.compile(rb"NEED_PASSPHRASE_SYM")


class ProtocolState(enum.Enum):
    AWAITING_LINE = "awaiting_line"
    AWAITING_CALLBACK = "awaiting_callback"
    SENT = "sent"
    DONE = "done"
    FAILED = "failed"


def parse_request(line: bytes) -> PassphraseRequest | None:
    """Return the passphrase request carried by one status *line*, if any."""
    match = _NEED_PASSPHRASE.search(line)
    if match is not None:
        return PassphraseRequest.keyring(match.group("sub_key_id").decode("ascii", "replace"))
    if _NEED_PASSPHRASE_SYM.search(line) is not None:
        return PassphraseRequest.symmetric()
    return None


class StatusProtocol:
    """Feeds status-channel chunks and writes secrets to the command channel."""

    def __init__(self, provider: PassphraseProvider, command_fd: int, *, debug: bool = False) -> None:
        self._provider = provider
        self._command_fd: int | None = command_fd
        self._buffer = b""
        self._debug = debug
        self.state = ProtocolState.AWAITING_LINE
        self.requests_answered = 0

    def feed(self, chunk: bytes) -> None:
        """Consume one status chunk, answering every complete prompt line."""
        self._buffer += chunk
        last = self._buffer.rfind(b"\n")
        if last < 0:
            return
        complete, self._buffer = self._buffer[: last + 1], self._buffer[last + 1 :]
        for line in complete.splitlines():
            self._handle_line(line)

    def finish(self) -> None:
        """Status channel reached EOF: release the command channel."""
        if self.state is not ProtocolState.FAILED:
            self.state = ProtocolState.DONE
        self.close()

    def close(self) -> None:
        if self._command_fd is not None:
            close_fd(self._command_fd)
            self._command_fd = None

    def _handle_line(self, line: bytes) -> None:
        if self._debug:
            _log.debug("gpgmeh: status line %r", line)
        request = parse_request(line)
        if request is None:
            return
        self.state = ProtocolState.AWAITING_CALLBACK
        secret = self._provider.provide(request)
        if not secret:
            self.state = ProtocolState.FAILED
            kind = "symmetric" if request.is_symmetric else "secret keyring"
            raise NoPassphraseError(f"{kind} passphrase required from provider ({request})")
        self._send(secret)
        self.requests_answered += 1
        self.state = ProtocolState.SENT
        if self._debug:
            _log.debug("gpgmeh: answered passphrase request %s", request)
        self.state = ProtocolState.AWAITING_LINE

    def _send(self, secret: str) -> None:
        if self._command_fd is None:
            self.state = ProtocolState.FAILED
            raise OSError("command channel already closed")
        view = memoryview(f"{secret}\n".encode())
        while view:
            written = os.write(self._command_fd, view)
            view = view[written:]
