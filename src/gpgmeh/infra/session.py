"""One gpg child process, from spawn to reap.

``GpgSession`` creates every pipe itself, spawns gpg, drives the
:class:`Multiplexer` under a single deadline, waits for exit and returns
stdout.  Every failure path interrupts the child (escalating to SIGKILL after
a short grace period), reaps it and closes every descriptor before the error
reaches the caller.

Descriptors have exactly one owner at a time: the session until they are
handed to the multiplexer or the status protocol, which then close them.

Dependencies: config, deadline, errors, infra/multiplexer, infra/status_protocol
Wired in: operations.py → _run()
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess  # nosec B404 — running gpg is this module's purpose
from collections.abc import Callable

from gpgmeh.config import GpgConfig
from gpgmeh.deadline import Deadline
from gpgmeh.errors import GpgError, GpgTimeoutError
from gpgmeh.infra.multiplexer import Multiplexer, close_fd
from gpgmeh.infra.status_protocol import StatusProtocol
from gpgmeh.passphrase import PassphraseProvider

_log = logging.getLogger(__name__)

_TERMINATE_GRACE_SECONDS = 1.0
_MAX_STDERR_IN_MESSAGE = 2000


class GpgSession:
    """A single-shot gpg invocation.

    ``run()`` may be called exactly once; construct a new session per call.
    """

    def __init__(
        self,
        config: GpgConfig,
        extra_args: list[str],
        *,
        input_data: bytes | None = None,
        provider: PassphraseProvider | None = None,
        on_stdout: Callable[[bytes], None] | None = None,
    ) -> None:
        self.config = config
        self.extra_args = list(extra_args)
        self.input_data = input_data
        self.provider = provider
        self.on_stdout = on_stdout
        self.deadline: Deadline | None = None
        self.process: subprocess.Popen[bytes] | None = None
        self.returncode: int | None = None
        self._stdout: list[bytes] = []
        self._stderr: list[bytes] = []
        self._owned: set[int] = set()
        self._parent_ends: dict[str, int] = {}
        self._started = False

    @property
    def stderr(self) -> str:
        return b"".join(self._stderr).decode("utf-8", errors="replace")

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    def run(self) -> bytes:
        """Run gpg to completion and return everything it wrote to stdout."""
        if self._started:
            raise GpgError("GpgSession objects are single-use")
        self._started = True
        self.deadline = Deadline.after(self.config.timeout)
        try:
            self._spawn()
            self._communicate()
            return self._finish()
        except BaseException as exc:
            _log.error("gpgmeh: gpg session failed: %r", exc, exc_info=self.config.debug)
            self._terminate()
            # KeyboardInterrupt and SystemExit reach the caller unwrapped.
            if isinstance(exc, GpgError) or not isinstance(exc, Exception):
                raise
            raise GpgError(f"gpg session failed: {exc}") from exc
        finally:
            self._close_owned()

    def _spawn(self) -> None:
        child_ends: list[int] = []
        stdin: int = subprocess.DEVNULL
        if self.input_data is not None:
            stdin, self._parent_ends["stdin"] = self._pipe()
            child_ends.append(stdin)
        self._parent_ends["stdout"], stdout = self._pipe()
        self._parent_ends["stderr"], stderr = self._pipe()
        child_ends.extend((stdout, stderr))

        extra_args = list(self.extra_args)
        pass_fds: tuple[int, ...] = ()
        if self.provider is not None:
            self._parent_ends["status"], status_w = self._pipe()
            command_r, self._parent_ends["command"] = self._pipe()
            pass_fds = (status_w, command_r)
            child_ends.extend(pass_fds)
            extra_args.extend(["--status-fd", str(status_w), "--command-fd", str(command_r)])

        argv = self.config.command_line(extra_args)
        if self.config.debug:
            _log.debug("gpgmeh: spawning %s", argv)
        try:
            self.process = subprocess.Popen(  # nosec B603 — argv list, shell=False
                argv,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
                pass_fds=pass_fds,
                close_fds=True,
            )
        except OSError as exc:
            raise GpgError(f"could not start {self.config.cmd!r}: {exc}") from exc
        finally:
            # The child holds its own copies now.
            for fd in child_ends:
                self._close(fd)

    def _communicate(self) -> None:
        assert self.deadline is not None
        mux = Multiplexer(debug=self.config.debug)
        protocol: StatusProtocol | None = None
        try:
            if "stdin" in self._parent_ends:
                mux.add_writer(self._take("stdin"), self.input_data or b"", name="stdin")
            mux.add_reader(self._take("stdout"), self._collect_stdout, name="stdout")
            mux.add_reader(self._take("stderr"), self._stderr.append, name="stderr")
            if self.provider is not None:
                protocol = StatusProtocol(
                    self.provider, self._take("command"), debug=self.config.debug
                )
                mux.add_reader(
                    self._take("status"), protocol.feed, on_eof=protocol.finish, name="status"
                )
            mux.run(self.deadline)
        finally:
            mux.close()
            if protocol is not None:
                protocol.close()

        if self._stderr:
            _log.warning("gpgmeh: gpg stderr=%r", self.stderr)

    def _finish(self) -> bytes:
        process = self.process
        assert process is not None and self.deadline is not None
        try:
            self.returncode = process.wait(timeout=self.deadline.check("gpg exit"))
        except subprocess.TimeoutExpired as exc:
            raise GpgTimeoutError("gpg did not exit before the deadline") from exc
        if self.returncode != 0:
            raise GpgError(
                f"gpg non-zero exit status={self.returncode}: "
                f"{self.stderr.strip()[:_MAX_STDERR_IN_MESSAGE]}",
                returncode=self.returncode,
                stderr=self.stderr,
            )
        return b"".join(self._stdout)

    def _collect_stdout(self, chunk: bytes) -> None:
        self._stdout.append(chunk)
        if self.on_stdout is not None:
            self.on_stdout(chunk)

    def _terminate(self) -> None:
        """Interrupt the child if it is still running, then reap it."""
        process = self.process
        if process is None or process.poll() is not None:
            return
        try:
            process.send_signal(signal.SIGINT)
        except ProcessLookupError:
            pass
        try:
            process.wait(timeout=_TERMINATE_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            _log.warning("gpgmeh: gpg pid=%d ignored SIGINT, killing", process.pid)
            process.kill()
            process.wait()

    def _pipe(self) -> tuple[int, int]:
        read_fd, write_fd = os.pipe()
        self._owned.update((read_fd, write_fd))
        return read_fd, write_fd

    def _take(self, name: str) -> int:
        """Hand the parent end *name* over to a new owner."""
        fd = self._parent_ends.pop(name)
        self._owned.discard(fd)
        return fd

    def _close(self, fd: int) -> None:
        if fd in self._owned:
            self._owned.discard(fd)
            close_fd(fd)

    def _close_owned(self) -> None:
        for fd in list(self._owned):
            self._close(fd)
        self._parent_ends.clear()
