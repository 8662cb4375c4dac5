"""Exception types raised by gpgmeh."""

from __future__ import annotations


class GpgError(Exception):
    """Base exception for gpgmeh.

    Raised directly when gpg exits with a non-zero status or cannot be
    started at all.
    """

    def __init__(self, message: str, *, returncode: int | None = None, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class GpgTimeoutError(GpgError, TimeoutError):
    """Raised when a session deadline passes before gpg finishes."""


class NoPassphraseError(GpgError):
    """Raised when the passphrase provider returns no usable secret."""


class ParseError(GpgError):
    """Raised when a keyring listing record cannot be parsed."""


class ConfigurationError(GpgError, ValueError):
    """Raised when gpgmeh configuration values are invalid."""
