"""Absolute deadlines on the monotonic clock."""

from __future__ import annotations

import time
from dataclasses import dataclass

from gpgmeh.errors import GpgTimeoutError


@dataclass(frozen=True)
class Deadline:
    """A single instant after which a session must stop waiting."""

    at: float

    @classmethod
    def after(cls, seconds: float) -> Deadline:
        return cls(at=time.monotonic() + seconds)

    def remaining(self) -> float:
        """Seconds left before the deadline; negative once it has passed."""
        return self.at - time.monotonic()

    def expired(self) -> bool:
        return self.remaining() <= 0

    def check(self, what: str = "gpg") -> float:
        """Return remaining seconds, raising ``GpgTimeoutError`` if none are left."""
        remaining = self.remaining()
        if remaining <= 0:
            raise GpgTimeoutError(f"{what} did not finish before the deadline")
        return remaining
