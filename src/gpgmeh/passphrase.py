"""Passphrase requests from gpg and the providers that answer them.

gpg asks for secrets on its status channel in two shapes: a keyring
passphrase for a given secret (sub)key, or the passphrase of a symmetric
cipher.  Callers answer through a :class:`PassphraseProvider`.

A provider that returns ``None`` or an empty string has *not* supplied a
passphrase: both abort the session with ``NoPassphraseError``.  An empty
secret therefore cannot be sent to gpg.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


class RequestKind(enum.Enum):
    KEYRING = "keyring"
    SYMMETRIC = "symmetric"


@dataclass(frozen=True)
class PassphraseRequest:
    """One passphrase prompt parsed from the status channel."""

    kind: RequestKind
    key_id: str | None = None
    """Short (last 8 hex characters) sub-key id for keyring requests."""

    @classmethod
    def keyring(cls, sub_key_id: str) -> PassphraseRequest:
        return cls(kind=RequestKind.KEYRING, key_id=sub_key_id[-8:])

    @classmethod
    def symmetric(cls) -> PassphraseRequest:
        return cls(kind=RequestKind.SYMMETRIC)

    @property
    def is_symmetric(self) -> bool:
        return self.kind is RequestKind.SYMMETRIC

    def __str__(self) -> str:
        return "symmetric" if self.is_symmetric else f"keyring:{self.key_id}"


@runtime_checkable
class PassphraseProvider(Protocol):
    """Supplies secrets for passphrase requests; ``None`` means none available."""

    def provide(self, request: PassphraseRequest) -> str | None: ...


@dataclass(frozen=True)
class StaticPassphrase:
    """Answer every request with the same secret."""

    secret: str

    def provide(self, request: PassphraseRequest) -> str | None:
        return self.secret

    def __repr__(self) -> str:
        return "StaticPassphrase(secret=***)"


@dataclass(frozen=True)
class KeyedPassphrases:
    """Look secrets up by short key id, with a separate symmetric secret."""

    secrets: Mapping[str, str]
    symmetric: str | None = None

    def provide(self, request: PassphraseRequest) -> str | None:
        if request.is_symmetric:
            return self.symmetric
        key_id = (request.key_id or "").upper()
        for candidate, secret in self.secrets.items():
            if candidate.upper()[-8:] == key_id:
                return secret
        return None

    def __repr__(self) -> str:
        return f"KeyedPassphrases(keys={sorted(self.secrets)!r})"


@dataclass(frozen=True)
class CallbackPassphrase:
    """Adapt a plain function taking a :class:`PassphraseRequest`."""

    callback: Callable[[PassphraseRequest], str | None]

    def provide(self, request: PassphraseRequest) -> str | None:
        return self.callback(request)


PassphraseSource = PassphraseProvider | Callable[[PassphraseRequest], str | None] | str


def as_provider(source: PassphraseSource | None) -> PassphraseProvider | None:
    """Normalize a provider, a callable, or a literal secret into a provider."""
    if source is None:
        return None
    if isinstance(source, str):
        return StaticPassphrase(source)
    if isinstance(source, PassphraseProvider):
        return source
    if callable(source):
        return CallbackPassphrase(source)
    raise TypeError(f"Unsupported passphrase source: {type(source).__name__}")
