"""High-level gpg operations: encrypt, decrypt, list keys, version.

Each call builds the operation's arguments and runs exactly one
:class:`~gpgmeh.infra.session.GpgSession`.  Nothing is retried; callers who
want retries wrap the whole call.

Example::

    ciphertext = encrypt(b"boom", ["7CAAAB91"], passphrase="test")
    plaintext = decrypt(
        ciphertext,
        passphrase=KeyedPassphrases({"7CAAAB91": "test"}),
        config=default_config().replace(homedir="/path/to/spiff"),
    )
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable

from gpgmeh.config import GpgConfig, default_config
from gpgmeh.infra.session import GpgSession
from gpgmeh.keys import Key, parse_keys
from gpgmeh.passphrase import PassphraseProvider, PassphraseSource, as_provider

_RECIPIENT_RE = re.compile(r"[A-Za-z0-9]+")


def _run(
    extra_args: list[str],
    *,
    config: GpgConfig | None,
    input_data: bytes | None = None,
    provider: PassphraseProvider | None = None,
    on_stdout: Callable[[bytes], None] | None = None,
) -> bytes:
    session = GpgSession(
        config if config is not None else default_config(),
        extra_args,
        input_data=input_data,
        provider=provider,
        on_stdout=on_stdout,
    )
    return session.run()


def _as_bytes(data: bytes | str) -> bytes:
    return data.encode("utf-8") if isinstance(data, str) else bytes(data)


def _recipient_list(recipients: str | Iterable[str]) -> list[str]:
    resolved = [recipients] if isinstance(recipients, str) else list(recipients)
    if not resolved:
        raise ValueError("recipient(s) required")
    if not all(_RECIPIENT_RE.fullmatch(key_id) for key_id in resolved):
        raise ValueError("recipient key ids must all be alphanumeric strings")
    return resolved


def encrypt(
    plaintext: bytes | str,
    recipients: str | Iterable[str],
    *,
    sign: bool = True,
    passphrase: PassphraseSource | None = None,
    config: GpgConfig | None = None,
    on_stdout: Callable[[bytes], None] | None = None,
) -> bytes:
    """Encrypt *plaintext* to the public keys of *recipients*.

    Signing (the default) needs *passphrase* to unlock the signing key; the
    provider receives a keyring request with the 8-character short key id.
    """
    provider = as_provider(passphrase)
    if sign and provider is None:
        raise ValueError("passphrase provider required to sign")
    extra_args = ["--encrypt"]
    for recipient in _recipient_list(recipients):
        extra_args.extend(["--recipient", recipient])
    if sign:
        extra_args.append("--sign")
    return _run(
        extra_args,
        config=config,
        input_data=_as_bytes(plaintext),
        provider=provider,
        on_stdout=on_stdout,
    )


def decrypt(
    ciphertext: bytes | str,
    *,
    passphrase: PassphraseSource,
    config: GpgConfig | None = None,
    on_stdout: Callable[[bytes], None] | None = None,
) -> bytes:
    """Decrypt a public-key or symmetric message."""
    provider = as_provider(passphrase)
    if provider is None:
        raise ValueError("passphrase provider required")
    return _run(
        ["--decrypt"],
        config=config,
        input_data=_as_bytes(ciphertext),
        provider=provider,
        on_stdout=on_stdout,
    )


def encrypt_symmetric(
    plaintext: bytes | str,
    *,
    passphrase: PassphraseSource,
    sign: bool = True,
    config: GpgConfig | None = None,
    on_stdout: Callable[[bytes], None] | None = None,
) -> bytes:
    """Encrypt *plaintext* with a symmetric passphrase.

    The provider is asked for the symmetric secret and, when signing, for the
    signing key's keyring passphrase as well.
    """
    provider = as_provider(passphrase)
    if provider is None:
        raise ValueError("passphrase provider required")
    extra_args = ["--symmetric"]
    if sign:
        extra_args.append("--sign")
    return _run(
        extra_args,
        config=config,
        input_data=_as_bytes(plaintext),
        provider=provider,
        on_stdout=on_stdout,
    )


def public_keys(config: GpgConfig | None = None) -> list[Key]:
    return parse_keys(_run(["--with-colons", "--list-public-keys"], config=config))


def secret_keys(config: GpgConfig | None = None) -> list[Key]:
    return parse_keys(_run(["--with-colons", "--list-secret-keys"], config=config))


def version(config: GpgConfig | None = None) -> str:
    """Return gpg's ``--version`` banner."""
    return _run(["--version"], config=config).decode("utf-8", errors="replace")
