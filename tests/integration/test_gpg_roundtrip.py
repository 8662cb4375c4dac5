"""Round trips against the real gpg binary.

Skipped unless ``GPGMEH_INTEGRATION=1`` and ``gpg`` is on PATH.  Every test
uses a fresh, empty keyring in a temporary home directory.
"""

from __future__ import annotations

import os
import shutil
from pathlib import Path

import pytest

from gpgmeh.config import GpgConfig
from gpgmeh.errors import NoPassphraseError
from gpgmeh.operations import decrypt, encrypt_symmetric, public_keys, version

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        os.getenv("GPGMEH_INTEGRATION") != "1" or shutil.which("gpg") is None,
        reason="set GPGMEH_INTEGRATION=1 with gpg installed to run",
    ),
]


@pytest.fixture()
def gpg_config(tmp_path: Path) -> GpgConfig:
    homedir = tmp_path / "gnupg"
    homedir.mkdir(mode=0o700)
    config = GpgConfig(homedir=str(homedir), timeout=30.0)
    if " 1." not in version(config).splitlines()[0]:
        # GnuPG 2 only reads passphrases from the command fd in loopback mode.
        config = config.replace(args=(*config.args, "--pinentry-mode", "loopback"))
    return config


def test_version_banner(gpg_config: GpgConfig) -> None:
    assert version(gpg_config).startswith("gpg (GnuPG)")


def test_empty_keyring_lists_no_keys(gpg_config: GpgConfig) -> None:
    assert public_keys(gpg_config) == []


def test_symmetric_round_trip(gpg_config: GpgConfig) -> None:
    plaintext = "ünïcødé payload ".encode() * 10_000
    ciphertext = encrypt_symmetric(plaintext, passphrase="s3cret", sign=False, config=gpg_config)
    assert ciphertext.startswith(b"-----BEGIN PGP MESSAGE-----")
    assert decrypt(ciphertext, passphrase="s3cret", config=gpg_config) == plaintext


def test_symmetric_without_secret_aborts(gpg_config: GpgConfig) -> None:
    with pytest.raises(NoPassphraseError):
        encrypt_symmetric(b"boom", passphrase=lambda _request: None, sign=False, config=gpg_config)
