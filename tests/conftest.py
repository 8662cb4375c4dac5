"""Shared test fixtures for gpgmeh."""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from gpg_helpers import FAKE_GPG

from gpgmeh.config import GpgConfig, set_default_config

_FAKE_ENV_VARS = (
    "FAKE_GPG_MODE",
    "FAKE_GPG_PASSPHRASE",
    "FAKE_GPG_PIDFILE",
    "FAKE_GPG_ARGV_FILE",
    "FAKE_GPG_STDERR",
    "FAKE_GPG_FLOOD_BYTES",
)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers so pytest doesn't warn about unknown marks."""
    config.addinivalue_line(
        "markers",
        "integration: runs the real gpg binary; needs GPGMEH_INTEGRATION=1 and gpg on PATH.",
    )


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep the host's GPGMEH_* settings and fake-gpg switches out of every test."""
    for name in list(os.environ):
        if name.startswith("GPGMEH_") and name != "GPGMEH_INTEGRATION":
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("GPG_DEBUG", raising=False)
    for name in _FAKE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    set_default_config(None)
    yield
    set_default_config(None)


@pytest.fixture()
def fake_config() -> GpgConfig:
    """GpgConfig that runs the Python gpg stand-in."""
    return GpgConfig(
        cmd=sys.executable,
        args=(str(FAKE_GPG), "--armor", "--trust-model", "always"),
        timeout=10.0,
    )


@pytest.fixture()
def pidfile(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Path the fake gpg writes its pid to."""
    path = tmp_path / "fake_gpg.pid"
    monkeypatch.setenv("FAKE_GPG_PIDFILE", str(path))
    return path

