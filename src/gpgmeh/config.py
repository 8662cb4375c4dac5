"""gpg invocation settings loaded from the environment or a TOML file.

A ``GpgConfig`` is an immutable snapshot: every session copies the one it is
given, so concurrent sessions never observe each other's overrides.  The
process-wide default is assembled once from the environment and can be
replaced at startup with :func:`set_default_config`.

Dependencies: errors
Wired in: infra/session.py → GpgSession, operations.py, cli.py → main()
"""

from __future__ import annotations

import dataclasses
import os
import shlex
import threading
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

from gpgmeh.errors import ConfigurationError

_DEFAULT_CMD = "gpg"
_DEFAULT_ARGS: tuple[str, ...] = ("--armor", "--trust-model", "always")
_DEFAULT_TIMEOUT = 5.0
_ALWAYS_ARGS: tuple[str, ...] = ("--no-tty", "--quiet")
_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class GpgConfig:
    """Immutable description of how to run gpg."""

    cmd: str = _DEFAULT_CMD
    """Executable name or path, e.g. ``"gpg"`` or ``"/usr/bin/gpg1"``."""

    args: tuple[str, ...] = _DEFAULT_ARGS
    """Arguments placed before every operation's own arguments."""

    homedir: str | None = None
    """Keyring directory passed as ``--homedir`` when set."""

    timeout: float = _DEFAULT_TIMEOUT
    """Seconds one whole session (I/O, passphrases, exit) may take."""

    debug: bool = False
    """Log every I/O chunk and status line at DEBUG level."""

    def __post_init__(self) -> None:
        if not self.cmd:
            raise ConfigurationError("cmd must be a non-empty string.")
        if self.timeout <= 0:
            raise ConfigurationError(f"timeout must be > 0, got {self.timeout!r}.")
        object.__setattr__(self, "args", tuple(str(arg) for arg in self.args))

    def replace(self, **changes: Any) -> GpgConfig:
        """Return a copy with *changes* applied; ``None`` values are ignored."""
        return dataclasses.replace(self, **{k: v for k, v in changes.items() if v is not None})

    def command_line(self, extra_args: list[str] | tuple[str, ...] = ()) -> list[str]:
        """Build the full argv: cmd, default args, homedir, tty/quiet flags, *extra_args*."""
        argv = [self.cmd, *self.args]
        if self.homedir:
            argv.extend(["--homedir", self.homedir])
        argv.extend(flag for flag in _ALWAYS_ARGS if flag not in self.args)
        argv.extend(extra_args)
        return argv

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> GpgConfig:
        """Build a config from ``GPGMEH_*`` environment variables."""
        env = os.environ if environ is None else environ
        changes: dict[str, Any] = {}
        if env.get("GPGMEH_CMD"):
            changes["cmd"] = env["GPGMEH_CMD"]
        if "GPGMEH_ARGS" in env:
            changes["args"] = tuple(shlex.split(env["GPGMEH_ARGS"]))
        if env.get("GPGMEH_HOMEDIR"):
            changes["homedir"] = env["GPGMEH_HOMEDIR"]
        if env.get("GPGMEH_TIMEOUT"):
            changes["timeout"] = _parse_timeout(env["GPGMEH_TIMEOUT"], "GPGMEH_TIMEOUT")
        debug_raw = env.get("GPGMEH_DEBUG") or env.get("GPG_DEBUG")
        if debug_raw:
            changes["debug"] = debug_raw.strip().lower() in _TRUTHY
        return cls(**changes)


def _parse_timeout(raw: object, source: str) -> float:
    try:
        return float(cast(Any, raw))
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{source}: invalid timeout {raw!r}.") from exc


def _parse_gpg_table(raw: dict[str, object], base: GpgConfig) -> GpgConfig:
    """Merge a ``[gpg]`` TOML table over *base*."""
    changes: dict[str, Any] = {}
    if "cmd" in raw:
        changes["cmd"] = str(raw["cmd"])
    if "args" in raw:
        raw_args = raw["args"]
        if not isinstance(raw_args, list):
            msg = "[gpg] 'args' must be a list of strings."
            raise ConfigurationError(msg)
        changes["args"] = tuple(str(arg) for arg in cast(list[object], raw_args))
    if "homedir" in raw:
        changes["homedir"] = str(Path(str(raw["homedir"])).expanduser())
    if "timeout" in raw:
        changes["timeout"] = _parse_timeout(raw["timeout"], "[gpg] timeout")
    if "debug" in raw:
        changes["debug"] = bool(raw["debug"])
    return dataclasses.replace(base, **changes)


def load_gpg_config(config_path: Path, *, base: GpgConfig | None = None) -> GpgConfig:
    """Load the ``[gpg]`` table from a TOML file.

    Values from the file override *base* (the environment-derived config when
    omitted).  A missing file returns *base* unchanged.
    """
    resolved_base = GpgConfig.from_env() if base is None else base
    if not config_path.is_file():
        return resolved_base

    with config_path.open("rb") as fh:
        try:
            data = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigurationError(f"{config_path}: {exc}") from exc

    table = data.get("gpg", {})
    if not isinstance(table, dict):
        msg = f"{config_path}: [gpg] must be a table."
        raise ConfigurationError(msg)
    return _parse_gpg_table(cast(dict[str, object], table), resolved_base)


_default_lock = threading.Lock()
_default_config: GpgConfig | None = None


def default_config() -> GpgConfig:
    """Return the process-wide default, building it from the environment once."""
    global _default_config
    with _default_lock:
        if _default_config is None:
            _default_config = GpgConfig.from_env()
        return _default_config


def set_default_config(config: GpgConfig | None) -> None:
    """Replace the process-wide default; ``None`` rebuilds it from the environment."""
    global _default_config
    with _default_lock:
        _default_config = config
