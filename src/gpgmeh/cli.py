"""``gpgmeh`` command line entry point.

Reads the payload from stdin and writes gpg's output to stdout.  Passphrases
come from ``$GPGMEH_PASSPHRASE`` or an interactive prompt per request.
"""

from __future__ import annotations

import argparse
import getpass
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from gpgmeh import __version__
from gpgmeh.config import GpgConfig, load_gpg_config
from gpgmeh.errors import GpgError, GpgTimeoutError
from gpgmeh.keys import Key
from gpgmeh.logging_setup import configure_logging
from gpgmeh.operations import decrypt, encrypt, encrypt_symmetric, public_keys, secret_keys, version
from gpgmeh.passphrase import PassphraseRequest

_EXIT_ERROR = 1
_EXIT_TIMEOUT = 2
# Floor for the session timeout while a human types passphrases.
_PROMPT_TIMEOUT = 300.0
_PROMPTING_COMMANDS = frozenset({"encrypt", "encrypt-symmetric", "decrypt"})


class PromptPassphrase:
    """Answer passphrase requests from the environment or the terminal."""

    def __init__(self, env_secret: str | None = None) -> None:
        self._env_secret = env_secret

    def provide(self, request: PassphraseRequest) -> str | None:
        if self._env_secret:
            return self._env_secret
        if request.is_symmetric:
            return getpass.getpass("Symmetric passphrase: ")
        return getpass.getpass(f"Passphrase for key {request.key_id}: ")


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(prog="gpgmeh", description="Run gpg operations")
    parser.add_argument("--version", action="version", version=__version__)
    parser.add_argument("--config", default=None, help="TOML file with a [gpg] table")
    parser.add_argument("--cmd", default=None, help="gpg executable (default: $GPGMEH_CMD or gpg)")
    parser.add_argument("--homedir", default=None, help="gpg home directory")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Session timeout in seconds, including time spent at passphrase prompts "
        "(default: $GPGMEH_TIMEOUT or 5; at least 300 when prompting interactively)",
    )
    parser.add_argument("--debug", action="store_true", help="Log every I/O chunk")
    parser.add_argument("--log-level", default=None, help="Log level (default: $GPGMEH_LOG_LEVEL)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("version", help="Print gpg's version banner")

    list_keys = sub.add_parser("list-keys", help="List keyring contents")
    list_keys.add_argument("--secret", action="store_true", help="List secret keys")

    enc = sub.add_parser("encrypt", help="Public-key encrypt stdin")
    enc.add_argument("-r", "--recipient", action="append", required=True, dest="recipients")
    enc.add_argument("--no-sign", action="store_true", help="Do not sign the message")

    sym = sub.add_parser("encrypt-symmetric", help="Symmetrically encrypt stdin")
    sym.add_argument("--no-sign", action="store_true", help="Do not sign the message")

    sub.add_parser("decrypt", help="Decrypt stdin")
    return parser.parse_args(argv)


def _resolve_config(args: argparse.Namespace) -> GpgConfig:
    base = GpgConfig.from_env()
    if args.config:
        base = load_gpg_config(Path(args.config), base=base)
    config = base.replace(
        cmd=args.cmd,
        homedir=args.homedir,
        timeout=args.timeout,
        debug=True if args.debug else None,
    )
    if args.timeout is None and _prompts_interactively(args):
        config = config.replace(timeout=max(config.timeout, _PROMPT_TIMEOUT))
    return config


def _prompts_interactively(args: argparse.Namespace) -> bool:
    """True when the command will ask for a passphrase on the terminal."""
    if os.getenv("GPGMEH_PASSPHRASE") or args.command not in _PROMPTING_COMMANDS:
        return False
    return not (args.command == "encrypt" and args.no_sign)


def _format_key_line(key: Key) -> str:
    fields = [
        key.type,
        key.key_id,
        str(key.key_length),
        key.trust or "-",
        ",".join(sorted(key.capabilities)) or "-",
        str(key.creation_date or "-"),
        key.name,
    ]
    return "\t".join(fields)


def _dispatch(args: argparse.Namespace, config: GpgConfig) -> bytes:
    provider = PromptPassphrase(os.getenv("GPGMEH_PASSPHRASE"))
    if args.command == "version":
        return version(config).encode()
    if args.command == "list-keys":
        keys = secret_keys(config) if args.secret else public_keys(config)
        return "".join(f"{_format_key_line(key)}\n" for key in keys).encode()

    payload = sys.stdin.buffer.read()
    if args.command == "encrypt":
        return encrypt(
            payload,
            args.recipients,
            sign=not args.no_sign,
            passphrase=provider,
            config=config,
        )
    if args.command == "encrypt-symmetric":
        return encrypt_symmetric(payload, sign=not args.no_sign, passphrase=provider, config=config)
    return decrypt(payload, passphrase=provider, config=config)


def main(argv: list[str] | None = None) -> int:
    load_dotenv(dotenv_path=Path.cwd() / ".env")
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, debug=args.debug)
    try:
        config = _resolve_config(args)
        output = _dispatch(args, config)
    except GpgTimeoutError as exc:
        print(f"gpgmeh: timed out: {exc}", file=sys.stderr)
        return _EXIT_TIMEOUT
    except (GpgError, ValueError) as exc:
        print(f"gpgmeh: {exc}", file=sys.stderr)
        return _EXIT_ERROR
    sys.stdout.buffer.write(output)
    sys.stdout.buffer.flush()
    return 0
