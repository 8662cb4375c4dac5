"""Tests for the ``gpgmeh`` command line, driving the fake gpg."""

from __future__ import annotations

import io
import shlex
import sys
from pathlib import Path

import pytest
from gpg_helpers import FAKE_GPG

from gpgmeh.cli import PromptPassphrase, _resolve_config, main, parse_cli_args
from gpgmeh.passphrase import PassphraseRequest


@pytest.fixture(autouse=True)
def _fake_gpg_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("GPGMEH_CMD", sys.executable)
    monkeypatch.setenv("GPGMEH_ARGS", shlex.join([str(FAKE_GPG), "--armor"]))
    monkeypatch.setenv("GPGMEH_TIMEOUT", "10")


def _set_stdin(monkeypatch: pytest.MonkeyPatch, data: bytes) -> None:
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(data)))


def test_parse_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        parse_cli_args([])


def test_parse_encrypt_recipients() -> None:
    args = parse_cli_args(["encrypt", "-r", "7CAAAB91", "--recipient", "243D6FEB", "--no-sign"])
    assert args.recipients == ["7CAAAB91", "243D6FEB"]
    assert args.no_sign is True


def test_version(capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    assert main(["version"]) == 0
    assert capsysbinary.readouterr().out.startswith(b"gpg (GnuPG) 1.4.")


def test_list_keys(capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    assert main(["list-keys"]) == 0
    lines = capsysbinary.readouterr().out.decode().splitlines()
    assert len(lines) == 10
    assert lines[0].split("\t") == [
        "public key",
        "7A9910E0243D6FEB",
        "2048",
        "ultimately",
        "certify,encrypt,sign",
        "2016-01-18",
        "Richard Hardslab (The Real Rick) <richard@example.com>",
    ]


def test_list_secret_keys(capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    assert main(["list-keys", "--secret"]) == 0
    lines = capsysbinary.readouterr().out.decode().splitlines()
    assert [line.split("\t")[0] for line in lines] == ["secret key", "secret subkey"]
    assert lines[0].split("\t")[3:5] == ["-", "-"]


def test_encrypt_then_decrypt(
    monkeypatch: pytest.MonkeyPatch, capsysbinary: pytest.CaptureFixture[bytes]
) -> None:
    monkeypatch.setenv("GPGMEH_PASSPHRASE", "test")
    _set_stdin(monkeypatch, b"boom")
    assert main(["encrypt", "-r", "7CAAAB91"]) == 0
    ciphertext = capsysbinary.readouterr().out

    _set_stdin(monkeypatch, ciphertext)
    assert main(["decrypt"]) == 0
    assert capsysbinary.readouterr().out == b"boom"


def test_symmetric_round_trip(
    monkeypatch: pytest.MonkeyPatch, capsysbinary: pytest.CaptureFixture[bytes]
) -> None:
    monkeypatch.setenv("GPGMEH_PASSPHRASE", "hunter2")
    _set_stdin(monkeypatch, b"payload")
    assert main(["encrypt-symmetric", "--no-sign"]) == 0
    ciphertext = capsysbinary.readouterr().out

    _set_stdin(monkeypatch, ciphertext)
    assert main(["decrypt"]) == 0
    assert capsysbinary.readouterr().out == b"payload"


def test_gpg_failure_exits_one(
    monkeypatch: pytest.MonkeyPatch, capsysbinary: pytest.CaptureFixture[bytes]
) -> None:
    monkeypatch.setenv("FAKE_GPG_MODE", "fail")
    monkeypatch.setenv("GPGMEH_PASSPHRASE", "test")
    _set_stdin(monkeypatch, b"junk")
    assert main(["decrypt"]) == 1
    assert b"No secret key" in capsysbinary.readouterr().err


def test_invalid_recipient_exits_one(
    monkeypatch: pytest.MonkeyPatch, capsysbinary: pytest.CaptureFixture[bytes]
) -> None:
    _set_stdin(monkeypatch, b"boom")
    assert main(["encrypt", "-r", "bad id", "--no-sign"]) == 1
    assert b"alphanumeric" in capsysbinary.readouterr().err


def test_timeout_exits_two(
    monkeypatch: pytest.MonkeyPatch, capsysbinary: pytest.CaptureFixture[bytes]
) -> None:
    monkeypatch.setenv("FAKE_GPG_MODE", "hang")
    assert main(["--timeout", "0.5", "version"]) == 2
    assert b"timed out" in capsysbinary.readouterr().err


def test_config_file_and_flags(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsysbinary: pytest.CaptureFixture[bytes]
) -> None:
    monkeypatch.delenv("GPGMEH_CMD")
    config_path = tmp_path / "gpgmeh.toml"
    config_path.write_text('[gpg]\ncmd = "/nonexistent/gpg"\ntimeout = 10\n')

    assert main(["--config", str(config_path), "version"]) == 1
    assert b"could not start" in capsysbinary.readouterr().err

    assert main(["--config", str(config_path), "--cmd", sys.executable, "version"]) == 0
    assert capsysbinary.readouterr().out.startswith(b"gpg (GnuPG)")


def test_dotenv_file_is_loaded(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsysbinary: pytest.CaptureFixture[bytes]
) -> None:
    monkeypatch.delenv("GPGMEH_CMD")
    (tmp_path / ".env").write_text(f"GPGMEH_CMD={sys.executable}\n")

    assert main(["version"]) == 0
    assert capsysbinary.readouterr().out.startswith(b"gpg (GnuPG)")


class TestPromptPassphrase:
    def test_environment_secret_wins(self) -> None:
        assert PromptPassphrase("env").provide(PassphraseRequest.symmetric()) == "env"

    def test_prompts_name_the_request(self, monkeypatch: pytest.MonkeyPatch) -> None:
        prompts: list[str] = []
        monkeypatch.setattr("getpass.getpass", lambda prompt: prompts.append(prompt) or "typed")
        provider = PromptPassphrase(None)

        assert provider.provide(PassphraseRequest.keyring("78653ADC7CAAAB91")) == "typed"
        assert provider.provide(PassphraseRequest.symmetric()) == "typed"
        assert prompts == ["Passphrase for key 7CAAAB91: ", "Symmetric passphrase: "]


class TestPromptTimeout:
    @pytest.mark.parametrize(
        "argv", [["decrypt"], ["encrypt-symmetric"], ["encrypt", "-r", "7CAAAB91"]]
    )
    def test_interactive_prompt_raises_timeout(self, argv: list[str]) -> None:
        assert _resolve_config(parse_cli_args(argv)).timeout == 300.0

    @pytest.mark.parametrize(
        "argv", [["version"], ["list-keys"], ["encrypt", "-r", "7CAAAB91", "--no-sign"]]
    )
    def test_commands_without_prompt_keep_timeout(self, argv: list[str]) -> None:
        assert _resolve_config(parse_cli_args(argv)).timeout == 10.0

    def test_environment_secret_keeps_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GPGMEH_PASSPHRASE", "test")
        assert _resolve_config(parse_cli_args(["decrypt"])).timeout == 10.0

    def test_explicit_flag_wins(self) -> None:
        assert _resolve_config(parse_cli_args(["--timeout", "2", "decrypt"])).timeout == 2.0

    def test_longer_configured_timeout_is_kept(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GPGMEH_TIMEOUT", "900")
        assert _resolve_config(parse_cli_args(["decrypt"])).timeout == 900.0
