"""Parser for ``gpg --with-colons`` keyring listings.

Field layout (0-based): 0 record type, 1 validity/trust, 2 key length,
4 key id, 5 creation date, 9 user id, 11 capabilities.  GnuPG 1.x prints the
creation date as ``YYYY-MM-DD`` and the user id on the primary key record;
GnuPG 2.x prints epoch seconds and moves the user id to a ``uid`` record.
Both shapes are accepted.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from gpgmeh.errors import ParseError

TYPES: dict[str, str] = {
    "pub": "public key",
    "crt": "X.509 certificate",
    "crs": "X.509 certificate and private key available",
    "sub": "subkey",
    "sec": "secret key",
    "ssb": "secret subkey",
    "uid": "user id",
    "uat": "user attribute",
    "sig": "signature",
    "rev": "revocation signature",
    "fpr": "fingerprint",
    "pkd": "public key data",
    "grp": "reserved for gpgsm",
    "rvk": "revocation key",
    "tru": "trust database information",
    "spk": "signature subpacket",
    "cfg": "configuration data",
}

KEY_RECORD_TYPES = frozenset({"pub", "sub", "sec", "ssb", "rvk"})
_PRIMARY_RECORD_TYPES = frozenset({"pub", "sec"})

TRUSTS: dict[str, str] = {
    "o": "other",
    "i": "invalid",
    "d": "disabled",
    "r": "revoked",
    "e": "expired",
    "n": "none",
    "m": "marginal",
    "f": "fully",
    "u": "ultimately",
    "-": "unknown",
    "q": "unknown",
}

CAPABILITIES: dict[str, str] = {
    "e": "encrypt",
    "s": "sign",
    "c": "certify",
    "a": "authentication",
    "d": "disabled",
}

_FIELD_COUNT = 13


class Key(BaseModel):
    """One key record (primary key, subkey or revocation key)."""

    model_config = ConfigDict(frozen=True)

    type: str
    trust: str | None = None
    key_length: int = 0
    key_id: str = ""
    creation_date: date | None = None
    name: str = ""
    capabilities: frozenset[str] = frozenset()

    @field_validator("type", mode="before")
    @classmethod
    def _map_type(cls, value: Any) -> str:
        if value in TYPES.values():
            return str(value)
        if value not in TYPES:
            raise ValueError(f"unknown key type={value!r}")
        return TYPES[value]

    @field_validator("trust", mode="before")
    @classmethod
    def _map_trust(cls, value: Any) -> str | None:
        if value is None or value == "":
            return None
        if value in TRUSTS.values():
            return str(value)
        if value not in TRUSTS:
            raise ValueError(f"unknown trust={value!r}")
        return TRUSTS[value]

    @field_validator("key_length", mode="before")
    @classmethod
    def _parse_length(cls, value: Any) -> int:
        return int(value) if value not in (None, "") else 0

    @field_validator("creation_date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> date | None:
        if value is None or value == "":
            return None
        if isinstance(value, date):
            return value
        raw = str(value)
        if raw.isdigit():
            return datetime.fromtimestamp(int(raw), tz=UTC).date()
        try:
            return date.fromisoformat(raw)
        except ValueError as exc:
            raise ValueError(f"invalid creation date={raw!r}") from exc

    @field_validator("capabilities", mode="before")
    @classmethod
    def _map_capabilities(cls, value: Any) -> frozenset[str]:
        if not isinstance(value, str):
            return frozenset(value)
        names: set[str] = set()
        for letter in value:
            name = CAPABILITIES.get(letter.lower())
            if name is None:
                raise ValueError(f"unknown capability={letter!r} capabilities={value!r}")
            names.add(name)
        return frozenset(names)

    @property
    def short_id(self) -> str:
        """Last 8 hex characters of the key id, as used in passphrase requests."""
        return self.key_id[-8:]


def _fields(line: str) -> list[str]:
    fields = line.split(":", _FIELD_COUNT - 1)
    return fields + [""] * (_FIELD_COUNT - len(fields))


def parse_keys(raw_keys: str | bytes) -> list[Key]:
    """Parse a colon listing into keys, in listing order.

    Raises ``ParseError`` for unknown record types, trust values, capability
    letters or malformed dates.
    """
    text = raw_keys.decode("utf-8", errors="replace") if isinstance(raw_keys, bytes) else raw_keys
    keys: list[Key] = []
    pending_primary: dict[str, Any] | None = None
    records: list[dict[str, Any]] = []

    for line in text.splitlines():
        if not line.strip():
            continue
        fields = _fields(line)
        record_type = fields[0]
        if record_type not in TYPES:
            raise ParseError(f"unknown key type={record_type!r}")
        if record_type == "uid" and pending_primary is not None:
            if not pending_primary["name"]:
                pending_primary["name"] = fields[9]
            pending_primary = None
            continue
        if record_type not in KEY_RECORD_TYPES:
            continue
        record = {
            "type": record_type,
            "trust": fields[1],
            "key_length": fields[2],
            "key_id": fields[4],
            "creation_date": fields[5],
            "name": fields[9],
            "capabilities": fields[11],
        }
        records.append(record)
        pending_primary = record if record_type in _PRIMARY_RECORD_TYPES else None

    for record in records:
        try:
            keys.append(Key(**record))
        except ValidationError as exc:
            errors = "; ".join(str(error["msg"]) for error in exc.errors())
            raise ParseError(f"{errors} in record {record!r}") from exc
    return keys
