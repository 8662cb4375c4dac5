"""gpgmeh - run gpg as a library call.

Public API: encrypt, decrypt, encrypt_symmetric, public_keys, secret_keys,
    version, GpgConfig, Key, PassphraseRequest and the passphrase providers,
    and the GpgError hierarchy.
"""

from gpgmeh.config import GpgConfig, default_config, load_gpg_config, set_default_config
from gpgmeh.errors import (
    ConfigurationError,
    GpgError,
    GpgTimeoutError,
    NoPassphraseError,
    ParseError,
)
from gpgmeh.keys import Key, parse_keys
from gpgmeh.operations import (
    decrypt,
    encrypt,
    encrypt_symmetric,
    public_keys,
    secret_keys,
    version,
)
from gpgmeh.passphrase import (
    CallbackPassphrase,
    KeyedPassphrases,
    PassphraseProvider,
    PassphraseRequest,
    RequestKind,
    StaticPassphrase,
    as_provider,
)

__version__ = "0.1.0"

__all__ = [
    "CallbackPassphrase",
    "ConfigurationError",
    "GpgConfig",
    "GpgError",
    "GpgTimeoutError",
    "Key",
    "KeyedPassphrases",
    "NoPassphraseError",
    "ParseError",
    "PassphraseProvider",
    "PassphraseRequest",
    "RequestKind",
    "StaticPassphrase",
    "as_provider",
    "decrypt",
    "default_config",
    "encrypt",
    "encrypt_symmetric",
    "load_gpg_config",
    "parse_keys",
    "public_keys",
    "secret_keys",
    "set_default_config",
    "version",
]
