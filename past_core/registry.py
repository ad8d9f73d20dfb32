"""
past_core/registry.py — Key / purpose / version binding.

Both checks run at the start of every issue and verify call; nothing
about a previous check is remembered.
"""

from __future__ import annotations

from typing import Union

from .exceptions import KeyPurposeMismatch, KeyVersionMismatch
from .keys import (
    AsymmetricPublicKey,
    AsymmetricSecretKey,
    Key,
    ProtocolVersion,
    Purpose,
    SymmetricAuthenticationKey,
    SymmetricEncryptionKey,
    coerce_purpose,
    coerce_version,
)


# Exact-type lookup: a subclass of one key type does not inherit its purpose.
_KEY_PURPOSES = {
    SymmetricAuthenticationKey: Purpose.AUTH,
    SymmetricEncryptionKey: Purpose.ENC,
    AsymmetricSecretKey: Purpose.SIGN,
    AsymmetricPublicKey: Purpose.SIGN,
}


def purpose_for_key(key: Key) -> Purpose:
    """Return the single purpose a key can serve."""
    try:
        return _KEY_PURPOSES[type(key)]
    except KeyError:
        raise KeyPurposeMismatch(
            f"Unsupported key type: {type(key).__name__}"
        ) from None


def bind(key: Key, purpose: Union[str, Purpose]) -> None:
    """Raise KeyPurposeMismatch unless `key` may be used for `purpose`."""
    purpose = coerce_purpose(purpose)
    expected = purpose_for_key(key)
    if expected != purpose:
        raise KeyPurposeMismatch(
            f"Invalid key type. {type(key).__name__} serves "
            f"'{expected.value}', not '{purpose.value}'"
        )


def bind_version(key: Key, version: Union[str, ProtocolVersion]) -> None:
    """Raise KeyVersionMismatch if an asymmetric key belongs to another version.

    Symmetric keys are not version-bound and always pass.
    """
    version = coerce_version(version)
    if isinstance(key, (AsymmetricSecretKey, AsymmetricPublicKey)):
        if key.version != version:
            raise KeyVersionMismatch(
                f"Invalid key. This key is for {key.version.value}, "
                f"not {version.value}"
            )
