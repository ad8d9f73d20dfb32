"""
past_core/keys.py — Protocol versions, purposes and key objects.

Uses Python `cryptography` for asymmetric key handling:
- v1 signing keys are RSA (2048-bit, e=65537)
- v2 signing keys are Ed25519

A key's class determines the one purpose it can serve. Asymmetric keys
additionally carry the single protocol version they were made for; the
underlying key object is checked against that version at construction.
Key objects are immutable once built.
"""

from __future__ import annotations

import hmac
import os
from enum import Enum
from typing import Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .exceptions import InvalidPurposeError, InvalidVersionError, KeyVersionMismatch


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ProtocolVersion(str, Enum):
    """Fixed, non-negotiable primitive bundles."""
    V1 = "v1"
    V2 = "v2"


class Purpose(str, Enum):
    """Cryptographic guarantee a token provides."""
    AUTH = "auth"   # symmetric MAC, payload visible
    ENC = "enc"     # symmetric AEAD, payload confidential
    SIGN = "sign"   # public-key signature, payload visible


DEFAULT_VERSION = ProtocolVersion.V2

SYMMETRIC_KEY_BYTES = 32
RSA_KEY_BITS = 2048
RSA_PUBLIC_EXPONENT = 65537


def coerce_version(value: Union[str, ProtocolVersion]) -> ProtocolVersion:
    """Accept a ProtocolVersion or its mnemonic ("v1", "v2")."""
    try:
        return ProtocolVersion(value)
    except ValueError:
        raise InvalidVersionError(f"Unsupported version: {value!r}") from None


def coerce_purpose(value: Union[str, Purpose]) -> Purpose:
    """Accept a Purpose or its mnemonic ("auth", "enc", "sign")."""
    try:
        return Purpose(value)
    except ValueError:
        raise InvalidPurposeError(f"Unknown purpose: {value!r}") from None


# ---------------------------------------------------------------------------
# Symmetric keys
# ---------------------------------------------------------------------------

class _SymmetricKey:
    """32 bytes of raw key material. Usable with any protocol version."""

    __slots__ = ("_material",)

    def __init__(self, material: bytes):
        if not isinstance(material, (bytes, bytearray)):
            raise TypeError(
                f"Key material must be bytes, got {type(material).__name__}"
            )
        if len(material) != SYMMETRIC_KEY_BYTES:
            raise ValueError(
                f"{type(self).__name__} requires exactly "
                f"{SYMMETRIC_KEY_BYTES} bytes, got {len(material)}"
            )
        object.__setattr__(self, "_material", bytes(material))

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @classmethod
    def generate(cls):
        """Create a key from the operating system CSPRNG."""
        return cls(os.urandom(SYMMETRIC_KEY_BYTES))

    @classmethod
    def from_hex(cls, value: str):
        return cls(bytes.fromhex(value.strip()))

    def raw(self) -> bytes:
        return self._material

    def hex(self) -> str:
        return self._material.hex()

    def __eq__(self, other) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return hmac.compare_digest(self._material, other._material)

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._material))

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


class SymmetricAuthenticationKey(_SymmetricKey):
    """Key for the `auth` purpose."""

    __slots__ = ()


class SymmetricEncryptionKey(_SymmetricKey):
    """Key for the `enc` purpose."""

    __slots__ = ()


# ---------------------------------------------------------------------------
# Asymmetric keys
# ---------------------------------------------------------------------------

_PRIVATE_TYPES = {
    ProtocolVersion.V1: rsa.RSAPrivateKey,
    ProtocolVersion.V2: Ed25519PrivateKey,
}

_PUBLIC_TYPES = {
    ProtocolVersion.V1: rsa.RSAPublicKey,
    ProtocolVersion.V2: Ed25519PublicKey,
}


def _check_key_object(key_object, version: ProtocolVersion, table: dict) -> None:
    expected = table[version]
    if not isinstance(key_object, expected):
        raise KeyVersionMismatch(
            f"A {version.value} key must wrap {expected.__name__}, "
            f"got {type(key_object).__name__}"
        )
    if version == ProtocolVersion.V1 and key_object.key_size < RSA_KEY_BITS:
        raise ValueError(
            f"RSA keys must be at least {RSA_KEY_BITS} bits, "
            f"got {key_object.key_size}"
        )


class AsymmetricPublicKey:
    """Verification half of a signing key pair, bound to one version."""

    __slots__ = ("_key", "_version")

    def __init__(self, key_object, version: Union[str, ProtocolVersion]):
        version = coerce_version(version)
        _check_key_object(key_object, version, _PUBLIC_TYPES)
        object.__setattr__(self, "_key", key_object)
        object.__setattr__(self, "_version", version)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @property
    def version(self) -> ProtocolVersion:
        return self._version

    @property
    def key_object(self):
        return self._key

    def signature_length(self) -> int:
        if self._version == ProtocolVersion.V1:
            return self._key.key_size // 8
        return 64

    def to_pem(self) -> bytes:
        """Serialize public key to PEM bytes."""
        return self._key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

    @classmethod
    def from_pem(cls, pem_data: bytes, version: Union[str, ProtocolVersion]) -> "AsymmetricPublicKey":
        """Deserialize public key from PEM bytes."""
        return cls(serialization.load_pem_public_key(pem_data), version)

    def __eq__(self, other) -> bool:
        if not isinstance(other, AsymmetricPublicKey):
            return NotImplemented
        return self._version == other._version and self.to_pem() == other.to_pem()

    def __hash__(self) -> int:
        return hash((self._version, self.to_pem()))

    def __repr__(self) -> str:
        return f"<AsymmetricPublicKey {self._version.value}>"


class AsymmetricSecretKey:
    """Signing key, bound to exactly one protocol version."""

    __slots__ = ("_key", "_version")

    def __init__(self, key_object, version: Union[str, ProtocolVersion]):
        version = coerce_version(version)
        _check_key_object(key_object, version, _PRIVATE_TYPES)
        object.__setattr__(self, "_key", key_object)
        object.__setattr__(self, "_version", version)

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    @classmethod
    def generate(cls, version: Union[str, ProtocolVersion] = DEFAULT_VERSION) -> "AsymmetricSecretKey":
        """Generate a new key pair for the given version."""
        version = coerce_version(version)
        if version == ProtocolVersion.V1:
            key_object = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT,
                key_size=RSA_KEY_BITS,
            )
        else:
            key_object = Ed25519PrivateKey.generate()
        return cls(key_object, version)

    @property
    def version(self) -> ProtocolVersion:
        return self._version

    @property
    def key_object(self):
        return self._key

    def public_key(self) -> AsymmetricPublicKey:
        return AsymmetricPublicKey(self._key.public_key(), self._version)

    def to_pem(self) -> bytes:
        """Serialize private key to unencrypted PKCS#8 PEM bytes."""
        return self._key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @classmethod
    def from_pem(cls, pem_data: bytes, version: Union[str, ProtocolVersion]) -> "AsymmetricSecretKey":
        """Deserialize private key from PEM bytes."""
        return cls(serialization.load_pem_private_key(pem_data, password=None), version)

    def __repr__(self) -> str:
        return f"<AsymmetricSecretKey {self._version.value}>"


Key = Union[
    SymmetricAuthenticationKey,
    SymmetricEncryptionKey,
    AsymmetricSecretKey,
    AsymmetricPublicKey,
]
