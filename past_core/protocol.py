"""
past_core/protocol.py — Entry points and (version, purpose) dispatch

Issue:  bind key → pick suite function → PAE + primitive → wire string
Verify: parse → header/version checks → bind key purpose and
        version → pin footer → suite verify/decrypt → payload bytes

Binding is re-checked on every call. The suite function for a
(version, purpose) pair comes from a fixed table; there is no other
way to reach a primitive.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Tuple, Union

import structlog

from . import version1, version2
from .codec import Token, check_footer, parse
from .exceptions import (
    InvalidPurposeError,
    InvalidVersionError,
    KeyPurposeMismatch,
    PastError,
)
from .keys import (
    DEFAULT_VERSION,
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
from .registry import bind, bind_version

# Wraps the stdlib logger: silent unless the application enables it
logger = structlog.wrap_logger(logging.getLogger(__name__))

BytesOrText = Union[bytes, bytearray, str]
VersionLike = Union[str, ProtocolVersion]


# ---------------------------------------------------------------------------
# Dispatch tables
# ---------------------------------------------------------------------------

_ISSUERS: Dict[Tuple[ProtocolVersion, Purpose], Callable[..., str]] = {
    (ProtocolVersion.V1, Purpose.AUTH): version1.auth,
    (ProtocolVersion.V1, Purpose.ENC): version1.encrypt,
    (ProtocolVersion.V1, Purpose.SIGN): version1.sign,
    (ProtocolVersion.V2, Purpose.AUTH): version2.auth,
    (ProtocolVersion.V2, Purpose.ENC): version2.encrypt,
    (ProtocolVersion.V2, Purpose.SIGN): version2.sign,
}

_VERIFIERS: Dict[Tuple[ProtocolVersion, Purpose], Callable[[Token, Key], bytes]] = {
    (ProtocolVersion.V1, Purpose.AUTH): version1.auth_verify,
    (ProtocolVersion.V1, Purpose.ENC): version1.decrypt,
    (ProtocolVersion.V1, Purpose.SIGN): version1.sign_verify,
    (ProtocolVersion.V2, Purpose.AUTH): version2.auth_verify,
    (ProtocolVersion.V2, Purpose.ENC): version2.decrypt,
    (ProtocolVersion.V2, Purpose.SIGN): version2.sign_verify,
}


def _as_bytes(value: BytesOrText, name: str) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise TypeError(f"{name} must be bytes or str, got {type(value).__name__}")


# ---------------------------------------------------------------------------
# Generic issue / verify
# ---------------------------------------------------------------------------

def issue(
    payload: BytesOrText,
    key: Key,
    purpose: Union[str, Purpose],
    footer: BytesOrText = b"",
    version: VersionLike = DEFAULT_VERSION,
) -> str:
    """Protect `payload` for `purpose` under `version` and return the wire string.

    Raises:
        KeyPurposeMismatch: Key type cannot serve `purpose`.
        KeyVersionMismatch: Asymmetric key belongs to another version.
        InvalidVersionError / InvalidPurposeError: Unknown mnemonic.
    """
    purpose = coerce_purpose(purpose)
    version = coerce_version(version)
    payload_bytes = _as_bytes(payload, "payload")
    footer_bytes = _as_bytes(footer, "footer")

    bind(key, purpose)
    bind_version(key, version)
    if purpose == Purpose.SIGN and not isinstance(key, AsymmetricSecretKey):
        raise KeyPurposeMismatch("Signing requires an AsymmetricSecretKey")

    wire = _ISSUERS[(version, purpose)](payload_bytes, key, footer_bytes)
    logger.debug(
        "token_issued",
        version=version.value,
        purpose=purpose.value,
        has_footer=bool(footer_bytes),
    )
    return wire


def verify(
    wire: Union[str, bytes],
    key: Key,
    purpose: Union[str, Purpose],
    footer: BytesOrText = b"",
    version: Optional[VersionLike] = None,
) -> bytes:
    """Verify (and for `enc`, decrypt) a wire string; return the payload.

    `footer` is compared against the token's footer; an empty footer
    only matches a token without one. Pass `version` to additionally
    refuse tokens of any other version.

    Raises:
        MalformedTokenError (incl. InvalidVersionError, InvalidPurposeError)
        KeyPurposeMismatch, KeyVersionMismatch
        FooterMismatch
        AuthenticationFailure
    """
    purpose = coerce_purpose(purpose)
    footer_bytes = _as_bytes(footer, "footer")
    expected_version = coerce_version(version) if version is not None else None

    try:
        token = parse(wire)
        if token.purpose != purpose:
            raise InvalidPurposeError(
                f"Expected a '{purpose.value}' token, got '{token.purpose.value}'"
            )
        if expected_version is not None and token.version != expected_version:
            raise InvalidVersionError(
                f"Expected a {expected_version.value} token, "
                f"got {token.version.value}"
            )
        bind(key, purpose)
        bind_version(key, token.version)
        check_footer(token, footer_bytes)

        if isinstance(key, AsymmetricSecretKey):
            key = key.public_key()
        return _VERIFIERS[(token.version, token.purpose)](token, key)
    except PastError as exc:
        logger.debug(
            "token_rejected",
            purpose=purpose.value,
            error=type(exc).__name__,
        )
        raise


# ---------------------------------------------------------------------------
# Purpose-specific entry points
# ---------------------------------------------------------------------------

def authenticate(
    payload: BytesOrText,
    key: SymmetricAuthenticationKey,
    footer: BytesOrText = b"",
    version: VersionLike = DEFAULT_VERSION,
) -> str:
    return issue(payload, key, Purpose.AUTH, footer, version)


def verify_authentication(
    wire: Union[str, bytes],
    key: SymmetricAuthenticationKey,
    footer: BytesOrText = b"",
    version: Optional[VersionLike] = None,
) -> bytes:
    return verify(wire, key, Purpose.AUTH, footer, version)


def encrypt(
    payload: BytesOrText,
    key: SymmetricEncryptionKey,
    footer: BytesOrText = b"",
    version: VersionLike = DEFAULT_VERSION,
) -> str:
    return issue(payload, key, Purpose.ENC, footer, version)


def decrypt(
    wire: Union[str, bytes],
    key: SymmetricEncryptionKey,
    footer: BytesOrText = b"",
    version: Optional[VersionLike] = None,
) -> bytes:
    return verify(wire, key, Purpose.ENC, footer, version)


def sign(
    payload: BytesOrText,
    key: AsymmetricSecretKey,
    footer: BytesOrText = b"",
    version: Optional[VersionLike] = None,
) -> str:
    """Sign `payload`. `version` defaults to the key's own version."""
    if version is None and isinstance(key, (AsymmetricSecretKey, AsymmetricPublicKey)):
        version = key.version
    return issue(payload, key, Purpose.SIGN, footer, version or DEFAULT_VERSION)


def verify_signature(
    wire: Union[str, bytes],
    key: Union[AsymmetricPublicKey, AsymmetricSecretKey],
    footer: BytesOrText = b"",
    version: Optional[VersionLike] = None,
) -> bytes:
    return verify(wire, key, Purpose.SIGN, footer, version)
