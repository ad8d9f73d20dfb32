"""
past_core/codec.py — PAST wire format

    <version>.<purpose>.<base64url(body)>[.<base64url(footer)>]

The header that participates in PAE is the literal prefix
"<version>.<purpose>." (trailing dot included), never the decoded parts.
The footer segment is present only when the footer is non-empty.

Every check in this module runs before any MAC or signature work, so a
malformed token is rejected without touching key material.
"""

from __future__ import annotations

import base64
import hmac
import re
from typing import Union

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import (
    FooterMismatch,
    InvalidPurposeError,
    InvalidVersionError,
    MalformedTokenError,
)
from .keys import ProtocolVersion, Purpose


_B64URL_ALPHABET = re.compile(r"[A-Za-z0-9_-]*")


# ---------------------------------------------------------------------------
# Strict base64url (no padding)
# ---------------------------------------------------------------------------

def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(value: str) -> bytes:
    """Decode unpadded base64url, rejecting anything non-canonical.

    Rejects padding, characters outside the URL-safe alphabet, impossible
    lengths, and encodings whose unused trailing bits are non-zero (two
    different strings must never decode to the same bytes).
    """
    if not _B64URL_ALPHABET.fullmatch(value):
        raise MalformedTokenError("Invalid base64url alphabet")
    if len(value) % 4 == 1:
        raise MalformedTokenError("Invalid base64url length")
    padded = value + "=" * (-len(value) % 4)
    try:
        decoded = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (ValueError, TypeError) as exc:
        raise MalformedTokenError("Invalid base64url encoding") from exc
    if b64url_encode(decoded) != value:
        raise MalformedTokenError("Non-canonical base64url encoding")
    return decoded


# ---------------------------------------------------------------------------
# Token model
# ---------------------------------------------------------------------------

class Token(BaseModel):
    """An issued or parsed token. Immutable.

    `body` is the decoded third segment: payload||tag, nonce||ciphertext
    (||tag), or payload||signature depending on version and purpose.
    """

    model_config = ConfigDict(frozen=True)

    version: ProtocolVersion
    purpose: Purpose
    body: bytes = Field(..., min_length=1)
    footer: bytes = Field(default=b"")

    @property
    def header(self) -> str:
        return make_header(self.version, self.purpose)

    @property
    def header_bytes(self) -> bytes:
        return self.header.encode("ascii")

    def to_string(self) -> str:
        return serialize(self.version, self.purpose, self.body, self.footer)

    def __str__(self) -> str:
        return self.to_string()


def make_header(version: ProtocolVersion, purpose: Purpose) -> str:
    return f"{version.value}.{purpose.value}."


# ---------------------------------------------------------------------------
# Serialize / parse
# ---------------------------------------------------------------------------

def serialize(
    version: ProtocolVersion,
    purpose: Purpose,
    body: bytes,
    footer: bytes = b"",
) -> str:
    """Produce the wire string for an already-protected body."""
    wire = make_header(version, purpose) + b64url_encode(body)
    if footer:
        wire += "." + b64url_encode(footer)
    return wire


def _as_text(wire: Union[str, bytes]) -> str:
    if isinstance(wire, (bytes, bytearray)):
        try:
            return bytes(wire).decode("ascii")
        except UnicodeDecodeError as exc:
            raise MalformedTokenError("Token must be ASCII") from exc
    if not isinstance(wire, str):
        raise MalformedTokenError(
            f"Token must be str, got {type(wire).__name__}"
        )
    return wire


def parse(wire: Union[str, bytes]) -> Token:
    """Split and decode a wire string. No cryptographic checks.

    Raises:
        MalformedTokenError: Wrong segment count, empty body, bad base64url.
        InvalidVersionError: Unknown version mnemonic.
        InvalidPurposeError: Unknown purpose mnemonic.
    """
    text = _as_text(wire)
    parts = text.split(".")
    if len(parts) not in (3, 4):
        raise MalformedTokenError(
            f"Token must have 3 or 4 segments, got {len(parts)}"
        )

    try:
        version = ProtocolVersion(parts[0])
    except ValueError:
        raise InvalidVersionError(f"Unsupported version: {parts[0]!r}") from None
    try:
        purpose = Purpose(parts[1])
    except ValueError:
        raise InvalidPurposeError(f"Unknown purpose: {parts[1]!r}") from None

    if not parts[2]:
        raise MalformedTokenError("Token body is empty")
    body = b64url_decode(parts[2])

    footer = b""
    if len(parts) == 4:
        if not parts[3]:
            raise MalformedTokenError("Empty footer segment must be omitted")
        footer = b64url_decode(parts[3])

    return Token(version=version, purpose=purpose, body=body, footer=footer)


def extract_footer(wire: Union[str, bytes]) -> bytes:
    """Return the token's footer WITHOUT authenticating it.

    Use only to select a key (e.g. by key id) before verification.
    """
    return parse(wire).footer


def check_footer(token: Token, expected: bytes) -> None:
    """Raise FooterMismatch unless the token's footer equals `expected`."""
    if not hmac.compare_digest(token.footer, expected):
        raise FooterMismatch("Token footer does not match the expected footer")


def split_tail(body: bytes, tail_length: int, head_length: int = 0) -> tuple[bytes, bytes]:
    """Split `body` into (everything but the last `tail_length` bytes, tail).

    Raises MalformedTokenError if the body cannot hold `head_length`
    leading bytes plus the tail.
    """
    if len(body) < head_length + tail_length:
        raise MalformedTokenError(
            f"Token body too short: {len(body)} bytes, need at least "
            f"{head_length + tail_length}"
        )
    return body[: len(body) - tail_length], body[len(body) - tail_length :]
