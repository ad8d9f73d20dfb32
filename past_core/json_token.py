"""
past_core/json_token.py — JSON claims builder on top of the protocol layer

    token = (
        JsonToken()
        .set_key(key)
        .set_purpose(Purpose.ENC)
        .set_subject("alice")
        .set_expiration(datetime.now(timezone.utc) + timedelta(hours=1))
        .set_footer_dict({"kid": "1"})
    )
    wire = token.to_string()
    again = JsonToken.from_string(wire, key, footer=token.get_footer())

Claims are stored, not interpreted: expiration, audience and friends are
convenience accessors only. Enforcing them is the caller's job.

The serialization cache is keyed on a fingerprint of every field that
affects the output, so a changed claim, footer, key, purpose or version
can never return a stale string.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union

import structlog

from . import protocol
from .canonical import canonicalize, decode_claims, encode_claims
from .codec import Token, parse
from .exceptions import (
    ClaimNotFoundError,
    EncodingError,
    KeyPurposeMismatch,
    PastError,
)
from .keys import (
    DEFAULT_VERSION,
    Key,
    ProtocolVersion,
    Purpose,
    coerce_purpose,
    coerce_version,
)
from .registry import bind, bind_version, purpose_for_key

# Wraps the stdlib logger: silent unless the application enables it
logger = structlog.wrap_logger(logging.getLogger(__name__))


# Registered claim names
AUDIENCE = "aud"
EXPIRATION = "exp"
ISSUED_AT = "iat"
ISSUER = "iss"
JTI = "jti"
NOT_BEFORE = "nbf"
SUBJECT = "sub"


def _format_time(time: Optional[datetime]) -> str:
    if time is None:
        time = datetime.now(timezone.utc)
    elif time.tzinfo is None:
        time = time.replace(tzinfo=timezone.utc)
    return time.isoformat(timespec="seconds")


class JsonToken:
    """Fluent builder for a claims token. Not thread-safe; build one per token."""

    def __init__(self) -> None:
        self._claims: Dict[str, Any] = {}
        self._footer: bytes = b""
        self._key: Optional[Key] = None
        self._purpose: Optional[Purpose] = None
        self._version: ProtocolVersion = DEFAULT_VERSION
        self._cache: Optional[Tuple[tuple, str]] = None

    # ------------------------------------------------------------------
    # Generic claims
    # ------------------------------------------------------------------

    def get(self, claim: str) -> Any:
        if claim in self._claims:
            return self._claims[claim]
        raise ClaimNotFoundError(f"Claim not found: {claim}")

    def get_claims(self) -> Dict[str, Any]:
        return dict(self._claims)

    def set(self, claim: str, value: Any) -> "JsonToken":
        self._claims[claim] = value
        return self

    def set_claims(self, claims: Dict[str, Any]) -> "JsonToken":
        self._claims = dict(claims)
        return self

    # ------------------------------------------------------------------
    # Registered claims
    # ------------------------------------------------------------------

    def get_audience(self) -> str:
        return str(self.get(AUDIENCE))

    def get_expiration(self) -> datetime:
        return datetime.fromisoformat(str(self.get(EXPIRATION)))

    def get_issued_at(self) -> datetime:
        return datetime.fromisoformat(str(self.get(ISSUED_AT)))

    def get_issuer(self) -> str:
        return str(self.get(ISSUER))

    def get_jti(self) -> str:
        return str(self.get(JTI))

    def get_not_before(self) -> datetime:
        return datetime.fromisoformat(str(self.get(NOT_BEFORE)))

    def get_subject(self) -> str:
        return str(self.get(SUBJECT))

    def set_audience(self, aud: str) -> "JsonToken":
        return self.set(AUDIENCE, aud)

    def set_expiration(self, time: Optional[datetime] = None) -> "JsonToken":
        """Set 'exp'. Naive datetimes are taken as UTC; None means now."""
        return self.set(EXPIRATION, _format_time(time))

    def set_issued_at(self, time: Optional[datetime] = None) -> "JsonToken":
        return self.set(ISSUED_AT, _format_time(time))

    def set_issuer(self, iss: str) -> "JsonToken":
        return self.set(ISSUER, iss)

    def set_jti(self, jti: str) -> "JsonToken":
        return self.set(JTI, jti)

    def set_not_before(self, time: Optional[datetime] = None) -> "JsonToken":
        return self.set(NOT_BEFORE, _format_time(time))

    def set_subject(self, sub: str) -> "JsonToken":
        return self.set(SUBJECT, sub)

    # ------------------------------------------------------------------
    # Footer
    # ------------------------------------------------------------------

    def get_footer(self) -> bytes:
        return self._footer

    def get_footer_dict(self) -> Dict[str, Any]:
        """Footer parsed as a JSON object."""
        try:
            decoded = json.loads(self._footer.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise EncodingError("Footer is not a valid JSON document") from exc
        if not isinstance(decoded, dict):
            raise EncodingError("Footer is not a JSON object")
        return decoded

    def set_footer(self, footer: Union[bytes, str] = b"") -> "JsonToken":
        self._footer = footer.encode("utf-8") if isinstance(footer, str) else bytes(footer)
        return self

    def set_footer_dict(self, footer: Dict[str, Any]) -> "JsonToken":
        try:
            encoded = canonicalize(footer)
        except (TypeError, ValueError) as exc:
            raise EncodingError("Could not encode footer into JSON") from exc
        return self.set_footer(encoded)

    # ------------------------------------------------------------------
    # Key, purpose, version
    # ------------------------------------------------------------------

    def set_key(self, key: Key, check_purpose: bool = False) -> "JsonToken":
        """Set the key. With `check_purpose`, validate it against the current purpose."""
        if check_purpose:
            if self._purpose is None:
                raise KeyPurposeMismatch("Unknown purpose")
            bind(key, self._purpose)
            bind_version(key, self._version)
        self._key = key
        return self

    def set_purpose(self, purpose: Union[str, Purpose], check_key_type: bool = False) -> "JsonToken":
        """Set the purpose. With `check_key_type`, validate it against the current key."""
        purpose = coerce_purpose(purpose)
        if check_key_type:
            if self._key is None:
                raise KeyPurposeMismatch("No key has been set")
            bind(self._key, purpose)
        self._purpose = purpose
        return self

    def set_version(self, version: Union[str, ProtocolVersion]) -> "JsonToken":
        self._version = coerce_version(version)
        return self

    def get_key(self) -> Optional[Key]:
        return self._key

    def get_purpose(self) -> Optional[Purpose]:
        return self._purpose

    def get_version(self) -> ProtocolVersion:
        return self._version

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _fingerprint(self, payload: bytes, purpose: Purpose) -> tuple:
        return (payload, self._footer, self._key, purpose, self._version)

    def to_string(self) -> str:
        """Serialize. Key/purpose/version binding is re-checked every call.

        Raises:
            PastError: No key set, binding failed, or claims not encodable.
        """
        if self._key is None:
            raise PastError("No key has been set")
        purpose = self._purpose or purpose_for_key(self._key)
        # Mutual sanity checks
        bind(self._key, purpose)
        bind_version(self._key, self._version)

        payload = encode_claims(self._claims)
        fingerprint = self._fingerprint(payload, purpose)
        if self._cache is not None and self._cache[0] == fingerprint:
            return self._cache[1]

        wire = protocol.issue(payload, self._key, purpose, self._footer, self._version)
        self._cache = (fingerprint, wire)
        return wire

    def build(self) -> Token:
        """Serialize and return the immutable Token view."""
        return parse(self.to_string())

    def __str__(self) -> str:
        try:
            return self.to_string()
        except Exception as exc:  # noqa: BLE001
            logger.debug("token_serialization_failed", error=type(exc).__name__)
            return ""

    def __repr__(self) -> str:
        purpose = self._purpose.value if self._purpose else None
        return (
            f"<JsonToken {self._version.value} purpose={purpose} "
            f"claims={sorted(self._claims)}>"
        )

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @classmethod
    def from_string(
        cls,
        wire: str,
        key: Key,
        purpose: Union[str, Purpose, None] = None,
        footer: Union[bytes, str] = b"",
        version: Union[str, ProtocolVersion, None] = None,
    ) -> "JsonToken":
        """Verify/decrypt `wire` and rebuild a JsonToken from its claims.

        `purpose` defaults to the one purpose `key` can serve.
        """
        if purpose is None:
            purpose = purpose_for_key(key)
        payload = protocol.verify(wire, key, purpose, footer, version)
        token = parse(wire)

        parsed = cls()
        parsed._claims = decode_claims(payload)
        parsed._footer = token.footer
        parsed._key = key
        parsed._purpose = token.purpose
        parsed._version = token.version
        # Only a canonical payload can stand in for what to_string() would issue
        try:
            canonical = encode_claims(parsed._claims)
        except EncodingError:
            canonical = None
        if canonical == payload:
            parsed._cache = (parsed._fingerprint(payload, token.purpose), wire)
        return parsed
