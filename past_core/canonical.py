"""
past_core/canonical.py — Canonical JSON for claim payloads (RFC 8785)

Claims are serialized with the JSON Canonicalization Scheme so that the
same claim set always produces the same payload bytes, whichever order
the claims were set in. Decoding is plain JSON with the same value
restrictions.

Reference: https://www.rfc-editor.org/rfc/rfc8785
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict

import jcs

from .exceptions import EncodingError


def encode_claims(claims: Dict[str, Any]) -> bytes:
    """Serialize a claims mapping to canonical UTF-8 JSON bytes.

    Raises:
        EncodingError: Non-string keys, NaN/Infinity, or values that are
                       not JSON types.
    """
    if not isinstance(claims, dict):
        raise EncodingError(
            f"Claims must be a mapping, got {type(claims).__name__}"
        )
    try:
        return canonicalize(claims)
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"Could not encode claims: {exc}") from exc


def decode_claims(payload: bytes) -> Dict[str, Any]:
    """Parse payload bytes back into a claims mapping."""
    try:
        decoded = json.loads(payload.decode("utf-8"), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as exc:
        raise EncodingError("Payload is not a valid JSON document") from exc
    if not isinstance(decoded, dict):
        raise EncodingError("Payload is not a JSON object")
    return decoded


def _reject_constant(name: str) -> None:
    raise ValueError(f"{name} is not a valid JSON number")


def canonicalize(obj: Any) -> bytes:
    """Serialize any JSON-compatible value to canonical JSON bytes.

    Raises:
        ValueError: NaN or Infinity anywhere in `obj`.
        TypeError: Non-string object keys or non-JSON types.
    """
    _check_value(obj)
    return jcs.canonicalize(obj)


def _check_value(value: Any) -> None:
    # jcs checks neither key types nor float finiteness
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("NaN and Infinity are not valid JSON")
    if isinstance(value, dict):
        for k, v in value.items():
            if not isinstance(k, str):
                raise TypeError(
                    f"Claim names must be strings, got {type(k).__name__}: {k!r}"
                )
            _check_value(v)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_value(item)
