"""
past_core/exceptions.py — Error taxonomy for PAST tokens.

Every failure inside the core is raised as one of these types and
propagates to the immediate caller. Parse errors are always raised
before any MAC or signature comparison runs.
"""

from __future__ import annotations


class PastError(Exception):
    """Base class for every error raised by past_core."""


# ---------------------------------------------------------------------------
# Wire-level errors (raised before any cryptography runs)
# ---------------------------------------------------------------------------

class MalformedTokenError(PastError, ValueError):
    """Wrong segment count, bad base64url, truncated body, unknown header."""


class InvalidVersionError(MalformedTokenError):
    """Unknown or unexpected protocol version mnemonic."""


class InvalidPurposeError(MalformedTokenError):
    """Unknown or unexpected purpose mnemonic."""


# ---------------------------------------------------------------------------
# Key binding errors
# ---------------------------------------------------------------------------

class KeyPurposeMismatch(PastError, TypeError):
    """A key was paired with a purpose its type cannot serve."""


class KeyVersionMismatch(PastError, TypeError):
    """An asymmetric key was used with a protocol version it was not made for."""


# ---------------------------------------------------------------------------
# Verification errors
# ---------------------------------------------------------------------------

class AuthenticationFailure(PastError):
    """MAC, AEAD tag or signature did not verify."""


class FooterMismatch(PastError):
    """The token's footer differs from the footer the caller pinned."""


# ---------------------------------------------------------------------------
# Claims facade errors
# ---------------------------------------------------------------------------

class EncodingError(PastError, ValueError):
    """Claims or footer could not be encoded to / decoded from JSON."""


class ClaimNotFoundError(PastError, KeyError):
    """Requested claim is not present in the token."""
