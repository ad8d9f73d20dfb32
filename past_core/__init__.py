"""
PAST Core — Platform-Agnostic Security Tokens.

Versioned tokens whose cryptographic suite is fixed by the version
header, never negotiated:

    v1: HMAC-SHA384 | AES-256-CTR + HMAC-SHA384 | RSA-PSS-SHA384
    v2: HMAC-SHA512/256 | XChaCha20-Poly1305 | Ed25519

__version__ is the package version; protocol versions are the
ProtocolVersion enum.
"""

__version__ = "0.1.0"

from .exceptions import (
    PastError,
    MalformedTokenError,
    InvalidVersionError,
    InvalidPurposeError,
    KeyPurposeMismatch,
    KeyVersionMismatch,
    AuthenticationFailure,
    FooterMismatch,
    EncodingError,
    ClaimNotFoundError,
)
from .keys import (
    ProtocolVersion,
    Purpose,
    DEFAULT_VERSION,
    SymmetricAuthenticationKey,
    SymmetricEncryptionKey,
    AsymmetricSecretKey,
    AsymmetricPublicKey,
)
from .pae import pre_auth_encode
from .registry import bind, bind_version, purpose_for_key
from .codec import Token, parse, serialize, extract_footer
from .canonical import canonicalize, encode_claims, decode_claims
from .protocol import (
    issue,
    verify,
    authenticate,
    verify_authentication,
    encrypt,
    decrypt,
    sign,
    verify_signature,
)
from .json_token import JsonToken
