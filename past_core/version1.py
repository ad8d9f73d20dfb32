"""
past_core/version1.py — Protocol version 1 ("v1")

Conservative primitives, all from the Python `cryptography` library:
- auth: HMAC-SHA384
- enc:  AES-256-CTR + HMAC-SHA384 (encrypt-then-MAC), keys split by
        HKDF-SHA384, nonce = HMAC-SHA384(random, message)[:32]
- sign: RSA-PSS, SHA-384, MGF1-SHA384, 2048-bit keys

Callers go through past_core.protocol, which parses the wire string and
checks key binding before any function here runs.
"""

from __future__ import annotations

import os

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from .codec import Token, make_header, serialize, split_tail
from .exceptions import AuthenticationFailure
from .keys import (
    AsymmetricPublicKey,
    AsymmetricSecretKey,
    ProtocolVersion,
    Purpose,
    SymmetricAuthenticationKey,
    SymmetricEncryptionKey,
)
from .pae import pre_auth_encode


VERSION = ProtocolVersion.V1

MAC_BYTES = 48            # SHA-384 output
NONCE_BYTES = 32
NONCE_SALT_BYTES = 16     # nonce[:16] salts HKDF, nonce[16:] is the CTR block
CIPHER_KEY_BYTES = 32
PSS_SALT_BYTES = 48

INFO_ENCRYPTION_KEY = b"past-encryption-key"
INFO_AUTH_KEY = b"past-auth-key-for-aead"


def _header(purpose: Purpose) -> bytes:
    return make_header(VERSION, purpose).encode("ascii")


def _hmac_sha384(key: bytes, data: bytes) -> bytes:
    h = hmac.HMAC(key, hashes.SHA384())
    h.update(data)
    return h.finalize()


def _hmac_sha384_verify(key: bytes, data: bytes, tag: bytes) -> None:
    h = hmac.HMAC(key, hashes.SHA384())
    h.update(data)
    try:
        h.verify(tag)
    except InvalidSignature as exc:
        raise AuthenticationFailure("Invalid message authentication code") from exc


def _pss() -> padding.PSS:
    return padding.PSS(
        mgf=padding.MGF1(hashes.SHA384()),
        salt_length=PSS_SALT_BYTES,
    )


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------

def auth(payload: bytes, key: SymmetricAuthenticationKey, footer: bytes = b"") -> str:
    header = _header(Purpose.AUTH)
    tag = _hmac_sha384(key.raw(), pre_auth_encode([header, payload, footer]))
    return serialize(VERSION, Purpose.AUTH, payload + tag, footer)


def auth_verify(token: Token, key: SymmetricAuthenticationKey) -> bytes:
    payload, tag = split_tail(token.body, MAC_BYTES)
    _hmac_sha384_verify(
        key.raw(),
        pre_auth_encode([token.header_bytes, payload, token.footer]),
        tag,
    )
    return payload


# ---------------------------------------------------------------------------
# enc
# ---------------------------------------------------------------------------

def _split_keys(key: SymmetricEncryptionKey, salt: bytes) -> tuple[bytes, bytes]:
    """Derive the per-message (encryption key, authentication key)."""
    encryption_key = HKDF(
        algorithm=hashes.SHA384(),
        length=CIPHER_KEY_BYTES,
        salt=salt,
        info=INFO_ENCRYPTION_KEY,
    ).derive(key.raw())
    auth_key = HKDF(
        algorithm=hashes.SHA384(),
        length=CIPHER_KEY_BYTES,
        salt=salt,
        info=INFO_AUTH_KEY,
    ).derive(key.raw())
    return encryption_key, auth_key


def _aes_ctr(key: bytes, counter: bytes, data: bytes) -> bytes:
    # CTR mode: encryption and decryption are the same operation
    ctx = Cipher(algorithms.AES(key), modes.CTR(counter)).encryptor()
    return ctx.update(data) + ctx.finalize()


def _derive_nonce(payload: bytes, seed: bytes) -> bytes:
    """Nonce stays unique even if `seed` comes from a weak RNG."""
    return _hmac_sha384(seed, payload)[:NONCE_BYTES]


def encrypt(
    payload: bytes,
    key: SymmetricEncryptionKey,
    footer: bytes = b"",
    _seed: bytes | None = None,
) -> str:
    header = _header(Purpose.ENC)
    nonce = _derive_nonce(payload, _seed if _seed is not None else os.urandom(32))
    encryption_key, auth_key = _split_keys(key, nonce[:NONCE_SALT_BYTES])

    ciphertext = _aes_ctr(encryption_key, nonce[NONCE_SALT_BYTES:], payload)
    tag = _hmac_sha384(
        auth_key, pre_auth_encode([header, nonce, ciphertext, footer])
    )
    return serialize(VERSION, Purpose.ENC, nonce + ciphertext + tag, footer)


def decrypt(token: Token, key: SymmetricEncryptionKey) -> bytes:
    rest, tag = split_tail(token.body, MAC_BYTES, head_length=NONCE_BYTES)
    nonce, ciphertext = rest[:NONCE_BYTES], rest[NONCE_BYTES:]
    encryption_key, auth_key = _split_keys(key, nonce[:NONCE_SALT_BYTES])

    # MAC first; plaintext is never produced for an unauthenticated body
    _hmac_sha384_verify(
        auth_key,
        pre_auth_encode([token.header_bytes, nonce, ciphertext, token.footer]),
        tag,
    )
    return _aes_ctr(encryption_key, nonce[NONCE_SALT_BYTES:], ciphertext)


# ---------------------------------------------------------------------------
# sign
# ---------------------------------------------------------------------------

def sign(payload: bytes, key: AsymmetricSecretKey, footer: bytes = b"") -> str:
    header = _header(Purpose.SIGN)
    signature = key.key_object.sign(
        pre_auth_encode([header, payload, footer]),
        _pss(),
        hashes.SHA384(),
    )
    return serialize(VERSION, Purpose.SIGN, payload + signature, footer)


def sign_verify(token: Token, key: AsymmetricPublicKey) -> bytes:
    payload, signature = split_tail(token.body, key.signature_length())
    try:
        key.key_object.verify(
            signature,
            pre_auth_encode([token.header_bytes, payload, token.footer]),
            _pss(),
            hashes.SHA384(),
        )
    except InvalidSignature as exc:
        raise AuthenticationFailure("Invalid signature for this message") from exc
    return payload
