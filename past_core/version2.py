"""
past_core/version2.py — Protocol version 2 ("v2")

Modern primitives:
- auth: HMAC-SHA512 truncated to 256 bits (libsodium crypto_auth)
- enc:  XChaCha20-Poly1305 IETF via PyNaCl, nonce = BLAKE2b-192 of the
        message keyed with 24 random bytes
- sign: Ed25519 via `cryptography`
"""

from __future__ import annotations

import os

import nacl.bindings
import nacl.encoding
import nacl.exceptions
import nacl.hash
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import constant_time, hashes, hmac

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


VERSION = ProtocolVersion.V2

MAC_BYTES = 32
NONCE_BYTES = 24
AEAD_TAG_BYTES = 16    # Poly1305
SIGNATURE_BYTES = 64


def _header(purpose: Purpose) -> bytes:
    return make_header(VERSION, purpose).encode("ascii")


def _hmac_sha512_256(key: bytes, data: bytes) -> bytes:
    h = hmac.HMAC(key, hashes.SHA512())
    h.update(data)
    return h.finalize()[:MAC_BYTES]


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------

def auth(payload: bytes, key: SymmetricAuthenticationKey, footer: bytes = b"") -> str:
    header = _header(Purpose.AUTH)
    tag = _hmac_sha512_256(key.raw(), pre_auth_encode([header, payload, footer]))
    return serialize(VERSION, Purpose.AUTH, payload + tag, footer)


def auth_verify(token: Token, key: SymmetricAuthenticationKey) -> bytes:
    payload, tag = split_tail(token.body, MAC_BYTES)
    expected = _hmac_sha512_256(
        key.raw(),
        pre_auth_encode([token.header_bytes, payload, token.footer]),
    )
    if not constant_time.bytes_eq(expected, tag):
        raise AuthenticationFailure("Invalid message authentication code")
    return payload


# ---------------------------------------------------------------------------
# enc
# ---------------------------------------------------------------------------

def _derive_nonce(payload: bytes, seed: bytes) -> bytes:
    return nacl.hash.blake2b(
        payload,
        digest_size=NONCE_BYTES,
        key=seed,
        encoder=nacl.encoding.RawEncoder,
    )


def encrypt(
    payload: bytes,
    key: SymmetricEncryptionKey,
    footer: bytes = b"",
    _seed: bytes | None = None,
) -> str:
    header = _header(Purpose.ENC)
    nonce = _derive_nonce(
        payload, _seed if _seed is not None else os.urandom(NONCE_BYTES)
    )
    ciphertext = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_encrypt(
        payload,
        pre_auth_encode([header, nonce, footer]),
        nonce,
        key.raw(),
    )
    return serialize(VERSION, Purpose.ENC, nonce + ciphertext, footer)


def decrypt(token: Token, key: SymmetricEncryptionKey) -> bytes:
    split_tail(token.body, AEAD_TAG_BYTES, head_length=NONCE_BYTES)
    nonce, ciphertext = token.body[:NONCE_BYTES], token.body[NONCE_BYTES:]
    try:
        return nacl.bindings.crypto_aead_xchacha20poly1305_ietf_decrypt(
            ciphertext,
            pre_auth_encode([token.header_bytes, nonce, token.footer]),
            nonce,
            key.raw(),
        )
    except nacl.exceptions.CryptoError as exc:
        raise AuthenticationFailure("Invalid message authentication code") from exc


# ---------------------------------------------------------------------------
# sign
# ---------------------------------------------------------------------------

def sign(payload: bytes, key: AsymmetricSecretKey, footer: bytes = b"") -> str:
    header = _header(Purpose.SIGN)
    signature = key.key_object.sign(pre_auth_encode([header, payload, footer]))
    return serialize(VERSION, Purpose.SIGN, payload + signature, footer)


def sign_verify(token: Token, key: AsymmetricPublicKey) -> bytes:
    payload, signature = split_tail(token.body, SIGNATURE_BYTES)
    try:
        key.key_object.verify(
            signature,
            pre_auth_encode([token.header_bytes, payload, token.footer]),
        )
    except InvalidSignature as exc:
        raise AuthenticationFailure("Invalid signature for this message") from exc
    return payload
