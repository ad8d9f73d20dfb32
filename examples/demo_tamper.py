#!/usr/bin/env python3
"""
PAST Tamper Detection Demo

Flow:
  1. Issue a v2 encrypted token and a v2 signed token with a footer
  2. Flip one character in each → verification refuses both
  3. Pin a different footer → FooterMismatch, even though the MAC is fine
  4. Use a v1 signing key on a v2 token → KeyVersionMismatch

Run:
    python examples/demo_tamper.py
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from past_core import (
    AsymmetricSecretKey,
    AuthenticationFailure,
    FooterMismatch,
    KeyVersionMismatch,
    MalformedTokenError,
    ProtocolVersion,
    SymmetricEncryptionKey,
    decrypt,
    encode_claims,
    encrypt,
    sign,
    verify_signature,
)


def flip_char(wire: str, index: int) -> str:
    """Replace one base64url character with a different one."""
    replacement = "A" if wire[index] != "A" else "B"
    return wire[:index] + replacement + wire[index + 1:]


def attempt(label: str, fn) -> None:
    try:
        result = fn()
        print(f"  ✓ {label}: {result!r}")
    except (AuthenticationFailure, FooterMismatch, KeyVersionMismatch, MalformedTokenError) as e:
        print(f"  ✗ {label}: {type(e).__name__}: {e}")


def main() -> None:
    payload = encode_claims({"sub": "alice", "role": "admin"})

    print("━━━ Encrypted token (v2.enc) ━━━")
    enc_key = SymmetricEncryptionKey.generate()
    wire = encrypt(payload, enc_key, footer=b"kid:1")
    print(f"  {wire}")
    attempt("original", lambda: decrypt(wire, enc_key, footer=b"kid:1"))
    body_index = len("v2.enc.") + 30
    attempt("body tampered", lambda: decrypt(flip_char(wire, body_index), enc_key, footer=b"kid:1"))
    attempt("footer pinned to kid:2", lambda: decrypt(wire, enc_key, footer=b"kid:2"))

    print("\n━━━ Signed token (v2.sign) ━━━")
    signing_key = AsymmetricSecretKey.generate(ProtocolVersion.V2)
    signed = sign(payload, signing_key, footer=b"kid:7")
    print(f"  {signed}")
    public_key = signing_key.public_key()
    attempt("original", lambda: verify_signature(signed, public_key, footer=b"kid:7"))
    attempt("body tampered", lambda: verify_signature(flip_char(signed, len("v2.sign.") + 3), public_key, footer=b"kid:7"))

    v1_key = AsymmetricSecretKey.generate(ProtocolVersion.V1).public_key()
    attempt("v1 key on v2 token", lambda: verify_signature(signed, v1_key, footer=b"kid:7"))


if __name__ == "__main__":
    main()
