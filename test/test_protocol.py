"""
test/test_protocol.py — Version suites and protocol entry points

Requires: pydantic, cryptography, pynacl, structlog

Run: pytest test/test_protocol.py -v
  or: python test/test_protocol.py

Test structure:
  1. Round-trip for every (version, purpose)
  2. Tamper sensitivity (every body bit, footer substitution)
  3. Key purpose and version binding
  4. Footer pinning and header checks
  5. Known constructions (tags recomputed independently)
  6. Concrete scenario: v2.enc with footer kid:1
"""

import hashlib
import hmac
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import nacl.bindings

from past_core import (
    AsymmetricSecretKey,
    AuthenticationFailure,
    FooterMismatch,
    InvalidPurposeError,
    InvalidVersionError,
    KeyPurposeMismatch,
    KeyVersionMismatch,
    MalformedTokenError,
    PastError,
    ProtocolVersion,
    Purpose,
    SymmetricAuthenticationKey,
    SymmetricEncryptionKey,
    authenticate,
    decrypt,
    encode_claims,
    encrypt,
    issue,
    parse,
    pre_auth_encode,
    serialize,
    sign,
    verify,
    verify_authentication,
    verify_signature,
)
from past_core import version1, version2


# ==================================================================
# Helpers
# ==================================================================

AUTH_KEY = SymmetricAuthenticationKey.generate()
ENC_KEY = SymmetricEncryptionKey.generate()
SIGN_KEYS = {
    ProtocolVersion.V1: AsymmetricSecretKey.generate(ProtocolVersion.V1),
    ProtocolVersion.V2: AsymmetricSecretKey.generate(ProtocolVersion.V2),
}


def issue_key(version: ProtocolVersion, purpose: Purpose):
    if purpose == Purpose.AUTH:
        return AUTH_KEY
    if purpose == Purpose.ENC:
        return ENC_KEY
    return SIGN_KEYS[version]


def verify_key(version: ProtocolVersion, purpose: Purpose):
    if purpose == Purpose.SIGN:
        return SIGN_KEYS[version].public_key()
    return issue_key(version, purpose)


def all_combinations():
    for version in ProtocolVersion:
        for purpose in Purpose:
            yield version, purpose


def expect(exc_type, fn, *args, **kwargs):
    """Call fn and assert it raises exc_type. Returns the exception."""
    try:
        fn(*args, **kwargs)
    except exc_type as e:
        return e
    raise AssertionError(f"Expected {exc_type.__name__} from {fn.__name__}")


def reserialize(wire: str, body: bytes = None, footer: bytes = None) -> str:
    token = parse(wire)
    return serialize(
        token.version,
        token.purpose,
        token.body if body is None else body,
        token.footer if footer is None else footer,
    )


# ==================================================================
# 1. Round-trip
# ==================================================================

def test_roundtrip_every_version_and_purpose():
    payload = b'{"data":"this is a signed message","exp":"2039-01-01T00:00:00+00:00"}'
    for version, purpose in all_combinations():
        for footer in (b"", b"kid:1", b'{"kid":"UbkK8Y6iv4GZhFp6Tx3IWLWLfNXSEvJcdT3zdR65YZxo"}'):
            wire = issue(payload, issue_key(version, purpose), purpose, footer, version)
            assert wire.startswith(f"{version.value}.{purpose.value}.")
            assert wire.count(".") == (3 if footer else 2)
            out = verify(wire, verify_key(version, purpose), purpose, footer)
            assert out == payload, f"{version.value}.{purpose.value} footer={footer!r}"
    print("  PASS: test_roundtrip_every_version_and_purpose")


def test_roundtrip_empty_payload():
    for version, purpose in all_combinations():
        wire = issue(b"", issue_key(version, purpose), purpose, b"", version)
        assert verify(wire, verify_key(version, purpose), purpose) == b""
    print("  PASS: test_roundtrip_empty_payload")


def test_named_entry_points():
    payload = b"named"
    for version in ProtocolVersion:
        wire = authenticate(payload, AUTH_KEY, b"f", version)
        assert verify_authentication(wire, AUTH_KEY, b"f") == payload
        wire = encrypt(payload, ENC_KEY, b"f", version)
        assert decrypt(wire, ENC_KEY, b"f") == payload
        wire = sign(payload, SIGN_KEYS[version], b"f")
        assert wire.startswith(f"{version.value}.sign.")
        assert verify_signature(wire, SIGN_KEYS[version].public_key(), b"f") == payload
        # The secret key may verify too
        assert verify_signature(wire, SIGN_KEYS[version], b"f") == payload
    # Text payloads and footers are UTF-8 encoded
    wire = authenticate("héllo", AUTH_KEY, "föoter")
    assert verify_authentication(wire, AUTH_KEY, "föoter") == "héllo".encode("utf-8")
    print("  PASS: test_named_entry_points")


def test_encryption_hides_payload_and_is_randomized():
    payload = b"very secret plaintext value"
    for version in ProtocolVersion:
        a = encrypt(payload, ENC_KEY, version=version)
        b = encrypt(payload, ENC_KEY, version=version)
        assert a != b
        assert payload not in parse(a).body
    # Auth and sign leave the payload readable
    assert parse(authenticate(payload, AUTH_KEY)).body.startswith(payload)
    print("  PASS: test_encryption_hides_payload_and_is_randomized")


def test_nonce_derivation_is_deterministic_in_seed_and_message():
    seed = b"\x01" * 32
    for suite in (version1, version2):
        nonce_len = suite.NONCE_BYTES
        a = parse(suite.encrypt(b"message one", ENC_KEY, b"", _seed=seed[:nonce_len]))
        b = parse(suite.encrypt(b"message one", ENC_KEY, b"", _seed=seed[:nonce_len]))
        c = parse(suite.encrypt(b"message two", ENC_KEY, b"", _seed=seed[:nonce_len]))
        assert a.body == b.body
        assert a.body[:nonce_len] != c.body[:nonce_len]
    print("  PASS: test_nonce_derivation_is_deterministic_in_seed_and_message")


# ==================================================================
# 2. Tamper sensitivity
# ==================================================================

def test_every_body_bit_flip_is_rejected():
    payload = b"tamper"
    for version, purpose in all_combinations():
        wire = issue(payload, issue_key(version, purpose), purpose, b"kid", version)
        body = parse(wire).body
        for i in range(len(body)):
            for bit in (0x01, 0x80):
                tampered = bytearray(body)
                tampered[i] ^= bit
                forged = reserialize(wire, body=bytes(tampered))
                expect(
                    AuthenticationFailure,
                    verify, forged, verify_key(version, purpose), purpose, b"kid",
                )
    print("  PASS: test_every_body_bit_flip_is_rejected")


def test_wire_character_flip_never_verifies():
    """Flipping a character may break base64 or the MAC; it never verifies."""
    for version, purpose in all_combinations():
        wire = issue(b"chars", issue_key(version, purpose), purpose, b"kid:1", version)
        for i in range(len(wire)):
            if wire[i] == ".":
                continue
            swapped = wire[:i] + ("B" if wire[i] != "B" else "C") + wire[i + 1:]
            expect(PastError, verify, swapped, verify_key(version, purpose), purpose, b"kid:1")
    print("  PASS: test_wire_character_flip_never_verifies")


def test_substituted_footer_fails():
    for version, purpose in all_combinations():
        wire = issue(b"payload", issue_key(version, purpose), purpose, b"kid:1", version)
        forged = reserialize(wire, footer=b"kid:2")
        # Pinned to the original footer: refused before any crypto
        expect(FooterMismatch, verify, forged, verify_key(version, purpose), purpose, b"kid:1")
        # Pinned to the forged footer: the MAC/signature does not cover it
        expect(AuthenticationFailure, verify, forged, verify_key(version, purpose), purpose, b"kid:2")
        # Dropping the footer entirely
        stripped = reserialize(wire, footer=b"")
        expect(AuthenticationFailure, verify, stripped, verify_key(version, purpose), purpose, b"")
    print("  PASS: test_substituted_footer_fails")


def test_header_swap_between_versions_fails():
    """A v1 auth body relabelled v2 must not verify, and vice versa."""
    for src, dst in [(ProtocolVersion.V1, ProtocolVersion.V2), (ProtocolVersion.V2, ProtocolVersion.V1)]:
        for purpose in (Purpose.AUTH, Purpose.ENC):
            wire = issue(b"x" * 80, issue_key(src, purpose), purpose, b"", src)
            relabelled = dst.value + wire[len(src.value):]
            expect(PastError, verify, relabelled, issue_key(dst, purpose), purpose)
    print("  PASS: test_header_swap_between_versions_fails")


def test_truncated_body_is_malformed():
    short = {
        (ProtocolVersion.V1, Purpose.AUTH): 47,
        (ProtocolVersion.V1, Purpose.ENC): 79,
        (ProtocolVersion.V1, Purpose.SIGN): 255,
        (ProtocolVersion.V2, Purpose.AUTH): 31,
        (ProtocolVersion.V2, Purpose.ENC): 39,
        (ProtocolVersion.V2, Purpose.SIGN): 63,
    }
    for (version, purpose), length in short.items():
        wire = serialize(version, purpose, b"\x00" * length)
        e = expect(MalformedTokenError, verify, wire, verify_key(version, purpose), purpose)
        assert "too short" in str(e)
    print("  PASS: test_truncated_body_is_malformed")


def test_wrong_key_fails_authentication():
    other_auth = SymmetricAuthenticationKey.generate()
    other_enc = SymmetricEncryptionKey.generate()
    for version in ProtocolVersion:
        expect(AuthenticationFailure, verify_authentication,
               authenticate(b"p", AUTH_KEY, version=version), other_auth)
        expect(AuthenticationFailure, decrypt,
               encrypt(b"p", ENC_KEY, version=version), other_enc)
        other_sign = AsymmetricSecretKey.generate(version)
        expect(AuthenticationFailure, verify_signature,
               sign(b"p", SIGN_KEYS[version]), other_sign.public_key())
    print("  PASS: test_wrong_key_fails_authentication")


# ==================================================================
# 3. Key binding
# ==================================================================

def test_key_purpose_binding():
    expect(KeyPurposeMismatch, sign, b"p", ENC_KEY)
    expect(KeyPurposeMismatch, sign, b"p", AUTH_KEY)
    expect(KeyPurposeMismatch, encrypt, b"p", SIGN_KEYS[ProtocolVersion.V2])
    expect(KeyPurposeMismatch, encrypt, b"p", AUTH_KEY)
    expect(KeyPurposeMismatch, authenticate, b"p", ENC_KEY)
    # A public key cannot sign
    expect(KeyPurposeMismatch, sign, b"p", SIGN_KEYS[ProtocolVersion.V2].public_key())

    # Verification binds too, even for a well-formed token
    wire = encrypt(b"p", ENC_KEY)
    expect(KeyPurposeMismatch, decrypt, wire, AUTH_KEY)
    # A malformed token is reported as such whatever key comes with it
    expect(MalformedTokenError, decrypt, "not a token", AUTH_KEY)
    expect(MalformedTokenError, decrypt, "v2.enc.", AUTH_KEY)
    print("  PASS: test_key_purpose_binding")


def test_key_version_binding():
    v1_key = SIGN_KEYS[ProtocolVersion.V1]
    v2_key = SIGN_KEYS[ProtocolVersion.V2]
    expect(KeyVersionMismatch, sign, b"p", v1_key, version=ProtocolVersion.V2)
    expect(KeyVersionMismatch, sign, b"p", v2_key, version="v1")

    v2_wire = sign(b"p", v2_key)
    e = expect(KeyVersionMismatch, verify_signature, v2_wire, v1_key.public_key())
    assert "v1" in str(e) and "v2" in str(e)
    v1_wire = sign(b"p", v1_key)
    expect(KeyVersionMismatch, verify_signature, v1_wire, v2_key.public_key())
    print("  PASS: test_key_version_binding")


# ==================================================================
# 4. Footer pinning and header checks
# ==================================================================

def test_footer_pinning_with_valid_mac():
    for version, purpose in all_combinations():
        wire = issue(b"p", issue_key(version, purpose), purpose, b"f1", version)
        expect(FooterMismatch, verify, wire, verify_key(version, purpose), purpose, b"f2")
        # Default footer is empty, which pins "no footer"
        expect(FooterMismatch, verify, wire, verify_key(version, purpose), purpose)
        # A footer expected where none exists
        bare = issue(b"p", issue_key(version, purpose), purpose, b"", version)
        expect(FooterMismatch, verify, bare, verify_key(version, purpose), purpose, b"f1")
    print("  PASS: test_footer_pinning_with_valid_mac")


def test_purpose_and_version_header_checks():
    auth_wire = authenticate(b"p", AUTH_KEY, version=ProtocolVersion.V2)
    # A token of another purpose is refused before binding the key's version
    e = expect(InvalidPurposeError, verify, auth_wire, ENC_KEY, Purpose.ENC)
    assert "auth" in str(e)
    # Version pinning
    expect(InvalidVersionError, verify_authentication, auth_wire, AUTH_KEY, version="v1")
    assert verify_authentication(auth_wire, AUTH_KEY, version=ProtocolVersion.V2) == b"p"
    # Unknown version mnemonics on issue
    expect(InvalidVersionError, authenticate, b"p", AUTH_KEY, version="v3")
    expect(InvalidPurposeError, issue, b"p", AUTH_KEY, "seal")
    print("  PASS: test_purpose_and_version_header_checks")


def test_payload_type_checked():
    expect(TypeError, authenticate, 12345, AUTH_KEY)
    expect(TypeError, authenticate, b"p", AUTH_KEY, footer=None)
    print("  PASS: test_payload_type_checked")


# ==================================================================
# 5. Known constructions
# ==================================================================

def test_v1_auth_tag_is_hmac_sha384_over_pae():
    payload, footer = b"hello", b"kid"
    token = parse(authenticate(payload, AUTH_KEY, footer, ProtocolVersion.V1))
    expected = hmac.new(
        AUTH_KEY.raw(),
        pre_auth_encode([b"v1.auth.", payload, footer]),
        hashlib.sha384,
    ).digest()
    assert token.body == payload + expected
    print("  PASS: test_v1_auth_tag_is_hmac_sha384_over_pae")


def test_v2_auth_tag_is_truncated_hmac_sha512_over_pae():
    payload = b"hello"
    token = parse(authenticate(payload, AUTH_KEY, b"", ProtocolVersion.V2))
    expected = hmac.new(
        AUTH_KEY.raw(),
        pre_auth_encode([b"v2.auth.", payload, b""]),
        hashlib.sha512,
    ).digest()[:32]
    assert token.body == payload + expected
    print("  PASS: test_v2_auth_tag_is_truncated_hmac_sha512_over_pae")


def test_v2_enc_is_xchacha20poly1305_with_pae_associated_data():
    footer = b"kid:1"
    token = parse(encrypt(b"secret", ENC_KEY, footer, ProtocolVersion.V2))
    nonce, ciphertext = token.body[:24], token.body[24:]
    plaintext = nacl.bindings.crypto_aead_xchacha20poly1305_ietf_decrypt(
        ciphertext,
        pre_auth_encode([b"v2.enc.", nonce, footer]),
        nonce,
        ENC_KEY.raw(),
    )
    assert plaintext == b"secret"
    assert len(ciphertext) == len(b"secret") + 16
    print("  PASS: test_v2_enc_is_xchacha20poly1305_with_pae_associated_data")


def test_v1_enc_layout():
    token = parse(encrypt(b"secret", ENC_KEY, b"", ProtocolVersion.V1))
    # nonce(32) || ciphertext(len(payload)) || tag(48)
    assert len(token.body) == 32 + len(b"secret") + 48
    print("  PASS: test_v1_enc_layout")


# ==================================================================
# 6. Concrete scenario
# ==================================================================

def test_v2_enc_scenario():
    payload = encode_claims({"sub": "alice"})
    assert payload == b'{"sub":"alice"}'

    wire = encrypt(payload, ENC_KEY, b"kid:1", ProtocolVersion.V2)
    parts = wire.split(".")
    assert parts[0] == "v2" and parts[1] == "enc" and len(parts) == 4
    for segment in parts[2:]:
        assert segment and "=" not in segment

    assert decrypt(wire, ENC_KEY, b"kid:1") == payload
    expect(FooterMismatch, decrypt, wire, ENC_KEY, b"kid:2")
    print("  PASS: test_v2_enc_scenario")


# ==================================================================
# Runner
# ==================================================================

def run_all():
    print("=" * 60)
    print("PAST Protocol Test Suite")
    print("=" * 60)

    print("\n--- 1. Round-trip ---")
    test_roundtrip_every_version_and_purpose()
    test_roundtrip_empty_payload()
    test_named_entry_points()
    test_encryption_hides_payload_and_is_randomized()
    test_nonce_derivation_is_deterministic_in_seed_and_message()

    print("\n--- 2. Tamper sensitivity ---")
    test_every_body_bit_flip_is_rejected()
    test_wire_character_flip_never_verifies()
    test_substituted_footer_fails()
    test_header_swap_between_versions_fails()
    test_truncated_body_is_malformed()
    test_wrong_key_fails_authentication()

    print("\n--- 3. Key binding ---")
    test_key_purpose_binding()
    test_key_version_binding()

    print("\n--- 4. Footer pinning / headers ---")
    test_footer_pinning_with_valid_mac()
    test_purpose_and_version_header_checks()
    test_payload_type_checked()

    print("\n--- 5. Known constructions ---")
    test_v1_auth_tag_is_hmac_sha384_over_pae()
    test_v2_auth_tag_is_truncated_hmac_sha512_over_pae()
    test_v2_enc_is_xchacha20poly1305_with_pae_associated_data()
    test_v1_enc_layout()

    print("\n--- 6. Concrete scenario ---")
    test_v2_enc_scenario()

    print("\n" + "=" * 60)
    print("ALL TESTS PASSED")
    print("=" * 60)


if __name__ == "__main__":
    run_all()
