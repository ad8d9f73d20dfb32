#!/usr/bin/env python3
"""
PAST CLI — generate keys, issue and verify tokens.

Usage:
    python -m tools.past_cli keygen --purpose enc
    python -m tools.past_cli keygen --purpose sign --version v1 --public-out pub.pem
    python -m tools.past_cli issue  --purpose enc --key-file k.hex --footer kid:1 '{"sub":"alice"}'
    python -m tools.past_cli verify --purpose enc --key-file k.hex --footer kid:1 <token>

Keys are read from --key-file, or from the PAST_KEY environment variable
when no file is given. Symmetric keys are hex; signing keys are PEM.
"""

import argparse
import json
import logging
import os
import sys

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import structlog

from past_core import (
    AsymmetricPublicKey,
    AsymmetricSecretKey,
    JsonToken,
    PastError,
    ProtocolVersion,
    Purpose,
    SymmetricAuthenticationKey,
    SymmetricEncryptionKey,
    extract_footer,
    parse,
)
from past_core.keys import DEFAULT_VERSION

KEY_ENV_VAR = "PAST_KEY"

_SYMMETRIC = {
    Purpose.AUTH: SymmetricAuthenticationKey,
    Purpose.ENC: SymmetricEncryptionKey,
}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


# ============================================================
# Key loading
# ============================================================

def _read_key_text(key_file):
    if key_file:
        with open(key_file, "r", encoding="utf-8") as f:
            return f.read()
    value = os.environ.get(KEY_ENV_VAR)
    if not value:
        raise ValueError(f"No key given: use --key-file or set {KEY_ENV_VAR}")
    return value


def load_key(purpose: Purpose, key_file, version: ProtocolVersion):
    """Load the key for `purpose`. Sign keys may be private or public PEM."""
    text = _read_key_text(key_file)
    if purpose in _SYMMETRIC:
        return _SYMMETRIC[purpose].from_hex(text)
    pem = text.encode("ascii")
    if b"PRIVATE KEY" in pem:
        return AsymmetricSecretKey.from_pem(pem, version)
    return AsymmetricPublicKey.from_pem(pem, version)


# ============================================================
# Commands
# ============================================================

def cmd_keygen(args) -> int:
    purpose = Purpose(args.purpose)
    if purpose in _SYMMETRIC:
        print(_SYMMETRIC[purpose].generate().hex())
        return 0

    secret = AsymmetricSecretKey.generate(args.version)
    if args.public_out:
        with open(args.public_out, "wb") as f:
            f.write(secret.public_key().to_pem())
    print(secret.to_pem().decode("ascii"), end="")
    return 0


def cmd_issue(args) -> int:
    purpose = Purpose(args.purpose)
    version = ProtocolVersion(args.version)
    claims = json.loads(args.claims)
    if not isinstance(claims, dict):
        raise ValueError("Claims must be a JSON object")

    token = (
        JsonToken()
        .set_version(version)
        .set_purpose(purpose)
        .set_key(load_key(purpose, args.key_file, version), check_purpose=True)
        .set_claims(claims)
        .set_footer(args.footer)
    )
    wire = token.to_string()
    if args.json:
        print(json.dumps({"command": "issue", "token": wire}, sort_keys=True))
    else:
        print(wire)
    return 0


def cmd_verify(args) -> int:
    purpose = Purpose(args.purpose)
    # Signing keys must be loaded for the token's own version
    version = parse(args.token).version
    key = load_key(purpose, args.key_file, version)

    footer = args.footer
    if args.trust_footer:
        footer = extract_footer(args.token)

    token = JsonToken.from_string(args.token, key, purpose, footer=footer)
    claims = token.get_claims()
    if args.json:
        print(
            json.dumps(
                {
                    "command": "verify",
                    "valid": True,
                    "version": token.get_version().value,
                    "purpose": purpose.value,
                    "claims": claims,
                },
                sort_keys=True,
            )
        )
    else:
        print(json.dumps(claims, sort_keys=True))
    return 0


# ============================================================
# Main
# ============================================================

def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PAST CLI — key generation, token issuance and verification",
        prog="python -m tools.past_cli",
    )
    parser.add_argument(
        "--log-level",
        default="warning",
        choices=["debug", "info", "warning", "error"],
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    purposes = [p.value for p in Purpose]
    versions = [v.value for v in ProtocolVersion]

    keygen = subparsers.add_parser("keygen", help="Generate a key")
    keygen.add_argument("--purpose", required=True, choices=purposes)
    keygen.add_argument("--version", default=DEFAULT_VERSION.value, choices=versions)
    keygen.add_argument("--public-out", default=None, help="Write the public PEM here (sign)")

    issue = subparsers.add_parser("issue", help="Issue a token from JSON claims")
    issue.add_argument("claims", help="Claims as a JSON object")
    issue.add_argument("--purpose", required=True, choices=purposes)
    issue.add_argument("--version", default=DEFAULT_VERSION.value, choices=versions)
    issue.add_argument("--key-file", default=None)
    issue.add_argument("--footer", default="")
    issue.add_argument("--json", action="store_true")

    verify = subparsers.add_parser("verify", help="Verify a token and print its claims")
    verify.add_argument("token")
    verify.add_argument("--purpose", required=True, choices=purposes)
    verify.add_argument("--key-file", default=None)
    verify.add_argument("--footer", default="")
    verify.add_argument(
        "--trust-footer",
        action="store_true",
        help="Accept whatever footer the token carries (it is still authenticated)",
    )
    verify.add_argument("--json", action="store_true")

    return parser


_COMMANDS = {
    "keygen": cmd_keygen,
    "issue": cmd_issue,
    "verify": cmd_verify,
}


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    try:
        return _COMMANDS[args.command](args)
    except (PastError, ValueError, OSError) as e:
        if getattr(args, "json", False):
            print(json.dumps({"command": args.command, "valid": False, "error": str(e)}, sort_keys=True))
        else:
            print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
