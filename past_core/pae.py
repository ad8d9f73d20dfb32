"""
past_core/pae.py — Pre-Authentication Encoding

    PAE(pieces) = LE64(len(pieces)) || for each piece: LE64(len(piece)) || piece

Every MAC, AEAD associated-data block and signature input in both
protocol versions is framed with PAE, so no boundary between header,
payload, nonce and footer can be shifted without changing the bytes
being authenticated.

Write-only: there is no decoder.
"""

from __future__ import annotations

from typing import Iterable, Union

BytesLike = Union[bytes, bytearray, memoryview]


def le64(n: int) -> bytes:
    """Encode a non-negative integer as 8 little-endian bytes.

    The most significant bit is always cleared so the value round-trips
    through signed 64-bit integers in other implementations.
    """
    if n < 0:
        raise ValueError(f"LE64 requires a non-negative integer, got {n}")
    return (n & 0x7FFFFFFFFFFFFFFF).to_bytes(8, byteorder="little")


def pre_auth_encode(pieces: Iterable[BytesLike]) -> bytes:
    """Encode an ordered sequence of byte strings into one byte string.

    Raises:
        TypeError: If any piece is not bytes-like. Text must be encoded
                   by the caller; silently choosing an encoding here would
                   make the framing ambiguous.
    """
    parts = list(pieces)
    out = bytearray(le64(len(parts)))
    for piece in parts:
        if not isinstance(piece, (bytes, bytearray, memoryview)):
            raise TypeError(
                f"PAE pieces must be bytes, got {type(piece).__name__}"
            )
        piece = bytes(piece)
        out += le64(len(piece))
        out += piece
    return bytes(out)
