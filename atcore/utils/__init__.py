"""
atcore.utils
============

Byte, varint, multibase and digest helpers shared by the codec, CID and
signing layers. Stdlib only.
"""

from __future__ import annotations

from .bytes import (
    BytesLike,
    b,
    base32_decode,
    base32_encode,
    base58_decode,
    base58_encode,
    multibase_decode,
    multibase_encode,
    uvarint_decode,
    uvarint_encode,
)
from .hash import SHA2_256, sha256

__all__ = [
    "BytesLike",
    "b",
    "uvarint_encode",
    "uvarint_decode",
    "base32_encode",
    "base32_decode",
    "base58_encode",
    "base58_decode",
    "multibase_encode",
    "multibase_decode",
    "SHA2_256",
    "sha256",
]
