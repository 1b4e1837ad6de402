"""
atcore.utils.hash
=================

SHA-256, the only digest the CID and signing layers need, plus its
multihash code and digest length.
"""

from __future__ import annotations

import hashlib

from .bytes import BytesLike
from .bytes import b as _b

SHA2_256 = 0x12
SHA2_256_LEN = 32


def sha256(data: BytesLike) -> bytes:
    """SHA-256 digest."""
    return hashlib.sha256(_b(data)).digest()


__all__ = ["SHA2_256", "SHA2_256_LEN", "sha256"]
