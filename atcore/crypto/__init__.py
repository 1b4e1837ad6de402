"""
atcore.crypto
=============

Key handling and ECDSA signing for canonical records.

- keys.py:      Curve, KeyPair, PublicKey, compress_public_key, multikey/did:key
- signature.py: sign / verify (compact r||s over SHA-256, low-S on sign)

Backed by `cryptography` (OpenSSL) for all curve arithmetic.
"""

from __future__ import annotations

from .keys import Curve, KeyPair, PublicKey, compress_public_key
from .signature import from_compact, sign, to_compact, verify

__all__ = [
    "Curve",
    "KeyPair",
    "PublicKey",
    "compress_public_key",
    "sign",
    "verify",
    "to_compact",
    "from_compact",
]
