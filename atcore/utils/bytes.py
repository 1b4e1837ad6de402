"""
atcore.utils.bytes
==================

Lightweight, dependency-free helpers around byte handling:

- Bytes-like normalization: b()
- Unsigned varints (LEB128) as used by CIDs, multicodecs and CAR files
- Multibase text codecs: base32 lower (prefix "b") and base58btc (prefix "z")
- Unpadded standard base64 used by the JSON data model ({"$bytes": ...})

Examples
--------
>>> uvarint_encode(300)
b'\\xac\\x02'
>>> uvarint_decode(b'\\xac\\x02', 0)
(300, 2)
>>> multibase_decode(multibase_encode(b'\\x01\\x71', "base32"))
b'\\x01q'
"""

from __future__ import annotations

import base64
import binascii
from typing import Tuple, Union

BytesLike = Union[bytes, bytearray, memoryview]

BASE32_PREFIX = "b"
BASE58BTC_PREFIX = "z"


# -----------------------
# Bytes-like normalization
# -----------------------

def b(x: BytesLike) -> bytes:
    """Normalize a bytes-like value to immutable bytes."""
    if isinstance(x, bytes):
        return x
    if isinstance(x, bytearray):
        return bytes(x)
    if isinstance(x, memoryview):
        return x.tobytes()
    raise TypeError(f"expected bytes-like, got {type(x).__name__}")


# -------------
# Varints
# -------------

def uvarint_encode(n: int) -> bytes:
    """LEB128 uvarint (little endian base-128)."""
    if n < 0:
        raise ValueError("uvarint expects non-negative int")
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            break
    return bytes(out)


def uvarint_decode(data: BytesLike, offset: int = 0) -> Tuple[int, int]:
    """
    Read a uvarint starting at `offset`. Returns (value, new_offset).
    Raises ValueError on truncation or on varints longer than 9 bytes.
    """
    buf = b(data)
    value = 0
    shift = 0
    i = offset
    while True:
        if i >= len(buf):
            raise ValueError("truncated uvarint")
        byte = buf[i]
        i += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, i
        shift += 7
        if shift >= 63:
            raise ValueError("uvarint too long")


# -------------
# base32 (RFC 4648, lowercase, unpadded)
# -------------

def base32_encode(data: BytesLike) -> str:
    return base64.b32encode(b(data)).decode("ascii").lower().rstrip("=")


def base32_decode(text: str) -> bytes:
    s = text.upper()
    s += "=" * (-len(s) % 8)
    try:
        return base64.b32decode(s)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base32: {e}") from e


# -------------
# base58btc (bitcoin alphabet)
# -------------

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_B58_INDEX = {c: i for i, c in enumerate(_B58_ALPHABET)}


def base58_encode(data: BytesLike) -> str:
    raw = b(data)
    value = int.from_bytes(raw, "big")
    encoded = ""
    while value > 0:
        value, mod = divmod(value, 58)
        encoded = _B58_ALPHABET[mod] + encoded
    # Preserve leading zeroes as "1" characters.
    padding = len(raw) - len(raw.lstrip(b"\x00"))
    return "1" * padding + encoded


def base58_decode(text: str) -> bytes:
    value = 0
    for ch in text:
        try:
            value = value * 58 + _B58_INDEX[ch]
        except KeyError:
            raise ValueError(f"invalid base58 character: {ch!r}") from None
    padding = len(text) - len(text.lstrip("1"))
    body = value.to_bytes((value.bit_length() + 7) // 8, "big") if value else b""
    return b"\x00" * padding + body


# -------------
# Multibase
# -------------

def multibase_encode(data: BytesLike, base: str = "base32") -> str:
    if base == "base32":
        return BASE32_PREFIX + base32_encode(data)
    if base == "base58btc":
        return BASE58BTC_PREFIX + base58_encode(data)
    raise ValueError(f"unsupported multibase: {base!r}")


def multibase_decode(text: str) -> bytes:
    if not text:
        raise ValueError("empty multibase string")
    prefix, body = text[0], text[1:]
    if prefix == BASE32_PREFIX:
        return base32_decode(body)
    if prefix == BASE58BTC_PREFIX:
        return base58_decode(body)
    raise ValueError(f"unsupported multibase prefix: {prefix!r}")


# -------------
# base64 (JSON data model)
# -------------

def b64_encode_nopad(data: BytesLike) -> str:
    return base64.b64encode(b(data)).decode("ascii").rstrip("=")


def b64_decode_nopad(text: str) -> bytes:
    # Accept both the standard and the URL-safe alphabet, padded or not.
    s = text.strip().replace("-", "+").replace("_", "/")
    s += "=" * (-len(s) % 4)
    try:
        return base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"invalid base64: {e}") from e


def b64url_encode(data: BytesLike) -> str:
    """URL-safe Base64 without '=' padding."""
    return base64.urlsafe_b64encode(b(data)).rstrip(b"=").decode("ascii")


def b64url_decode(text: str) -> bytes:
    return b64_decode_nopad(text)


__all__ = [
    "BytesLike",
    "BASE32_PREFIX",
    "BASE58BTC_PREFIX",
    "b",
    "uvarint_encode",
    "uvarint_decode",
    "base32_encode",
    "base32_decode",
    "base58_encode",
    "base58_decode",
    "multibase_encode",
    "multibase_decode",
    "b64_encode_nopad",
    "b64_decode_nopad",
    "b64url_encode",
    "b64url_decode",
]
