from __future__ import annotations

"""
Canonical CBOR codec (DAG-CBOR subset)
--------------------------------------

A small encoder/decoder for the CBOR subset used by protocol records,
repositories and event streams.

Supported values (see atcore.encoding.values):
- None, bool
- int (safe-integer range only: -(2**53) .. 2**53 - 1)
- float (always float64 on the wire; NaN/Infinity rejected on encode)
- bytes (decoded as AtBytes)
- str (UTF-8)
- list/tuple
- dict / Mapping / dataclass (keys: str, int; bytes tolerated)
- CIDLink / CID (tag 42)

Not supported:
- indefinite-length items
- tags other than 42
- simple values other than false/true/null
- half/single precision floats

Deterministic map ordering:
Keys are sorted by `map_key_order`, a pure function returning the key's raw
byte representation (UTF-8 for text, raw bytes for byte keys, canonical
encoding for integer keys), compared byte-lexicographically. Keys of
different types with equal raw bytes are ordered by CBOR major type
(integers, then byte strings, then text). Map entries whose value is None
are omitted.

Public API:
- encode(obj) -> bytes                        (alias: dumps)
- decode_first(source) -> (obj, remainder)
- decode_one(source) -> obj                   (alias: loads)
- decode_all(source) -> list
- map_key_order(key) -> bytes
- canonicalize_map(mapping) -> dict
"""

import math
import struct
from dataclasses import fields, is_dataclass
from typing import Any, Dict, List, Mapping, Tuple

from ..errors import EncodeError, InvalidEncoding, wrap
from ..utils.bytes import BytesLike
from ..utils.bytes import b as _b
from .values import CID_LINK_PREFIX, CID_TAG, AtBytes, CIDLink, is_empty

# Major types
MT_UINT = 0
MT_NINT = 1
MT_BYTES = 2
MT_TEXT = 3
MT_ARRAY = 4
MT_MAP = 5
MT_TAG = 6
MT_SIMPLE = 7

# Simple values / float marker (major type 7 additional info)
SIMPLE_FALSE = 20
SIMPLE_TRUE = 21
SIMPLE_NULL = 22
FLOAT64 = 27

SAFE_INT_MAX = 2**53 - 1
SAFE_INT_MIN = -(2**53)
# High 32 bits of an 8-byte argument above this cannot be represented exactly.
SAFE_HIGH_WORD = 0x1FFFFF

MAX_DEPTH = 512

# ------------------------
# Low-level encode helpers
# ------------------------

def _head(major: int, n: int) -> bytes:
    """Encode initial byte + additional-info for a non-negative integer length/value."""
    if n < 24:
        return bytes([(major << 5) | n])
    elif n <= 0xFF:
        return bytes([(major << 5) | 24, n])
    elif n <= 0xFFFF:
        return bytes([(major << 5) | 25]) + n.to_bytes(2, "big")
    elif n <= 0xFFFFFFFF:
        return bytes([(major << 5) | 26]) + n.to_bytes(4, "big")
    elif n <= 0xFFFFFFFFFFFFFFFF:
        return bytes([(major << 5) | 27]) + n.to_bytes(8, "big")
    raise EncodeError("length/value too large for additional-info field", value=n)


def _encode_int(n: int) -> bytes:
    if n < SAFE_INT_MIN or n > SAFE_INT_MAX:
        raise EncodeError("integer outside safe range", value=str(n))
    if n >= 0:
        return _head(MT_UINT, n)
    # Negative integer x is encoded as major type 1 with argument -(x+1)
    return _head(MT_NINT, -1 - n)


def _encode_text(s: str) -> bytes:
    try:
        data = s.encode("utf-8", "strict")
    except UnicodeEncodeError as e:
        raise EncodeError(f"text is not valid UTF-8: {e}") from e
    return _head(MT_TEXT, len(data)) + data


def _encode_float(f: float) -> bytes:
    if not math.isfinite(f):
        raise EncodeError("NaN and Infinity are not allowed", value=repr(f))
    return bytes([(MT_SIMPLE << 5) | FLOAT64]) + struct.pack(">d", f)


def _encode_link(link: CIDLink) -> bytes:
    payload = link.tag_payload()
    return _head(MT_TAG, CID_TAG) + _head(MT_BYTES, len(payload)) + payload


# ------------------------
# Canonical encoder
# ------------------------

def map_key_order(key: Any) -> bytes:
    """
    Sort key for map entries: the key's raw byte representation.
    Compared byte-lexicographically; a prefix sorts before its extensions.
    """
    if isinstance(key, str):
        return key.encode("utf-8")
    if isinstance(key, (bytes, bytearray, memoryview)):
        return _b(key)
    if isinstance(key, int) and not isinstance(key, bool):
        return _encode_int(key)
    raise EncodeError(f"unsupported map key type: {type(key).__name__}")


def _key_major(key: Any) -> int:
    if isinstance(key, str):
        return MT_TEXT
    if isinstance(key, (bytes, bytearray, memoryview)):
        return MT_BYTES
    return MT_NINT if key < 0 else MT_UINT


def _sorted_items(obj: Mapping[Any, Any]) -> List[Tuple[Tuple[bytes, int], Any, Any]]:
    # Keys of different types can share raw bytes (1 and "\x01", b"a" and "a");
    # the major type breaks those ties.
    items = [((map_key_order(k), _key_major(k)), k, v) for k, v in obj.items() if v is not None]
    items = sorted(items, key=lambda kv: kv[0])
    for i in range(1, len(items)):
        if items[i - 1][0] == items[i][0]:
            raise EncodeError("duplicate map keys after canonicalization", key=items[i][0][0])
    return items


def _as_mapping(obj: Any) -> Mapping[Any, Any]:
    if hasattr(obj, "to_obj"):
        return obj.to_obj()
    return {f.name: getattr(obj, f.name) for f in fields(obj)}


def _encode_obj(obj: Any, out: bytearray, depth: int) -> None:
    if depth > MAX_DEPTH:
        raise EncodeError("maximum nesting exceeded", limit=MAX_DEPTH)

    if obj is None:
        out.append(0xF6)
        return
    if obj is False:
        out.append(0xF4)
        return
    if obj is True:
        out.append(0xF5)
        return
    if isinstance(obj, int):
        out += _encode_int(obj)
        return
    if isinstance(obj, float):
        out += _encode_float(obj)
        return
    if isinstance(obj, CIDLink):
        out += _encode_link(obj)
        return
    if isinstance(obj, (bytes, bytearray, memoryview)):
        data = _b(obj)
        out += _head(MT_BYTES, len(data))
        out += data
        return
    if isinstance(obj, str):
        out += _encode_text(obj)
        return
    if isinstance(obj, (list, tuple)):
        out += _head(MT_ARRAY, len(obj))
        for item in obj:
            _encode_obj(item, out, depth + 1)
        return
    if isinstance(obj, Mapping):
        items = _sorted_items(obj)
        out += _head(MT_MAP, len(items))
        for _, k, v in items:
            _encode_obj(k, out, depth + 1)
            _encode_obj(v, out, depth + 1)
        return
    if is_dataclass(obj) and not isinstance(obj, type):
        from ..cid import CID

        if isinstance(obj, CID):
            out += _encode_link(obj.link())
            return
        _encode_obj(_as_mapping(obj), out, depth)
        return

    raise EncodeError(f"unsupported type for canonical CBOR: {type(obj).__name__}")


def encode(obj: Any) -> bytes:
    """
    Encode `obj` to canonical CBOR bytes with deterministic map ordering.
    Nothing is returned on failure; EncodeError is raised instead.
    """
    out = bytearray()
    _encode_obj(obj, out, 0)
    return bytes(out)


def canonicalize_map(obj: Mapping[Any, Any]) -> Dict[Any, Any]:
    """
    Return a plain dict in canonical form: None-valued entries removed and
    keys (at every depth) in `map_key_order`.
    """
    return {k: _canonicalize(v) for _, k, v in _sorted_items(obj)}


def _canonicalize(v: Any) -> Any:
    if isinstance(v, Mapping):
        return canonicalize_map(v)
    if isinstance(v, (list, tuple)):
        return [_canonicalize(x) for x in v]
    return v


dumps = encode

# ------------------------
# Decoder
# ------------------------

class _Buf:
    """Call-scoped input buffer with an explicit read offset."""

    __slots__ = ("b", "i", "n")

    def __init__(self, data: bytes):
        self.b = memoryview(data)
        self.i = 0
        self.n = len(data)

    def get(self, k: int, *, major: int | None = None, info: int | None = None) -> bytes:
        if self.i + k > self.n:
            raise InvalidEncoding(
                "truncated input", offset=self.i, wanted=k, major=major, info=info
            )
        out = self.b[self.i:self.i + k].tobytes()
        self.i += k
        return out

    def get1(self) -> int:
        if self.i >= self.n:
            raise InvalidEncoding("unexpected end of input", offset=self.i)
        v = self.b[self.i]
        self.i += 1
        return int(v)

    def rest(self) -> bytes:
        return self.b[self.i:].tobytes()


def _read_source(source: Any) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return _b(source)
    read = getattr(source, "read", None)
    if not callable(read):
        raise InvalidEncoding("source is not readable", source=type(source).__name__)
    readable = getattr(source, "readable", None)
    try:
        if callable(readable) and not readable():
            raise InvalidEncoding("source is not readable", source=type(source).__name__)
        data = read()
    except (OSError, ValueError) as e:
        raise wrap(e, as_=InvalidEncoding, prefix="source is not readable", source=type(source).__name__) from e
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidEncoding("source did not yield bytes", source=type(source).__name__)
    return _b(data)


def _read_argument(buf: _Buf, major: int, info: int, start: int) -> int:
    if info < 24:
        return info
    if info == 24:
        return buf.get1()
    if info == 25:
        return int.from_bytes(buf.get(2, major=major, info=info), "big")
    if info == 26:
        return int.from_bytes(buf.get(4, major=major, info=info), "big")
    if info == 27:
        raw = buf.get(8, major=major, info=info)
        hi = int.from_bytes(raw[:4], "big")
        lo = int.from_bytes(raw[4:], "big")
        if hi > SAFE_HIGH_WORD:
            raise InvalidEncoding(
                "integer exceeds safe range", offset=start, major=major, info=info, high=hi
            )
        return hi * 2**32 + lo
    raise InvalidEncoding(
        "unsupported additional info (indefinite or reserved)",
        offset=start,
        major=major,
        info=info,
    )


def _decode_simple(buf: _Buf, info: int, start: int) -> Any:
    if info == SIMPLE_FALSE:
        return False
    if info == SIMPLE_TRUE:
        return True
    if info == SIMPLE_NULL:
        return None
    if info == FLOAT64:
        return struct.unpack(">d", buf.get(8, major=MT_SIMPLE, info=info))[0]
    raise InvalidEncoding(
        "unsupported simple/float value", offset=start, major=MT_SIMPLE, info=info
    )


def _decode_link(buf: _Buf, tag: int, start: int) -> CIDLink:
    if tag != CID_TAG:
        raise InvalidEncoding("unsupported tag", offset=start, major=MT_TAG, tag=tag)
    inner = buf.i
    prelude = buf.get1()
    major, info = prelude >> 5, prelude & 0x1F
    if major != MT_BYTES:
        raise InvalidEncoding(
            "CID link payload must be a byte string", offset=inner, major=major, info=info
        )
    length = _read_argument(buf, major, info, inner)
    raw = buf.get(length, major=major, info=info)
    if raw[:1] == CID_LINK_PREFIX:
        raw = raw[1:]
    return CIDLink(raw)


def _decode(buf: _Buf, depth: int = 0) -> Any:
    if depth > MAX_DEPTH:
        raise InvalidEncoding("maximum nesting exceeded", offset=buf.i, limit=MAX_DEPTH)

    start = buf.i
    prelude = buf.get1()
    major = prelude >> 5
    info = prelude & 0x1F

    if major == MT_SIMPLE:
        return _decode_simple(buf, info, start)

    arg = _read_argument(buf, major, info, start)

    if major == MT_UINT:
        return arg
    if major == MT_NINT:
        return -1 - arg
    if major == MT_BYTES:
        return AtBytes(buf.get(arg, major=major, info=info))
    if major == MT_TEXT:
        data = buf.get(arg, major=major, info=info)
        try:
            return data.decode("utf-8", "strict")
        except UnicodeDecodeError as e:
            raise InvalidEncoding(
                f"invalid UTF-8: {e}", offset=start, major=major, info=info
            ) from e
    if major == MT_ARRAY:
        items: List[Any] = []
        for _ in range(arg):
            items.append(_decode(buf, depth + 1))
        return items
    if major == MT_MAP:
        out: Dict[Any, Any] = {}
        for _ in range(arg):
            key_start = buf.i
            key = _decode(buf, depth + 1)
            try:
                hash(key)
            except TypeError:
                raise InvalidEncoding(
                    f"unhashable map key: {type(key).__name__}",
                    offset=key_start,
                    major=major,
                    info=info,
                ) from None
            # later duplicates overwrite earlier ones
            out[key] = _decode(buf, depth + 1)
        return out
    if major == MT_TAG:
        return _decode_link(buf, arg, start)

    raise InvalidEncoding("unknown major type", offset=start, major=major, info=info)


def decode_first(source: BytesLike | Any) -> Tuple[Any, bytes]:
    """
    Decode exactly one top-level item; return it with whatever bytes remain
    unread.
    """
    buf = _Buf(_read_source(source))
    obj = _decode(buf)
    return obj, buf.rest()


def decode_one(source: BytesLike | Any) -> Any:
    """
    Decode a source containing a single item. Raises InvalidEncoding if any
    bytes follow it.
    """
    obj, remainder = decode_first(source)
    if remainder:
        raise InvalidEncoding("trailing data after first item", trailing=len(remainder))
    return obj


def decode_all(source: BytesLike | Any) -> List[Any]:
    """
    Decode every concatenated item until the input is exhausted. Items that
    `is_empty` reports (null, false, 0, 0.0, "0" and zero-length
    text/bytes/arrays/maps) are skipped.
    """
    buf = _Buf(_read_source(source))
    out: List[Any] = []
    while buf.i < buf.n:
        value = _decode(buf)
        if is_empty(value):
            continue
        out.append(value)
    return out


loads = decode_one

__all__ = [
    "SAFE_INT_MAX",
    "SAFE_INT_MIN",
    "MAX_DEPTH",
    "encode",
    "dumps",
    "decode_first",
    "decode_one",
    "decode_all",
    "loads",
    "map_key_order",
    "canonicalize_map",
]
