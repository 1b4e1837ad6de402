"""
atcore.encoding.values
======================

The canonical value model shared by the CBOR decoder and encoder.

Most variants map onto plain Python types (int, str, float, bool, None,
list, dict). Two need wrappers:

- `AtBytes`: a byte string. It subclasses `bytes`, so it hashes and
  compares like the raw bytes; the wrapper only records that the value came
  off the wire as a CBOR byte string (major type 2).
- `CIDLink`: a tag-42 content link. Holds the binary CID *without* the
  leading multibase-identity zero byte.

`normalize` / `denormalize` translate between this model and the protocol's
JSON form, where bytes appear as {"$bytes": "<base64>"} and links as
{"$link": "<cid>"}.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Union

from ..utils.bytes import BytesLike, b64_decode_nopad, b64_encode_nopad, multibase_encode
from ..utils.bytes import b as _b

if TYPE_CHECKING:  # pragma: no cover
    from ..cid import CID

# Tag number reserved by the protocol for CID links.
CID_TAG = 42

# Binary CIDs inside tag 42 carry a single 0x00 (multibase "identity") prefix.
CID_LINK_PREFIX = b"\x00"


class AtBytes(bytes):
    """Raw bytes that must encode as a CBOR byte string, never as text."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"AtBytes({bytes(self)!r})"


@dataclass(frozen=True)
class CIDLink:
    """A tag-42 link: the binary CID (version, codec, multihash)."""

    raw: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "raw", _b(self.raw))

    @classmethod
    def from_str(cls, text: str) -> "CIDLink":
        from ..cid import CID

        return CID.decode(text).link()

    @property
    def cid(self) -> "CID":
        from ..cid import CID

        return CID.from_bytes(self.raw)

    def tag_payload(self) -> bytes:
        """Byte string carried under tag 42 (prefix re-added)."""
        return CID_LINK_PREFIX + self.raw

    def __str__(self) -> str:
        return multibase_encode(self.raw, "base32")


Value = Union[
    None, bool, int, float, str, bytes, AtBytes, CIDLink, List[Any], Dict[Any, Any]
]


def as_bytes(data: BytesLike) -> AtBytes:
    return data if isinstance(data, AtBytes) else AtBytes(_b(data))


def is_empty(value: Any) -> bool:
    """
    True for values a stream reader treats as "no item": null, false, zero
    (int or float), zero-length text/bytes/sequences/maps, and the text "0".
    """
    if value is None or value is False:
        return True
    if isinstance(value, (int, float)):
        return value == 0
    if isinstance(value, str):
        return value in ("", "0")
    if isinstance(value, (bytes, bytearray, list, tuple, dict)):
        return len(value) == 0
    return False


# ---------------------------------------------------------------------------
# JSON data model
# ---------------------------------------------------------------------------

def normalize(value: Any) -> Any:
    """
    Convert decoded values into the protocol JSON form.

    >>> normalize({"data": AtBytes(b"hi")})
    {'data': {'$bytes': 'aGk'}}
    """
    if isinstance(value, CIDLink):
        return {"$link": str(value)}
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"$bytes": b64_encode_nopad(value)}
    if isinstance(value, Mapping):
        return {k: normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [normalize(v) for v in value]

    from ..cid import CID

    if isinstance(value, CID):
        return {"$link": str(value)}
    return value


def denormalize(value: Any) -> Any:
    """Inverse of `normalize`: rebuild `CIDLink` / `AtBytes` from JSON objects."""
    if isinstance(value, Mapping):
        if len(value) == 1:
            if "$link" in value and isinstance(value["$link"], str):
                return CIDLink.from_str(value["$link"])
            if "$bytes" in value and isinstance(value["$bytes"], str):
                return AtBytes(b64_decode_nopad(value["$bytes"]))
        return {k: denormalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [denormalize(v) for v in value]
    return value


__all__ = [
    "CID_TAG",
    "CID_LINK_PREFIX",
    "AtBytes",
    "CIDLink",
    "Value",
    "as_bytes",
    "is_empty",
    "normalize",
    "denormalize",
]
