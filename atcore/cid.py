"""
atcore.cid
==========

Content identifiers (CIDv1) over SHA-256.

Binary layout:

    uvarint(version=1) || uvarint(codec) || uvarint(0x12) || uvarint(32) || sha256(data)

Text layout: "b" + lowercase RFC 4648 base32 (no padding) of the binary form,
so raw-codec CIDs start with "bafkrei" and DAG-CBOR ones with "bafyrei".

A CID stores only the digest, never the content. Verification recomputes
the digest and compares; a mismatch is a normal `False`, not an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Mapping, Union

from .encoding.cbor import encode as cbor_encode
from .encoding.values import CIDLink, denormalize
from .errors import InvalidCID
from .utils.bytes import (
    BASE32_PREFIX,
    BytesLike,
    base32_decode,
    base32_encode,
    uvarint_decode,
    uvarint_encode,
)
from .utils.bytes import b as _b
from .utils.hash import SHA2_256, SHA2_256_LEN, sha256

CID_VERSION = 1


class Codec(IntEnum):
    """Multicodec content types we produce and verify."""

    RAW = 0x55
    DAG_CBOR = 0x71


RAW = Codec.RAW
DAG_CBOR = Codec.DAG_CBOR


@dataclass(frozen=True)
class CID:
    version: int
    codec: int
    hash_code: int
    digest: bytes

    def __post_init__(self) -> None:
        if self.version != CID_VERSION:
            raise InvalidCID("only CIDv1 is supported", version=self.version)
        object.__setattr__(self, "digest", _b(self.digest))

    # ---- binary / text forms ----

    def to_bytes(self) -> bytes:
        return (
            uvarint_encode(self.version)
            + uvarint_encode(self.codec)
            + uvarint_encode(self.hash_code)
            + uvarint_encode(len(self.digest))
            + self.digest
        )

    def encode(self) -> str:
        return BASE32_PREFIX + base32_encode(self.to_bytes())

    def __str__(self) -> str:
        return self.encode()

    def link(self) -> CIDLink:
        """Embeddable tag-42 form."""
        return CIDLink(self.to_bytes())

    @classmethod
    def from_bytes(cls, raw: BytesLike) -> "CID":
        data = _b(raw)
        try:
            version, i = uvarint_decode(data, 0)
            codec, i = uvarint_decode(data, i)
            hash_code, i = uvarint_decode(data, i)
            length, i = uvarint_decode(data, i)
        except ValueError as e:
            raise InvalidCID(f"malformed binary CID: {e}") from e
        digest = data[i:]
        if len(digest) != length:
            raise InvalidCID(
                "digest length does not match multihash header",
                expected=length,
                got=len(digest),
            )
        return cls(version=version, codec=codec, hash_code=hash_code, digest=digest)

    @classmethod
    def decode(cls, text: str) -> "CID":
        if not isinstance(text, str) or not text.startswith(BASE32_PREFIX):
            raise InvalidCID("expected base32 multibase CID text", value=str(text)[:64])
        try:
            raw = base32_decode(text[1:])
        except ValueError as e:
            raise InvalidCID(str(e), value=text[:64]) from e
        return cls.from_bytes(raw)


CIDLike = Union[str, CID, CIDLink, bytes, bytearray, memoryview]


def compute(data: BytesLike, codec: int = Codec.DAG_CBOR) -> CID:
    """CIDv1 of `data` under `codec`, hashed with SHA-256."""
    return CID(
        version=CID_VERSION,
        codec=int(codec),
        hash_code=SHA2_256,
        digest=sha256(data),
    )


def verify(data: BytesLike, cid: CIDLike, codec: int = Codec.DAG_CBOR) -> bool:
    """
    Recompute the CID of `data` and compare it with `cid` byte-for-byte.
    Returns False on any mismatch, including CID text that does not parse.
    """
    expected = compute(data, codec).to_bytes()
    try:
        got = _cid_bytes(cid)
    except InvalidCID:
        return False
    return got == expected


def _cid_bytes(cid: CIDLike) -> bytes:
    if isinstance(cid, CID):
        return cid.to_bytes()
    if isinstance(cid, CIDLink):
        return cid.raw
    if isinstance(cid, str):
        return CID.decode(cid).to_bytes()
    if isinstance(cid, (bytes, bytearray, memoryview)):
        return _b(cid)
    raise InvalidCID(f"unsupported CID value: {type(cid).__name__}")


def compute_record(record: Any) -> CID:
    """DAG-CBOR CID of an in-memory record (canonically encoded first)."""
    return compute(cbor_encode(record), Codec.DAG_CBOR)


def cid_for_record(record: Mapping[str, Any]) -> CID:
    """
    DAG-CBOR CID of a record in the JSON data model, e.g. the `value` of a
    listRecords response where links appear as {"$link": ...}.
    """
    return compute_record(denormalize(record))


def is_valid(text: str) -> bool:
    try:
        cid = CID.decode(text)
    except InvalidCID:
        return False
    return cid.hash_code == SHA2_256 and len(cid.digest) == SHA2_256_LEN


__all__ = [
    "CID_VERSION",
    "Codec",
    "RAW",
    "DAG_CBOR",
    "CID",
    "CIDLike",
    "compute",
    "verify",
    "compute_record",
    "cid_for_record",
    "is_valid",
]
