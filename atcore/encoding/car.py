"""
CAR v1 archives
---------------

Repository exports and firehose commits ship blocks as a CAR file:

    uvarint(len(header)) || header        # CBOR {"version": 1, "roots": [CIDLink, ...]}
    ( uvarint(len(section)) || cid || block )*

The binary CID inside a section is self-delimiting (four uvarints followed by
a digest whose length the multihash header declares).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from ..cid import CID, CIDLike, compute
from ..errors import HashMismatch, InvalidCID, InvalidEncoding
from ..logging import get_logger
from ..utils.bytes import BytesLike, uvarint_decode, uvarint_encode
from ..utils.bytes import b as _b
from ..utils.hash import SHA2_256
from .cbor import decode_one, encode
from .values import CIDLink

log = get_logger("atcore.encoding.car")

CAR_VERSION = 1


@dataclass
class CarFile:
    roots: List[CID]
    blocks: Dict[CID, bytes] = field(default_factory=dict)

    def get(self, cid: CIDLike) -> Optional[bytes]:
        return self.blocks.get(_as_cid(cid))

    def decode(self, cid: CIDLike) -> Any:
        """Decode the DAG-CBOR block stored under `cid`; KeyError if absent."""
        key = _as_cid(cid)
        if key not in self.blocks:
            raise KeyError(str(key))
        return decode_one(self.blocks[key])

    def __contains__(self, cid: object) -> bool:
        try:
            return _as_cid(cid) in self.blocks  # type: ignore[arg-type]
        except InvalidCID:
            return False

    def __len__(self) -> int:
        return len(self.blocks)


def _as_cid(cid: CIDLike) -> CID:
    if isinstance(cid, CID):
        return cid
    if isinstance(cid, CIDLink):
        return cid.cid
    if isinstance(cid, str):
        return CID.decode(cid)
    if isinstance(cid, (bytes, bytearray, memoryview)):
        return CID.from_bytes(cid)
    raise InvalidCID(f"unsupported CID value: {type(cid).__name__}")


def _varint(data: bytes, offset: int, what: str) -> Tuple[int, int]:
    try:
        return uvarint_decode(data, offset)
    except ValueError as e:
        raise InvalidEncoding(f"bad {what} varint: {e}", offset=offset) from e


def _read_cid(data: bytes, offset: int) -> Tuple[CID, int]:
    start = offset
    version, offset = _varint(data, offset, "cid version")
    codec, offset = _varint(data, offset, "cid codec")
    hash_code, offset = _varint(data, offset, "multihash code")
    length, offset = _varint(data, offset, "multihash length")
    if offset + length > len(data):
        raise InvalidEncoding("truncated CID digest", offset=start)
    digest = data[offset:offset + length]
    return CID(version=version, codec=codec, hash_code=hash_code, digest=digest), offset + length


def _read_header(data: bytes) -> Tuple[List[CID], int]:
    length, offset = _varint(data, 0, "header length")
    end = offset + length
    if length == 0 or end > len(data):
        raise InvalidEncoding("truncated CAR header", offset=offset, length=length)
    header = decode_one(data[offset:end])
    if not isinstance(header, dict) or header.get("version") != CAR_VERSION:
        raise InvalidEncoding("unsupported CAR header", version=_version_of(header))
    roots = header.get("roots")
    if not isinstance(roots, list) or not all(isinstance(r, CIDLink) for r in roots):
        raise InvalidEncoding("CAR header roots must be a list of CID links")
    return [r.cid for r in roots], end


def _version_of(header: Any) -> Any:
    return header.get("version") if isinstance(header, dict) else None


def iter_blocks(data: BytesLike) -> Iterator[Tuple[CID, bytes]]:
    """Yield (cid, block) pairs in archive order without verifying digests."""
    buf = _b(data)
    _, offset = _read_header(buf)
    while offset < len(buf):
        length, body = _varint(buf, offset, "section length")
        end = body + length
        if end > len(buf):
            raise InvalidEncoding("truncated CAR section", offset=offset, length=length)
        cid, block_start = _read_cid(buf, body)
        if block_start > end:
            raise InvalidEncoding("CID overruns CAR section", offset=body)
        yield cid, buf[block_start:end]
        offset = end


def verify_block(cid: CID, block: bytes) -> None:
    """Raise HashMismatch unless `block` hashes to `cid`."""
    if cid.hash_code != SHA2_256:
        raise InvalidCID("unsupported multihash", code=cid.hash_code, cid=str(cid))
    got = compute(block, cid.codec)
    if got != cid:
        log.warning("CAR block hash mismatch", extra={"expected": str(cid), "got": str(got)})
        raise HashMismatch(expected=str(cid), got=str(got))


def read_car(data: BytesLike, *, verify: bool = True) -> CarFile:
    """
    Parse a CAR v1 archive. With `verify` every block's digest is recomputed
    under the codec its CID declares.
    """
    buf = _b(data)
    roots, _ = _read_header(buf)
    car = CarFile(roots=roots)
    for cid, block in iter_blocks(buf):
        if verify:
            verify_block(cid, block)
        car.blocks[cid] = block
    log.debug("CAR parsed", extra={"roots": len(roots), "blocks": len(car.blocks)})
    return car


def write_car(roots: Iterable[CID], blocks: Mapping[CID, BytesLike] | Iterable[Tuple[CID, BytesLike]]) -> bytes:
    """Serialize roots and blocks into a CAR v1 archive."""
    header = encode({"version": CAR_VERSION, "roots": [r.link() for r in roots]})
    out = bytearray(uvarint_encode(len(header)) + header)
    pairs = blocks.items() if isinstance(blocks, Mapping) else blocks
    for cid, block in pairs:
        section = cid.to_bytes() + _b(block)
        out += uvarint_encode(len(section))
        out += section
    return bytes(out)


__all__ = [
    "CAR_VERSION",
    "CarFile",
    "read_car",
    "iter_blocks",
    "verify_block",
    "write_car",
]
