"""
Event-stream frames and CAR archives.
"""
from __future__ import annotations

import pytest

from atcore.cid import CID, DAG_CBOR, RAW, compute
from atcore.encoding.car import CarFile, iter_blocks, read_car, write_car
from atcore.encoding.cbor import encode
from atcore.encoding.frames import (
    Frame,
    decode_frame,
    encode_frame,
    error_frame,
    message_frame,
)
from atcore.errors import FrameError, HashMismatch, InvalidCID, InvalidEncoding
from atcore.utils.bytes import uvarint_encode

# -----------------------------------------------------------------------------
# Frames
# -----------------------------------------------------------------------------


def test_message_frame_roundtrip():
    wire = message_frame("#commit", {"seq": 5, "repo": "did:plc:x"})
    assert wire == encode({"op": 1, "t": "#commit"}) + encode({"seq": 5, "repo": "did:plc:x"})
    frame = decode_frame(wire)
    assert isinstance(frame, Frame)
    assert frame.op == 1
    assert frame.type == "#commit"
    assert frame.body == {"seq": 5, "repo": "did:plc:x"}


def test_error_frame_raises():
    with pytest.raises(FrameError) as ei:
        decode_frame(error_frame("FutureCursor", "Cursor in the future."))
    assert ei.value.error == "FutureCursor"
    assert ei.value.message == "Cursor in the future."


def test_error_frame_without_message():
    with pytest.raises(FrameError) as ei:
        decode_frame(error_frame("ConsumerTooSlow"))
    assert ei.value.message == "ConsumerTooSlow"


@pytest.mark.parametrize(
    "wire",
    [
        encode([1]) + encode({}),  # header not a map
        encode({"op": 1, "t": "#x"}),  # no body
        encode({"op": 7}) + encode({}),  # unknown op
        encode_frame({"op": -1}, {"message": "no name"}),
        encode_frame({"op": 1}, {}) + b"\x01",  # trailing data
    ],
)
def test_malformed_frames(wire: bytes):
    with pytest.raises(InvalidEncoding):
        decode_frame(wire)


# -----------------------------------------------------------------------------
# CAR
# -----------------------------------------------------------------------------


def _sample_blocks():
    leaf = encode({"text": "hello"})
    leaf_cid = compute(leaf, DAG_CBOR)
    root = encode({"entries": [leaf_cid.link()]})
    root_cid = compute(root, DAG_CBOR)
    blob = b"\x89PNG..."
    blob_cid = compute(blob, RAW)
    return root_cid, {root_cid: root, leaf_cid: leaf, blob_cid: blob}


def test_car_roundtrip():
    root_cid, blocks = _sample_blocks()
    car = read_car(write_car([root_cid], blocks))
    assert isinstance(car, CarFile)
    assert car.roots == [root_cid]
    assert len(car) == 3
    assert car.blocks == blocks

    root = car.decode(root_cid)
    (leaf_link,) = root["entries"]
    assert car.decode(leaf_link) == {"text": "hello"}
    assert car.get(str(root_cid)) == blocks[root_cid]
    assert leaf_link in car
    assert "garbage" not in car


def test_car_block_order_preserved():
    root_cid, blocks = _sample_blocks()
    pairs = list(blocks.items())[::-1]
    assert list(iter_blocks(write_car([root_cid], pairs))) == pairs


def test_car_hash_mismatch_raises():
    root_cid, blocks = _sample_blocks()
    blocks[root_cid] = encode({"entries": []})
    data = write_car([root_cid], blocks)
    with pytest.raises(HashMismatch) as ei:
        read_car(data)
    assert ei.value.data["expected"] == str(root_cid)

    unverified = read_car(data, verify=False)
    assert unverified.decode(root_cid) == {"entries": []}


def test_car_missing_block():
    root_cid, blocks = _sample_blocks()
    car = read_car(write_car([root_cid], {}))
    assert car.get(root_cid) is None
    with pytest.raises(KeyError):
        car.decode(root_cid)


def test_car_rejects_bad_header():
    header = encode({"version": 2, "roots": []})
    with pytest.raises(InvalidEncoding):
        read_car(uvarint_encode(len(header)) + header)
    with pytest.raises(InvalidEncoding):
        read_car(b"\x05\xa0")


def test_car_rejects_truncated_section():
    root_cid, blocks = _sample_blocks()
    data = write_car([root_cid], blocks)
    with pytest.raises(InvalidEncoding):
        read_car(data[:-3])


def test_car_rejects_unsupported_hash():
    cid = CID(version=1, codec=RAW, hash_code=0x13, digest=b"\x00" * 64)
    with pytest.raises(InvalidCID):
        read_car(write_car([cid], {cid: b"x"}))
