"""
CID subsystem tests. Expected identifiers are rebuilt independently with
hashlib + base64 so the checks do not lean on atcore's own multibase code.
"""
from __future__ import annotations

import base64
import hashlib

import pytest

from atcore.cid import (
    CID,
    DAG_CBOR,
    RAW,
    Codec,
    cid_for_record,
    compute,
    compute_record,
    is_valid,
    verify,
)
from atcore.encoding.cbor import encode
from atcore.encoding.values import AtBytes, CIDLink, normalize
from atcore.errors import InvalidCID


def expected_cid_text(data: bytes, codec: int) -> str:
    raw = bytes([0x01, codec, 0x12, 0x20]) + hashlib.sha256(data).digest()
    return "b" + base64.b32encode(raw).decode("ascii").lower().rstrip("=")


def test_raw_cid_matches_reference():
    cid = compute(b"hello world", RAW)
    assert str(cid) == expected_cid_text(b"hello world", 0x55)
    assert str(cid).startswith("bafkrei")


def test_dag_cbor_cid_matches_reference():
    data = encode({"a": 1, "b": "x"})
    cid = compute(data)
    assert cid.codec == Codec.DAG_CBOR
    assert str(cid) == expected_cid_text(data, 0x71)
    assert str(cid).startswith("bafyrei")


def test_determinism_and_avalanche():
    data = bytes(range(64))
    assert compute(data, RAW) == compute(bytes(data), RAW)
    flipped = bytearray(data)
    flipped[10] ^= 0x01
    assert compute(bytes(flipped), RAW) != compute(data, RAW)


def test_codec_changes_cid():
    assert compute(b"x", RAW) != compute(b"x", DAG_CBOR)


@pytest.mark.parametrize("codec", [RAW, DAG_CBOR])
def test_verify_roundtrip(codec: Codec):
    data = b"\x00\x01payload"
    cid = compute(data, codec)
    assert verify(data, cid, codec)
    assert verify(data, str(cid), codec)
    assert verify(data, cid.link(), codec)
    assert verify(data, cid.to_bytes(), codec)


def test_verify_mismatch_returns_false():
    cid = compute(b"original", RAW)
    assert verify(b"tampered", cid, RAW) is False
    assert verify(b"original", cid, DAG_CBOR) is False


def test_verify_never_raises_on_bad_cid():
    assert verify(b"x", "not-a-cid", RAW) is False
    assert verify(b"x", "b!!!!", RAW) is False
    assert verify(b"x", 12345, RAW) is False  # type: ignore[arg-type]


def test_text_and_binary_roundtrip():
    cid = compute(b"blob", RAW)
    assert CID.decode(str(cid)) == cid
    assert CID.from_bytes(cid.to_bytes()) == cid
    assert CIDLink.from_str(str(cid)).cid == cid
    assert str(cid.link()) == str(cid)


def test_malformed_inputs_raise_invalid_cid():
    with pytest.raises(InvalidCID):
        CID.decode("zQm")
    with pytest.raises(InvalidCID):
        CID.from_bytes(b"\x01\x55\x12\x20\x00")  # digest shorter than declared
    with pytest.raises(InvalidCID):
        CID.from_bytes(b"\x01\x55\x12")
    with pytest.raises(InvalidCID):
        CID(version=0, codec=0x70, hash_code=0x12, digest=b"\x00" * 32)


def test_invalid_cid_is_value_error():
    with pytest.raises(ValueError):
        CID.decode("")


def test_is_valid():
    assert is_valid(str(compute(b"x", RAW)))
    assert not is_valid("bafy")
    assert not is_valid("hello")


def test_cid_for_record_matches_binary_form():
    blob = compute(b"image-bytes", RAW)
    record = {
        "$type": "app.bsky.feed.post",
        "text": "hi",
        "embed": {"image": {"ref": blob.link(), "size": 11}},
        "sig": AtBytes(b"\x01\x02"),
    }
    json_form = normalize(record)
    assert json_form["embed"]["image"]["ref"] == {"$link": str(blob)}
    assert json_form["sig"] == {"$bytes": "AQI"}
    assert cid_for_record(json_form) == compute_record(record)
    assert compute_record(record) == compute(encode(record), DAG_CBOR)
