"""
Decoder tests: major-type dispatch, argument widths, tag-42 links, error
context and the multi-item entry points.

cbor2 is used as an independent producer of wire bytes.
"""
from __future__ import annotations

import io
import struct

import pytest

cbor2 = pytest.importorskip("cbor2")

from atcore.encoding.cbor import MAX_DEPTH, decode_all, decode_first, decode_one, encode
from atcore.encoding.values import AtBytes, CIDLink
from atcore.errors import InvalidEncoding

CID_RAW = bytes([0x01, 0x71, 0x12, 0x20]) + bytes(range(32))


# -----------------------------------------------------------------------------
# Scalars
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    "wire,value",
    [
        ("00", 0),
        ("17", 23),
        ("1818", 24),
        ("18ff", 255),
        ("190100", 256),
        ("19ffff", 65535),
        ("1a00010000", 65536),
        ("1affffffff", 2**32 - 1),
        ("1b0000000100000000", 2**32),
        ("1b001fffffffffffff", 2**53 - 1),
        ("20", -1),
        ("3818", -25),
        ("3b001ffffffffffffe", -(2**53) + 1),
    ],
)
def test_integer_widths(wire: str, value: int):
    assert decode_one(bytes.fromhex(wire)) == value


def test_eight_byte_high_half_over_limit_fails():
    with pytest.raises(InvalidEncoding) as ei:
        decode_one(bytes.fromhex("1b0020000000000000"))
    assert ei.value.data["info"] == 27


def test_eight_byte_length_guard_applies_to_strings():
    # Length argument is rejected before any payload is read.
    with pytest.raises(InvalidEncoding):
        decode_one(bytes.fromhex("5b0020000000000000"))


def test_simple_values_and_float64():
    assert decode_one(b"\xf4") is False
    assert decode_one(b"\xf5") is True
    assert decode_one(b"\xf6") is None
    assert decode_one(b"\xfb" + struct.pack(">d", 1.5)) == 1.5
    assert decode_one(cbor2.dumps(-0.25)) == -0.25


@pytest.mark.parametrize("wire", ["f7", "f0", "f90000", "fa00000000", "f820"])
def test_unsupported_simple_values_fail(wire: str):
    with pytest.raises(InvalidEncoding) as ei:
        decode_one(bytes.fromhex(wire))
    assert ei.value.data["major"] == 7


def test_strings():
    assert decode_one(cbor2.dumps("héllo")) == "héllo"
    out = decode_one(cbor2.dumps(b"\x00\x01"))
    assert isinstance(out, AtBytes)
    assert out == b"\x00\x01"


def test_invalid_utf8_fails():
    with pytest.raises(InvalidEncoding):
        decode_one(b"\x61\xff")


# -----------------------------------------------------------------------------
# Containers
# -----------------------------------------------------------------------------


def test_nested_containers_match_cbor2():
    obj = {"list": [1, "two", b"3", None, True], "map": {"k": -7}}
    assert decode_one(cbor2.dumps(obj)) == obj


def test_later_duplicate_keys_overwrite():
    assert decode_one(bytes.fromhex("a2616101616102")) == {"a": 2}


def test_integer_map_keys():
    assert decode_one(cbor2.dumps({1: "x", -2: "y"})) == {1: "x", -2: "y"}


def test_unhashable_map_key_fails():
    with pytest.raises(InvalidEncoding):
        decode_one(bytes.fromhex("a18001"))


def test_indefinite_length_fails():
    with pytest.raises(InvalidEncoding) as ei:
        decode_one(bytes.fromhex("9f01ff"))
    assert ei.value.data["info"] == 31


def test_nesting_limit():
    deep = b"\x81" * (MAX_DEPTH + 10) + b"\x01"
    with pytest.raises(InvalidEncoding):
        decode_one(deep)


def test_truncated_input_fails():
    for wire in ("62 61", "19 01", "82 01", "a1 61 61"):
        with pytest.raises(InvalidEncoding):
            decode_one(bytes.fromhex(wire.replace(" ", "")))


# -----------------------------------------------------------------------------
# Tag 42
# -----------------------------------------------------------------------------


def test_tag42_strips_single_zero_prefix():
    wire = cbor2.dumps(cbor2.CBORTag(42, b"\x00" + CID_RAW))
    link = decode_one(wire)
    assert isinstance(link, CIDLink)
    assert link.raw == CID_RAW


def test_tag42_roundtrip_is_byte_exact():
    wire = cbor2.dumps({"ref": cbor2.CBORTag(42, b"\x00" + CID_RAW)})
    assert encode(decode_one(wire)) == wire


def test_tag42_only_one_zero_byte_is_stripped():
    link = decode_one(cbor2.dumps(cbor2.CBORTag(42, b"\x00\x00" + CID_RAW)))
    assert link.raw == b"\x00" + CID_RAW


def test_other_tags_fail():
    with pytest.raises(InvalidEncoding) as ei:
        decode_one(cbor2.dumps(cbor2.CBORTag(1, 5)))
    assert ei.value.data["tag"] == 1


def test_tag42_payload_must_be_bytes():
    with pytest.raises(InvalidEncoding):
        decode_one(cbor2.dumps(cbor2.CBORTag(42, "bafy")))


# -----------------------------------------------------------------------------
# Entry points & sources
# -----------------------------------------------------------------------------


def test_decode_first_returns_remainder():
    assert decode_first(b"\x01\x02\x03") == (1, b"\x02\x03")


def test_decode_one_rejects_trailing_data():
    with pytest.raises(InvalidEncoding) as ei:
        decode_one(b"\x01\x02")
    assert ei.value.data["trailing"] == 1


def test_decode_all_skips_empty_items():
    # 1, null, "", 2, [], {}, h'', false, true
    wire = bytes.fromhex("01f66002" "80a040f4" "f5")
    assert decode_all(wire) == [1, 2, True]


def test_decode_all_skips_zero_values():
    # 1, 0, false, 0.0, 2, "0", -1
    wire = bytes.fromhex("0100f4fb0000000000000000" "02" "6130" "20")
    assert decode_all(wire) == [1, 2, -1]
    assert decode_all(b"\x00\x00") == []


def test_file_like_source():
    assert decode_one(io.BytesIO(cbor2.dumps([1, 2]))) == [1, 2]


def test_unreadable_source_fails():
    with pytest.raises(InvalidEncoding):
        decode_one(123)


def test_error_carries_offset_major_info():
    with pytest.raises(InvalidEncoding) as ei:
        decode_one(bytes.fromhex("8201f7"))
    err = ei.value
    assert err.data["offset"] == 2
    assert err.data["major"] == 7
    assert err.data["info"] == 23
    assert err.retryable is False
