"""
atcore.encoding
===============

Public encoding surface:

- cbor.py:   canonical CBOR encode/decode (sorted map keys, deterministic)
- values.py: the value model (AtBytes, CIDLink) and JSON-form conversion
- frames.py: event-stream frames (header item + body item)
- car.py:    CAR archives (header + CID-addressed blocks)

`frames` and `car` are imported explicitly by callers rather than
re-exported here (`car` depends on `atcore.cid`, which imports this package).
"""

from __future__ import annotations

from .cbor import (
    canonicalize_map,
    decode_all,
    decode_first,
    decode_one,
    encode,
    map_key_order,
)
from .cbor import dumps as cbor_dumps
from .cbor import loads as cbor_loads
from .values import AtBytes, CIDLink, Value, denormalize, normalize

__all__ = [
    # CBOR
    "encode",
    "decode_first",
    "decode_one",
    "decode_all",
    "map_key_order",
    "canonicalize_map",
    "cbor_dumps",
    "cbor_loads",
    # Values
    "AtBytes",
    "CIDLink",
    "Value",
    "normalize",
    "denormalize",
]
