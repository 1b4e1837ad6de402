"""
Event-stream frames.

Every websocket message on a subscription is two concatenated CBOR items:

    header = {"op": 1, "t": "#commit"}     # op 1: message, op -1: error
    body   = {...}                          # payload for type `t`

Error frames carry {"error": "<Name>", "message": "<optional text>"} as body
and are surfaced as `FrameError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..errors import FrameError, InvalidEncoding
from ..logging import get_logger
from ..utils.bytes import BytesLike
from .cbor import decode_first, decode_one, encode

log = get_logger("atcore.encoding.frames")

OP_MESSAGE = 1
OP_ERROR = -1


@dataclass(frozen=True)
class Frame:
    header: Dict[str, Any]
    body: Any

    @property
    def op(self) -> int:
        return self.header.get("op", OP_MESSAGE)

    @property
    def type(self) -> Optional[str]:
        return self.header.get("t")


def encode_frame(header: Mapping[str, Any], body: Any) -> bytes:
    return encode(header) + encode(body)


def message_frame(t: str, body: Any) -> bytes:
    """Encode a message frame of type `t` (e.g. "#labels")."""
    return encode_frame({"op": OP_MESSAGE, "t": t}, body)


def error_frame(error: str, message: Optional[str] = None) -> bytes:
    return encode_frame({"op": OP_ERROR}, {"error": error, "message": message})


def decode_frame(data: BytesLike) -> Frame:
    """
    Split a frame into header and body. Raises FrameError for error frames and
    InvalidEncoding for anything that is not exactly two CBOR items.
    """
    header, rest = decode_first(data)
    if not isinstance(header, dict):
        raise InvalidEncoding("frame header must be a map", got=type(header).__name__)
    body = decode_one(rest)

    op = header.get("op")
    if op == OP_ERROR:
        if not isinstance(body, dict) or not isinstance(body.get("error"), str):
            raise InvalidEncoding("error frame without an error name")
        log.warning(
            "error frame received",
            extra={"error": body["error"], "detail": body.get("message")},
        )
        raise FrameError(body["error"], body.get("message"))
    if op != OP_MESSAGE:
        raise InvalidEncoding("unknown frame op", op=op)
    return Frame(header=header, body=body)


__all__ = [
    "OP_MESSAGE",
    "OP_ERROR",
    "Frame",
    "encode_frame",
    "message_frame",
    "error_frame",
    "decode_frame",
]
