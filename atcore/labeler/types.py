from __future__ import annotations

"""
atcore/labeler/types.py
=======================

Label records (com.atproto.label.defs#label).

- **UnsignedLabel**: application fields only (src, uri, val, cts and the
  optional cid/exp/neg).
- **SignedLabel**: the canonical fields (including `ver`) plus `sig`, the
  64-byte compact signature over the canonical CBOR of everything else.
- **SavedLabel**: a signed label after persistence, carrying the sequence
  number it is streamed under on `subscribeLabels`.

Signed labels are immutable; to change one, build a new UnsignedLabel.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..encoding.frames import message_frame
from ..encoding.values import AtBytes, as_bytes
from ..errors import LabelError

LABEL_VERSION = 1
LABELS_FRAME_TYPE = "#labels"

# Keys a SignedLabel is rebuilt from; anything else in the input is ignored.
_LABEL_FIELDS = ("ver", "src", "uri", "cid", "val", "neg", "cts", "exp")


def _req_str(o: Mapping[str, Any], name: str) -> str:
    v = o.get(name)
    if not isinstance(v, str) or not v:
        raise LabelError(f"label.{name} must be a non-empty string", field=name)
    return v


def _opt_str(o: Mapping[str, Any], name: str) -> Optional[str]:
    v = o.get(name)
    if v is not None and not isinstance(v, str):
        raise LabelError(f"label.{name} must be a string", field=name, type=type(v).__name__)
    return v


def _neg(o: Mapping[str, Any]) -> bool:
    v = o.get("neg")
    if v is None:
        return False
    if not isinstance(v, bool):
        raise LabelError("label.neg must be a bool", field="neg", type=type(v).__name__)
    return v


@dataclass(frozen=True)
class UnsignedLabel:
    uri: str
    val: str
    src: str
    cts: str
    cid: Optional[str] = None
    exp: Optional[str] = None
    neg: bool = False

    def __post_init__(self) -> None:
        for name in ("uri", "val", "src", "cts"):
            _req_str({name: getattr(self, name)}, name)
        if len(self.val) > 128:
            raise LabelError("label.val must be at most 128 characters", field="val", length=len(self.val))
        if not isinstance(self.neg, bool):
            raise LabelError("label.neg must be a bool", field="neg", type=type(self.neg).__name__)

    def to_obj(self) -> Dict[str, Any]:
        return {
            "src": self.src,
            "uri": self.uri,
            "cid": self.cid,
            "val": self.val,
            "neg": self.neg,
            "cts": self.cts,
            "exp": self.exp,
        }

    @staticmethod
    def from_obj(o: Mapping[str, Any]) -> "UnsignedLabel":
        return UnsignedLabel(
            uri=_req_str(o, "uri"),
            val=_req_str(o, "val"),
            src=_req_str(o, "src"),
            cts=_req_str(o, "cts"),
            cid=_opt_str(o, "cid"),
            exp=_opt_str(o, "exp"),
            neg=_neg(o),
        )


@dataclass(frozen=True)
class SignedLabel:
    ver: int
    uri: str
    val: str
    src: str
    cts: str
    sig: AtBytes
    cid: Optional[str] = None
    exp: Optional[str] = None
    neg: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "sig", as_bytes(self.sig))
        if self.ver != LABEL_VERSION:
            raise LabelError(f"unsupported label version {self.ver}", field="ver")

    def unsigned_obj(self) -> Dict[str, Any]:
        """The signed-over fields: everything but `sig`, in wire form."""
        out: Dict[str, Any] = {
            "ver": self.ver,
            "src": self.src,
            "uri": self.uri,
            "cid": self.cid,
            "val": self.val,
            "cts": self.cts,
            "exp": self.exp,
        }
        if self.neg:
            out["neg"] = True
        return {k: v for k, v in out.items() if v is not None}

    def to_obj(self) -> Dict[str, Any]:
        return {**self.unsigned_obj(), "sig": self.sig}

    def to_unsigned(self) -> UnsignedLabel:
        return UnsignedLabel(
            uri=self.uri, val=self.val, src=self.src, cts=self.cts,
            cid=self.cid, exp=self.exp, neg=self.neg,
        )

    @staticmethod
    def from_obj(o: Mapping[str, Any]) -> "SignedLabel":
        sig = o.get("sig")
        if not isinstance(sig, (bytes, bytearray, memoryview)):
            raise LabelError("label.sig must be bytes", field="sig", type=type(sig).__name__)
        fields = {k: o[k] for k in _LABEL_FIELDS if k in o}
        return SignedLabel(
            ver=int(fields.get("ver", LABEL_VERSION)),
            uri=_req_str(fields, "uri"),
            val=_req_str(fields, "val"),
            src=_req_str(fields, "src"),
            cts=_req_str(fields, "cts"),
            sig=AtBytes(bytes(sig)),
            cid=_opt_str(fields, "cid"),
            exp=_opt_str(fields, "exp"),
            neg=_neg(fields),
        )


@dataclass(frozen=True)
class SavedLabel:
    id: int
    label: SignedLabel
    sign: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.id, int) or self.id < 0:
            raise LabelError("SavedLabel.id must be a non-negative int", field="id")

    def to_obj(self) -> Dict[str, Any]:
        """Body of the `#labels` event for this label."""
        return {"seq": self.id, "labels": [self.label.to_obj()]}

    def to_frame(self) -> bytes:
        return message_frame(LABELS_FRAME_TYPE, self.to_obj())


__all__ = [
    "LABEL_VERSION",
    "LABELS_FRAME_TYPE",
    "UnsignedLabel",
    "SignedLabel",
    "SavedLabel",
]
