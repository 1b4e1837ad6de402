"""
Labeler: signs moderation labels with the service's key.

A `Labeler` is an explicit handle built from configuration plus an optional
`LabelerHandler` supplied by the application. The handler declares which
operations it overrides through `capabilities`; for everything it does not
claim, the built-in behaviour is used.

Signing flow:

    UnsignedLabel -> format_label (ver=1, drop generated/null fields,
    drop neg=False, canonical key order) -> canonical CBOR -> ECDSA
    (compact r||s) -> SignedLabel with `sig`

    labeler = Labeler(config=cfg.labeler)
    signed, sig = labeler.sign_label(UnsignedLabel(uri=..., val="spam", src=did, cts=now))
"""

from __future__ import annotations

from enum import Flag, auto
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from ..config import Config, LabelerConfig
from ..config import load as load_config
from ..crypto.keys import Curve, KeyPair, PublicKey
from ..crypto.signature import sign, verify
from ..encoding.cbor import canonicalize_map, encode
from ..encoding.values import AtBytes
from ..errors import MissingKeyMaterial, SigningError
from ..logging import get_logger, with_fields
from ..version import __version__
from .types import LABEL_VERSION, SavedLabel, SignedLabel, UnsignedLabel

log = get_logger("atcore.labeler")


class Capability(Flag):
    """Operations a handler implements itself."""

    NONE = 0
    SIGN_LABEL = auto()
    HEALTH = auto()


class LabelerHandler:
    """
    Application hooks. Subclasses set `capabilities` for the operations they
    override; `labels`, `save_label` and `subscribe_labels` are plain hooks
    with empty defaults.
    """

    capabilities: Capability = Capability.NONE

    def labels(self) -> List[Dict[str, Any]]:
        """Label value definitions advertised by the service."""
        return []

    def save_label(self, label: SignedLabel, sign: bytes) -> Optional[SavedLabel]:
        return None

    def subscribe_labels(self, cursor: Optional[int]) -> Iterable[SavedLabel]:
        return ()

    def sign_label(self, unsigned: UnsignedLabel) -> Tuple[SignedLabel, bytes]:
        raise NotImplementedError

    def health(self, header: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        raise NotImplementedError


class Labeler:
    VERSION = LABEL_VERSION
    GENERATED_FIELDS = ("id", "created_at", "updated_at")

    def __init__(
        self,
        handler: Optional[LabelerHandler] = None,
        config: Union[Config, LabelerConfig, None] = None,
        *,
        key: Optional[KeyPair] = None,
    ):
        if config is None:
            config = load_config()
        self.handler = handler
        self.config: LabelerConfig = config.labeler if isinstance(config, Config) else config
        self._key = key
        self._log = with_fields(get_logger(self.config.logger), did=self.config.did)

    # ---- capabilities ----

    def handles(self, capability: Capability) -> bool:
        return self.handler is not None and capability in self.handler.capabilities

    # ---- key material ----

    def signing_key(self) -> KeyPair:
        """The configured key pair; MissingKeyMaterial when none is set."""
        if self._key is None:
            text = self.config.require_private_key()
            self._key = KeyPair.load(text, Curve(self.config.curve))
        return self._key

    def public_key(self) -> PublicKey:
        return self.signing_key().public_key()

    # ---- labels ----

    @classmethod
    def format_label(cls, label: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Canonical field map for signing: adds `ver`, strips generated fields,
        drops nulls and a false `neg`, and orders keys canonically.
        """
        out = dict(label)
        out["ver"] = cls.VERSION
        for name in cls.GENERATED_FIELDS:
            out.pop(name, None)
        if out.get("neg") is False:
            del out["neg"]
        return canonicalize_map(out)

    def sign_label(self, unsigned: UnsignedLabel) -> Tuple[SignedLabel, bytes]:
        """Return (signed label, raw 64-byte signature)."""
        if self.handles(Capability.SIGN_LABEL):
            return self.handler.sign_label(unsigned)  # type: ignore[union-attr]

        if isinstance(unsigned, SignedLabel):
            raise SigningError("label is already signed; rebuild it from unsigned fields")

        key = self.signing_key()
        label = self.format_label(unsigned.to_obj())
        sig = sign(encode(label), key)

        signed = SignedLabel.from_obj({**label, "sig": AtBytes(sig)})
        self._log.info("label signed", extra={"uri": signed.uri, "val": signed.val})
        return signed, sig

    def verify_label(self, signed: SignedLabel, public_key: Optional[PublicKey] = None) -> bool:
        """Check `signed.sig` against the canonical bytes of its other fields."""
        pub = public_key if public_key is not None else self.public_key()
        data = encode(self.format_label(signed.unsigned_obj()))
        return verify(data, signed.sig, pub)

    def label_definitions(self) -> List[Dict[str, Any]]:
        return list(self.handler.labels()) if self.handler is not None else []

    def save_label(self, label: SignedLabel, sign: bytes) -> Optional[SavedLabel]:
        if self.handler is None:
            return None
        saved = self.handler.save_label(label, sign)
        if saved is not None:
            self._log.info("label saved", extra={"seq": saved.id, "uri": label.uri})
        return saved

    def subscribe_labels(self, cursor: Optional[int] = None) -> Iterator[bytes]:
        """Yield `#labels` frames for saved labels after `cursor`."""
        if self.handler is None:
            return
        for saved in self.handler.subscribe_labels(cursor):
            yield saved.to_frame()

    def health(self, header: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        if self.handles(Capability.HEALTH):
            return self.handler.health(header)  # type: ignore[union-attr]
        return {"version": __version__}

    def log(self, message: str, context: Any = None) -> None:
        if context is None:
            context = {}
        elif not isinstance(context, (dict, list)):
            context = [context]
        self._log.info(message, extra={"context": context})


__all__ = ["Capability", "LabelerHandler", "Labeler"]
