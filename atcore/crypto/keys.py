"""
Elliptic-curve key pairs for record signing.

Two curves are supported:

- secp256k1 ("k256"): the default for labelers and repository signing keys
- NIST P-256 ("p256"): accepted for verification and OAuth-style keys

Public keys travel in compressed SEC1 form: a parity prefix (0x02 when y is
even, 0x03 when odd) followed by x as a 32-byte big-endian integer. The
multikey form used in identity documents prefixes the compressed key with the
curve's multicodec varint and encodes it as base58btc ("z..."), so k256
did:key identifiers start with "did:key:zQ3s" and p256 ones with "did:key:zDn".

Private keys load from PEM (PKCS#8 or SEC1), base64url-wrapped PEM (the form
stored in environment variables), or a bare 64-char hex scalar.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..errors import KeyFormatError, wrap
from ..utils.bytes import (
    BASE58BTC_PREFIX,
    BytesLike,
    b64url_decode,
    b64url_encode,
    base58_decode,
    base58_encode,
    uvarint_decode,
    uvarint_encode,
)
from ..utils.bytes import b as _b

DID_KEY_PREFIX = "did:key:"

COORD_SIZE = 32
COMPRESSED_SIZE = COORD_SIZE + 1


class Curve(str, Enum):
    K256 = "k256"
    P256 = "p256"

    @property
    def ec_curve(self) -> ec.EllipticCurve:
        return ec.SECP256K1() if self is Curve.K256 else ec.SECP256R1()

    @property
    def order(self) -> int:
        return _ORDERS[self]

    @property
    def multicodec(self) -> int:
        return _MULTICODECS[self]

    @property
    def jwt_alg(self) -> str:
        return "ES256K" if self is Curve.K256 else "ES256"

    @classmethod
    def of(cls, curve: ec.EllipticCurve) -> "Curve":
        for c in cls:
            if c.ec_curve.name == curve.name:
                return c
        raise KeyFormatError("unsupported curve", curve=curve.name)


_ORDERS = {
    Curve.K256: 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141,
    Curve.P256: 0xFFFFFFFF00000000FFFFFFFFFFFFFFFFBCE6FAADA7179E84F3B9CAC2FC632551,
}

# multicodec table: secp256k1-pub, p256-pub
_MULTICODECS = {
    Curve.K256: 0xE7,
    Curve.P256: 0x1200,
}


def compress_public_key(x: Union[int, BytesLike], y: Union[int, BytesLike], size: int = COORD_SIZE) -> bytes:
    """
    SEC1 point compression: 0x02/0x03 (parity of y) || x big-endian, zero
    padded to `size` bytes.
    """
    xi = x if isinstance(x, int) else int.from_bytes(_b(x), "big")
    yi = y if isinstance(y, int) else int.from_bytes(_b(y), "big")
    if xi < 0 or yi < 0:
        raise KeyFormatError("point coordinates must be non-negative")
    try:
        xb = xi.to_bytes(size, "big")
    except OverflowError:
        raise KeyFormatError("x coordinate wider than curve size", size=size) from None
    return bytes([0x03 if yi & 1 else 0x02]) + xb


# ---------------------------------------------------------------------------
# Public keys
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PublicKey:
    curve: Curve
    key: ec.EllipticCurvePublicKey

    @classmethod
    def from_compressed(cls, data: Union[BytesLike, str], curve: Curve = Curve.K256) -> "PublicKey":
        """Load a 33-byte compressed point (bytes or hex text)."""
        raw = _hex_or_bytes(data)
        if len(raw) != COMPRESSED_SIZE or raw[0] not in (0x02, 0x03):
            raise KeyFormatError("expected a 33-byte compressed public key", length=len(raw))
        try:
            key = ec.EllipticCurvePublicKey.from_encoded_point(curve.ec_curve, raw)
        except ValueError as e:
            raise KeyFormatError(f"point is not on {curve.value}: {e}") from e
        return cls(curve=curve, key=key)

    @classmethod
    def from_multikey(cls, text: str) -> "PublicKey":
        """Parse "z..." multikey text, with or without the "did:key:" prefix."""
        if text.startswith(DID_KEY_PREFIX):
            text = text[len(DID_KEY_PREFIX):]
        if not text.startswith(BASE58BTC_PREFIX):
            raise KeyFormatError("multikey must be base58btc ('z' prefix)")
        try:
            raw = base58_decode(text[1:])
            code, offset = uvarint_decode(raw, 0)
        except ValueError as e:
            raise KeyFormatError(f"malformed multikey: {e}") from e
        for curve in Curve:
            if curve.multicodec == code:
                return cls.from_compressed(raw[offset:], curve)
        raise KeyFormatError("unsupported multicodec", code=hex(code))

    @classmethod
    def from_key(cls, key: ec.EllipticCurvePublicKey) -> "PublicKey":
        return cls(curve=Curve.of(key.curve), key=key)

    def point(self) -> tuple:
        nums = self.key.public_numbers()
        return nums.x, nums.y

    def compressed(self) -> bytes:
        x, y = self.point()
        return compress_public_key(x, y, COORD_SIZE)

    def hex(self) -> str:
        return self.compressed().hex()

    def multikey(self) -> str:
        return BASE58BTC_PREFIX + base58_encode(uvarint_encode(self.curve.multicodec) + self.compressed())

    def did_key(self) -> str:
        return DID_KEY_PREFIX + self.multikey()

    def verify(self, data: BytesLike, signature: BytesLike) -> bool:
        from .signature import verify

        return verify(data, signature, self)


# ---------------------------------------------------------------------------
# Key pairs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyPair:
    curve: Curve
    key: ec.EllipticCurvePrivateKey

    @classmethod
    def generate(cls, curve: Curve = Curve.K256) -> "KeyPair":
        return cls(curve=curve, key=ec.generate_private_key(curve.ec_curve))

    @classmethod
    def from_private_bytes(cls, scalar: BytesLike, curve: Curve = Curve.K256) -> "KeyPair":
        """Build from a raw 32-byte big-endian private scalar."""
        raw = _b(scalar)
        if len(raw) != COORD_SIZE:
            raise KeyFormatError("private scalar must be 32 bytes", length=len(raw))
        value = int.from_bytes(raw, "big")
        if not 0 < value < curve.order:
            raise KeyFormatError("private scalar out of range")
        return cls(curve=curve, key=ec.derive_private_key(value, curve.ec_curve))

    @classmethod
    def from_pem(cls, pem: BytesLike, password: Optional[bytes] = None) -> "KeyPair":
        try:
            key = serialization.load_pem_private_key(_b(pem), password=password)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise wrap(e, as_=KeyFormatError, prefix="unreadable PEM private key") from e
        if not isinstance(key, ec.EllipticCurvePrivateKey):
            raise KeyFormatError("PEM key is not an elliptic-curve key", type=type(key).__name__)
        return cls(curve=Curve.of(key.curve), key=key)

    @classmethod
    def load(cls, text: Union[str, bytes], curve: Curve = Curve.K256) -> "KeyPair":
        """
        Load key material as configured by operators: PEM, base64url-encoded
        PEM, or a 64-hex-char scalar for `curve`. The PEM forms carry their
        own curve.
        """
        if isinstance(text, bytes):
            text = text.decode("ascii", "replace")
        text = text.strip()
        if not text:
            raise KeyFormatError("empty key material")
        if text.startswith("-----BEGIN"):
            return cls.from_pem(text.encode("ascii"))
        if len(text) == 2 * COORD_SIZE:
            try:
                return cls.from_private_bytes(binascii.unhexlify(text), curve)
            except binascii.Error:
                pass
        try:
            pem = b64url_decode(text)
        except (ValueError, binascii.Error) as e:
            raise KeyFormatError("key is neither PEM, base64url PEM nor hex") from e
        if not pem.lstrip().startswith(b"-----BEGIN"):
            raise KeyFormatError("key is neither PEM, base64url PEM nor hex")
        return cls.from_pem(pem)

    def private_bytes(self) -> bytes:
        return self.key.private_numbers().private_value.to_bytes(COORD_SIZE, "big")

    def private_pem(self) -> bytes:
        return self.key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def private_b64url(self) -> str:
        """PEM wrapped in unpadded base64url; fits in a single env var."""
        return b64url_encode(self.private_pem())

    def public_key(self) -> PublicKey:
        return PublicKey(curve=self.curve, key=self.key.public_key())

    def sign(self, data: BytesLike) -> bytes:
        from .signature import sign

        return sign(data, self)

    def __repr__(self) -> str:  # never print the scalar
        return f"KeyPair(curve={self.curve.value}, public={self.public_key().hex()})"


def _hex_or_bytes(data: Union[BytesLike, str]) -> bytes:
    if isinstance(data, str):
        try:
            return binascii.unhexlify(data.strip())
        except binascii.Error as e:
            raise KeyFormatError(f"invalid hex: {e}") from e
    return _b(data)


__all__ = [
    "Curve",
    "DID_KEY_PREFIX",
    "COMPRESSED_SIZE",
    "compress_public_key",
    "PublicKey",
    "KeyPair",
]
