"""
ECDSA signatures over canonical bytes.

Signatures are the 64-byte compact form r || s (each 32 bytes, big-endian),
not DER. The digest is SHA-256 of the input. Signing always emits "low-S"
signatures (s <= n/2) so a given signature has a single valid encoding on
the wire; verification accepts either half.

`verify` never raises for bad signatures: wrong key, wrong data, wrong
length and out-of-range scalars all return False.
"""

from __future__ import annotations

from typing import Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec, utils

from ..errors import SigningError
from ..utils.bytes import BytesLike
from ..utils.bytes import b as _b
from ..utils.hash import sha256
from .keys import COMPRESSED_SIZE, Curve, KeyPair, PublicKey

SCALAR_SIZE = 32
COMPACT_SIZE = 2 * SCALAR_SIZE

PrivateKeyLike = Union[KeyPair, ec.EllipticCurvePrivateKey]
PublicKeyLike = Union[PublicKey, ec.EllipticCurvePublicKey, bytes, str]

_PREHASHED = ec.ECDSA(utils.Prehashed(hashes.SHA256()))


def to_compact(der: bytes, curve: Curve = Curve.K256) -> bytes:
    """DER signature -> r || s, with s normalized to the low half."""
    r, s = utils.decode_dss_signature(der)
    return _pack(r, normalize_s(s, curve))


def from_compact(sig: BytesLike) -> bytes:
    """r || s -> DER, as the `cryptography` verifier expects."""
    raw = _b(sig)
    if len(raw) != COMPACT_SIZE:
        raise ValueError(f"compact signature must be {COMPACT_SIZE} bytes, got {len(raw)}")
    r = int.from_bytes(raw[:SCALAR_SIZE], "big")
    s = int.from_bytes(raw[SCALAR_SIZE:], "big")
    return utils.encode_dss_signature(r, s)


def normalize_s(s: int, curve: Curve = Curve.K256) -> int:
    n = curve.order
    return n - s if s > n // 2 else s


def is_low_s(sig: BytesLike, curve: Curve = Curve.K256) -> bool:
    raw = _b(sig)
    return int.from_bytes(raw[SCALAR_SIZE:], "big") <= curve.order // 2


def sign(data: BytesLike, private_key: PrivateKeyLike) -> bytes:
    """Sign sha256(data); returns the 64-byte compact signature."""
    pair = _as_keypair(private_key)
    digest = sha256(data)
    try:
        der = pair.key.sign(digest, _PREHASHED)
    except (ValueError, TypeError) as e:
        raise SigningError(f"ECDSA signing failed: {e}", curve=pair.curve.value) from e
    return to_compact(der, pair.curve)


def verify(data: BytesLike, signature: BytesLike, public_key: PublicKeyLike) -> bool:
    """True iff `signature` is a valid compact signature of `data` under `public_key`."""
    try:
        pub = _as_public_key(public_key)
        der = from_compact(signature)
    except ValueError:
        return False
    r = int.from_bytes(_b(signature)[:SCALAR_SIZE], "big")
    s = int.from_bytes(_b(signature)[SCALAR_SIZE:], "big")
    if not (0 < r < pub.curve.order and 0 < s < pub.curve.order):
        return False
    try:
        pub.key.verify(der, sha256(data), _PREHASHED)
        return True
    except InvalidSignature:
        return False


def _pack(r: int, s: int) -> bytes:
    return r.to_bytes(SCALAR_SIZE, "big") + s.to_bytes(SCALAR_SIZE, "big")


def _as_keypair(key: PrivateKeyLike) -> KeyPair:
    if isinstance(key, KeyPair):
        return key
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return KeyPair(curve=Curve.of(key.curve), key=key)
    raise SigningError("unsupported private key type", type=type(key).__name__)


def _as_public_key(key: PublicKeyLike) -> PublicKey:
    # KeyFormatError subclasses ValueError, so unparsable keys read as "not verified".
    if isinstance(key, PublicKey):
        return key
    if isinstance(key, ec.EllipticCurvePublicKey):
        return PublicKey.from_key(key)
    if isinstance(key, str) and key.startswith(("did:key:", "z")):
        return PublicKey.from_multikey(key)
    if isinstance(key, (str, bytes, bytearray)) and len(key) in (COMPRESSED_SIZE, 2 * COMPRESSED_SIZE):
        return PublicKey.from_compressed(key)
    raise ValueError(f"unsupported public key: {type(key).__name__}")


__all__ = [
    "COMPACT_SIZE",
    "to_compact",
    "from_compact",
    "normalize_s",
    "is_low_s",
    "sign",
    "verify",
]
