"""
atcore.errors
-------------

A small, consistent error system for the codec, CID and signing layers.

Design goals
------------
- One root `AtCoreError` with machine-friendly `code` and optional `data`.
- Concrete subclasses for the failure kinds callers branch on
  (malformed input, unencodable values, bad keys, configuration).
- Safe JSON representation (`to_dict`) suitable for logs.
- Clear separation of *retryable* vs *permanent* failures. Nothing raised
  from the codec or signer is retryable: the caller must discard the input.

Verification mismatches (CID or signature) are *not* errors; those APIs
return booleans.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional, Type, TypeVar

# ---------------------------------------------------------------------------
# Error codes & classes
# ---------------------------------------------------------------------------


class Severity(IntEnum):
    """Optional severity hint for operators/metrics."""

    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class CoreErrorCode(str, Enum):
    # Config / environment
    CONFIG = "ATCORE/CONFIG"
    KEY_MISSING = "ATCORE/KEY_MISSING"

    # Codec
    INVALID_ENCODING = "ATCORE/INVALID_ENCODING"
    ENCODE = "ATCORE/ENCODE"
    INVALID_CID = "ATCORE/INVALID_CID"
    HASH_MISMATCH = "ATCORE/HASH_MISMATCH"
    FRAME = "ATCORE/FRAME"

    # Crypto
    KEY_FORMAT = "ATCORE/KEY_FORMAT"
    SIGNING = "ATCORE/SIGNING"

    # Labels
    LABEL = "ATCORE/LABEL"


@dataclass(eq=False)
class AtCoreError(Exception):
    """
    Root error for atcore components.

    Attributes
    ----------
    code: str
        Machine-stable error code (see CoreErrorCode).
    message: str
        Human hint suitable for logs; never includes key material.
    data: dict
        Optional machine data (offsets, type tags, ids). JSON-serializable.
    severity: Severity
        Optional severity hint (default ERROR).
    retryable: bool
        Whether the operation may succeed on retry without changing inputs.
    cause: Optional[BaseException]
        Wrapped original exception; not included in equality comparison.
    """

    code: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    severity: Severity = Severity.ERROR
    retryable: bool = False
    cause: Optional[BaseException] = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        super().__init__(f"{self.code}: {self.message}")

    def with_context(self, **ctx: Any) -> "AtCoreError":
        """Return a copy with extra context merged into `data`."""
        err = _clone(self)
        err.data = {**self.data, **_jsonmap(ctx)}
        return err

    def with_cause(self, exc: BaseException) -> "AtCoreError":
        """Return a copy with `cause` attached/replaced."""
        err = _clone(self)
        err.cause = exc
        return err

    def to_dict(self, include_cause: bool = False) -> Dict[str, Any]:
        """JSON-safe shape suitable for logs."""
        out = {
            "code": _code_str(self.code),
            "message": self.message,
            "data": _coerce_json(self.data),
            "severity": int(self.severity),
            "retryable": self.retryable,
        }
        if include_cause and self.cause is not None:
            out["cause"] = {
                "type": type(self.cause).__name__,
                "message": str(self.cause),
            }
        return out

    def __str__(self) -> str:  # pragma: no cover - human formatting
        parts = [f"{_code_str(self.code)}: {self.message}"]
        if self.data:
            preview = ", ".join(f"{k}={_preview(v)}" for k, v in self.data.items())
            parts.append(f"[{preview}]")
        return " ".join(parts)


class ConfigError(AtCoreError):
    def __init__(self, message="invalid configuration", **data: Any) -> None:
        super().__init__(
            code=CoreErrorCode.CONFIG,
            message=message,
            data=_jsonmap(data),
            severity=Severity.CRITICAL,
        )


class MissingKeyMaterial(ConfigError):
    """Signing was requested but no private key is configured."""

    def __init__(self, setting: str = "labeler.private_key") -> None:
        super().__init__(f"private key is required ({setting})", setting=setting)
        self.code = CoreErrorCode.KEY_MISSING


class InvalidEncoding(AtCoreError):
    """
    Malformed CBOR input. `data` carries `offset`, `major` and `info` where
    known so the failing byte can be located.
    """

    def __init__(self, message="invalid encoding", **data: Any) -> None:
        super().__init__(
            code=CoreErrorCode.INVALID_ENCODING, message=message, data=_jsonmap(data)
        )


class EncodeError(AtCoreError, TypeError):
    def __init__(self, message="value cannot be canonically encoded", **data: Any) -> None:
        AtCoreError.__init__(
            self, code=CoreErrorCode.ENCODE, message=message, data=_jsonmap(data)
        )


class InvalidCID(AtCoreError, ValueError):
    def __init__(self, message="invalid CID", **data: Any) -> None:
        AtCoreError.__init__(
            self, code=CoreErrorCode.INVALID_CID, message=message, data=_jsonmap(data)
        )


class HashMismatch(AtCoreError):
    def __init__(self, expected: str, got: str, subject: str = "block") -> None:
        super().__init__(
            code=CoreErrorCode.HASH_MISMATCH,
            message=f"hash mismatch for {subject}",
            data={"expected": expected, "got": got, "subject": subject},
        )


class FrameError(AtCoreError):
    """An event stream delivered an error frame (op == -1)."""

    def __init__(self, error: str, message: Optional[str] = None) -> None:
        super().__init__(
            code=CoreErrorCode.FRAME,
            message=message or error,
            data={"error": error},
        )
        self.error = error


class KeyFormatError(AtCoreError, ValueError):
    def __init__(self, message="unsupported key material", **data: Any) -> None:
        AtCoreError.__init__(
            self, code=CoreErrorCode.KEY_FORMAT, message=message, data=_jsonmap(data)
        )


class SigningError(AtCoreError):
    def __init__(self, message="signing failed", **data: Any) -> None:
        super().__init__(
            code=CoreErrorCode.SIGNING, message=message, data=_jsonmap(data)
        )


class LabelError(AtCoreError, ValueError):
    """A label record field is missing, mistyped or out of range. `data['field']` names it."""

    def __init__(self, message="invalid label", **data: Any) -> None:
        AtCoreError.__init__(
            self, code=CoreErrorCode.LABEL, message=message, data=_jsonmap(data)
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

T = TypeVar("T", bound=AtCoreError)


def wrap(exc: BaseException, *, as_: Type[T], prefix: str = "", **ctx: Any) -> T:
    """
    Translate a foreign exception (OSError, parser errors, backend errors)
    into `as_`, with `cause` attached and `ctx` merged into `data`.
    An AtCoreError passes through as a context-enriched copy.

        except OSError as e:
            raise wrap(e, as_=InvalidEncoding, prefix="source is not readable") from e
    """
    if isinstance(exc, AtCoreError):
        return exc.with_context(**ctx)  # type: ignore[return-value]
    detail = str(exc) or type(exc).__name__
    err = as_(f"{prefix}: {detail}" if prefix else detail, **ctx)  # type: ignore[call-arg]
    return err.with_cause(exc)  # type: ignore[return-value]


def _clone(err: AtCoreError) -> AtCoreError:
    # Subclasses have bespoke __init__ signatures; copy the instance state instead.
    new = Exception.__new__(type(err))
    new.__dict__.update(err.__dict__)
    new.data = dict(err.data)
    new.args = err.args
    return new


def _code_str(code: Any) -> str:
    return code.value if isinstance(code, Enum) else str(code)


def _jsonmap(data: Mapping[str, Any]) -> Dict[str, Any]:
    return {k: _coerce_json(v) for k, v in data.items()}


def _coerce_json(v: Any) -> Any:
    # Keep JSON primitives; hex-encode bytes; stringify the rest.
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray)):
        return bytes(v).hex()
    if isinstance(v, dict):
        return {str(k): _coerce_json(x) for k, x in v.items()}
    if isinstance(v, (list, tuple)):
        return [_coerce_json(x) for x in v]
    return str(v)


def _preview(v: Any, limit: int = 96) -> str:
    s = str(_coerce_json(v))
    return s if len(s) <= limit else s[:limit] + "…"


__all__ = [
    "Severity",
    "CoreErrorCode",
    "AtCoreError",
    "ConfigError",
    "MissingKeyMaterial",
    "InvalidEncoding",
    "EncodeError",
    "InvalidCID",
    "HashMismatch",
    "FrameError",
    "KeyFormatError",
    "SigningError",
    "LabelError",
    "wrap",
]
