"""
atcore configuration loader.

Goals
-----
- Zero external deps (stdlib only).
- Layered config with clear precedence:
    1) Explicit overrides passed to `load()` (highest)
    2) Environment variables (BLUESKY_LABELER_*, ATCORE_LOG_*)
    3) Config file (TOML or JSON)
    4) Built-in defaults (lowest)
- Typed dataclasses with validation.

Only two concerns are configured here:
  - the labeler identity (DID) and its signing key material
  - logging (level, format, optional file)

Key material is never echoed: `to_dict()` redacts it.
"""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigError, MissingKeyMaterial, wrap

# ------------------------------
# Defaults & helpers
# ------------------------------

ENV_LABELER_DID = "BLUESKY_LABELER_DID"
ENV_LABELER_PRIVATE_KEY = "BLUESKY_LABELER_PRIVATE_KEY"
ENV_LABELER_CURVE = "BLUESKY_LABELER_CURVE"
ENV_LOG_LEVEL = "ATCORE_LOG_LEVEL"
ENV_LOG_FORMAT = "ATCORE_LOG_FORMAT"
ENV_LOG_FILE = "ATCORE_LOG_FILE"

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET")
CURVES = ("k256", "p256")

REDACTED = "***"


def _expand(p: str | Path) -> Path:
    return Path(p).expanduser().resolve()


def _parse_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _env_str(name: str) -> Optional[str]:
    v = os.environ.get(name)
    if v is None:
        return None
    v = v.strip()
    return v or None


def _parse_format(v: Optional[str]) -> Optional[bool]:
    """"json" -> True, "text" -> False, unset/"auto" -> None (decide by TTY)."""
    if v is None:
        return None
    s = v.strip().lower()
    if s in ("", "auto"):
        return None
    if s == "json":
        return True
    if s == "text":
        return False
    raise ConfigError(f"log format must be json|text|auto, got {v!r}", setting="logging.json")


# ------------------------------
# Typed configuration model
# ------------------------------

@dataclass
class LabelerConfig:
    did: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)
    curve: str = "k256"
    logger: str = "atcore.labeler"

    def require_private_key(self) -> str:
        if not self.private_key:
            raise MissingKeyMaterial("labeler.private_key")
        return self.private_key

    def validate(self) -> None:
        if self.did is not None and not self.did.startswith("did:"):
            raise ConfigError(f"labeler DID must start with 'did:', got {self.did!r}", setting="labeler.did")
        if self.curve not in CURVES:
            raise ConfigError(f"unsupported curve {self.curve!r}", setting="labeler.curve", allowed=list(CURVES))


@dataclass
class LoggingConfig:
    level: str = "INFO"
    json: Optional[bool] = None
    file: Optional[Path] = None

    def validate(self) -> None:
        if self.level.upper() not in LOG_LEVELS:
            raise ConfigError(f"unknown log level {self.level!r}", setting="logging.level", allowed=list(LOG_LEVELS))


@dataclass
class Config:
    labeler: LabelerConfig = field(default_factory=LabelerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        if d["labeler"]["private_key"]:
            d["labeler"]["private_key"] = REDACTED
        if d["logging"]["file"] is not None:
            d["logging"]["file"] = str(d["logging"]["file"])
        return d


# ------------------------------
# File loader (TOML / JSON)
# ------------------------------

def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}", path=str(path))
    suffix = path.suffix.lower()
    with path.open("rb") as f:
        try:
            if suffix in {".toml", ".tml"}:
                return tomllib.load(f)
            if suffix in {".json"}:
                return json.load(f)
        except (tomllib.TOMLDecodeError, json.JSONDecodeError) as e:
            raise wrap(e, as_=ConfigError, prefix=f"cannot parse {path.name}", path=str(path)) from e
    raise ConfigError(f"unsupported config format: {suffix}. Use .toml or .json", path=str(path))


def _merge_dict(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    """Shallow + nested dict merge: values in b override a."""
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge_dict(out[k], v)
        else:
            out[k] = v
    return out


def _env_layer() -> Dict[str, Any]:
    layer: Dict[str, Dict[str, Any]] = {"labeler": {}, "logging": {}}
    did = _env_str(ENV_LABELER_DID)
    if did is not None:
        layer["labeler"]["did"] = did
    key = _env_str(ENV_LABELER_PRIVATE_KEY)
    if key is not None:
        layer["labeler"]["private_key"] = key
    curve = _env_str(ENV_LABELER_CURVE)
    if curve is not None:
        layer["labeler"]["curve"] = curve.lower()
    level = _env_str(ENV_LOG_LEVEL)
    if level is not None:
        layer["logging"]["level"] = level.upper()
    if ENV_LOG_FORMAT in os.environ:
        layer["logging"]["json"] = _parse_format(os.environ[ENV_LOG_FORMAT])
    log_file = _env_str(ENV_LOG_FILE)
    if log_file is not None:
        layer["logging"]["file"] = log_file
    return layer


# ------------------------------
# Main loader
# ------------------------------

def load(config_file: Optional[str | Path] = None, **overrides: Any) -> Config:
    """
    Load the configuration.

    Precedence: overrides > env > file > defaults.

    Parameters
    ----------
    config_file : str | Path | None
        Optional path to a TOML or JSON file with keys:
          labeler: { did, private_key, curve, logger }
          logging: { level, json, file }

    overrides : Any
        Keyword overrides, e.g. load(labeler={"did": "did:plc:abc"})
    """
    base: Dict[str, Any] = asdict(Config())

    if config_file:
        base = _merge_dict(base, _load_file(_expand(config_file)))

    base = _merge_dict(base, _env_layer())

    if overrides:
        base = _merge_dict(base, overrides)

    lab = base.get("labeler") or {}
    log_cfg = base.get("logging") or {}
    fmt = log_cfg.get("json")
    cfg = Config(
        labeler=LabelerConfig(
            did=lab.get("did") or None,
            private_key=lab.get("private_key") or None,
            curve=str(lab.get("curve") or "k256").lower(),
            logger=str(lab.get("logger") or "atcore.labeler"),
        ),
        logging=LoggingConfig(
            level=str(log_cfg.get("level") or "INFO").upper(),
            json=_parse_format(fmt) if isinstance(fmt, str) else fmt,
            file=_expand(log_cfg["file"]) if log_cfg.get("file") else None,
        ),
    )

    _validate_config(cfg)
    return cfg


def _validate_config(cfg: Config) -> None:
    cfg.labeler.validate()
    cfg.logging.validate()


def unknown_keys(data: Dict[str, Any]) -> List[str]:
    """Dotted names in `data` that no config field consumes (for warnings)."""
    known = asdict(Config())
    out: List[str] = []
    for section, values in data.items():
        if section not in known:
            out.append(section)
            continue
        if isinstance(values, dict):
            out.extend(f"{section}.{k}" for k in values if k not in known[section])
    return out


__all__ = [
    "LabelerConfig",
    "LoggingConfig",
    "Config",
    "load",
    "unknown_keys",
]
