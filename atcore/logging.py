"""
atcore.logging
--------------

Logging for the codec, CID, signing and labeler layers.

Records are emitted through the stdlib `logging` tree. Two things are added
on top:

* a context-local field set (`bind` / `unbind` / `trace_scope`) that every
  formatter merges into its output, so a trace id or labeler DID bound once
  at the edge shows up on every line below it;
* two formatters: one JSON object per line for services, and a short
  pipe-separated line (coloured on a TTY) for people.

    from atcore import logging as alog

    alog.configure(level="DEBUG")
    log = alog.get_logger(__name__)
    with alog.trace_scope():
        alog.bind(did=labeler_did)
        log.info("label signed", extra={"uri": uri})

ATCORE_LOG_FORMAT=json|text forces a format; otherwise JSON is chosen when
the output stream is not a terminal.
"""

from __future__ import annotations

import datetime as _dt
import io
import json
import logging
import os
import sys
import threading
import traceback
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

FORMAT_ENV = "ATCORE_LOG_FORMAT"

_fields: ContextVar[Dict[str, Any]] = ContextVar("atcore_log_fields", default={})

# Context keys shown (in this order) by the text formatter.
TEXT_CONTEXT_KEYS = ("trace_id", "component", "did", "seq")

# Attributes every LogRecord carries; anything else on a record came from `extra=`.
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


# ----------------------------
# Context fields
# ----------------------------


def context() -> Dict[str, Any]:
    """Copy of the fields bound in the current context."""
    return dict(_fields.get())


def bind(**fields: Any) -> None:
    _fields.set({**_fields.get(), **{k: _jsonable(v) for k, v in fields.items()}})


def unbind(*keys: str) -> None:
    _fields.set({k: v for k, v in _fields.get().items() if k not in keys})


def clear_context() -> None:
    _fields.set({})


@contextmanager
def trace_scope(trace_id: Optional[str] = None):
    """Bind a trace_id (fresh unless given) and restore the outer fields on exit."""
    token = _fields.set({**_fields.get(), "trace_id": trace_id or short_uuid()})
    try:
        yield
    finally:
        _fields.reset(token)


def short_uuid() -> str:
    return uuid.uuid4().hex[:12]


# ----------------------------
# Formatting
# ----------------------------


def _now() -> str:
    return _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="milliseconds")


def _jsonable(v: Any) -> Any:
    """Reduce a field value to something json.dumps accepts (bytes become hex)."""
    if v is None or isinstance(v, (bool, int, float, str)):
        return v
    if isinstance(v, (bytes, bytearray, memoryview)):
        return bytes(v).hex()
    if isinstance(v, _dt.datetime):
        return (v if v.tzinfo else v.replace(tzinfo=_dt.timezone.utc)).isoformat()
    if isinstance(v, dict):
        return {str(k): _jsonable(x) for k, x in v.items()}
    if isinstance(v, (list, tuple, set, frozenset)):
        return [_jsonable(x) for x in v]
    return str(v)


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: _jsonable(v)
        for k, v in vars(record).items()
        if k not in _STANDARD_ATTRS and not k.startswith("_")
    }


def _exc_text(record: logging.LogRecord) -> Optional[str]:
    if not record.exc_info:
        return None
    return "".join(traceback.format_exception(*record.exc_info)).rstrip()


class JSONFormatter(logging.Formatter):
    """One JSON object per record: base fields, then context, then extras."""

    def format(self, record: logging.LogRecord) -> str:
        out: Dict[str, Any] = dict(
            ts=_now(),
            level=record.levelname,
            logger=record.name,
            msg=record.getMessage(),
            pid=os.getpid(),
            tid=threading.get_ident(),
        )
        out.update(context())
        for k, v in _record_extras(record).items():
            out.setdefault(k, v)
        err = _exc_text(record)
        if err:
            out["err"] = err
        return json.dumps(out, default=str, separators=(",", ":"))


# SGR colour codes per level; names and timestamps use cyan and grey.
_SGR = {
    logging.DEBUG: "90",
    logging.INFO: "32",
    logging.WARNING: "33",
    logging.ERROR: "31",
    logging.CRITICAL: "1;35",
}


def _paint(text: str, code: str) -> str:
    return f"\x1b[{code}m{text}\x1b[0m"


def _is_tty(stream: Any) -> bool:
    isatty = getattr(stream, "isatty", None)
    try:
        return bool(isatty and isatty()) and "NO_COLOR" not in os.environ
    except ValueError:  # closed stream
        return False


class TextFormatter(logging.Formatter):
    """
    `ts | LEVEL | logger | key=value ... | message`, coloured when `stream`
    is a terminal.
    """

    def __init__(self, stream: Any = None):
        super().__init__()
        self._color = _is_tty(stream if stream is not None else sys.stderr)

    def format(self, record: logging.LogRecord) -> str:
        ctx = context()
        pairs = [f"{k}={ctx[k]}" for k in TEXT_CONTEXT_KEYS if ctx.get(k) is not None]
        pairs += [f"{k}={v}" for k, v in _record_extras(record).items() if k not in ctx]

        ts, level, name = _now(), f"{record.levelname:<5}", record.name
        if self._color:
            ts = _paint(ts, "90")
            level = _paint(level, _SGR.get(record.levelno, "37"))
            name = _paint(name, "36")

        parts = [ts, level, name]
        if pairs:
            parts.append(" ".join(pairs))
        parts.append(record.getMessage())
        line = " | ".join(parts)

        err = _exc_text(record)
        return f"{line}\n{err}" if err else line


# ----------------------------
# Setup
# ----------------------------


def configure(
    *,
    json: Optional[bool] = None,
    level: str | int = "INFO",
    stream: io.TextIOBase = sys.stderr,
    file_path: Optional[Path | str] = None,
    propagate_existing: bool = False,
) -> None:
    """
    Install handlers on the root logger.

    `json=None` defers to ATCORE_LOG_FORMAT, then to TTY detection on
    `stream`. `file_path` adds a JSON file handler (parent directories are
    created). Existing root handlers are removed unless `propagate_existing`.
    """
    lvl = _level_number(level)
    root = logging.getLogger()
    root.setLevel(lvl)
    if not propagate_existing:
        for handler in list(root.handlers):
            root.removeHandler(handler)

    console = logging.StreamHandler(stream)
    console.setFormatter(JSONFormatter() if _decide_json(json, stream) else TextFormatter(stream))
    handlers: list[logging.Handler] = [console]

    if file_path:
        path = Path(file_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(path, encoding="utf-8")
        to_file.setFormatter(JSONFormatter())
        handlers.append(to_file)

    for handler in handlers:
        handler.setLevel(lvl)
        root.addHandler(handler)


def configure_from_config(cfg: Any) -> None:
    """Apply the `logging` section of an `atcore.config.Config`."""
    section = cfg.logging
    configure(json=section.json, level=section.level, file_path=section.file)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name or "atcore")


class ContextAdapter(logging.LoggerAdapter):
    """Adds fixed fields to every record; call-site `extra` wins on clashes."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def with_fields(logger: logging.Logger, **fields: Any) -> ContextAdapter:
    return ContextAdapter(logger, {k: _jsonable(v) for k, v in fields.items()})


def _level_number(level: str | int) -> int:
    if isinstance(level, int):
        return level
    return logging.getLevelNamesMapping().get(level.upper(), logging.INFO)


def _decide_json(json_flag: Optional[bool], stream: Any) -> bool:
    if json_flag is not None:
        return json_flag
    fmt = os.environ.get(FORMAT_ENV, "").strip().lower()
    if fmt in ("json", "text"):
        return fmt == "json"
    return not _is_tty(stream)


__all__ = [
    "context",
    "bind",
    "unbind",
    "clear_context",
    "trace_scope",
    "short_uuid",
    "JSONFormatter",
    "TextFormatter",
    "configure",
    "configure_from_config",
    "get_logger",
    "with_fields",
    "ContextAdapter",
]
