"""
Version helpers for atcore.

- Exposes __version__ (PEP 440).
- Resolution order:
    1) ATCORE_VERSION env var (authoritative override)
    2) installed distribution metadata ("atcore")
    3) DEFAULT_VERSION
- Never raises; safe to import very early.
"""

from __future__ import annotations

import os
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as _dist_version

DEFAULT_VERSION = "0.1.0"
DIST_NAME = "atcore"


def resolve_version() -> str:
    env = os.getenv("ATCORE_VERSION")
    if env and env.strip():
        return env.strip()
    try:
        return _dist_version(DIST_NAME)
    except PackageNotFoundError:
        return DEFAULT_VERSION


__version__ = resolve_version()

__all__ = ["DEFAULT_VERSION", "resolve_version", "__version__"]
