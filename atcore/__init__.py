"""
atcore package.

Data-integrity core for the AT Protocol: canonical DAG-CBOR encoding and
decoding, content identifiers, ECDSA record signatures and signed labels.

Subpackages: encoding, crypto, labeler. Ambient modules: errors, logging,
config.

Only re-exports the version here to keep import-time side effects near zero.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__"]
