"""
atcore.labeler
==============

Signed moderation labels: record types and the `Labeler` signing handle.
"""

from __future__ import annotations

from .labeler import Capability, Labeler, LabelerHandler
from .types import LABEL_VERSION, SavedLabel, SignedLabel, UnsignedLabel

__all__ = [
    "LABEL_VERSION",
    "UnsignedLabel",
    "SignedLabel",
    "SavedLabel",
    "Capability",
    "Labeler",
    "LabelerHandler",
]
