"""
tests.property
==============

Hypothesis-driven invariants for the canonical codec, CIDs and signatures.
"""
