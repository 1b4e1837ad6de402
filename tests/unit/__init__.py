"""
tests.unit
==========

Fast, deterministic tests for the codec, CID, signing, labeler and ambient
modules. No network or filesystem access beyond pytest's tmp_path.
"""
