"""
Shared pytest fixtures:
- Clean environment (no labeler / logging variables leak in from the host)
- Fresh logging context per test
- secp256k1 and P-256 key pairs
- A labeler configuration carrying a generated signing key
"""
from __future__ import annotations

import pytest

from atcore import logging as alog
from atcore.config import LabelerConfig
from atcore.crypto.keys import Curve, KeyPair

_ENV_VARS = (
    "BLUESKY_LABELER_DID",
    "BLUESKY_LABELER_PRIVATE_KEY",
    "BLUESKY_LABELER_CURVE",
    "ATCORE_LOG_LEVEL",
    "ATCORE_LOG_FORMAT",
    "ATCORE_LOG_FILE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def fresh_log_context():
    alog.clear_context()
    yield
    alog.clear_context()


@pytest.fixture(scope="session")
def k256_pair() -> KeyPair:
    return KeyPair.generate(Curve.K256)


@pytest.fixture(scope="session")
def p256_pair() -> KeyPair:
    return KeyPair.generate(Curve.P256)


@pytest.fixture
def labeler_config(k256_pair: KeyPair) -> LabelerConfig:
    return LabelerConfig(
        did="did:plc:labelertest",
        private_key=k256_pair.private_b64url(),
    )
