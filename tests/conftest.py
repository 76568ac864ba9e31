"""Shared test fixtures for deproof."""

from __future__ import annotations

from typing import Any

import pytest

from deproof.proof.generator import ProofGenerator
from deproof.proof.models import attach_proof
from deproof.proof.nonce_store import InMemoryNonceStore
from deproof.proof.validator import ProofValidator
from tests.fixtures.proofs import KEY_A, FixedClock


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryNonceStore:
    return InMemoryNonceStore()


@pytest.fixture
def generator(clock: FixedClock) -> ProofGenerator:
    return ProofGenerator(KEY_A, clock=clock)


@pytest.fixture
def validator(store: InMemoryNonceStore, clock: FixedClock) -> ProofValidator:
    return ProofValidator(store, clock=clock)


@pytest.fixture
def signed_call(generator: ProofGenerator) -> Any:
    """Factory: sign params and return the full argument dict."""

    def _make(params: dict[str, Any], session: str | None = None) -> dict[str, Any]:
        proof = generator.generate(params, session)
        return attach_proof(params, proof)

    return _make


@pytest.fixture
def isolated_config(tmp_path: Any, monkeypatch: pytest.MonkeyPatch) -> Any:
    """Keep config discovery away from the real home and working directory."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.chdir(tmp_path)
    for var in (
        "DEPROOF_CONFIG",
        "WALLET_PRIVATE_KEY",
        "OPENAI_API_KEY",
        "OPENAI_BASE_URL",
        "OPENAI_MODEL",
    ):
        monkeypatch.delenv(var, raising=False)
    return tmp_path
