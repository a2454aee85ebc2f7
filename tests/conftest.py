"""Test configuration: every network collaborator is replaced by an offline fake."""
from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from token_deployment.context import NETWORK_CONFIGS

from .fake_chain import ROUTER_ADDRESS, SIGNER_ADDRESS, FakeChain


@pytest.fixture()
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture()
def context() -> SimpleNamespace:
    return SimpleNamespace(
        signer_address=SIGNER_ADDRESS,
        network=NETWORK_CONFIGS["hardhat"],
        chain_id=31337,
        verification_enabled=True,
        explorer_api_url="https://explorer.invalid/api",
        explorer_api_key="key",
    )


@pytest.fixture()
def recorded_sleeps() -> List[float]:
    return []


@pytest.fixture()
def fake_sleep(recorded_sleeps: List[float]):
    return recorded_sleeps.append


@pytest.fixture()
def static_config_payload() -> Dict[str, Any]:
    return {
        "token": {"contract": "FLOKI", "name": "T1", "symbol": "T1"},
        "router": ROUTER_ADDRESS,
        "taxHandler": {"variant": "static", "arguments": ["$token"]},
        "treasuryHandler": {"variant": "alpha", "arguments": ["$signer", "$token", "$router", 2000, 300]},
    }


@pytest.fixture()
def exponential_config_payload() -> Dict[str, Any]:
    return {
        "token": {"name": "NHAM-Test-05"},
        "router": ROUTER_ADDRESS,
        "taxHandler": {"variant": "exponential", "arguments": ["$token", 2000, 300]},
        "treasuryHandler": {"variant": "alpha", "arguments": ["$signer", "$token", "$router", 2000, 300]},
    }
