from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

from token_deployment.artifacts import DeploymentArtifact
from token_deployment.compiled import load_compiled_contract
from token_deployment.verification import (
    ALREADY_VERIFIED,
    FAILED,
    SUBMITTED,
    ExplorerVerifier,
    VerificationError,
    VerificationOutcome,
    encode_constructor_arguments,
    isolate_and_report,
    verify_all,
)

from .fake_chain import FakeVerifier, write_hardhat_artifact

TOKEN_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
ALPHA_INPUTS = [
    {"name": "benefactor", "type": "address"},
    {"name": "tokenAddress", "type": "address"},
    {"name": "routerAddress", "type": "address"},
    {"name": "taxBasisPoints", "type": "uint256"},
    {"name": "taxSwapTime", "type": "uint256"},
]


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self) -> Any:
        return self._payload


class FakeSession:
    def __init__(self, response: FakeResponse) -> None:
        self.response = response
        self.requests: List[Dict[str, Any]] = []

    def post(self, url: str, params: Optional[Dict[str, str]] = None, data=None, timeout=None) -> FakeResponse:
        self.requests.append({"url": url, "params": params, "data": data, "timeout": timeout})
        return self.response


def _artifact(name: str = "token", contract_name: str = "FLOKI", arguments=()) -> DeploymentArtifact:
    return DeploymentArtifact(name=name, contract_name=contract_name, address=TOKEN_ADDRESS, constructor_arguments=arguments)


@pytest.fixture()
def artifacts_dir(tmp_path: Path) -> Path:
    write_hardhat_artifact(tmp_path, "TreasuryHandlerAlpha", constructor_inputs=ALPHA_INPUTS)
    write_hardhat_artifact(tmp_path, "ZeroTaxHandler")
    return tmp_path


def _verifier(artifacts_dir: Path, response: FakeResponse) -> ExplorerVerifier:
    return ExplorerVerifier(
        "https://api.etherscan.io/v2/api",
        "secret",
        5,
        lambda name: load_compiled_contract(name, artifacts_dir),
        session=FakeSession(response),  # type: ignore[arg-type]
    )


def test_encode_constructor_arguments_matches_abi_layout(artifacts_dir: Path) -> None:
    compiled = load_compiled_contract("TreasuryHandlerAlpha", artifacts_dir)
    signer = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
    router = "0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D"

    encoded = encode_constructor_arguments(compiled, (signer, TOKEN_ADDRESS, router, 2000, 300))

    words = [encoded[index : index + 64] for index in range(0, len(encoded), 64)]
    assert len(words) == 5
    assert words[0].endswith(signer[2:].lower())
    assert int(words[3], 16) == 2000
    assert int(words[4], 16) == 300


def test_encode_constructor_arguments_handles_no_arguments(artifacts_dir: Path) -> None:
    compiled = load_compiled_contract("ZeroTaxHandler", artifacts_dir)
    assert encode_constructor_arguments(compiled, ()) == ""


def test_encode_constructor_arguments_rejects_count_mismatch(artifacts_dir: Path) -> None:
    compiled = load_compiled_contract("TreasuryHandlerAlpha", artifacts_dir)
    with pytest.raises(VerificationError, match="takes 5 arguments"):
        encode_constructor_arguments(compiled, (TOKEN_ADDRESS,))


def test_verify_submits_standard_json_input(artifacts_dir: Path) -> None:
    verifier = _verifier(artifacts_dir, FakeResponse({"status": "1", "message": "OK", "result": "abc123"}))

    outcome = verifier.verify(_artifact("zero_tax_handler", "ZeroTaxHandler"))

    assert outcome == VerificationOutcome("zero_tax_handler", TOKEN_ADDRESS, SUBMITTED, guid="abc123")
    request = verifier.session.requests[0]  # type: ignore[attr-defined]
    assert request["params"] == {"chainid": "5"}
    data = request["data"]
    assert data["action"] == "verifysourcecode"
    assert data["codeformat"] == "solidity-standard-json-input"
    assert data["contractname"] == "contracts/ZeroTaxHandler.sol:ZeroTaxHandler"
    assert data["compilerversion"] == "v0.8.11+commit.d7f03943"
    assert data["constructorArguements"] == ""
    assert json.loads(data["sourceCode"])["language"] == "Solidity"


def test_already_verified_is_reported_not_raised(artifacts_dir: Path) -> None:
    verifier = _verifier(
        artifacts_dir,
        FakeResponse({"status": "0", "message": "NOTOK", "result": "Contract source code already verified"}),
    )

    outcome = isolate_and_report(_artifact("zero_tax_handler", "ZeroTaxHandler"), verifier.verify)

    assert outcome.status == ALREADY_VERIFIED
    assert outcome.ok


def test_explorer_rejection_raises(artifacts_dir: Path) -> None:
    verifier = _verifier(artifacts_dir, FakeResponse({"status": "0", "message": "NOTOK", "result": "Max rate limit reached"}))
    with pytest.raises(VerificationError, match="rate limit"):
        verifier.verify(_artifact("zero_tax_handler", "ZeroTaxHandler"))


def test_http_errors_become_verification_errors(artifacts_dir: Path) -> None:
    verifier = _verifier(artifacts_dir, FakeResponse({}, status_code=502))
    with pytest.raises(VerificationError, match="HTTP error"):
        verifier.verify(_artifact("zero_tax_handler", "ZeroTaxHandler"))


def test_isolate_and_report_logs_failures(caplog) -> None:
    caplog.set_level(logging.WARNING)

    def attempt(artifact: DeploymentArtifact) -> VerificationOutcome:
        raise requests.ConnectionError("connection reset")

    outcome = isolate_and_report(_artifact(), attempt)

    assert outcome.status == FAILED
    assert not outcome.ok
    assert "connection reset" in outcome.detail
    assert "Verification of token" in caplog.text


def test_verify_all_continues_after_failures() -> None:
    artifacts = [_artifact(name) for name in ("a", "b", "c")]
    verifier = FakeVerifier({"a": VerificationError("boom"), "b": requests.Timeout("slow")})
    sleeps: List[float] = []

    outcomes = verify_all(artifacts, verifier, grace_delay=30, sleep=sleeps.append)

    assert verifier.calls == ["a", "b", "c"]
    assert [outcome.status for outcome in outcomes] == [FAILED, FAILED, SUBMITTED]
    assert sleeps == [30]


def test_verify_all_without_artifacts_does_not_wait() -> None:
    sleeps: List[float] = []
    assert verify_all([], FakeVerifier(), sleep=sleeps.append) == []
    assert sleeps == []


def test_missing_compiled_artifact_is_isolated(tmp_path: Path) -> None:
    verifier = _verifier(tmp_path, FakeResponse({"status": "1", "result": "guid"}))
    outcome = isolate_and_report(_artifact(), verifier.verify)
    assert outcome.status == FAILED
    assert "No compiled artifact" in outcome.detail
