"""Best-effort source verification against Etherscan-compatible explorers.

Verification never affects on-chain state or the outcome of a run. Each
artifact gets a single submission, wrapped by :func:`isolate_and_report` so a
timeout, rate limit or "already verified" response for one artifact does not
stop the others from being submitted.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import requests
from eth_abi import encode

from .artifacts import DeploymentArtifact
from .compiled import CompiledContract

_LOGGER = logging.getLogger(__name__)

DEFAULT_GRACE_DELAY = 60.0
DEFAULT_TIMEOUT = 30.0

SUBMITTED = "submitted"
ALREADY_VERIFIED = "already_verified"
FAILED = "failed"

ALREADY_VERIFIED_MARKERS = ("already verified",)


class VerificationError(RuntimeError):
    """Raised when the explorer rejects or cannot process a verification request."""


class AlreadyVerifiedError(VerificationError):
    """Raised when the explorer already holds verified source for the address."""


@dataclass(frozen=True)
class VerificationOutcome:
    artifact: str
    address: str
    status: str
    detail: Optional[str] = None
    guid: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status in (SUBMITTED, ALREADY_VERIFIED)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "artifact": self.artifact,
            "address": self.address,
            "status": self.status,
            "detail": self.detail,
            "guid": self.guid,
        }


def encode_constructor_arguments(compiled: CompiledContract, arguments: Iterable[Any]) -> str:
    """ABI-encode ``arguments`` against the constructor of ``compiled`` (hex, no ``0x``)."""

    types = compiled.constructor_input_types()
    values = list(arguments)
    if len(types) != len(values):
        raise VerificationError(
            f"{compiled.contract_name} constructor takes {len(types)} arguments, artifact recorded {len(values)}"
        )
    if not types:
        return ""
    return encode(types, values).hex()


class ExplorerVerifier:
    """Submit ``verifysourcecode`` requests to an Etherscan-style API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        chain_id: int,
        compiled_loader: Callable[[str], CompiledContract],
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.chain_id = chain_id
        self.compiled_loader = compiled_loader
        self.session = session or requests.Session()
        self.timeout = timeout

    def _payload(self, artifact: DeploymentArtifact) -> Dict[str, str]:
        compiled = self.compiled_loader(artifact.contract_name)
        build_info = compiled.load_build_info()
        return {
            "apikey": self.api_key,
            "module": "contract",
            "action": "verifysourcecode",
            "contractaddress": artifact.address,
            "sourceCode": json.dumps(build_info.input),
            "codeformat": "solidity-standard-json-input",
            "contractname": compiled.fully_qualified_name,
            "compilerversion": build_info.compiler_version,
            # Etherscan's parameter name is misspelled upstream.
            "constructorArguements": encode_constructor_arguments(compiled, artifact.constructor_arguments),
        }

    def verify(self, artifact: DeploymentArtifact) -> VerificationOutcome:
        response = self.session.post(
            self.api_url,
            params={"chainid": str(self.chain_id)},
            data=self._payload(artifact),
            timeout=self.timeout,
        )
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise VerificationError(f"Explorer returned HTTP error for {artifact.name}: {exc}") from exc

        body = response.json()
        if not isinstance(body, Mapping):
            raise VerificationError(f"Unexpected explorer payload for {artifact.name}: {body!r}")

        result = str(body.get("result", ""))
        if str(body.get("status")) == "1":
            _LOGGER.info("Submitted %s (%s) for verification, guid %s", artifact.name, artifact.address, result)
            return VerificationOutcome(artifact.name, artifact.address, SUBMITTED, guid=result)
        if any(marker in result.lower() for marker in ALREADY_VERIFIED_MARKERS):
            raise AlreadyVerifiedError(result)
        raise VerificationError(result or str(body.get("message", "unknown explorer error")))


def isolate_and_report(
    artifact: DeploymentArtifact,
    attempt: Callable[[DeploymentArtifact], VerificationOutcome],
) -> VerificationOutcome:
    """Run ``attempt`` for ``artifact`` and turn any error into a logged outcome."""

    try:
        return attempt(artifact)
    except AlreadyVerifiedError as exc:
        _LOGGER.info("%s (%s) is already verified: %s", artifact.name, artifact.address, exc)
        return VerificationOutcome(artifact.name, artifact.address, ALREADY_VERIFIED, detail=str(exc))
    except Exception as exc:  # noqa: BLE001 - verification is best effort
        _LOGGER.warning("Verification of %s (%s) failed: %s", artifact.name, artifact.address, exc)
        return VerificationOutcome(artifact.name, artifact.address, FAILED, detail=str(exc))


def verify_all(
    artifacts: Iterable[DeploymentArtifact],
    verifier: Any,
    *,
    grace_delay: float = DEFAULT_GRACE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> List[VerificationOutcome]:
    """Verify every artifact once, in order, after a single indexer grace delay."""

    pending = list(artifacts)
    if not pending:
        return []
    if grace_delay > 0:
        _LOGGER.info("Waiting %.0fs for the explorer to index the latest blocks", grace_delay)
        sleep(grace_delay)
    return [isolate_and_report(artifact, verifier.verify) for artifact in pending]
