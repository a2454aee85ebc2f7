"""Sequential execution of deployment plans."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from .artifacts import DeploymentArtifact
from .factory import DeploymentError
from .plan import ArtifactRef, DeploymentPlan, DeploymentStep, SignerRef
from .verification import DEFAULT_GRACE_DELAY, VerificationOutcome, verify_all
from .wiring import TokenContract, wire

_LOGGER = logging.getLogger(__name__)


@dataclass
class DeploymentResult:
    network: str
    signer: str
    artifacts: List[DeploymentArtifact] = field(default_factory=list)
    verification: List[VerificationOutcome] = field(default_factory=list)
    wired: bool = False

    def artifact(self, name: str) -> DeploymentArtifact:
        for artifact in self.artifacts:
            if artifact.name == name:
                return artifact
        raise KeyError(name)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "network": self.network,
            "signer": self.signer,
            "wired": self.wired,
            "artifacts": [artifact.as_dict() for artifact in self.artifacts],
            "verification": [outcome.as_dict() for outcome in self.verification],
        }


class Deployer:
    """Deploy a :class:`DeploymentPlan` one step at a time.

    Parameters
    ----------
    context:
        Network context; only ``signer_address`` and ``network.name`` are read here.
    factories:
        Object exposing ``get_factory(contract_name)``, whose factories return
        deployed contracts with an ``address``.
    verifier:
        Optional object exposing ``verify(artifact)``. Verification is skipped
        when omitted.
    """

    def __init__(
        self,
        context: Any,
        factories: Any,
        *,
        verifier: Any = None,
        verify_delay: float = DEFAULT_GRACE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.context = context
        self.factories = factories
        self.verifier = verifier
        self.verify_delay = verify_delay
        self._sleep = sleep
        self._contracts: Dict[str, Any] = {}
        self._artifacts: Dict[str, DeploymentArtifact] = {}

    def _resolve(self, value: Any) -> Any:
        if isinstance(value, ArtifactRef):
            try:
                return self._artifacts[value.step].address
            except KeyError as exc:
                raise DeploymentError(f"Artifact {value.step!r} has not been deployed yet") from exc
        if isinstance(value, SignerRef):
            return self.context.signer_address
        if isinstance(value, tuple):
            return tuple(self._resolve(item) for item in value)
        return value

    def _deploy_step(self, step: DeploymentStep) -> DeploymentArtifact:
        arguments = tuple(self._resolve(value) for value in step.arguments)
        _LOGGER.info("Deploying %s (%s) with %s", step.name, step.contract_name, list(arguments))
        factory = self.factories.get_factory(step.contract_name)
        contract = factory.deploy(*arguments)

        artifact = DeploymentArtifact(
            name=step.name,
            contract_name=step.contract_name,
            address=contract.address,
            constructor_arguments=arguments,
            transaction_hash=getattr(contract, "transaction_hash", None),
            block_number=getattr(contract, "block_number", None),
        )
        self._contracts[step.name] = contract
        self._artifacts[step.name] = artifact
        _LOGGER.info("Deployed %s at %s", step.name, artifact.address)
        return artifact

    def deploy(self, plan: DeploymentPlan) -> List[DeploymentArtifact]:
        """Deploy every step of ``plan`` in order; any failure propagates."""

        self._contracts.clear()
        self._artifacts.clear()
        _LOGGER.info("Executing deployment plan with %d steps", len(plan))
        return [self._deploy_step(step) for step in plan]

    def token_contract(self, plan: DeploymentPlan) -> TokenContract:
        if plan.wiring is None:
            raise DeploymentError("Plan does not describe a token to wire")
        wiring = plan.wiring
        return TokenContract(
            self._contracts[wiring.token],
            tax_placeholder=self._artifacts[wiring.tax_placeholder].address,
            treasury_placeholder=self._artifacts[wiring.treasury_placeholder].address,
        )

    def run(self, plan: DeploymentPlan, *, verify: bool = True) -> DeploymentResult:
        """Deploy ``plan``, wire the token if the plan asks for it, then verify."""

        result = DeploymentResult(
            network=getattr(self.context.network, "name", str(self.context.network)),
            signer=self.context.signer_address,
        )
        result.artifacts = self.deploy(plan)

        if plan.wiring is not None:
            token = self.token_contract(plan)
            wire(
                token,
                self._artifacts[plan.wiring.tax_handler],
                self._artifacts[plan.wiring.treasury_handler],
            )
            result.wired = True

        if verify and self.verifier is not None:
            result.verification = verify_all(
                result.artifacts,
                self.verifier,
                grace_delay=self.verify_delay,
                sleep=self._sleep,
            )
        else:
            _LOGGER.info("Skipping explorer verification")
        return result
