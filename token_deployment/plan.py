"""Ordered deployment plans and the token/handler plan builder."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .handlers import SIGNER_REFERENCE, TAX, TOKEN_REFERENCE, HandlerConfiguration

ZERO_TAX_HANDLER = "ZeroTaxHandler"
ZERO_TREASURY_HANDLER = "ZeroTreasuryHandler"

ZERO_TAX_STEP = "zero_tax_handler"
ZERO_TREASURY_STEP = "zero_treasury_handler"
TOKEN_STEP = "token"
TAX_STEP = "tax_handler"
TREASURY_STEP = "treasury_handler"


class PlanError(RuntimeError):
    """Raised when a deployment plan violates its ordering rules."""


@dataclass(frozen=True)
class ArtifactRef:
    """Placeholder for the address of an earlier step's artifact."""

    step: str

    def __str__(self) -> str:
        return f"${self.step}"


@dataclass(frozen=True)
class SignerRef:
    """Placeholder for the signer address supplied by the network context."""

    def __str__(self) -> str:
        return SIGNER_REFERENCE


SIGNER = SignerRef()


def _iter_refs(value: Any) -> Iterator[ArtifactRef]:
    if isinstance(value, ArtifactRef):
        yield value
    elif isinstance(value, tuple):
        for item in value:
            yield from _iter_refs(item)


def _describe(value: Any) -> Any:
    if isinstance(value, (ArtifactRef, SignerRef)):
        return str(value)
    if isinstance(value, tuple):
        return [_describe(item) for item in value]
    return value


@dataclass(frozen=True)
class DeploymentStep:
    name: str
    contract_name: str
    arguments: Tuple[Any, ...] = ()

    def dependencies(self) -> List[str]:
        return [ref.step for value in self.arguments for ref in _iter_refs(value)]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "contract": self.contract_name,
            "arguments": [_describe(value) for value in self.arguments],
        }


@dataclass(frozen=True)
class WiringDirective:
    """Which steps provide the token, its placeholders and its real handlers."""

    token: str
    tax_handler: str
    treasury_handler: str
    tax_placeholder: str
    treasury_placeholder: str

    def step_names(self) -> Tuple[str, ...]:
        return (self.token, self.tax_handler, self.treasury_handler, self.tax_placeholder, self.treasury_placeholder)


@dataclass(frozen=True)
class DeploymentPlan:
    """An ordered sequence of steps, optionally followed by a wiring directive.

    The plan is validated on construction: step names are unique and every
    :class:`ArtifactRef` points at a step that appears strictly earlier.
    """

    steps: Tuple[DeploymentStep, ...]
    wiring: Optional[WiringDirective] = None

    def __post_init__(self) -> None:
        seen: List[str] = []
        for step in self.steps:
            if step.name in seen:
                raise PlanError(f"Duplicate step name {step.name!r}")
            for dependency in step.dependencies():
                if dependency == step.name:
                    raise PlanError(f"Step {step.name!r} references its own address")
                if dependency not in seen:
                    raise PlanError(
                        f"Step {step.name!r} references {dependency!r}, which is not deployed before it"
                    )
            seen.append(step.name)

        if self.wiring is not None:
            for name in self.wiring.step_names():
                if name not in seen:
                    raise PlanError(f"Wiring references unknown step {name!r}")

    def __iter__(self) -> Iterator[DeploymentStep]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    def step(self, name: str) -> DeploymentStep:
        for step in self.steps:
            if step.name == name:
                return step
        raise KeyError(name)

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"steps": [step.as_dict() for step in self.steps]}
        if self.wiring is not None:
            payload["wiring"] = {
                "token": self.wiring.token,
                "taxHandler": self.wiring.tax_handler,
                "treasuryHandler": self.wiring.treasury_handler,
            }
        return payload


def _plan_argument(config: HandlerConfiguration, value: Any) -> Any:
    if isinstance(value, tuple):
        return tuple(_plan_argument(config, item) for item in value)
    if value == TOKEN_REFERENCE:
        return ArtifactRef(TOKEN_STEP)
    if value == SIGNER_REFERENCE:
        return SIGNER
    return config.resolve_literal(value)


def build_plan(config: HandlerConfiguration) -> DeploymentPlan:
    """Derive the two-phase token/handler plan from ``config``.

    Zero handlers are deployed first so the token can be constructed already
    bound to them. The configured handlers follow the token because they may
    take its address, and the wiring directive swaps them in afterwards.
    A handlers-only configuration yields its handler steps and no wiring.
    """

    if not config.deploys_token:
        handler_steps = tuple(
            DeploymentStep(
                TAX_STEP if spec.kind == TAX else TREASURY_STEP,
                spec.contract_name,
                tuple(_plan_argument(config, value) for value in spec.arguments),
            )
            for spec in config.handlers
        )
        return DeploymentPlan(steps=handler_steps)

    steps = (
        DeploymentStep(ZERO_TAX_STEP, ZERO_TAX_HANDLER),
        DeploymentStep(ZERO_TREASURY_STEP, ZERO_TREASURY_HANDLER),
        DeploymentStep(
            TOKEN_STEP,
            config.token_contract,
            (
                config.token_name,
                config.token_symbol,
                ArtifactRef(ZERO_TAX_STEP),
                ArtifactRef(ZERO_TREASURY_STEP),
            ),
        ),
        DeploymentStep(
            TAX_STEP,
            config.tax_handler.contract_name,
            tuple(_plan_argument(config, value) for value in config.tax_handler.arguments),
        ),
        DeploymentStep(
            TREASURY_STEP,
            config.treasury_handler.contract_name,
            tuple(_plan_argument(config, value) for value in config.treasury_handler.arguments),
        ),
    )
    wiring = WiringDirective(
        token=TOKEN_STEP,
        tax_handler=TAX_STEP,
        treasury_handler=TREASURY_STEP,
        tax_placeholder=ZERO_TAX_STEP,
        treasury_placeholder=ZERO_TREASURY_STEP,
    )
    return DeploymentPlan(steps=steps, wiring=wiring)
