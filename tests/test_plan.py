from __future__ import annotations

from typing import Any, Dict

import pytest

from token_deployment.handlers import HandlerConfiguration
from token_deployment.plan import (
    SIGNER,
    ArtifactRef,
    DeploymentPlan,
    DeploymentStep,
    PlanError,
    WiringDirective,
    build_plan,
)

from .fake_chain import ROUTER_ADDRESS


def test_build_plan_deploys_placeholders_before_token(static_config_payload: Dict[str, Any]) -> None:
    plan = build_plan(HandlerConfiguration.from_mapping(static_config_payload))

    assert [step.name for step in plan] == [
        "zero_tax_handler",
        "zero_treasury_handler",
        "token",
        "tax_handler",
        "treasury_handler",
    ]
    assert [step.contract_name for step in plan] == [
        "ZeroTaxHandler",
        "ZeroTreasuryHandler",
        "FLOKI",
        "StaticTaxHandler",
        "TreasuryHandlerAlpha",
    ]
    token = plan.step("token")
    assert token.arguments == ("T1", "T1", ArtifactRef("zero_tax_handler"), ArtifactRef("zero_treasury_handler"))


def test_build_plan_resolves_references(static_config_payload: Dict[str, Any]) -> None:
    plan = build_plan(HandlerConfiguration.from_mapping(static_config_payload))

    assert plan.step("tax_handler").arguments == (ArtifactRef("token"),)
    assert plan.step("treasury_handler").arguments == (SIGNER, ArtifactRef("token"), ROUTER_ADDRESS, 2000, 300)
    assert plan.wiring == WiringDirective(
        token="token",
        tax_handler="tax_handler",
        treasury_handler="treasury_handler",
        tax_placeholder="zero_tax_handler",
        treasury_placeholder="zero_treasury_handler",
    )


def test_token_referencing_steps_come_after_token(exponential_config_payload: Dict[str, Any]) -> None:
    plan = build_plan(HandlerConfiguration.from_mapping(exponential_config_payload))
    order = [step.name for step in plan]

    for step in plan:
        if "token" in step.dependencies():
            assert order.index(step.name) > order.index("token")


def test_forward_reference_is_rejected() -> None:
    with pytest.raises(PlanError, match="not deployed before it"):
        DeploymentPlan(
            steps=(
                DeploymentStep("tax_handler", "StaticTaxHandler", (ArtifactRef("token"),)),
                DeploymentStep("token", "FLOKI", ("T", "T")),
            )
        )


def test_nested_references_are_checked() -> None:
    with pytest.raises(PlanError):
        DeploymentPlan(steps=(DeploymentStep("a", "Thing", ((1, ArtifactRef("b")),)),))


def test_duplicate_and_self_references_are_rejected() -> None:
    with pytest.raises(PlanError, match="Duplicate"):
        DeploymentPlan(steps=(DeploymentStep("a", "ZeroTaxHandler"), DeploymentStep("a", "ZeroTaxHandler")))
    with pytest.raises(PlanError, match="its own address"):
        DeploymentPlan(steps=(DeploymentStep("a", "Thing", (ArtifactRef("a"),)),))


def test_wiring_must_reference_known_steps() -> None:
    with pytest.raises(PlanError, match="unknown step"):
        DeploymentPlan(
            steps=(DeploymentStep("zero_tax_handler", "ZeroTaxHandler"),),
            wiring=WiringDirective("token", "tax", "treasury", "zero_tax_handler", "zero_treasury_handler"),
        )


def test_single_placeholder_plan_needs_no_wiring() -> None:
    plan = DeploymentPlan(steps=(DeploymentStep("zero_tax_handler", "ZeroTaxHandler"),))
    assert len(plan) == 1
    assert plan.wiring is None
    assert plan.as_dict() == {"steps": [{"name": "zero_tax_handler", "contract": "ZeroTaxHandler", "arguments": []}]}


def test_as_dict_describes_references(static_config_payload: Dict[str, Any]) -> None:
    payload = build_plan(HandlerConfiguration.from_mapping(static_config_payload)).as_dict()

    treasury = payload["steps"][-1]
    assert treasury["arguments"] == ["$signer", "$token", ROUTER_ADDRESS, 2000, 300]
    assert payload["wiring"] == {"token": "token", "taxHandler": "tax_handler", "treasuryHandler": "treasury_handler"}


def test_handlers_only_configuration_builds_unwired_plan() -> None:
    config = HandlerConfiguration.from_mapping(
        {
            "router": ROUTER_ADDRESS,
            "taxHandler": "zero",
            "treasuryHandler": {"variant": "alpha", "arguments": ["$signer", "$router"]},
        }
    )

    plan = build_plan(config)

    assert [(step.name, step.contract_name) for step in plan] == [
        ("tax_handler", "ZeroTaxHandler"),
        ("treasury_handler", "TreasuryHandlerAlpha"),
    ]
    assert plan.step("treasury_handler").arguments == (SIGNER, ROUTER_ADDRESS)
    assert plan.wiring is None
