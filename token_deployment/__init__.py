"""Deployment orchestration for a taxed token and its pluggable handlers."""
from __future__ import annotations

from .artifacts import DeploymentArtifact
from .context import ConfigurationError, NetworkContext, load_context
from .deployer import Deployer, DeploymentResult
from .factory import DeploymentError, Web3FactoryProvider
from .handlers import HandlerConfiguration, HandlerSpec
from .plan import DeploymentPlan, DeploymentStep, PlanError, WiringDirective, build_plan
from .verification import ExplorerVerifier, VerificationOutcome, isolate_and_report, verify_all
from .wiring import TokenContract, WiringError, wire

__all__ = [
    "ConfigurationError",
    "DeploymentArtifact",
    "DeploymentError",
    "DeploymentPlan",
    "DeploymentResult",
    "DeploymentStep",
    "Deployer",
    "ExplorerVerifier",
    "HandlerConfiguration",
    "HandlerSpec",
    "NetworkContext",
    "PlanError",
    "TokenContract",
    "VerificationOutcome",
    "Web3FactoryProvider",
    "WiringDirective",
    "WiringError",
    "build_plan",
    "isolate_and_report",
    "load_context",
    "verify_all",
    "wire",
]
