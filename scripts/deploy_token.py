#!/usr/bin/env python3
"""Deploy the token, its placeholder and real handlers, wire them and verify.

Example usage::

    python scripts/deploy_token.py --network goerli --output deployments/goerli.record.json

Settings are read from the environment (``.env`` is honoured): ``RPC_URL``,
``DEPLOYER_PRIVATE_KEY`` and ``ETHERSCAN_API_KEY``. The exit status is 0 when
every contract deployed and the token was wired. Explorer verification
failures are logged but never change the exit status.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from token_deployment.compiled import DEFAULT_ARTIFACTS_DIR, ArtifactNotFoundError
from token_deployment.context import NETWORK_CONFIGS, ConfigurationError, NetworkContext, load_context
from token_deployment.deployer import Deployer, DeploymentResult
from token_deployment.factory import DeploymentError, Web3FactoryProvider
from token_deployment.handlers import HandlerConfiguration
from token_deployment.plan import PlanError, build_plan
from token_deployment.verification import DEFAULT_GRACE_DELAY, ExplorerVerifier
from token_deployment.wiring import WiringError

CONFIG_DIR = Path("deployments/config")

FATAL_ERRORS = (
    ConfigurationError,
    ConnectionError,
    ArtifactNotFoundError,
    PlanError,
    DeploymentError,
    WiringError,
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument(
        "--network",
        default="localhost",
        choices=sorted(NETWORK_CONFIGS),
        help="Target network (default: localhost).",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Handler configuration JSON. Defaults to deployments/config/<network>.json.",
    )
    parser.add_argument(
        "--artifacts",
        type=Path,
        default=DEFAULT_ARTIFACTS_DIR,
        help="Hardhat artifacts directory (default: ./artifacts).",
    )
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip explorer verification even when an API key is configured.",
    )
    parser.add_argument(
        "--verify-delay",
        type=float,
        default=DEFAULT_GRACE_DELAY,
        help="Seconds to wait for the explorer to index before verifying (default: %(default)s).",
    )
    parser.add_argument(
        "--receipt-timeout",
        type=float,
        default=None,
        help="Give up waiting for a transaction receipt after this many seconds (default: wait forever).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Optional path to write the JSON deployment record.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the resolved deployment plan and exit without touching the network.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging verbosity (DEBUG, INFO, WARNING)",
    )
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )


def _build_verifier(context: NetworkContext, factories: Web3FactoryProvider) -> Optional[ExplorerVerifier]:
    if not context.verification_enabled:
        logging.info("Explorer verification is not configured for %s", context.network.name)
        return None
    return ExplorerVerifier(
        context.explorer_api_url,
        context.explorer_api_key,
        context.chain_id,
        factories.compiled,
    )


def _format_line(name: str, contract: str, address: str) -> str:
    return f"{name:22} | {contract:24} | {address}"


def _print_summary(result: DeploymentResult) -> None:
    print(_format_line("Step", "Contract", "Address"))
    print("-" * 94)
    for artifact in result.artifacts:
        print(_format_line(artifact.name, artifact.contract_name, artifact.address))
    if result.verification:
        verified = sum(1 for outcome in result.verification if outcome.ok)
        print(f"\nVerification: {verified}/{len(result.verification)} accepted by the explorer")


def _emit_record(result: DeploymentResult, output: Path) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(result.as_dict(), indent=2) + "\n", encoding="utf-8")
    logging.info("Wrote deployment record to %s", output)


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    config_path = args.config or CONFIG_DIR / f"{args.network}.json"
    try:
        config = HandlerConfiguration.from_json(config_path)
        plan = build_plan(config)
    except (ConfigurationError, PlanError) as exc:
        logging.error("Invalid deployment configuration: %s", exc)
        return 1

    if args.dry_run:
        json.dump(plan.as_dict(), sys.stdout, indent=2)
        sys.stdout.write("\n")
        return 0

    try:
        context = load_context(args.network)
        factories = Web3FactoryProvider(context, args.artifacts, receipt_timeout=args.receipt_timeout)
        verifier = None if args.no_verify else _build_verifier(context, factories)
        deployer = Deployer(context, factories, verifier=verifier, verify_delay=args.verify_delay)
        result = deployer.run(plan)
    except FATAL_ERRORS as exc:
        logging.error("Deployment aborted: %s", exc, exc_info=True)
        return 1

    if args.output is not None:
        _emit_record(result, args.output)
    _print_summary(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
