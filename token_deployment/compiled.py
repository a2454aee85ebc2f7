"""Helpers for loading compiled contracts from a Hardhat ``artifacts/`` tree."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping

DEFAULT_ARTIFACTS_DIR = Path("artifacts")


class ArtifactNotFoundError(RuntimeError):
    """Raised when a compiled contract or its build-info cannot be located."""


@dataclass(frozen=True)
class BuildInfo:
    """Compiler input captured by Hardhat for a compilation job."""

    solc_long_version: str
    input: Mapping[str, Any] = field(default_factory=dict)

    @property
    def compiler_version(self) -> str:
        """Return the version string in the ``v0.8.11+commit.d7f03943`` form explorers expect."""

        version = self.solc_long_version
        return version if version.startswith("v") else f"v{version}"


@dataclass(frozen=True)
class CompiledContract:
    """ABI, bytecode and provenance for a single compiled contract."""

    contract_name: str
    source_name: str
    abi: List[Dict[str, Any]]
    bytecode: str
    artifact_path: Path

    @property
    def fully_qualified_name(self) -> str:
        return f"{self.source_name}:{self.contract_name}"

    def constructor_input_types(self) -> List[str]:
        for entry in self.abi:
            if entry.get("type") == "constructor":
                return [param["type"] for param in entry.get("inputs", [])]
        return []

    def load_build_info(self) -> BuildInfo:
        """Resolve the ``.dbg.json`` sidecar and load the build-info it points to."""

        debug_path = self.artifact_path.with_name(f"{self.contract_name}.dbg.json")
        if not debug_path.is_file():
            raise ArtifactNotFoundError(f"Debug file not found at {debug_path}")
        debug = _read_json(debug_path)
        relative = debug.get("buildInfo")
        if not isinstance(relative, str) or not relative:
            raise ArtifactNotFoundError(f"{debug_path} does not reference a build-info file")

        build_info_path = (debug_path.parent / relative).resolve()
        if not build_info_path.is_file():
            raise ArtifactNotFoundError(f"Build-info not found at {build_info_path}")
        payload = _read_json(build_info_path)
        return BuildInfo(
            solc_long_version=str(payload.get("solcLongVersion") or payload.get("solcVersion") or ""),
            input=payload.get("input") or {},
        )


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ArtifactNotFoundError(f"Failed to parse JSON at {path}") from exc
    if not isinstance(data, dict):
        raise ArtifactNotFoundError(f"Expected a JSON object in {path}")
    return data


def find_artifact_path(artifacts_dir: Path, contract_name: str) -> Path:
    """Return the artifact JSON path for ``contract_name`` under ``artifacts_dir/contracts``."""

    contracts_dir = artifacts_dir / "contracts"
    matches = sorted(contracts_dir.rglob(f"{contract_name}.json"))
    if not matches:
        raise ArtifactNotFoundError(f"No compiled artifact for {contract_name} under {contracts_dir}")
    if len(matches) > 1:
        locations = ", ".join(str(match) for match in matches)
        raise ArtifactNotFoundError(f"Ambiguous artifact name {contract_name}: {locations}")
    return matches[0]


def load_compiled_contract(contract_name: str, artifacts_dir: Path = DEFAULT_ARTIFACTS_DIR) -> CompiledContract:
    """Load the Hardhat artifact for ``contract_name``.

    Raises
    ------
    ArtifactNotFoundError
        If no unique artifact exists or it has no deployable bytecode.
    """

    path = find_artifact_path(artifacts_dir, contract_name)
    payload = _read_json(path)
    bytecode = payload.get("bytecode")
    if not isinstance(bytecode, str) or bytecode in ("", "0x"):
        raise ArtifactNotFoundError(f"{contract_name} has no deployable bytecode (abstract or interface?)")
    return CompiledContract(
        contract_name=str(payload.get("contractName") or contract_name),
        source_name=str(payload.get("sourceName") or ""),
        abi=list(payload.get("abi") or []),
        bytecode=bytecode,
        artifact_path=path,
    )
