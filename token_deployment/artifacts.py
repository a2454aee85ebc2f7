"""Records of confirmed deployments."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


def _jsonable(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_jsonable(item) for item in value]
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


@dataclass(frozen=True)
class DeploymentArtifact:
    """A confirmed contract instance and the arguments it was constructed with."""

    name: str
    contract_name: str
    address: str
    constructor_arguments: Tuple[Any, ...] = ()
    transaction_hash: Optional[str] = None
    block_number: Optional[int] = None

    def as_dict(self) -> Dict[str, Any]:
        """Serialise the artifact to a JSON-friendly dictionary."""

        return {
            "name": self.name,
            "contract": self.contract_name,
            "address": self.address,
            "constructor_arguments": [_jsonable(value) for value in self.constructor_arguments],
            "transaction_hash": self.transaction_hash,
            "block_number": self.block_number,
        }
