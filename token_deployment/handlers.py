"""Declarative description of the token and the handler variants to deploy."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from web3 import Web3

from .context import ConfigurationError

TAX = "tax"
TREASURY = "treasury"

TAX_HANDLER_VARIANTS: Dict[str, str] = {
    "zero": "ZeroTaxHandler",
    "static": "StaticTaxHandler",
    "exponential": "ExponentialTaxHandler",
}

TREASURY_HANDLER_VARIANTS: Dict[str, str] = {
    "zero": "ZeroTreasuryHandler",
    "alpha": "TreasuryHandlerAlpha",
}

VARIANTS: Dict[str, Dict[str, str]] = {
    TAX: TAX_HANDLER_VARIANTS,
    TREASURY: TREASURY_HANDLER_VARIANTS,
}

DEFAULT_TOKEN_CONTRACT = "FLOKI"

TOKEN_REFERENCE = "$token"
SIGNER_REFERENCE = "$signer"
ROUTER_REFERENCE = "$router"
REFERENCES = (TOKEN_REFERENCE, SIGNER_REFERENCE, ROUTER_REFERENCE)


def _require_address(value: Any, label: str) -> str:
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ConfigurationError(f"{label} must be a 0x-prefixed address, received {value!r}")
    return Web3.to_checksum_address(value)


def _check_argument(value: Any, label: str) -> Any:
    if isinstance(value, str) and value.startswith("$") and value not in REFERENCES:
        known = ", ".join(REFERENCES)
        raise ConfigurationError(f"{label} uses unknown reference {value!r} (known: {known})")
    if isinstance(value, (list, tuple)):
        return tuple(_check_argument(item, label) for item in value)
    if isinstance(value, Mapping):
        raise ConfigurationError(f"{label} contains an object argument; use positional values")
    return value


@dataclass(frozen=True)
class HandlerSpec:
    """One handler variant and the constructor arguments it is deployed with.

    Arguments are kept exactly as configured. The same variant may be
    constructed with different arguments on different targets, so no
    canonical signature is assumed here.
    """

    kind: str
    variant: str
    contract_name: str
    arguments: Tuple[Any, ...] = ()

    @classmethod
    def from_mapping(cls, kind: str, payload: Any) -> "HandlerSpec":
        label = f"{kind}Handler"
        if isinstance(payload, str):
            payload = {"variant": payload}
        if not isinstance(payload, Mapping):
            raise ConfigurationError(f"{label} must be an object or a variant name")

        variant = str(payload.get("variant", "")).strip().lower()
        variants = VARIANTS[kind]
        if variant not in variants:
            known = ", ".join(sorted(variants))
            raise ConfigurationError(f"Unknown {kind} handler variant {variant!r} (known: {known})")

        raw_arguments = payload.get("arguments", [])
        if not isinstance(raw_arguments, (list, tuple)):
            raise ConfigurationError(f"{label}.arguments must be a list")

        contract_name = payload.get("contract") or variants[variant]
        return cls(
            kind=kind,
            variant=variant,
            contract_name=str(contract_name),
            arguments=tuple(_check_argument(value, f"{label}.arguments") for value in raw_arguments),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "variant": self.variant,
            "contract": self.contract_name,
            "arguments": list(self.arguments),
        }


def _references(arguments: Tuple[Any, ...]) -> Iterator[Any]:
    for value in arguments:
        if isinstance(value, tuple):
            yield from _references(value)
        elif value in REFERENCES:
            yield value


@dataclass(frozen=True)
class HandlerConfiguration:
    """Everything needed to derive a deployment plan, resolved before deploying.

    A configuration without a ``token`` section describes handlers only: they
    are deployed on their own and nothing is wired.
    """

    token_name: Optional[str]
    token_symbol: Optional[str]
    router_address: Optional[str]
    tax_handler: Optional[HandlerSpec]
    treasury_handler: Optional[HandlerSpec]
    token_contract: str = DEFAULT_TOKEN_CONTRACT

    @property
    def deploys_token(self) -> bool:
        return self.token_name is not None

    @property
    def handlers(self) -> Tuple[HandlerSpec, ...]:
        return tuple(spec for spec in (self.tax_handler, self.treasury_handler) if spec is not None)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "HandlerConfiguration":
        if not isinstance(payload, Mapping):
            raise ConfigurationError("Handler configuration must be a JSON object")

        token = payload.get("token")
        if token is None:
            return cls._handlers_only(payload)
        if not isinstance(token, Mapping):
            raise ConfigurationError("The 'token' section must be an object")
        name = token.get("name")
        if not isinstance(name, str) or not name:
            raise ConfigurationError("token.name must be a non-empty string")
        symbol = token.get("symbol") or name

        for key in ("taxHandler", "treasuryHandler"):
            if key not in payload:
                raise ConfigurationError(f"Handler configuration is missing {key!r}")

        return cls(
            token_name=name,
            token_symbol=str(symbol),
            router_address=_require_address(payload.get("router"), "router"),
            tax_handler=HandlerSpec.from_mapping(TAX, payload["taxHandler"]),
            treasury_handler=HandlerSpec.from_mapping(TREASURY, payload["treasuryHandler"]),
            token_contract=str(token.get("contract") or DEFAULT_TOKEN_CONTRACT),
        )

    @classmethod
    def _handlers_only(cls, payload: Mapping[str, Any]) -> "HandlerConfiguration":
        specs = {
            kind: HandlerSpec.from_mapping(kind, payload[key])
            for kind, key in ((TAX, "taxHandler"), (TREASURY, "treasuryHandler"))
            if key in payload
        }
        if not specs:
            raise ConfigurationError("Handler configuration is missing the 'token' section and names no handler")

        router = payload.get("router")
        router_address = _require_address(router, "router") if router is not None else None
        for spec in specs.values():
            for reference in _references(spec.arguments):
                if reference == TOKEN_REFERENCE:
                    raise ConfigurationError(
                        f"{spec.kind}Handler uses '$token' but the configuration has no 'token' section"
                    )
                if reference == ROUTER_REFERENCE and router_address is None:
                    raise ConfigurationError(f"{spec.kind}Handler uses '$router' but no router is configured")

        return cls(
            token_name=None,
            token_symbol=None,
            router_address=router_address,
            tax_handler=specs.get(TAX),
            treasury_handler=specs.get(TREASURY),
        )

    @classmethod
    def from_json(cls, path: Path) -> "HandlerConfiguration":
        if not path.is_file():
            raise ConfigurationError(f"Configuration file not found at {path}")
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Failed to parse configuration JSON at {path}") from exc
        return cls.from_mapping(payload)

    def resolve_literal(self, value: Any) -> Any:
        """Substitute configuration-level references such as ``$router``."""

        if value == ROUTER_REFERENCE:
            return self.router_address
        return value

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.deploys_token:
            payload["token"] = {
                "contract": self.token_contract,
                "name": self.token_name,
                "symbol": self.token_symbol,
            }
        if self.router_address is not None:
            payload["router"] = self.router_address
        if self.tax_handler is not None:
            payload["taxHandler"] = self.tax_handler.as_dict()
        if self.treasury_handler is not None:
            payload["treasuryHandler"] = self.treasury_handler.as_dict()
        return payload
