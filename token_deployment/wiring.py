"""Rebinding the token's handler slots from placeholders to the real handlers."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .artifacts import DeploymentArtifact

_LOGGER = logging.getLogger(__name__)

UNBOUND = "unbound"
BOUND = "bound"


class WiringError(RuntimeError):
    """Raised when a handler slot cannot be rebound or the token disagrees with it."""


class HandlerSlot:
    """A single capability slot on the token.

    The slot starts out holding its placeholder and may be bound to a real
    handler exactly once per run.
    """

    def __init__(self, name: str, setter: str, placeholder: str) -> None:
        self.name = name
        self.setter = setter
        self.placeholder = placeholder
        self._bound: Optional[str] = None

    @property
    def state(self) -> str:
        return BOUND if self._bound is not None else UNBOUND

    @property
    def address(self) -> str:
        return self._bound if self._bound is not None else self.placeholder

    def bind(self, address: str) -> None:
        if self._bound is not None:
            raise WiringError(f"{self.name} is already bound to {self._bound}")
        self._bound = address


class TokenContract:
    """The deployed token together with its two handler slots.

    ``contract`` is any deployed contract exposing ``transact(name, *args)``
    and ``call(name, *args)``.
    """

    def __init__(self, contract: Any, tax_placeholder: str, treasury_placeholder: str) -> None:
        self.contract = contract
        self.tax_handler = HandlerSlot("taxHandler", "setTaxHandler", tax_placeholder)
        self.treasury_handler = HandlerSlot("treasuryHandler", "setTreasuryHandler", treasury_placeholder)

    @property
    def address(self) -> str:
        return self.contract.address

    def _rebind(self, slot: HandlerSlot, address: str) -> None:
        if slot.state == BOUND:
            raise WiringError(f"{slot.name} is already bound to {slot.address}")
        try:
            self.contract.transact(slot.setter, address)
        except Exception as exc:
            raise WiringError(f"{slot.setter}({address}) failed: {exc}") from exc
        slot.bind(address)
        _LOGGER.info("Token %s now uses %s %s", self.address, slot.name, address)

    def set_tax_handler(self, address: str) -> None:
        self._rebind(self.tax_handler, address)

    def set_treasury_handler(self, address: str) -> None:
        self._rebind(self.treasury_handler, address)

    def confirm(self) -> Dict[str, str]:
        """Read both slots back from the chain and compare them with the bound addresses."""

        observed: Dict[str, str] = {}
        for slot in (self.tax_handler, self.treasury_handler):
            try:
                on_chain = str(self.contract.call(slot.name))
            except Exception as exc:
                raise WiringError(f"Reading {slot.name}() from token {self.address} failed: {exc}") from exc
            if on_chain.lower() != slot.address.lower():
                raise WiringError(f"Token reports {slot.name}={on_chain}, expected {slot.address}")
            observed[slot.name] = on_chain
        return observed


def wire(token: TokenContract, tax_handler: DeploymentArtifact, treasury_handler: DeploymentArtifact) -> None:
    """Point ``token`` at the real handlers, then confirm the change on-chain."""

    token.set_tax_handler(tax_handler.address)
    token.set_treasury_handler(treasury_handler.address)
    token.confirm()
