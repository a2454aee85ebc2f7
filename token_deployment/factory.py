"""Contract factories backed by web3.py and a local signer."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from web3 import Web3
from web3.exceptions import TimeExhausted

from .compiled import DEFAULT_ARTIFACTS_DIR, CompiledContract, load_compiled_contract
from .context import NetworkContext

_LOGGER = logging.getLogger(__name__)

RECEIPT_POLL_WINDOW = 120.0


class DeploymentError(RuntimeError):
    """Raised when a contract deployment or transaction does not confirm successfully."""


class TransactionSender:
    """Sign, broadcast and wait for transactions from the context's signer."""

    def __init__(self, context: NetworkContext, *, receipt_timeout: Optional[float] = None) -> None:
        self.context = context
        self.receipt_timeout = receipt_timeout

    def _base_params(self) -> Dict[str, Any]:
        web3 = self.context.web3
        return {
            "from": self.context.signer_address,
            "nonce": web3.eth.get_transaction_count(self.context.signer_address, "pending"),
            "chainId": self.context.chain_id,
        }

    def _wait_for_receipt(self, tx_hash: Any, label: str) -> Mapping[str, Any]:
        web3 = self.context.web3
        if self.receipt_timeout is not None:
            return web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        # No deadline: keep waiting and report progress every window.
        while True:
            try:
                return web3.eth.wait_for_transaction_receipt(tx_hash, timeout=RECEIPT_POLL_WINDOW)
            except TimeExhausted:
                _LOGGER.info("Still waiting for %s (%s) to be mined", label, Web3.to_hex(tx_hash))

    def send(self, transaction_builder: Any, label: str) -> Mapping[str, Any]:
        """Build, sign and send ``transaction_builder`` then block until mined.

        ``transaction_builder`` is any web3 object exposing ``build_transaction``
        (a constructor or a bound contract function).
        """

        web3 = self.context.web3
        try:
            transaction = transaction_builder.build_transaction(self._base_params())
            signed = self.context.account.sign_transaction(transaction)
            tx_hash = web3.eth.send_raw_transaction(signed.raw_transaction)
            _LOGGER.debug("%s broadcast as %s", label, Web3.to_hex(tx_hash))
            receipt = self._wait_for_receipt(tx_hash, label)
        except DeploymentError:
            raise
        except Exception as exc:
            raise DeploymentError(f"{label} failed: {exc}") from exc

        if receipt.get("status") == 0:
            raise DeploymentError(f"{label} reverted in transaction {Web3.to_hex(receipt['transactionHash'])}")
        return receipt


class DeployedContract:
    """A confirmed on-chain contract instance that can be read and transacted with."""

    def __init__(
        self,
        name: str,
        address: str,
        contract: Any,
        sender: TransactionSender,
        receipt: Mapping[str, Any],
    ) -> None:
        self.name = name
        self.address = address
        self.contract = contract
        self.receipt = receipt
        self._sender = sender

    @property
    def transaction_hash(self) -> str:
        return Web3.to_hex(self.receipt["transactionHash"])

    @property
    def block_number(self) -> Optional[int]:
        block = self.receipt.get("blockNumber")
        return int(block) if block is not None else None

    def transact(self, function_name: str, *args: Any) -> Mapping[str, Any]:
        label = f"{self.name}.{function_name}"
        try:
            function = getattr(self.contract.functions, function_name)(*args)
        except Exception as exc:
            raise DeploymentError(f"{label} failed: {exc}") from exc
        _LOGGER.info("%s(%s)", label, ", ".join(str(arg) for arg in args))
        return self._sender.send(function, label)

    def call(self, function_name: str, *args: Any) -> Any:
        function = getattr(self.contract.functions, function_name)
        return function(*args).call()


class ContractFactory:
    """Deploys instances of a single compiled contract."""

    def __init__(self, compiled: CompiledContract, sender: TransactionSender) -> None:
        self.compiled = compiled
        self._sender = sender

    @property
    def contract_name(self) -> str:
        return self.compiled.contract_name

    def deploy(self, *args: Any) -> DeployedContract:
        web3 = self._sender.context.web3
        label = f"Deployment of {self.contract_name}"
        # web3 validates constructor arguments against the ABI before anything is sent.
        try:
            contract = web3.eth.contract(abi=self.compiled.abi, bytecode=self.compiled.bytecode)
            constructor = contract.constructor(*args)
        except Exception as exc:
            raise DeploymentError(f"{label} failed: {exc}") from exc
        receipt = self._sender.send(constructor, label)

        address = receipt.get("contractAddress")
        if not address:
            raise DeploymentError(f"Receipt for {self.contract_name} does not include a contract address")
        address = Web3.to_checksum_address(address)
        instance = web3.eth.contract(address=address, abi=self.compiled.abi)
        return DeployedContract(self.contract_name, address, instance, self._sender, receipt)


class Web3FactoryProvider:
    """Resolve contract names to :class:`ContractFactory` instances from Hardhat artifacts."""

    def __init__(
        self,
        context: NetworkContext,
        artifacts_dir: Path = DEFAULT_ARTIFACTS_DIR,
        *,
        receipt_timeout: Optional[float] = None,
    ) -> None:
        self.artifacts_dir = artifacts_dir
        self._sender = TransactionSender(context, receipt_timeout=receipt_timeout)
        self._compiled: Dict[str, CompiledContract] = {}

    def compiled(self, contract_name: str) -> CompiledContract:
        if contract_name not in self._compiled:
            self._compiled[contract_name] = load_compiled_contract(contract_name, self.artifacts_dir)
        return self._compiled[contract_name]

    def get_factory(self, contract_name: str) -> ContractFactory:
        return ContractFactory(self.compiled(contract_name), self._sender)
