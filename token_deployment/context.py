"""Network and signer context shared by every deployment operation."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING

from dotenv import load_dotenv
from eth_account import Account
from web3 import Web3

if TYPE_CHECKING:  # pragma: no cover - typing only
    from eth_account.signers.local import LocalAccount
else:
    LocalAccount = Any  # type: ignore[assignment]


class ConfigurationError(RuntimeError):
    """Raised when the deployment configuration is incomplete or invalid."""


@dataclass(frozen=True)
class NetworkConfig:
    """Static description of a chain the deployer knows how to target."""

    name: str
    chain_id: int
    explorer_api_url: Optional[str] = None
    local: bool = False


ETHERSCAN_V2_API = "https://api.etherscan.io/v2/api"

NETWORK_CONFIGS: Dict[str, NetworkConfig] = {
    "mainnet": NetworkConfig("mainnet", 1, ETHERSCAN_V2_API),
    "goerli": NetworkConfig("goerli", 5, ETHERSCAN_V2_API),
    "sepolia": NetworkConfig("sepolia", 11155111, ETHERSCAN_V2_API),
    "bsc": NetworkConfig("bsc", 56, ETHERSCAN_V2_API),
    "bsc-testnet": NetworkConfig("bsc-testnet", 97, ETHERSCAN_V2_API),
    "localhost": NetworkConfig("localhost", 31337, local=True),
    "hardhat": NetworkConfig("hardhat", 31337, local=True),
}

LOCAL_RPC_URL = "http://127.0.0.1:8545"


@dataclass
class NetworkContext:
    """Connection, signer and explorer settings for a single run.

    The context is passed explicitly to the factory, the deployer and the
    verifier so no operation reaches for process-wide state.
    """

    web3: Any
    account: LocalAccount
    network: NetworkConfig
    chain_id: int
    explorer_api_key: Optional[str] = None
    explorer_api_url: Optional[str] = None

    @property
    def signer_address(self) -> str:
        return self.account.address

    @property
    def verification_enabled(self) -> bool:
        return bool(not self.network.local and self.explorer_api_url and self.explorer_api_key)


def _get_env() -> Mapping[str, str]:
    """Expose ``os.environ`` after loading ``.env`` to simplify testing."""

    load_dotenv()
    return os.environ


def _env_key(network: str) -> str:
    return network.upper().replace("-", "_")


def resolve_network(name: str) -> NetworkConfig:
    try:
        return NETWORK_CONFIGS[name]
    except KeyError as exc:
        known = ", ".join(sorted(NETWORK_CONFIGS))
        raise ConfigurationError(f"Unsupported network {name!r} (known: {known})") from exc


def load_context(
    network: str,
    env: Mapping[str, str] | None = None,
    *,
    web3_cls: Any = Web3,
) -> NetworkContext:
    """Build the :class:`NetworkContext` for ``network``.

    Parameters
    ----------
    network:
        Key into :data:`NETWORK_CONFIGS`.
    env:
        Optional mapping used to resolve environment variables. When omitted
        ``os.environ`` (after ``load_dotenv``) is used.
    web3_cls:
        Injected for tests; defaults to :class:`web3.Web3`.

    Raises
    ------
    ConfigurationError
        If no RPC endpoint or signer key is configured.
    ConnectionError
        If the RPC endpoint cannot be reached.
    """

    if env is None:
        env = _get_env()

    config = resolve_network(network)
    prefix = _env_key(config.name)

    rpc_url = env.get(f"{prefix}_RPC_URL") or env.get("RPC_URL")
    if not rpc_url:
        if not config.local:
            raise ConfigurationError(f"Set {prefix}_RPC_URL (or RPC_URL) before deploying to {config.name}.")
        rpc_url = LOCAL_RPC_URL

    secret_key = env.get("DEPLOYER_PRIVATE_KEY") or env.get("PRIVATE_KEY")
    if not secret_key:
        raise ConfigurationError("Set DEPLOYER_PRIVATE_KEY (or PRIVATE_KEY) before deploying.")
    try:
        account = Account.from_key(secret_key)
    except Exception as exc:
        raise ConfigurationError(f"DEPLOYER_PRIVATE_KEY is not a valid private key: {type(exc).__name__}") from exc

    web3 = web3_cls(web3_cls.HTTPProvider(rpc_url))
    if not web3.is_connected():
        raise ConnectionError(f"Unable to connect to RPC endpoint {rpc_url}")

    chain_id = int(web3.eth.chain_id)
    if chain_id != config.chain_id:
        raise ConfigurationError(
            f"RPC endpoint reports chain id {chain_id}, expected {config.chain_id} for {config.name}"
        )

    return NetworkContext(
        web3=web3,
        account=account,
        network=config,
        chain_id=chain_id,
        explorer_api_key=env.get("ETHERSCAN_API_KEY") or env.get("EXPLORER_API_KEY"),
        explorer_api_url=env.get("EXPLORER_API_URL") or config.explorer_api_url,
    )
