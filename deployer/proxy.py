"""
Upgradeable proxy deployment

Deploys a logic contract, then an EIP-1967 proxy pointing at it whose
constructor runs the initializer. Transparent proxies are owned by the
deployer account, UUPS proxies leave upgrades to the logic contract.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from web3 import Web3

from .artifacts import Blueprint, BlueprintRegistry
from .chain import ChainClient
from .errors import BlueprintNotFoundError, DeploymentError

logger = logging.getLogger(__name__)

# bytes32(uint256(keccak256('eip1967.proxy.implementation')) - 1)
IMPLEMENTATION_SLOT = 0x360894a13ba1a3210667c828492db98dca3e2076cc3735a920a3ca505d382bbc

PROXY_CONTRACTS = {
    'transparent': 'TransparentUpgradeableProxy',
    'uups': 'ERC1967Proxy',
}

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass
class DeployedContract:
    """Handle on a freshly deployed proxy"""
    address: str
    implementation: str
    kind: str
    tx_hash: str
    implementation_tx_hash: str
    block_number: int


def slot_to_address(raw: bytes) -> Optional[str]:
    """Decode an address stored in a 32 byte slot, None when empty"""
    address = Web3.to_checksum_address(raw[-20:].rjust(20, b"\x00"))
    if address == ZERO_ADDRESS:
        return None
    return address


def implementation_address(client: ChainClient, proxy_address: str) -> Optional[str]:
    """Logic contract behind an EIP-1967 proxy, None if not a proxy"""
    return slot_to_address(client.read_storage(proxy_address, IMPLEMENTATION_SLOT))


class ProxyDeployer:
    def __init__(self, client: ChainClient, registry: BlueprintRegistry, kind: str = "transparent"):
        if kind not in PROXY_CONTRACTS:
            raise DeploymentError(f"Unsupported proxy kind: {kind}")
        self.client = client
        self.registry = registry
        self.kind = kind

    def deploy_upgradeable(
        self,
        blueprint: Blueprint,
        init_args: Sequence[Any],
        initializer: Optional[str] = "initialize",
    ) -> DeployedContract:
        """
        Deploy ``blueprint`` behind a proxy.

        Args:
            blueprint: Logic contract to deploy
            init_args: Arguments for the initializer, passed through unchanged
            initializer: Initializer function name, None to skip initialization

        Returns:
            The deployed proxy

        Raises:
            DeploymentError: on any failure, tagged with the failing stage
        """
        proxy_name = PROXY_CONTRACTS[self.kind]
        try:
            proxy_blueprint = self.registry.get_blueprint(proxy_name)
        except BlueprintNotFoundError as e:
            raise DeploymentError(
                f"{proxy_name} is not compiled, import it from @openzeppelin/contracts: {e}",
                stage="proxy",
            ) from e

        data = self._encode_initializer(blueprint, init_args, initializer)

        logger.info(f"Deploying {blueprint.name} implementation...")
        impl_receipt = self._deploy("implementation", blueprint)
        implementation = impl_receipt["contractAddress"]
        logger.info(f"{blueprint.name} implementation deployed to {implementation}")

        if self.kind == "transparent":
            proxy_args = [implementation, self.client.address, data]
        else:
            proxy_args = [implementation, data]

        logger.info(f"Deploying {proxy_name} for {blueprint.name}...")
        proxy_receipt = self._deploy("proxy", proxy_blueprint, *proxy_args)

        return DeployedContract(
            address=proxy_receipt["contractAddress"],
            implementation=implementation,
            kind=self.kind,
            tx_hash=Web3.to_hex(proxy_receipt["transactionHash"]),
            implementation_tx_hash=Web3.to_hex(impl_receipt["transactionHash"]),
            block_number=proxy_receipt["blockNumber"],
        )

    def _encode_initializer(self, blueprint: Blueprint, init_args: Sequence[Any], initializer: Optional[str]) -> bytes:
        if initializer is None:
            return b""
        try:
            factory = self.client.contract_factory(blueprint.abi)
            return Web3.to_bytes(hexstr=factory.encode_abi(initializer, args=list(init_args)))
        except Exception as e:
            logger.error(f"Could not encode {blueprint.name}.{initializer}{tuple(init_args)}: {e}")
            raise DeploymentError(
                f"Invalid initializer call {initializer}{tuple(init_args)} for {blueprint.name}: {e}",
                stage="initializer",
            ) from e

    def _deploy(self, stage: str, blueprint: Blueprint, *args) -> Dict[str, Any]:
        try:
            return self.client.deploy(blueprint.abi, blueprint.bytecode, *args)
        except DeploymentError as e:
            e.stage = e.stage or stage
            logger.error(f"Failed to deploy {blueprint.name} ({stage}): {e}")
            raise
        except Exception as e:
            logger.error(f"Failed to deploy {blueprint.name} ({stage}): {e}")
            raise DeploymentError(f"Failed to deploy {blueprint.name}: {e}", stage=stage) from e
