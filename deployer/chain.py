"""
Blockchain connection and transaction sending
"""

import logging
from typing import Any, Dict, List, Optional

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from .errors import ConfigError, DeploymentError

logger = logging.getLogger(__name__)


def connect(rpc_url: str) -> Web3:
    """Connect to an RPC endpoint, raising DeploymentError if unreachable"""
    w3 = Web3(Web3.HTTPProvider(rpc_url))
    w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    if not w3.is_connected():
        raise DeploymentError(f"Could not connect to RPC URL: {rpc_url}")
    logger.info(f"Connected to blockchain at {rpc_url}")
    return w3


class ChainClient:
    """Signs and sends transactions from a single deployer account"""

    def __init__(self, w3: Web3, private_key: str, chain_id: Optional[int] = None):
        self.w3 = w3
        self.private_key = private_key
        try:
            self.account = w3.eth.account.from_key(private_key)
        except Exception as e:
            raise ConfigError(f"PRIVATE_KEY is not a valid private key: {e}") from e
        self.chain_id = chain_id if chain_id is not None else w3.eth.chain_id
        logger.info(f"Using deployer account: {self.account.address}")

    @property
    def address(self) -> str:
        return self.account.address

    def contract_factory(self, abi: List[Dict[str, Any]], bytecode: Optional[str] = None):
        if bytecode is None:
            return self.w3.eth.contract(abi=abi)
        return self.w3.eth.contract(abi=abi, bytecode=bytecode)

    def deploy(self, abi: List[Dict[str, Any]], bytecode: str, *args) -> Dict[str, Any]:
        """Deploy a contract and return the mined receipt"""
        factory = self.contract_factory(abi, bytecode)
        tx = factory.constructor(*args).build_transaction(self._tx_params())
        receipt = self.send(tx)
        if not receipt.get("contractAddress"):
            raise DeploymentError("Deployment receipt has no contract address")
        return receipt

    def send(self, tx: Dict[str, Any]) -> Dict[str, Any]:
        """Sign, broadcast and wait for a transaction"""
        signed_tx = self.w3.eth.account.sign_transaction(tx, self.private_key)
        tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        logger.info(f"Transaction sent! Hash: {Web3.to_hex(tx_hash)}")

        receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] != 1:
            raise DeploymentError(f"Transaction {Web3.to_hex(tx_hash)} reverted")
        logger.info(f"Transaction confirmed in block {receipt['blockNumber']}")
        return receipt

    def get_code(self, address: str) -> bytes:
        return bytes(self.w3.eth.get_code(Web3.to_checksum_address(address)))

    def read_storage(self, address: str, slot: int) -> bytes:
        return bytes(self.w3.eth.get_storage_at(Web3.to_checksum_address(address), slot))

    def get_transaction_input(self, tx_hash: str) -> str:
        tx = self.w3.eth.get_transaction(tx_hash)
        return Web3.to_hex(tx["input"])

    def _tx_params(self) -> Dict[str, Any]:
        return {
            'from': self.address,
            'nonce': self.w3.eth.get_transaction_count(self.address, 'pending'),
            'chainId': self.chain_id,
        }
