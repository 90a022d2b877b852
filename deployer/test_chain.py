#!/usr/bin/env python3
"""
Tests for the chain client
"""

import pytest
from unittest.mock import patch, MagicMock

from deployer.chain import ChainClient, connect
from deployer.errors import ConfigError, DeploymentError

DEPLOYER = "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"


@pytest.fixture
def w3():
    w3 = MagicMock()
    w3.eth.account.from_key.return_value.address = DEPLOYER
    w3.eth.chain_id = 31337
    w3.eth.get_transaction_count.return_value = 4
    w3.eth.send_raw_transaction.return_value = bytes.fromhex("aa" * 32)
    w3.eth.wait_for_transaction_receipt.return_value = {
        'status': 1,
        'blockNumber': 12,
        'contractAddress': "0x1111111111111111111111111111111111111111",
    }
    return w3


class TestConnect:
    """Test class for connect function"""

    @patch('deployer.chain.Web3')
    def test_unreachable_node(self, mock_web3):
        """Test an unreachable RPC endpoint raises DeploymentError"""
        mock_web3.return_value.is_connected.return_value = False

        with pytest.raises(DeploymentError, match="localhost:8545"):
            connect("http://localhost:8545")

    @patch('deployer.chain.Web3')
    def test_connected(self, mock_web3):
        """Test the POA middleware is injected on connect"""
        mock_web3.return_value.is_connected.return_value = True

        w3 = connect("http://localhost:8545")

        w3.middleware_onion.inject.assert_called_once()


class TestChainClient:
    """Test class for ChainClient"""

    def test_chain_id_from_node(self, w3):
        """Test the chain id falls back to the node's"""
        assert ChainClient(w3, "0x01").chain_id == 31337
        assert ChainClient(w3, "0x01", chain_id=5).chain_id == 5

    def test_invalid_key(self, w3):
        """Test a malformed private key is a configuration error"""
        w3.eth.account.from_key.side_effect = ValueError("bad key")

        with pytest.raises(ConfigError, match="PRIVATE_KEY"):
            ChainClient(w3, "nope")

    def test_deploy(self, w3):
        """Test deploy builds, signs and waits for the creation transaction"""
        client = ChainClient(w3, "0x01")

        receipt = client.deploy([], "0x6080", "arg")

        w3.eth.contract.assert_called_once_with(abi=[], bytecode="0x6080")
        constructor = w3.eth.contract.return_value.constructor
        constructor.assert_called_once_with("arg")
        tx_params = constructor.return_value.build_transaction.call_args[0][0]
        assert tx_params == {'from': DEPLOYER, 'nonce': 4, 'chainId': 31337}
        w3.eth.get_transaction_count.assert_called_with(DEPLOYER, 'pending')
        w3.eth.account.sign_transaction.assert_called_once()
        assert receipt['contractAddress'] == "0x1111111111111111111111111111111111111111"

    def test_reverted_transaction(self, w3):
        """Test a mined but reverted transaction raises DeploymentError"""
        w3.eth.wait_for_transaction_receipt.return_value = {'status': 0, 'blockNumber': 12}
        client = ChainClient(w3, "0x01")

        with pytest.raises(DeploymentError, match="reverted"):
            client.deploy([], "0x6080")

    def test_read_storage(self, w3):
        """Test storage reads return raw bytes"""
        w3.eth.get_storage_at.return_value = b"\x00" * 32
        client = ChainClient(w3, "0x01")

        assert client.read_storage("0x2222222222222222222222222222222222222222", 7) == b"\x00" * 32
        w3.eth.get_storage_at.assert_called_once_with("0x2222222222222222222222222222222222222222", 7)
