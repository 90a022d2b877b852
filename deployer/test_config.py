#!/usr/bin/env python3
"""
Tests for environment configuration
"""

import pytest

from deployer.config import DeployConfig
from deployer.errors import ConfigError

ENV_VARS = [
    "RPC_URL", "PRIVATE_KEY", "CHAIN_ID", "ARTIFACTS_DIR", "PROXY_KIND",
    "ETHERSCAN_API_KEY", "ETHERSCAN_API_URL", "VERIFY_POLL_INTERVAL",
    "VERIFY_MAX_ATTEMPTS", "DEPLOYMENTS_DIR", "LOG_FILE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    """Test class for DeployConfig.from_env"""

    def test_defaults(self):
        """Test defaults when nothing is set"""
        config = DeployConfig.from_env()

        assert config.rpc_url == "http://localhost:8545"
        assert config.private_key is None
        assert config.chain_id is None
        assert config.proxy_kind == "transparent"
        assert config.verify_poll_interval == 5
        assert config.verify_max_attempts == 20
        assert config.deployments_dir == "deployments"

    def test_reads_environment(self, monkeypatch):
        """Test values are taken from the environment"""
        monkeypatch.setenv("RPC_URL", "https://sepolia.example")
        monkeypatch.setenv("PRIVATE_KEY", "0x01")
        monkeypatch.setenv("CHAIN_ID", "11155111")
        monkeypatch.setenv("PROXY_KIND", "UUPS")
        monkeypatch.setenv("ETHERSCAN_API_KEY", "key")

        config = DeployConfig.from_env()

        assert config.rpc_url == "https://sepolia.example"
        assert config.chain_id == 11155111
        assert config.proxy_kind == "uups"
        assert config.require_private_key() == "0x01"
        assert config.require_etherscan_api_key() == "key"

    def test_blank_values_use_defaults(self, monkeypatch):
        """Test blank assignments in .env fall back to the defaults"""
        monkeypatch.setenv("VERIFY_MAX_ATTEMPTS", "")
        monkeypatch.setenv("VERIFY_POLL_INTERVAL", "")
        monkeypatch.setenv("CHAIN_ID", "")

        config = DeployConfig.from_env()

        assert config.verify_max_attempts == 20
        assert config.verify_poll_interval == 5
        assert config.chain_id is None

    def test_bad_chain_id(self, monkeypatch):
        """Test non-numeric integers are rejected"""
        monkeypatch.setenv("CHAIN_ID", "sepolia")

        with pytest.raises(ConfigError, match="CHAIN_ID"):
            DeployConfig.from_env()

    def test_bad_proxy_kind(self, monkeypatch):
        """Test unknown proxy kinds are rejected"""
        monkeypatch.setenv("PROXY_KIND", "beacon")

        with pytest.raises(ConfigError, match="PROXY_KIND"):
            DeployConfig.from_env()

    def test_missing_keys(self):
        """Test required secrets are only demanded when used"""
        config = DeployConfig.from_env()

        with pytest.raises(ConfigError, match="PRIVATE_KEY"):
            config.require_private_key()
        with pytest.raises(ConfigError, match="ETHERSCAN_API_KEY"):
            config.require_etherscan_api_key()
