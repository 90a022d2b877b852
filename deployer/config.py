"""
Deploy configuration

Network, signer and explorer settings come from the environment (a local
.env file is loaded first). What gets deployed is fixed below.
"""

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

from .errors import ConfigError

# Load environment variables from .env file
load_dotenv()

CONTRACT_NAME = "CrowdFunding"
INIT_ARGS: List[str] = ["0x78867BbEeF44f2326bF8DDd1941a4439382EF2A7"]
INITIALIZER = "initialize"

PROXY_KINDS = ("transparent", "uups")


def _int_env(name: str, default: Optional[str]) -> Optional[int]:
    value = os.getenv(name) or default
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


@dataclass
class DeployConfig:
    rpc_url: str = "http://localhost:8545"
    private_key: Optional[str] = None
    chain_id: Optional[int] = None
    artifacts_dir: str = "artifacts"
    proxy_kind: str = "transparent"
    etherscan_api_key: Optional[str] = None
    etherscan_api_url: str = "https://api.etherscan.io/v2/api"
    verify_poll_interval: int = 5
    verify_max_attempts: int = 20
    deployments_dir: Optional[str] = "deployments"
    log_file: str = "deploy_upgradeable.log"

    @classmethod
    def from_env(cls) -> "DeployConfig":
        """Build the configuration from environment variables"""
        proxy_kind = os.getenv("PROXY_KIND", "transparent").lower()
        if proxy_kind not in PROXY_KINDS:
            raise ConfigError(f"PROXY_KIND must be one of {PROXY_KINDS}, got {proxy_kind!r}")

        return cls(
            rpc_url=os.getenv("RPC_URL", "http://localhost:8545"),
            private_key=os.getenv("PRIVATE_KEY") or None,
            chain_id=_int_env("CHAIN_ID", None),
            artifacts_dir=os.getenv("ARTIFACTS_DIR", "artifacts"),
            proxy_kind=proxy_kind,
            etherscan_api_key=os.getenv("ETHERSCAN_API_KEY") or None,
            etherscan_api_url=os.getenv("ETHERSCAN_API_URL", "https://api.etherscan.io/v2/api"),
            verify_poll_interval=_int_env("VERIFY_POLL_INTERVAL", "5"),
            verify_max_attempts=_int_env("VERIFY_MAX_ATTEMPTS", "20"),
            deployments_dir=os.getenv("DEPLOYMENTS_DIR", "deployments") or None,
            log_file=os.getenv("LOG_FILE", "deploy_upgradeable.log"),
        )

    def require_private_key(self) -> str:
        if not self.private_key:
            raise ConfigError("PRIVATE_KEY not found in environment")
        return self.private_key

    def require_etherscan_api_key(self) -> str:
        if not self.etherscan_api_key:
            raise ConfigError("ETHERSCAN_API_KEY not found in environment")
        return self.etherscan_api_key
