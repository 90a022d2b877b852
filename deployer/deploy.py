#!/usr/bin/env python3
"""
Deploy CrowdFunding behind an upgradeable proxy and verify it

Usage:
    python -m deployer.deploy
    deploy-upgradeable

Exit codes:
    0 - deployed and verified
    1 - anything failed (including verification after a successful deploy)
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol, Sequence

from .artifacts import Blueprint, BlueprintRegistry
from .chain import ChainClient, connect
from .config import CONTRACT_NAME, INIT_ARGS, INITIALIZER, DeployConfig
from .errors import DeployScriptError
from .manifest import record_deployment
from .proxy import DeployedContract, ProxyDeployer
from .verify import EtherscanVerifier

logger = logging.getLogger(__name__)


class BlueprintSource(Protocol):
    def get_blueprint(self, name: str) -> Blueprint: ...


class UpgradeableDeployer(Protocol):
    def deploy_upgradeable(
        self, blueprint: Blueprint, init_args: Sequence[Any], initializer: Optional[str]
    ) -> DeployedContract: ...


class Verifier(Protocol):
    def verify(self, address: str) -> None: ...

    def verify_with_args(self, address: str, contract_name: str, constructor_args: Sequence[Any]) -> None: ...


@dataclass
class DeploymentRequest:
    """What to deploy and how to initialize it"""
    contract_name: str
    init_args: List[Any]
    initializer: Optional[str]

    @classmethod
    def default(cls) -> "DeploymentRequest":
        return cls(CONTRACT_NAME, list(INIT_ARGS), INITIALIZER)


@dataclass
class DeployContext:
    """Collaborators the orchestrator works through"""
    registry: BlueprintSource
    deployer: UpgradeableDeployer
    verifier: Verifier
    deployments_dir: Optional[str] = None
    chain_id: Optional[int] = None


@dataclass
class DeployOutcome:
    ok: bool
    address: Optional[str] = None
    error: Optional[Exception] = None
    stage: Optional[str] = None
    deployed: Optional[DeployedContract] = field(default=None, repr=False)


def report_address(request: DeploymentRequest, deployed: DeployedContract) -> None:
    print(f"{request.contract_name} deployed to: {deployed.address}", flush=True)


def run(
    context: DeployContext,
    request: Optional[DeploymentRequest] = None,
    report: Callable[[DeploymentRequest, DeployedContract], None] = report_address,
) -> DeployOutcome:
    """
    Resolve, deploy, report and verify, strictly in that order.

    Every failure is caught here and returned in the outcome; ``stage``
    tells whether nothing was deployed (``blueprint``/``deploy``) or the
    proxy exists but verification failed (``verify``).
    """
    request = request or DeploymentRequest.default()
    deployed = None
    stage = "blueprint"

    try:
        blueprint = context.registry.get_blueprint(request.contract_name)

        stage = "deploy"
        logger.info(f"Deploying {request.contract_name}...")
        deployed = context.deployer.deploy_upgradeable(blueprint, request.init_args, request.initializer)
        report(request, deployed)
        _record(context, request, deployed)

        stage = "verify"
        context.verifier.verify(deployed.address)
    except Exception as e:
        if deployed is not None:
            logger.error(f"{request.contract_name} deployed to {deployed.address} but {stage} failed: {e}")
        else:
            logger.error(f"{request.contract_name} {stage} failed: {e}")
        return DeployOutcome(
            ok=False,
            address=deployed.address if deployed else None,
            error=e,
            stage=stage,
            deployed=deployed,
        )

    logger.info(f"{request.contract_name} deployed and verified at {deployed.address}")
    return DeployOutcome(ok=True, address=deployed.address, deployed=deployed)


def _record(context: DeployContext, request: DeploymentRequest, deployed: DeployedContract) -> None:
    if not context.deployments_dir or context.chain_id is None:
        return
    try:
        record_deployment(context.deployments_dir, context.chain_id, request.contract_name, deployed)
    except (OSError, ValueError) as e:
        logger.error(f"Could not record deployment of {deployed.address}: {e}")


def build_context(config: DeployConfig) -> DeployContext:
    """Wire the real registry, deployer and verifier from configuration"""
    private_key = config.require_private_key()
    api_key = config.require_etherscan_api_key()

    w3 = connect(config.rpc_url)
    client = ChainClient(w3, private_key, config.chain_id)
    registry = BlueprintRegistry(config.artifacts_dir)

    return DeployContext(
        registry=registry,
        deployer=ProxyDeployer(client, registry, config.proxy_kind),
        verifier=EtherscanVerifier(
            config.etherscan_api_url,
            api_key,
            client.chain_id,
            registry,
            client,
            poll_interval=config.verify_poll_interval,
            max_attempts=config.verify_max_attempts,
        ),
        deployments_dir=config.deployments_dir,
        chain_id=client.chain_id,
    )


def configure_logging(log_file: str) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )


def main() -> int:
    try:
        config = DeployConfig.from_env()
        configure_logging(config.log_file)
        context = build_context(config)
    except DeployScriptError as e:
        logger.error(f"Setup failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.error(f"Setup failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1

    outcome = run(context)
    if outcome.ok:
        return 0

    print(f"Error: {outcome.error}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
