"""Per-chain record of deployed proxies."""

import json
import logging
import os
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict

from .proxy import DeployedContract

logger = logging.getLogger(__name__)


def load_deployments(path: str) -> Dict[str, Any]:
    """Loads a deployment record, empty when the file does not exist yet."""
    if not os.path.exists(path):
        return {'deployments': []}
    with open(path, 'r') as f:
        data = json.load(f)
    if not isinstance(data, dict) or not isinstance(data.get('deployments', []), list):
        raise ValueError(f"{path} is not a deployment record")
    return data


def record_deployment(directory: str, chain_id: int, contract_name: str, deployed: DeployedContract) -> str:
    """
    Append a deployment to ``<directory>/<chain_id>.json``

    Returns:
        Path of the record file
    """
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, f'{chain_id}.json')

    data = load_deployments(path)
    data['chainId'] = chain_id
    data.setdefault('deployments', []).append({
        'contract': contract_name,
        **asdict(deployed),
        'timestamp': datetime.now().isoformat(),
    })

    with open(path, 'w') as f:
        json.dump(data, f, indent=2)
    logger.info(f"Recorded {contract_name} deployment in {path}")
    return path
