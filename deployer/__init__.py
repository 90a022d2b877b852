"""
Upgradeable Contract Deployer
=============================

Deploys the CrowdFunding contract behind an upgradeable proxy and submits
its source to the block explorer for verification.

Modules:
- artifacts: Hardhat artifact lookup (blueprints and build-info)
- chain: RPC connection and transaction signing
- proxy: implementation + proxy deployment
- verify: Etherscan source and proxy verification
- manifest: per-chain deployment records
- deploy: the orchestrating entry point
"""

__version__ = "1.0.0"
__author__ = "CrowdFunding Team"
