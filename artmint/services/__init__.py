"""
Artmint Pipeline Services

Listing lifecycle, minting, ownership scanning and contract deployment.
"""

from .deployer import CONTRACT_ADDRESS_KEY, ContractDeployer, DeploymentResult
from .listings import ListingLifecycleManager
from .minting import MintCallback, MintingOrchestrator
from .ownership import OwnershipScanner

__all__ = [
    "CONTRACT_ADDRESS_KEY",
    "ContractDeployer",
    "DeploymentResult",
    "ListingLifecycleManager",
    "MintCallback",
    "MintingOrchestrator",
    "OwnershipScanner",
]
