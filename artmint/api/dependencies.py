"""
Artmint - API Dependencies

FastAPI dependency providers resolving pipeline components from the
application container stored on app.state.
"""

from typing import Annotated, Any

from fastapi import Depends, HTTPException, Request, status

from artmint.services import (
    ContractDeployer,
    ListingLifecycleManager,
    MintingOrchestrator,
    OwnershipScanner,
)


def get_marketplace(request: Request) -> Any:
    """Get the MarketplaceApp instance from request state."""
    if not hasattr(request.app.state, "marketplace"):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Marketplace not initialized",
        )
    return request.app.state.marketplace


def _require(component: Any, name: str) -> Any:
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} not available",
        )
    return component


async def get_listing_manager(request: Request) -> ListingLifecycleManager:
    return _require(get_marketplace(request).listings, "Listing service")


async def get_minting_orchestrator(request: Request) -> MintingOrchestrator:
    return _require(get_marketplace(request).minting, "Minting service")


async def get_ownership_scanner(request: Request) -> OwnershipScanner:
    return _require(get_marketplace(request).scanner, "Ownership scanner")


async def get_contract_deployer(request: Request) -> ContractDeployer:
    return _require(get_marketplace(request).deployer, "Contract deployer")


ListingManagerDep = Annotated[ListingLifecycleManager, Depends(get_listing_manager)]
MintingDep = Annotated[MintingOrchestrator, Depends(get_minting_orchestrator)]
ScannerDep = Annotated[OwnershipScanner, Depends(get_ownership_scanner)]
DeployerDep = Annotated[ContractDeployer, Depends(get_contract_deployer)]
MarketplaceDep = Annotated[Any, Depends(get_marketplace)]
