"""
Artmint API Routes Module

Exports all API routers for inclusion in the main FastAPI application.
"""

from artmint.api.routes.contracts import router as contracts_router
from artmint.api.routes.listings import router as listings_router
from artmint.api.routes.wallets import router as wallets_router

__all__ = [
    "contracts_router",
    "listings_router",
    "wallets_router",
]
