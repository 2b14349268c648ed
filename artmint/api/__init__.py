"""
Artmint HTTP API

FastAPI application exposing the listing, minting and ownership pipeline.
"""

from artmint.api.app import MarketplaceApp, create_app, status_code_for

__all__ = ["MarketplaceApp", "create_app", "status_code_for"]
