"""
API test fixtures.

The application container is assembled by hand from stub clients and a
memory-backed store; TestClient is used without entering its context so the
lifespan (which would connect to real services) never runs.
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from artmint.api import MarketplaceApp, create_app
from artmint.services import (
    ContractDeployer,
    ListingLifecycleManager,
    MintingOrchestrator,
    OwnershipScanner,
)


def metadata_gateway(request: httpx.Request) -> httpx.Response:
    key = request.url.path.rsplit("/", 1)[-1]
    if key.startswith("img"):
        return httpx.Response(200, content=b"\x89PNG" + key.encode())
    if key == "broken":
        return httpx.Response(500)
    return httpx.Response(200, json={"name": f"Token {key}", "image": f"ipfs://img-{key}"})


@pytest.fixture
def marketplace(config, listing_store, mint_records, memory_backend, chain_client, pinning_client):
    """Ready container wired to stub clients."""
    app = MarketplaceApp(config)
    app.pinning = pinning_client
    app.chain = chain_client
    app.listings = ListingLifecycleManager(listing_store, pinning_client)
    app.minting = MintingOrchestrator(listing_store, chain_client, config, mint_records)
    app.scanner = OwnershipScanner(
        chain_client,
        config,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(metadata_gateway)),
    )
    app.deployer = ContractDeployer(chain_client, config, memory_backend)
    app.is_ready = True
    return app


@pytest.fixture
def client(marketplace):
    return TestClient(create_app(marketplace))
