"""
Tests for the wallet ownership and contract API routes, and for the
mapping of pipeline errors to HTTP statuses.
"""

import pytest

from artmint.api import status_code_for
from artmint.exceptions import (
    AlreadyInProgressError,
    ChainConfirmationError,
    ChainReadError,
    ChainSubmissionError,
    FetchError,
    ListingNotFoundError,
    ParseError,
    PinningError,
    PreconditionError,
    ValidationError,
)

from ..conftest import CONTRACT_ADDRESS, OTHER_WALLET, TX_HASH, WALLET_ADDRESS

DEPLOYED = "0x" + "cd" * 20


@pytest.fixture
def owned_chain(chain_client):
    chain_client.owners = {0: WALLET_ADDRESS, 1: OTHER_WALLET, 2: WALLET_ADDRESS}
    chain_client.token_uris = {0: "ipfs://m0", 1: "ipfs://m1", 2: "ipfs://broken"}
    return chain_client


# ==================== Wallet Tests ====================


class TestWalletRoutes:
    """Tests for wallet ownership routes."""

    def test_list_owned(self, client, owned_chain):
        response = client.get(f"/api/v1/wallets/{WALLET_ADDRESS}/nfts")

        assert response.status_code == 200
        data = response.json()
        assert [nft["token_id"] for nft in data] == ["0"]
        assert data[0]["name"] == "Token m0"
        assert data[0]["image_url"] == "https://gateway.pinata.cloud/ipfs/img-m0"

    def test_invalid_wallet_address(self, client, owned_chain):
        response = client.get("/api/v1/wallets/not-an-address/nfts")

        assert response.status_code == 400
        assert owned_chain.calls == []

    def test_download_image(self, client, owned_chain):
        response = client.get(f"/api/v1/wallets/{WALLET_ADDRESS}/nfts/0/image")

        assert response.status_code == 200
        assert response.content == b"\x89PNGimg-m0"
        assert "NFT-0-Token%20m0.png" in response.headers["content-disposition"]

    def test_download_unowned_token(self, client, owned_chain):
        response = client.get(f"/api/v1/wallets/{WALLET_ADDRESS}/nfts/1/image")

        assert response.status_code == 404

    def test_unreadable_supply(self, client, owned_chain):
        owned_chain.failing_reads = {("totalSupply", -1)}

        response = client.get(f"/api/v1/wallets/{WALLET_ADDRESS}/nfts")

        assert response.status_code == 502
        assert response.json()["error_type"] == "ChainReadError"


# ==================== Contract Tests ====================


class TestContractRoutes:
    """Tests for contract deployment and registration."""

    def test_deploy(self, client, chain_client, marketplace):
        chain_client.receipt_contract_address = DEPLOYED

        response = client.post(
            "/api/v1/contracts/deploy", json={"bytecode": "0x6080604052348015600f57"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["contract_address"] == DEPLOYED
        assert data["degraded"] is False
        assert f"ARTMINT_CONTRACT_ADDRESS={DEPLOYED}" in data["env_file"]
        assert marketplace.minting.contract_address == DEPLOYED
        assert marketplace.scanner.contract_address == DEPLOYED

    def test_deploy_requires_bytecode(self, client, chain_client):
        response = client.post("/api/v1/contracts/deploy", json={})

        assert response.status_code == 400
        assert chain_client.calls == []

    def test_deploy_degraded(self, client, chain_client, marketplace):
        response = client.post(
            "/api/v1/contracts/deploy", json={"bytecode": "0x6080604052348015600f57"}
        )

        data = response.json()
        assert data["degraded"] is True
        assert data["tx_hash"] == TX_HASH
        assert data["env_file"] is None
        assert marketplace.minting.contract_address == CONTRACT_ADDRESS

    def test_get_contract(self, client):
        data = client.get("/api/v1/contracts").json()

        assert data["contract_address"] == CONTRACT_ADDRESS

    def test_register_contract(self, client, marketplace):
        response = client.put("/api/v1/contracts", json={"contract_address": DEPLOYED})

        assert response.status_code == 200
        assert marketplace.minting.contract_address == DEPLOYED

    def test_register_invalid_contract(self, client, marketplace):
        response = client.put("/api/v1/contracts", json={"contract_address": "0x123"})

        assert response.status_code == 400
        assert marketplace.minting.contract_address == CONTRACT_ADDRESS


# ==================== Error Mapping Tests ====================


class TestStatusCodes:
    """Tests for mapping pipeline errors to HTTP statuses."""

    @pytest.mark.parametrize(
        ("error", "expected"),
        [
            (ListingNotFoundError("x"), 404),
            (AlreadyInProgressError("x"), 409),
            (ValidationError("x"), 400),
            (PreconditionError("x"), 400),
            (PinningError("x"), 502),
            (ChainSubmissionError("x"), 502),
            (ChainConfirmationError("x", tx_hash="0x1"), 502),
            (ChainReadError("x"), 502),
            (FetchError("x"), 502),
            (ParseError("x"), 502),
        ],
    )
    def test_status_code_for(self, error, expected):
        assert status_code_for(error) == expected
