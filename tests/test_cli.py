"""
Tests for the command line.
"""

import json

import httpx
import pytest

from artmint.__main__ import build_parser, run_command
from artmint.api import MarketplaceApp
from artmint.exceptions import PreconditionError
from artmint.services import (
    ContractDeployer,
    ListingLifecycleManager,
    MintingOrchestrator,
    OwnershipScanner,
)

from .conftest import WALLET_ADDRESS, transfer_log


def image_gateway(request: httpx.Request) -> httpx.Response:
    key = request.url.path.rsplit("/", 1)[-1]
    if key == "img":
        return httpx.Response(200, content=b"png")
    return httpx.Response(200, json={"name": "Sunset", "image": "ipfs://img"})


@pytest.fixture
def marketplace(config, listing_store, mint_records, memory_backend, chain_client, pinning_client):
    app = MarketplaceApp(config)
    app.listings = ListingLifecycleManager(listing_store, pinning_client)
    app.minting = MintingOrchestrator(listing_store, chain_client, config, mint_records)
    app.scanner = OwnershipScanner(
        chain_client,
        config,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(image_gateway)),
    )
    app.deployer = ContractDeployer(chain_client, config, memory_backend)
    return app


@pytest.fixture
def emitted(monkeypatch):
    """Payloads the command would print."""
    payloads = []
    monkeypatch.setattr("artmint.__main__._emit", payloads.append)
    return payloads


async def run(marketplace, emitted, *argv):
    await run_command(build_parser().parse_args(list(argv)), marketplace)
    return emitted[-1]


class TestParser:
    """Tests for argument parsing."""

    def test_attributes(self):
        args = build_parser().parse_args(
            ["create", "--file", "a.png", "--price", "1", "--attribute", "Color=red"]
        )

        assert [(a.trait_type, a.value) for a in args.attributes] == [("Color", "red")]
        assert not args.no_pin

    def test_malformed_attribute(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(
                ["create", "--file", "a.png", "--price", "1", "--attribute", "novalue"]
            )

    def test_deploy_requires_source(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["deploy"])


class TestRunCommand:
    """Tests for executing commands against a marketplace."""

    @pytest.mark.asyncio
    async def test_create_list_mint(self, marketplace, chain_client, tmp_path, emitted):
        asset = tmp_path / "sunset.png"
        asset.write_bytes(b"\x89PNG")
        chain_client.receipt_logs = [transfer_log(3)]

        created = await run(
            marketplace, emitted, "create", "--file", str(asset), "--price", "0.25", "--name", "Sunset"
        )
        listed = await run(marketplace, emitted, "list")
        minted = await run(marketplace, emitted, "mint", created["id"])
        status = await run(marketplace, emitted, "status", created["id"])

        assert created["mintable"] is True
        assert [item["id"] for item in listed] == [created["id"]]
        assert minted["token_id"] == "3"
        assert minted["degraded"] is False
        assert status["status"] == "confirmed"

    @pytest.mark.asyncio
    async def test_purchase_and_remove(self, marketplace, tmp_path, emitted):
        asset = tmp_path / "a.png"
        asset.write_bytes(b"x")
        created = await run(marketplace, emitted, "create", "--file", str(asset), "--price", "1", "--no-pin")

        purchased = await run(marketplace, emitted, "purchase", created["id"])
        removed = await run(marketplace, emitted, "remove", created["id"])

        assert created["asset"] == "<inline>"
        assert purchased["purchased"] is True
        assert removed["removed"] is False

    @pytest.mark.asyncio
    async def test_status_idle(self, marketplace, emitted):
        assert (await run(marketplace, emitted, "status", "nope"))["status"] == "idle"

    @pytest.mark.asyncio
    async def test_scan_downloads_images(self, marketplace, chain_client, tmp_path, emitted):
        chain_client.owners = {0: WALLET_ADDRESS}
        chain_client.token_uris = {0: "ipfs://meta"}

        owned = await run(
            marketplace, emitted, "scan", WALLET_ADDRESS, "--download-dir", str(tmp_path / "nfts")
        )

        assert [nft["token_id"] for nft in owned] == ["0"]
        assert (tmp_path / "nfts" / "NFT-0-Sunset.png").read_bytes() == b"png"

    @pytest.mark.asyncio
    async def test_deploy_writes_env_file(self, marketplace, chain_client, tmp_path, emitted):
        deployed = "0x" + "cd" * 20
        chain_client.receipt_contract_address = deployed
        artifact = tmp_path / "BasicNFT.json"
        artifact.write_text(json.dumps({"bytecode": "0x6080604052348015600f57"}))
        env_file = tmp_path / ".env.contract"

        result = await run(
            marketplace, emitted, "deploy", "--artifact", str(artifact), "--env-file", str(env_file)
        )

        assert result["contract_address"] == deployed
        assert f"ARTMINT_CONTRACT_ADDRESS={deployed}" in env_file.read_text()

    @pytest.mark.asyncio
    async def test_uninitialized_marketplace_rejected(self, config, emitted):
        with pytest.raises(PreconditionError, match="not initialized"):
            await run(MarketplaceApp(config), emitted, "list")

        assert emitted == []
