"""
Artmint command line.

Usage:
    python -m artmint list
    python -m artmint create --file art.png --price 0.001 --name "Sunset"
    python -m artmint purchase <listing-id>
    python -m artmint mint <listing-id>
    python -m artmint scan <wallet-address> [--download-dir ./nfts]
    python -m artmint deploy --artifact basic-nft.json
    python -m artmint serve --port 8000

Configuration comes from ARTMINT_* environment variables or a .env file.
"""

import argparse
import asyncio
import json
import mimetypes
import sys
from pathlib import Path
from typing import Any

import structlog
import uvicorn

from artmint.api import MarketplaceApp, create_app
from artmint.config import get_config
from artmint.exceptions import ArtmintError, PreconditionError
from artmint.models import Listing, MetadataAttribute
from artmint.monitoring import configure_logging
from artmint.pinning import RawAsset

logger = structlog.get_logger(__name__)


def _parse_attribute(value: str) -> MetadataAttribute:
    trait, sep, attr_value = value.partition("=")
    if not sep or not trait:
        raise argparse.ArgumentTypeError(f"Attribute must look like trait=value, got {value!r}")
    return MetadataAttribute(trait_type=trait, value=attr_value)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="artmint", description="Digital asset listing and NFT minting pipeline"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", help="Show active listings")

    create = sub.add_parser("create", help="List an asset for sale")
    create.add_argument("--file", type=Path, required=True, help="Asset file to list")
    create.add_argument("--price", required=True, help="Price, greater than zero")
    create.add_argument("--name", help="NFT name (default: Untitled)")
    create.add_argument("--description", help="NFT description")
    create.add_argument(
        "--attribute",
        dest="attributes",
        action="append",
        type=_parse_attribute,
        default=[],
        help="Metadata trait as trait=value (repeatable)",
    )
    create.add_argument("--no-pin", action="store_true", help="Store the asset inline")
    create.add_argument(
        "--no-fallback",
        action="store_true",
        help="Fail instead of storing inline when the upload fails",
    )

    purchase = sub.add_parser("purchase", help="Buy a listing")
    purchase.add_argument("listing_id")

    remove = sub.add_parser("remove", help="Remove a listing")
    remove.add_argument("listing_id")

    mint = sub.add_parser("mint", help="Mint a listing as an NFT")
    mint.add_argument("listing_id")

    status = sub.add_parser("status", help="Show a listing's mint state")
    status.add_argument("listing_id")

    scan = sub.add_parser("scan", help="List the NFTs a wallet owns")
    scan.add_argument("address")
    scan.add_argument("--download-dir", type=Path, help="Save each token's image here")

    deploy = sub.add_parser("deploy", help="Deploy the NFT contract")
    source = deploy.add_mutually_exclusive_group(required=True)
    source.add_argument("--artifact", type=Path, help="Compiled artifact JSON with a bytecode field")
    source.add_argument("--bytecode", help="0x-prefixed creation bytecode")
    deploy.add_argument("--env-file", type=Path, help="Write the .env snippet here")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def _listing_summary(listing: Listing) -> dict[str, Any]:
    return {
        "id": listing.id,
        "price": str(listing.price),
        "asset": listing.asset.url if listing.has_pinned_asset else "<inline>",
        "metadata_cid": listing.metadata_ref.cid if listing.metadata_ref else None,
        "mintable": listing.can_mint,
    }


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def run_command(args: argparse.Namespace, marketplace: MarketplaceApp) -> None:
    """Execute one CLI command against an initialized marketplace."""
    if (
        marketplace.listings is None
        or marketplace.minting is None
        or marketplace.scanner is None
        or marketplace.deployer is None
    ):
        raise PreconditionError("Marketplace services are not initialized")

    if args.command == "list":
        _emit([_listing_summary(item) for item in await marketplace.listings.list_listings()])

    elif args.command == "create":
        content_type = mimetypes.guess_type(args.file.name)[0] or "application/octet-stream"
        raw_asset = RawAsset(
            payload=args.file.read_bytes(), filename=args.file.name, content_type=content_type
        )
        listing = await marketplace.listings.create_listing(
            raw_asset,
            args.price,
            name=args.name,
            description=args.description,
            attributes=args.attributes,
            pin=not args.no_pin,
            fallback_to_inline=not args.no_fallback,
        )
        _emit(_listing_summary(listing))

    elif args.command == "purchase":
        sold = await marketplace.listings.purchase_listing(args.listing_id)
        _emit({"listing_id": args.listing_id, "purchased": sold is not None})

    elif args.command == "remove":
        removed = await marketplace.listings.remove_listing(args.listing_id)
        _emit({"listing_id": args.listing_id, "removed": removed is not None})

    elif args.command == "mint":
        record = await marketplace.minting.mint(args.listing_id)
        _emit({**record.model_dump(mode="json"), "degraded": record.degraded})

    elif args.command == "status":
        record = await marketplace.minting.get_record(args.listing_id)
        _emit(
            record.model_dump(mode="json")
            if record
            else {"listing_id": args.listing_id, "status": "idle"}
        )

    elif args.command == "scan":
        owned = await marketplace.scanner.scan_owned(args.address)
        if args.download_dir:
            args.download_dir.mkdir(parents=True, exist_ok=True)
            for nft in owned:
                try:
                    content, filename = await marketplace.scanner.download_image(nft)
                except ArtmintError as e:
                    logger.warning("image_download_skipped", token_id=nft.token_id, error=str(e))
                    continue
                (args.download_dir / filename).write_bytes(content)
        _emit([nft.model_dump(mode="json") for nft in owned])

    elif args.command == "deploy":
        bytecode = (
            marketplace.deployer.load_bytecode(args.artifact) if args.artifact else args.bytecode
        )
        result = await marketplace.deployer.deploy(bytecode)
        if result.contract_address and args.env_file:
            args.env_file.write_text(
                marketplace.deployer.render_env_file(result.contract_address), encoding="utf-8"
            )
        _emit({**result.model_dump(mode="json"), "degraded": result.degraded})


async def _run(args: argparse.Namespace) -> int:
    marketplace = MarketplaceApp(get_config())
    try:
        await marketplace.initialize()
        await run_command(args, marketplace)
        return 0
    except ArtmintError as e:
        logger.error("command_failed", command=args.command, error=str(e), cause=e.cause_message)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await marketplace.shutdown()


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = get_config()
    configure_logging(level=config.log_level, json_output=config.log_json)

    if args.command == "serve":
        uvicorn.run(create_app(MarketplaceApp(config)), host=args.host, port=args.port)
        return 0
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
