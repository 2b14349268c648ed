"""
Listing API Routes

Create, browse, buy and remove listings, and mint them as NFTs.
"""

import base64
import binascii
from datetime import datetime
from decimal import Decimal

import structlog
from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from artmint.api.dependencies import ListingManagerDep, MintingDep
from artmint.exceptions import ValidationError
from artmint.models import Listing, MetadataAttribute, MintRecord, MintStatus
from artmint.pinning import RawAsset

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/listings")


# =============================================================================
# Request/Response Models
# =============================================================================


class ListingCreateRequest(BaseModel):
    """Request to list an asset for sale."""

    asset_base64: str = Field(..., min_length=1, description="Base64-encoded asset bytes")
    filename: str = Field(default="asset", max_length=255)
    content_type: str = Field(default="application/octet-stream", max_length=100)
    price: Decimal | str = Field(..., description="Price, must be greater than zero")
    name: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    attributes: list[MetadataAttribute] = Field(default_factory=list)
    pin: bool = Field(default=True, description="Upload the asset to the pinning service")
    fallback_to_inline: bool = Field(
        default=True, description="Store the asset inline if the upload fails"
    )


class ListingResponse(BaseModel):
    """Listing as exposed over HTTP."""

    id: str
    price: str
    asset_url: str
    asset_cid: str | None
    metadata_cid: str | None
    metadata_url: str | None
    mintable: bool
    created_at: datetime

    @classmethod
    def from_listing(cls, listing: Listing) -> "ListingResponse":
        pinned = listing.asset.pinned
        return cls(
            id=listing.id,
            price=str(listing.price),
            asset_url=listing.asset.url,
            asset_cid=pinned.cid if pinned else None,
            metadata_cid=listing.metadata_ref.cid if listing.metadata_ref else None,
            metadata_url=listing.metadata_ref.url if listing.metadata_ref else None,
            mintable=listing.can_mint,
            created_at=listing.created_at,
        )


class RemoveResponse(BaseModel):
    listing_id: str
    removed: bool


class PurchaseResponse(BaseModel):
    listing_id: str
    purchased: bool
    listing: ListingResponse | None = None


class MintResponse(BaseModel):
    """State of a listing's mint attempt."""

    listing_id: str
    status: MintStatus
    transaction_hash: str | None = None
    token_id: str | None = None
    token_uri: str | None = None
    degraded: bool = False
    error: str | None = None

    @classmethod
    def from_record(cls, record: MintRecord) -> "MintResponse":
        return cls(
            listing_id=record.listing_id,
            status=record.status,
            transaction_hash=record.transaction_hash,
            token_id=record.token_id,
            token_uri=record.token_uri,
            degraded=record.degraded,
            error=record.error,
        )


class WalletRegistrationResponse(BaseModel):
    listing_id: str
    accepted: bool


# =============================================================================
# Listing Endpoints
# =============================================================================


@router.get("", response_model=list[ListingResponse])
async def list_listings(manager: ListingManagerDep) -> list[ListingResponse]:
    """All active listings in creation order."""
    return [ListingResponse.from_listing(listing) for listing in await manager.list_listings()]


@router.post("", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_listing(
    request: ListingCreateRequest,
    manager: ListingManagerDep,
) -> ListingResponse:
    """
    List an asset.

    The asset is pinned when a pinning service is configured. If pinning
    fails the listing is still created with the asset stored inline, and it
    cannot be minted.
    """
    try:
        payload = base64.b64decode(request.asset_base64, validate=True)
        raw_asset = RawAsset(
            payload=payload, filename=request.filename, content_type=request.content_type
        )
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Invalid asset: {e}") from e

    listing = await manager.create_listing(
        raw_asset,
        request.price,
        name=request.name,
        description=request.description,
        attributes=request.attributes,
        pin=request.pin,
        fallback_to_inline=request.fallback_to_inline,
    )
    return ListingResponse.from_listing(listing)


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(listing_id: str, manager: ListingManagerDep) -> ListingResponse:
    return ListingResponse.from_listing(await manager.get_listing(listing_id))


@router.delete("/{listing_id}", response_model=RemoveResponse)
async def remove_listing(listing_id: str, manager: ListingManagerDep) -> RemoveResponse:
    """Remove a listing. Removing an absent listing succeeds with removed=false."""
    removed = await manager.remove_listing(listing_id)
    return RemoveResponse(listing_id=listing_id, removed=removed is not None)


@router.post("/{listing_id}/purchase", response_model=PurchaseResponse)
async def purchase_listing(listing_id: str, manager: ListingManagerDep) -> PurchaseResponse:
    """Buy a listing. purchased=false means it was already sold."""
    sold = await manager.purchase_listing(listing_id)
    return PurchaseResponse(
        listing_id=listing_id,
        purchased=sold is not None,
        listing=ListingResponse.from_listing(sold) if sold else None,
    )


# =============================================================================
# Mint Endpoints
# =============================================================================


@router.post("/{listing_id}/mint", response_model=MintResponse)
async def mint_listing(listing_id: str, minting: MintingDep) -> MintResponse:
    """
    Mint a listing's metadata as an NFT and wait for confirmation.

    A confirmed mint whose token id could not be decoded is returned with
    degraded=true.
    """
    record = await minting.mint(listing_id)
    return MintResponse.from_record(record)


@router.get("/{listing_id}/mint", response_model=MintResponse)
async def get_mint_status(listing_id: str, minting: MintingDep) -> MintResponse:
    record = await minting.get_record(listing_id)
    if record is None:
        return MintResponse(listing_id=listing_id, status=MintStatus.IDLE)
    return MintResponse.from_record(record)


@router.post("/{listing_id}/wallet", response_model=WalletRegistrationResponse)
async def register_with_wallet(
    listing_id: str, minting: MintingDep
) -> WalletRegistrationResponse:
    """Ask the connected wallet to display the minted token."""
    accepted = await minting.register_with_wallet(listing_id)
    return WalletRegistrationResponse(listing_id=listing_id, accepted=accepted)
