"""
Listing Lifecycle Manager

Creates, removes and sells listings. Pinning is a capability that is either
present (a pinning client) or absent (None), decided once when the manager
is built. A failed upload never prevents a listing from being created:
a failed asset upload falls back to inline storage, and a failed metadata
upload leaves the listing without a metadata reference, which only
disables minting.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Any

import httpx
import structlog
from pydantic import ValidationError as ModelValidationError

from ..exceptions import ListingNotFoundError, PinningError
from ..metadata import build_metadata
from ..models import AssetRef, ContentRef, Listing, MetadataAttribute, validate_price
from ..monitoring import log_duration
from ..pinning import BasePinningClient, PinningClientError, RawAsset
from ..storage import ListingStore

logger = structlog.get_logger(__name__)

# A pin whose URL does not resolve its CID is unusable and counts as failed
PINNING_ERRORS = (PinningClientError, httpx.HTTPError, ModelValidationError)


class ListingLifecycleManager:
    """Service for creating and retiring listings."""

    def __init__(
        self,
        store: ListingStore,
        pinning_client: BasePinningClient | None = None,
    ) -> None:
        self._store = store
        self._pinning = pinning_client

    @property
    def store(self) -> ListingStore:
        return self._store

    @property
    def can_pin(self) -> bool:
        return self._pinning is not None

    async def list_listings(self) -> list[Listing]:
        return await self._store.list()

    async def get_listing(self, listing_id: str) -> Listing:
        """
        Raises:
            ListingNotFoundError: If the id is not in the store
        """
        listing = await self._store.get(listing_id)
        if listing is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        return listing

    async def create_listing(
        self,
        raw_asset: RawAsset,
        price: Decimal | str | float | int,
        name: str | None = None,
        description: str | None = None,
        attributes: Iterable[MetadataAttribute | Mapping[str, Any]] | None = None,
        pin: bool = True,
        fallback_to_inline: bool = True,
    ) -> Listing:
        """
        Create and persist a listing.

        Args:
            raw_asset: The asset bytes
            price: Listing price, must be positive
            name: Metadata name, defaults to "Untitled"
            description: Metadata description, defaults to a placeholder
            attributes: Metadata traits in display order
            pin: Upload the asset when a pinning client is available
            fallback_to_inline: Store the asset inline when its upload fails;
                when False the PinningError is raised instead

        Returns:
            The persisted listing. It can be minted only if metadata_ref is set.

        Raises:
            ValidationError: Invalid price, before any upload
            PinningError: Asset upload failed and fallback_to_inline is False
        """
        validated_price = validate_price(price)

        pinning = self._pinning if pin else None

        pinned_asset: ContentRef | None = None
        if pinning is not None:
            pinned_asset = await self._pin_asset(pinning, raw_asset, fallback_to_inline)

        metadata_ref: ContentRef | None = None
        if pinning is not None and pinned_asset is not None:
            metadata_ref = await self._pin_metadata(
                pinning, name, description, attributes, pinned_asset.cid
            )

        asset = (
            AssetRef(pinned=pinned_asset)
            if pinned_asset is not None
            else AssetRef.inline(raw_asset.payload, raw_asset.content_type)
        )
        listing = Listing(asset=asset, metadata_ref=metadata_ref, price=validated_price)
        await self._store.create(listing)
        return listing

    async def _pin_asset(
        self,
        pinning: BasePinningClient,
        raw_asset: RawAsset,
        fallback_to_inline: bool,
    ) -> ContentRef | None:
        try:
            with log_duration(
                logger, "asset_upload", client=pinning.name, size=len(raw_asset.payload)
            ):
                result = await pinning.upload_bytes(
                    raw_asset.payload, raw_asset.filename, raw_asset.content_type
                )
            return result.to_content_ref()
        except PINNING_ERRORS as e:
            error = PinningError(f"Asset upload failed: {e}", cause_message=str(e))
            if not fallback_to_inline:
                raise error from e
            logger.warning(
                "asset_pin_failed_storing_inline",
                filename=raw_asset.filename,
                error=str(e),
            )
            return None

    async def _pin_metadata(
        self,
        pinning: BasePinningClient,
        name: str | None,
        description: str | None,
        attributes: Iterable[MetadataAttribute | Mapping[str, Any]] | None,
        asset_cid: str,
    ) -> ContentRef | None:
        document = build_metadata(name, description, attributes, asset_cid)
        try:
            result = await pinning.upload_json(
                document.to_dict(), name=f"{document.name} metadata"
            )
            metadata_ref = result.to_content_ref()
        except PINNING_ERRORS as e:
            logger.warning(
                "metadata_pin_failed_listing_not_mintable",
                asset_cid=asset_cid,
                error=str(e),
            )
            return None
        logger.info("metadata_pinned", asset_cid=asset_cid, metadata_cid=metadata_ref.cid)
        return metadata_ref

    async def remove_listing(self, listing_id: str) -> Listing | None:
        """
        Remove a listing, re-reading the persisted set first.

        Removing an id that is already gone is a no-op and returns None.
        """
        return await self._store.remove(listing_id)

    async def purchase_listing(self, listing_id: str) -> Listing | None:
        """
        Mark a listing as sold by removing it.

        Returns:
            The sold listing, or None if another context sold it first
        """
        sold = await self._store.remove(listing_id)
        if sold is None:
            logger.info("listing_purchase_noop", listing_id=listing_id)
        else:
            logger.info("listing_purchased", listing_id=listing_id, price=str(sold.price))
        return sold
