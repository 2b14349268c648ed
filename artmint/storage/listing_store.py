"""
Listing Store

The single source of truth for active listings. The whole listing set is
persisted as one ordered sequence under LISTINGS_KEY and rewritten on every
mutation; there is no partial patching.

Several execution contexts may share the same backend. There is no lock
across contexts: mutations re-read the latest persisted set immediately
before writing (read latest, mutate, write), which narrows the race window
without closing it. Last write wins. Every write is announced on the change
channel so other views re-read.
"""

from __future__ import annotations

import hashlib
import inspect
import json
from collections.abc import Callable
from typing import Any

import structlog
from pydantic import ValidationError as ModelValidationError

from ..exceptions import ValidationError
from ..models import Listing, validate_price
from .backends import StorageBackend
from .channels import ChangeCallback, LocalChangeChannel, StorageChange

logger = structlog.get_logger(__name__)

LISTINGS_KEY = "listings"


def _fingerprint(raw: Any) -> str:
    encoded = json.dumps(raw, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


class ListingStore:
    """
    Durable listing repository with change notification.

    Subscribers receive a StorageChange and are expected to call list()
    again; the notification itself carries no listing data.
    """

    def __init__(
        self,
        backend: StorageBackend,
        channel: LocalChangeChannel | None = None,
    ) -> None:
        self._backend = backend
        self._channel = channel or LocalChangeChannel()
        self._last_fingerprint: str | None = None
        self._channel.subscribe(self._track_foreign_change)

    @property
    def channel(self) -> LocalChangeChannel:
        return self._channel

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    # ==================== Repository Operations ====================

    async def _read_raw(self) -> list[Any]:
        raw = await self._backend.get(LISTINGS_KEY)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.error("listings_value_malformed", type=type(raw).__name__)
            return []
        return raw

    async def read(self) -> list[Listing]:
        """Read the authoritative listing set from the backend."""
        listings: list[Listing] = []
        for entry in await self._read_raw():
            try:
                listings.append(Listing.model_validate(entry))
            except ModelValidationError as e:
                logger.warning(
                    "listing_entry_skipped",
                    listing_id=entry.get("id") if isinstance(entry, dict) else None,
                    error=str(e),
                )
        return listings

    async def write_all(self, listings: list[Listing]) -> None:
        """Overwrite the persisted set and notify every subscriber."""
        raw = [listing.model_dump(mode="json") for listing in listings]
        await self._backend.set(LISTINGS_KEY, raw)
        self._last_fingerprint = _fingerprint(raw)
        logger.debug("listings_written", count=len(raw))
        await self._channel.publish(LISTINGS_KEY)

    def subscribe(self, callback: ChangeCallback) -> Callable[[], None]:
        """Register a callback for listing changes made in any context."""

        async def on_listing_change(change: StorageChange) -> None:
            if change.key != LISTINGS_KEY:
                return
            result = callback(change)
            if inspect.isawaitable(result):
                await result

        return self._channel.subscribe(on_listing_change)

    # ==================== Listing API ====================

    async def list(self) -> list[Listing]:
        """All active listings in creation order."""
        return await self.read()

    async def get(self, listing_id: str) -> Listing | None:
        for listing in await self.read():
            if listing.id == listing_id:
                return listing
        return None

    async def create(self, listing: Listing) -> None:
        """
        Append a listing.

        Raises:
            ValidationError: If the price is not positive, the asset is
                missing, or the id is already in use
        """
        validate_price(listing.price)
        if listing.asset is None or not listing.asset.url:
            raise ValidationError("Listing asset is missing")

        current = await self.read()
        if any(existing.id == listing.id for existing in current):
            raise ValidationError(f"Listing id {listing.id} already exists")

        await self.write_all([*current, listing])
        logger.info(
            "listing_created",
            listing_id=listing.id,
            price=str(listing.price),
            pinned=listing.has_pinned_asset,
            mintable=listing.can_mint,
        )

    async def remove(self, listing_id: str) -> Listing | None:
        """
        Remove a listing if present.

        Re-reads the persisted set right before writing so listings created
        by other contexts since our last read are not clobbered. Removing an
        absent id is a no-op.

        Returns:
            The removed listing, or None if it was not present
        """
        current = await self.read()
        removed: Listing | None = None
        remaining: list[Listing] = []
        for listing in current:
            if removed is None and listing.id == listing_id:
                removed = listing
            else:
                remaining.append(listing)

        if removed is None:
            logger.debug("listing_remove_noop", listing_id=listing_id)
            return None

        await self.write_all(remaining)
        logger.info("listing_removed", listing_id=listing_id)
        return removed

    def on_change(self, callback: ChangeCallback) -> Callable[[], None]:
        """Alias of subscribe()."""
        return self.subscribe(callback)

    # ==================== Resync Support ====================

    async def fingerprint(self) -> str:
        """Digest of the persisted listing set."""
        return _fingerprint(await self._read_raw())

    async def _track_foreign_change(self, change: StorageChange) -> None:
        if change.key == LISTINGS_KEY and not change.is_from(self._channel.context_id):
            self._last_fingerprint = await self.fingerprint()

    async def resync(self) -> bool:
        """
        Compare the persisted set with the last one this context saw.

        Notifies subscribers when a change arrived without a notification.

        Returns:
            True if a missed change was detected
        """
        current = await self.fingerprint()
        if self._last_fingerprint is None:
            self._last_fingerprint = current
            return False
        if current == self._last_fingerprint:
            return False
        self._last_fingerprint = current
        logger.info("listings_resynced")
        await self._channel.dispatch(StorageChange(key=LISTINGS_KEY, origin="resync"))
        return True
