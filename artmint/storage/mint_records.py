"""
Mint Record Persistence

Mint records are kept by listing id so an interrupted session can find
transactions it submitted but never saw confirmed. Without a backend the
records live only in memory.

Like the listing store, every write re-reads the persisted map first, so
records written by another context sharing the backend are kept.
"""

import structlog
from pydantic import ValidationError as ModelValidationError

from ..models import MintRecord
from .backends import StorageBackend

logger = structlog.get_logger(__name__)

MINT_RECORDS_KEY = "mint_records"


class MintRecordStore:
    """Latest mint record per listing."""

    def __init__(self, backend: StorageBackend | None = None) -> None:
        self._backend = backend
        self._records: dict[str, MintRecord] = {}

    async def _read(self) -> dict[str, MintRecord]:
        if self._backend is None:
            return self._records
        raw = await self._backend.get(MINT_RECORDS_KEY)
        records: dict[str, MintRecord] = {}
        for listing_id, entry in (raw or {}).items():
            try:
                records[listing_id] = MintRecord.model_validate(entry)
            except ModelValidationError as e:
                logger.warning("mint_record_skipped", listing_id=listing_id, error=str(e))
        self._records = records
        return records

    async def get(self, listing_id: str) -> MintRecord | None:
        return (await self._read()).get(listing_id)

    async def put(self, record: MintRecord) -> None:
        """Replace the record for its listing in the latest persisted set."""
        records = await self._read()
        records[record.listing_id] = record
        if self._backend is not None:
            await self._backend.set(
                MINT_RECORDS_KEY,
                {lid: r.model_dump(mode="json") for lid, r in records.items()},
            )

    async def all(self) -> list[MintRecord]:
        return list((await self._read()).values())

    async def pending(self) -> list[MintRecord]:
        """Records whose transaction was submitted but not yet resolved."""
        return [r for r in await self.all() if r.is_active and r.transaction_hash]
