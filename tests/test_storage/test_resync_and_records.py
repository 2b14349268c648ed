"""
Tests for the resync loop and mint record persistence.
"""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from artmint.models import AssetRef, Listing, MintRecord, MintStatus
from artmint.storage import (
    MINT_RECORDS_KEY,
    ListingStore,
    MemoryStorageBackend,
    MintRecordStore,
    StoreResyncTask,
)


# ==================== Resync Task Tests ====================


class TestStoreResyncTask:
    """Tests for the periodic resync loop."""

    @pytest.mark.asyncio
    async def test_resync_once_counts_changes(self, listing_store, memory_backend):
        task = StoreResyncTask(listing_store, interval_seconds=60)
        await task.resync_once()

        await ListingStore(memory_backend).create(
            Listing(asset=AssetRef.inline(b"x", "image/png"), price=Decimal("1"))
        )

        assert await task.resync_once() is True
        stats = task.get_stats()
        assert stats["runs"] == 2
        assert stats["changes_detected"] == 1
        assert stats["is_running"] is False

    @pytest.mark.asyncio
    async def test_start_and_stop(self, listing_store):
        task = StoreResyncTask(listing_store, interval_seconds=0.01)

        await task.start()
        assert task.is_running
        await asyncio.sleep(0.05)
        await task.stop()

        assert not task.is_running
        assert task.get_stats()["runs"] >= 1

    @pytest.mark.asyncio
    async def test_loop_survives_errors(self):
        store = AsyncMock()
        store.resync = AsyncMock(side_effect=RuntimeError("backend down"))
        task = StoreResyncTask(store, interval_seconds=0.01)

        await task.start()
        await asyncio.sleep(0.05)
        assert task.is_running
        await task.stop()

        stats = task.get_stats()
        assert stats["errors"] >= 1
        assert stats["last_error"] == "backend down"

    @pytest.mark.asyncio
    async def test_stop_without_start(self, listing_store):
        await StoreResyncTask(listing_store).stop()


# ==================== Mint Record Tests ====================


class TestMintRecordStore:
    """Tests for mint record persistence."""

    @pytest.mark.asyncio
    async def test_in_memory_only(self):
        records = MintRecordStore()
        record = MintRecord(listing_id="l1", token_uri="abc123")

        await records.put(record)

        assert await records.get("l1") == record
        assert await records.get("l2") is None

    @pytest.mark.asyncio
    async def test_records_survive_restart(self):
        backend = MemoryStorageBackend()
        record = MintRecord(listing_id="l1", token_uri="abc123", transaction_hash="0xabc")
        await MintRecordStore(backend).put(record)

        restored = await MintRecordStore(backend).get("l1")

        assert restored == record

    @pytest.mark.asyncio
    async def test_latest_record_per_listing(self, mint_records):
        first = MintRecord(listing_id="l1", token_uri="abc123")
        await mint_records.put(first)
        await mint_records.put(first.transition(MintStatus.FAILED, error="rejected"))

        assert [r.status for r in await mint_records.all()] == [MintStatus.FAILED]

    @pytest.mark.asyncio
    async def test_pending_requires_tx_hash(self, mint_records):
        await mint_records.put(MintRecord(listing_id="a", token_uri="x"))
        await mint_records.put(
            MintRecord(listing_id="b", token_uri="x", status=MintStatus.CONFIRMING, transaction_hash="0x1")
        )
        await mint_records.put(
            MintRecord(listing_id="c", token_uri="x", status=MintStatus.CONFIRMED, transaction_hash="0x2")
        )

        assert [r.listing_id for r in await mint_records.pending()] == ["b"]

    @pytest.mark.asyncio
    async def test_malformed_record_skipped(self, memory_backend):
        good = MintRecord(listing_id="ok", token_uri="x")
        await memory_backend.set(
            MINT_RECORDS_KEY, {"bad": {"status": "nope"}, "ok": good.model_dump(mode="json")}
        )

        assert await MintRecordStore(memory_backend).all() == [good]

    @pytest.mark.asyncio
    async def test_stores_sharing_a_backend_keep_each_others_records(self, memory_backend):
        first = MintRecordStore(memory_backend)
        second = MintRecordStore(memory_backend)
        assert await second.get("x") is None

        await first.put(MintRecord(listing_id="x", token_uri="a"))
        await second.put(MintRecord(listing_id="y", token_uri="b"))

        assert sorted(await memory_backend.get(MINT_RECORDS_KEY)) == ["x", "y"]
        assert (await first.get("y")).token_uri == "b"
