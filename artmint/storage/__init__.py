"""
Artmint Storage

Persistence for the listing set and mint records, plus the change channel
that keeps every open view of the marketplace converged.
"""

from dataclasses import dataclass

import redis.asyncio as redis
import structlog

from ..config import MarketplaceConfig, StorageBackendType
from .backends import (
    FileStorageBackend,
    MemoryStorageBackend,
    RedisStorageBackend,
    StorageBackend,
)
from .channels import ChangeCallback, LocalChangeChannel, RedisChangeChannel, StorageChange
from .listing_store import LISTINGS_KEY, ListingStore
from .mint_records import MINT_RECORDS_KEY, MintRecordStore
from .resync import StoreResyncTask

logger = structlog.get_logger(__name__)


@dataclass
class StorageBundle:
    """Everything built on one backend."""

    backend: StorageBackend
    channel: LocalChangeChannel
    listings: ListingStore
    mint_records: MintRecordStore

    async def start(self) -> None:
        await self.channel.start()

    async def close(self) -> None:
        await self.channel.close()
        await self.backend.close()


async def open_storage(config: MarketplaceConfig) -> StorageBundle:
    """
    Build the storage stack described by the configuration.

    The redis backend falls back to the file backend when the server is
    unreachable, so a single-host deployment keeps working.
    """
    backend: StorageBackend | None = None
    channel: LocalChangeChannel | None = None

    if config.storage_backend == StorageBackendType.REDIS and config.redis_url:
        try:
            client = redis.from_url(config.redis_url, decode_responses=True)
            await client.ping()
            backend = RedisStorageBackend(client)
            channel = RedisChangeChannel(client, channel=config.redis_channel)
            logger.info("storage_initialized", backend="redis")
        except (redis.RedisError, OSError) as e:
            logger.warning("redis_unavailable_using_file", error=str(e))
            backend = None

    if backend is None:
        backend = FileStorageBackend(config.storage_path)
        channel = LocalChangeChannel()
        logger.info("storage_initialized", backend="file", path=config.storage_path)

    listings = ListingStore(backend, channel)
    mint_records = MintRecordStore(backend if config.persist_mint_records else None)
    return StorageBundle(
        backend=backend, channel=listings.channel, listings=listings, mint_records=mint_records
    )


__all__ = [
    # Backends
    "StorageBackend",
    "MemoryStorageBackend",
    "FileStorageBackend",
    "RedisStorageBackend",
    # Channels
    "ChangeCallback",
    "LocalChangeChannel",
    "RedisChangeChannel",
    "StorageChange",
    # Stores
    "LISTINGS_KEY",
    "ListingStore",
    "MINT_RECORDS_KEY",
    "MintRecordStore",
    "StoreResyncTask",
    # Factory
    "StorageBundle",
    "open_storage",
]
