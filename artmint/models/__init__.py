"""
Artmint Models

Data structures shared by the listing store, the pinning and chain clients
and the pipeline services.
"""

from .chain import EventLog, TransactionReceipt, TransactionRecord
from .listing import AssetRef, ContentRef, Listing, validate_price
from .metadata import MetadataAttribute, MetadataDocument
from .minting import (
    ACTIVE_MINT_STATUSES,
    TERMINAL_MINT_STATUSES,
    MintRecord,
    MintStatus,
    OwnedNFT,
)

__all__ = [
    # Listings
    "AssetRef",
    "ContentRef",
    "Listing",
    "validate_price",
    # Metadata
    "MetadataAttribute",
    "MetadataDocument",
    # Chain
    "EventLog",
    "TransactionReceipt",
    "TransactionRecord",
    # Minting
    "ACTIVE_MINT_STATUSES",
    "TERMINAL_MINT_STATUSES",
    "MintRecord",
    "MintStatus",
    "OwnedNFT",
]
