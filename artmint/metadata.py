"""
Metadata Builder

Pure construction of the metadata document pinned alongside an asset.
No network access and no clock: the same inputs always produce the same
document, and therefore the same bytes and the same CID once pinned.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from .ipfs import to_ipfs_uri
from .models import MetadataAttribute, MetadataDocument

DEFAULT_NAME = "Untitled"
DEFAULT_DESCRIPTION = "An NFT listed on the marketplace"


def _coerce_attribute(attribute: MetadataAttribute | Mapping[str, Any]) -> MetadataAttribute:
    if isinstance(attribute, MetadataAttribute):
        return attribute
    return MetadataAttribute(trait_type=attribute["trait_type"], value=attribute["value"])


def build_metadata(
    name: str | None,
    description: str | None,
    attributes: Iterable[MetadataAttribute | Mapping[str, Any]] | None,
    pinned_asset_cid: str,
) -> MetadataDocument:
    """
    Build the metadata document for a pinned asset.

    Args:
        name: Display name; empty or missing becomes "Untitled"
        description: Free text; empty or missing becomes a generic placeholder
        attributes: Traits in display order; duplicates are kept as given
        pinned_asset_cid: CID of the already pinned asset

    Returns:
        The metadata document with image set to ipfs://<cid>
    """
    return MetadataDocument(
        name=name or DEFAULT_NAME,
        description=description or DEFAULT_DESCRIPTION,
        image=to_ipfs_uri(pinned_asset_cid),
        attributes=tuple(_coerce_attribute(a) for a in attributes or ()),
    )
