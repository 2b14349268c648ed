"""
NFT Metadata Models

The metadata document follows the common ERC-721 metadata layout
(name, description, image, attributes). Once pinned it is immutable, and
identical inputs must serialize to identical bytes so re-pinning yields the
same CID.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MetadataAttribute(BaseModel):
    """One trait of an asset. Order within a document is significant."""

    model_config = ConfigDict(frozen=True)

    trait_type: str = Field(description="Trait name")
    value: str | int | float = Field(description="Trait value")


class MetadataDocument(BaseModel):
    """Canonical metadata document for a listed asset."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    image: str = Field(description="ipfs:// URI of the pinned asset")
    attributes: tuple[MetadataAttribute, ...] = Field(default=())

    def to_dict(self) -> dict[str, Any]:
        """Plain dict in field order, as uploaded to the pinning service."""
        return {
            "name": self.name,
            "description": self.description,
            "image": self.image,
            "attributes": [
                {"trait_type": a.trait_type, "value": a.value} for a in self.attributes
            ],
        }

    def to_json_bytes(self) -> bytes:
        """Deterministic compact JSON encoding."""
        return json.dumps(
            self.to_dict(), ensure_ascii=False, separators=(",", ":")
        ).encode("utf-8")
