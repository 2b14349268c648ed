"""
Listing Models

A listing is the locally tracked for-sale record of a digital asset. Its
asset is held either inline (a base64 data URL) or as a pinned content
reference; once a CID is present the fetch URL is derived from it and is
never edited on its own.
"""

import base64
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..exceptions import ValidationError
from ..ipfs import gateway_url, normalize_cid


def validate_price(value: Any) -> Decimal:
    """
    Parse and validate a listing price.

    Raises:
        ValidationError: If the value is not a number or is not positive
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid price: {value!r}")
    try:
        price = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid price: {value!r}")
    if not price.is_finite() or price <= 0:
        raise ValidationError(f"Price must be greater than zero, got {value!r}")
    return price


class ContentRef(BaseModel):
    """A pinned object: its content identifier and a URL derived from it."""

    model_config = ConfigDict(frozen=True)

    cid: str = Field(min_length=1, description="Content identifier")
    url: str = Field(description="Fetch URL resolving the CID")

    @model_validator(mode="after")
    def url_derived_from_cid(self) -> "ContentRef":
        """The URL must point at the same content as the CID."""
        if normalize_cid(self.url) != self.cid:
            raise ValueError(f"URL {self.url} does not resolve CID {self.cid}")
        return self

    @classmethod
    def from_cid(cls, cid: str, gateway: str) -> "ContentRef":
        """Build a reference whose URL is the gateway URL of the CID."""
        return cls(cid=cid, url=gateway_url(cid, gateway))


class AssetRef(BaseModel):
    """
    The listed asset.

    Exactly one representation is authoritative: inline_data for assets kept
    in the store itself, or pinned for assets uploaded to the pinning service.
    """

    model_config = ConfigDict(frozen=True)

    inline_data: str | None = Field(
        default=None, description="data: URL carrying the base64-encoded asset"
    )
    pinned: ContentRef | None = Field(default=None, description="Pinned asset reference")

    @model_validator(mode="after")
    def exactly_one_representation(self) -> "AssetRef":
        if (self.inline_data is None) == (self.pinned is None):
            raise ValueError("Asset must be either inline or pinned")
        return self

    @classmethod
    def inline(cls, payload: bytes, content_type: str) -> "AssetRef":
        """Encode raw bytes as a data URL."""
        encoded = base64.b64encode(payload).decode("ascii")
        return cls(inline_data=f"data:{content_type};base64,{encoded}")

    @property
    def is_pinned(self) -> bool:
        return self.pinned is not None

    @property
    def url(self) -> str:
        """URL usable to display the asset."""
        if self.pinned is not None:
            return self.pinned.url
        return self.inline_data or ""


class Listing(BaseModel):
    """A for-sale record owned by the listing store."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: uuid4().hex, description="Opaque identifier, never reused"
    )
    asset: AssetRef = Field(description="The listed asset")
    metadata_ref: ContentRef | None = Field(
        default=None, description="Pinned metadata document; required for minting"
    )
    price: Decimal = Field(description="Price in the marketplace display currency")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp"
    )

    @property
    def has_pinned_asset(self) -> bool:
        return self.asset.is_pinned

    @property
    def can_mint(self) -> bool:
        return self.metadata_ref is not None and bool(self.metadata_ref.cid)
