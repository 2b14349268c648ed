"""
Minting and Ownership Models

A MintRecord tracks one mint attempt for one listing:

    IDLE -> SUBMITTED -> CONFIRMING -> CONFIRMED | FAILED

IDLE is never stored; it is what status() reports for a listing without a
record. A CONFIRMED record without a token id is a degraded success: the
token exists on-chain but its id could not be recovered from the receipt.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class MintStatus(str, Enum):
    """State of a listing's mint attempt."""

    IDLE = "idle"
    SUBMITTED = "submitted"  # Transaction accepted by the wallet/RPC
    CONFIRMING = "confirming"  # Waiting for the receipt
    CONFIRMED = "confirmed"  # Mined successfully
    FAILED = "failed"  # Submission or confirmation failed


ACTIVE_MINT_STATUSES = frozenset({MintStatus.SUBMITTED, MintStatus.CONFIRMING})
TERMINAL_MINT_STATUSES = frozenset({MintStatus.CONFIRMED, MintStatus.FAILED})


class MintRecord(BaseModel):
    """One mint attempt, keyed by listing id."""

    listing_id: str = Field(description="Listing being minted")
    attempt_id: str = Field(default_factory=lambda: uuid4().hex)
    token_uri: str = Field(description="Bare CID passed to mint()")
    status: MintStatus = Field(default=MintStatus.SUBMITTED)
    transaction_hash: str | None = Field(default=None)
    token_id: str | None = Field(default=None, description="Decoded from the Transfer event")
    error: str | None = Field(default=None, description="Original failure text")
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_MINT_STATUSES

    @property
    def degraded(self) -> bool:
        """Mined, but the token id is unknown."""
        return self.status == MintStatus.CONFIRMED and self.token_id is None

    def transition(self, status: MintStatus, **changes: Any) -> "MintRecord":
        """Return a copy in the new state."""
        return self.model_copy(
            update={"status": status, "updated_at": datetime.now(UTC), **changes}
        )


class OwnedNFT(BaseModel):
    """A token owned by a wallet, reconstructed on demand."""

    token_id: str
    token_uri: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    image_url: str = ""

    @property
    def name(self) -> str | None:
        name = self.metadata.get("name")
        return name if isinstance(name, str) and name else None

    @property
    def download_filename(self) -> str:
        return f"NFT-{self.token_id}-{self.name or 'image'}.png"
