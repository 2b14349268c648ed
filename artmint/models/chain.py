"""
Chain Models

Transport-neutral records of what the chain client reports back: submitted
transactions, receipts and the event logs they carry. Hex values are kept as
0x-prefixed lowercase strings regardless of how the RPC library returned them.
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class TransactionRecord(BaseModel):
    """
    Record of a submitted blockchain transaction.

    Used for tracking on-chain operations until a receipt is available.
    """

    tx_hash: str = Field(description="Transaction hash")
    chain_id: int | None = Field(default=None, description="Chain the transaction was sent to")
    from_address: str | None = Field(default=None, description="Sender address")
    to_address: str | None = Field(
        default=None, description="Recipient address (None for contract creation)"
    )
    status: str = Field(default="pending", description="pending, success or failed")
    transaction_type: str = Field(
        default="contract_call", description="Type of transaction (mint, deploy, ...)"
    )
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class EventLog(BaseModel):
    """A log entry emitted by a contract during a transaction."""

    address: str = Field(default="", description="Emitting contract")
    topics: list[str] = Field(default_factory=list, description="Indexed topics, topic 0 first")
    data: str = Field(default="0x", description="Non-indexed event data")


class TransactionReceipt(BaseModel):
    """Receipt of a mined transaction."""

    tx_hash: str
    block_number: int = 0
    status: str = Field(default="success", description="success or failed")
    gas_used: int = 0
    logs: list[EventLog] = Field(default_factory=list)
    contract_address: str | None = Field(
        default=None, description="Created contract, for deployment transactions"
    )

    @property
    def succeeded(self) -> bool:
        return self.status == "success"
