"""
Artmint - Test Fixtures

Shared pytest fixtures and recording stubs for the chain and pinning
clients. The stubs record every call so tests can assert that nothing was
sent when a precondition fails.
"""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from artmint.chains import BaseChainClient, ChainClientError, EventTopics, WalletRequestError
from artmint.config import MarketplaceConfig
from artmint.models import EventLog, TransactionReceipt, TransactionRecord
from artmint.pinning import BasePinningClient, PinningClientError, PinResult
from artmint.storage import ListingStore, LocalChangeChannel, MemoryStorageBackend, MintRecordStore

CONTRACT_ADDRESS = "0x" + "ab" * 20
WALLET_ADDRESS = "0x" + "12" * 20
OTHER_WALLET = "0x" + "34" * 20
TX_HASH = "0x" + "ee" * 32


def transfer_log(token_id: int, to_address: str = WALLET_ADDRESS) -> EventLog:
    """Build an ERC-721 Transfer log as a node would return it."""
    return EventLog(
        address=CONTRACT_ADDRESS,
        topics=[
            EventTopics.TRANSFER,
            "0x" + "00" * 32,
            "0x" + to_address[2:].rjust(64, "0"),
            "0x" + format(token_id, "064x"),
        ],
        data="0x",
    )


# =============================================================================
# Recording Stubs
# =============================================================================


class RecordingChainClient(BaseChainClient):
    """In-memory chain client that records every call."""

    def __init__(self, chain_id: int = 31337) -> None:
        super().__init__("http://stub")
        self._initialized = True
        self.chain_id = chain_id
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

        self.send_error: Exception | None = None
        self.wait_error: Exception | None = None
        self.receipt_logs: list[EventLog] = []
        self.receipt_contract_address: str | None = None
        self.release_receipt: asyncio.Event | None = None

        self.owners: dict[int, str] = {}
        self.token_uris: dict[int, str] = {}
        self.failing_reads: set[tuple[str, int]] = set()

        self.switch_error: Exception | None = None
        self.watch_result = True

    async def initialize(self) -> None:
        self._initialized = True

    async def close(self) -> None:
        self.calls.append(("close", ()))

    async def send_transaction(
        self,
        to_address: str | None,
        data: bytes | None = None,
        value: int = 0,
        transaction_type: str = "contract_call",
    ) -> TransactionRecord:
        self.calls.append(("send_transaction", (to_address, data, value)))
        if self.send_error is not None:
            raise self.send_error
        return TransactionRecord(
            tx_hash=TX_HASH,
            chain_id=self.chain_id,
            to_address=to_address,
            transaction_type=transaction_type,
        )

    async def wait_for_transaction_receipt(
        self, tx_hash: str, timeout_seconds: int = 120
    ) -> TransactionReceipt:
        self.calls.append(("wait_for_transaction_receipt", (tx_hash,)))
        if self.release_receipt is not None:
            await self.release_receipt.wait()
        if self.wait_error is not None:
            raise self.wait_error
        return TransactionReceipt(
            tx_hash=tx_hash,
            block_number=1,
            logs=list(self.receipt_logs),
            contract_address=self.receipt_contract_address,
        )

    async def call_contract(
        self,
        contract_address: str,
        function_name: str,
        args: list[Any],
        abi: list[dict[str, Any]],
    ) -> Any:
        self.calls.append(("call_contract", (contract_address, function_name, tuple(args))))
        if function_name == "totalSupply":
            if ("totalSupply", -1) in self.failing_reads:
                raise ChainClientError("execution reverted")
            return len(self.owners)
        token_id = args[0]
        if (function_name, token_id) in self.failing_reads:
            raise ChainClientError(f"{function_name}({token_id}) reverted")
        if function_name == "ownerOf":
            return self.owners[token_id]
        if function_name == "tokenURI":
            return self.token_uris[token_id]
        raise ChainClientError(f"Unknown function {function_name}")

    async def get_code(self, address: str) -> bytes:
        self.calls.append(("get_code", (address,)))
        return b"\x60\x80" if address == CONTRACT_ADDRESS else b""

    async def get_chain_id(self) -> int:
        self.calls.append(("get_chain_id", ()))
        return self.chain_id

    async def request_network_switch(self, chain_id: int, network_name: str | None = None) -> None:
        self.calls.append(("request_network_switch", (chain_id, network_name)))
        if self.switch_error is not None:
            raise self.switch_error
        self.chain_id = chain_id

    async def watch_asset(
        self, contract_address: str, token_id: str, token_uri: str | None = None
    ) -> bool:
        self.calls.append(("watch_asset", (contract_address, token_id, token_uri)))
        return self.watch_result

    def called(self, name: str) -> list[tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]


class RecordingPinningClient(BasePinningClient):
    """Pinning client returning fixed CIDs."""

    name = "stub"

    def __init__(self, asset_cid: str = "abc123", metadata_cid: str = "meta456") -> None:
        super().__init__()
        self.asset_cid = asset_cid
        self.metadata_cid = metadata_cid
        self.fail_bytes = False
        self.fail_json = False
        self.uploaded_bytes: list[tuple[bytes, str, str]] = []
        self.uploaded_json: list[tuple[dict[str, Any], str]] = []

    async def upload_bytes(
        self,
        payload: bytes,
        filename: str,
        content_type: str = "application/octet-stream",
    ) -> PinResult:
        if self.fail_bytes:
            raise PinningClientError("upload refused: 401 Unauthorized")
        self.uploaded_bytes.append((payload, filename, content_type))
        return self._result(self.asset_cid)

    async def upload_json(self, document: dict[str, Any], name: str) -> PinResult:
        if self.fail_json:
            raise PinningClientError("json upload refused: 500")
        self.uploaded_json.append((document, name))
        return self._result(self.metadata_cid)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def config(tmp_path) -> MarketplaceConfig:
    """Configuration pointing at the stub contract and a temp storage file."""
    return MarketplaceConfig(
        _env_file=None,
        contract_address=CONTRACT_ADDRESS,
        storage_path=str(tmp_path / "storage.json"),
        receipt_timeout_seconds=5,
    )


@pytest.fixture
def memory_backend() -> MemoryStorageBackend:
    return MemoryStorageBackend()


@pytest.fixture
def listing_store(memory_backend) -> ListingStore:
    return ListingStore(memory_backend, LocalChangeChannel())


@pytest.fixture
def mint_records(memory_backend) -> MintRecordStore:
    return MintRecordStore(memory_backend)


@pytest.fixture
def chain_client() -> RecordingChainClient:
    return RecordingChainClient()


@pytest.fixture
def pinning_client() -> RecordingPinningClient:
    return RecordingPinningClient()


@pytest.fixture
def wallet_rejection() -> WalletRequestError:
    return WalletRequestError("User rejected the request.", code=4001)
