"""
Tests for the EVM Chain Client Implementation.

web3's AsyncWeb3 is patched with a MagicMock so the client runs without a
node. Awaitable properties (eth.chain_id, eth.accounts) are stubbed with a
small reusable awaitable.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from web3.exceptions import Web3Exception

from artmint.chains import (
    ChainClientError,
    EventTopics,
    EVMChainClient,
    ReceiptTimeoutError,
    TransactionFailedError,
    WalletRequestError,
)
from artmint.chains.evm_client import to_hex

RPC_URL = "http://127.0.0.1:8545"
CONTRACT = "0x" + "ab" * 20


class AwaitableValue:
    """Awaitable that can be awaited repeatedly, like a web3 async property."""

    def __init__(self, value=None, error: Exception | None = None):
        self.value = value
        self.error = error

    def __await__(self):
        async def resolve():
            if self.error is not None:
                raise self.error
            return self.value

        return resolve().__await__()


# ==================== Fixtures ====================


@pytest.fixture
def mock_web3():
    """Create a mock AsyncWeb3 instance."""
    mock_w3 = MagicMock()

    mock_eth = MagicMock()
    mock_eth.chain_id = AwaitableValue(31337)
    mock_eth.accounts = AwaitableValue(["0x" + "12" * 20])
    mock_eth.send_transaction = AsyncMock(return_value=b"\xaa" * 32)
    mock_eth.get_transaction_receipt = AsyncMock(
        return_value={
            "status": 1,
            "blockNumber": 12,
            "gasUsed": 50000,
            "logs": [
                {
                    "address": CONTRACT,
                    "topics": [
                        bytes.fromhex(EventTopics.TRANSFER[2:]),
                        b"\x00" * 32,
                        b"\x00" * 12 + b"\x12" * 20,
                        (7).to_bytes(32, "big"),
                    ],
                    "data": b"",
                }
            ],
            "contractAddress": None,
        }
    )
    mock_eth.get_code = AsyncMock(return_value=b"\x60\x80")

    mock_contract = MagicMock()
    mock_contract.functions.ownerOf.return_value.call = AsyncMock(return_value="0x" + "12" * 20)
    mock_eth.contract = MagicMock(return_value=mock_contract)

    mock_w3.eth = mock_eth
    mock_w3.provider = MagicMock()
    mock_w3.provider.make_request = AsyncMock(return_value={"result": True})
    mock_w3.to_checksum_address = MagicMock(side_effect=lambda x: x)

    return mock_w3


@pytest_asyncio.fixture
async def connected_client(mock_web3):
    """An initialized client backed by mock_web3."""
    with patch("artmint.chains.evm_client.AsyncWeb3", return_value=mock_web3), patch(
        "artmint.chains.evm_client.AsyncHTTPProvider"
    ):
        client = EVMChainClient(RPC_URL, network_name="Local")
        await client.initialize()
        return client


# ==================== Initialization Tests ====================


class TestEVMClientInit:
    """Tests for EVMChainClient initialization."""

    def test_not_initialized_by_default(self):
        client = EVMChainClient(RPC_URL)

        assert not client.is_initialized

    @pytest.mark.asyncio
    async def test_initialize_reads_chain_id(self, mock_web3):
        with patch("artmint.chains.evm_client.AsyncWeb3", return_value=mock_web3), patch(
            "artmint.chains.evm_client.AsyncHTTPProvider"
        ):
            client = EVMChainClient(RPC_URL)
            await client.initialize()

        assert client.is_initialized
        assert await client.get_chain_id() == 31337

    @pytest.mark.asyncio
    async def test_unreachable_endpoint(self, mock_web3):
        mock_web3.eth.chain_id = AwaitableValue(error=ConnectionError("refused"))

        with patch("artmint.chains.evm_client.AsyncWeb3", return_value=mock_web3), patch(
            "artmint.chains.evm_client.AsyncHTTPProvider"
        ):
            client = EVMChainClient(RPC_URL)
            with pytest.raises(ChainClientError, match="Failed to connect"):
                await client.initialize()

        assert not client.is_initialized

    @pytest.mark.asyncio
    async def test_invalid_operator_key(self, mock_web3):
        with patch("artmint.chains.evm_client.AsyncWeb3", return_value=mock_web3), patch(
            "artmint.chains.evm_client.AsyncHTTPProvider"
        ):
            client = EVMChainClient(RPC_URL, operator_private_key="not-a-key")
            with pytest.raises(ChainClientError, match="Invalid operator private key"):
                await client.initialize()

    @pytest.mark.asyncio
    async def test_calls_require_initialize(self):
        client = EVMChainClient(RPC_URL)

        with pytest.raises(ChainClientError):
            await client.send_transaction(CONTRACT, b"\x00")


# ==================== Transaction Tests ====================


class TestEVMClientTransactions:
    """Tests for sending transactions and reading receipts."""

    @pytest.mark.asyncio
    async def test_send_with_node_account(self, connected_client, mock_web3):
        record = await connected_client.send_transaction(
            CONTRACT, b"\x01\x02", transaction_type="mint"
        )

        assert record.tx_hash == "0x" + "aa" * 32
        assert record.chain_id == 31337
        assert record.transaction_type == "mint"
        sent = mock_web3.eth.send_transaction.await_args.args[0]
        assert sent["to"] == CONTRACT
        assert sent["data"] == b"\x01\x02"
        assert sent["from"] == "0x" + "12" * 20

    @pytest.mark.asyncio
    async def test_contract_creation_has_no_recipient(self, connected_client, mock_web3):
        await connected_client.send_transaction(None, b"\x60\x80", transaction_type="deploy")

        assert "to" not in mock_web3.eth.send_transaction.await_args.args[0]

    @pytest.mark.asyncio
    async def test_rejection_keeps_message(self, connected_client, mock_web3):
        mock_web3.eth.send_transaction = AsyncMock(
            side_effect=Web3Exception("User denied transaction signature")
        )

        with pytest.raises(ChainClientError, match="User denied transaction signature"):
            await connected_client.send_transaction(CONTRACT, b"\x00")

    @pytest.mark.asyncio
    async def test_no_accounts(self, connected_client, mock_web3):
        mock_web3.eth.accounts = AwaitableValue([])

        with pytest.raises(ChainClientError, match="no accounts"):
            await connected_client.send_transaction(CONTRACT, b"\x00")

    @pytest.mark.asyncio
    async def test_receipt_conversion(self, connected_client):
        receipt = await connected_client.wait_for_transaction_receipt("0xabc")

        assert receipt.succeeded
        assert receipt.block_number == 12
        log = receipt.logs[0]
        assert log.topics[0] == EventTopics.TRANSFER
        assert int(log.topics[3], 16) == 7

    @pytest.mark.asyncio
    async def test_reverted_transaction(self, connected_client, mock_web3):
        mock_web3.eth.get_transaction_receipt = AsyncMock(
            return_value={"status": 0, "blockNumber": 12, "logs": []}
        )

        with pytest.raises(TransactionFailedError) as exc_info:
            await connected_client.wait_for_transaction_receipt("0xabc")

        assert exc_info.value.receipt.status == "failed"

    @pytest.mark.asyncio
    async def test_receipt_timeout(self, connected_client):
        with pytest.raises(ReceiptTimeoutError):
            await connected_client.wait_for_transaction_receipt("0xabc", timeout_seconds=-1)


# ==================== Read Tests ====================


class TestEVMClientReads:
    """Tests for read-only contract calls."""

    @pytest.mark.asyncio
    async def test_call_contract(self, connected_client, mock_web3):
        owner = await connected_client.call_contract(CONTRACT, "ownerOf", [1], [])

        assert owner == "0x" + "12" * 20
        mock_web3.eth.contract.return_value.functions.ownerOf.assert_called_once_with(1)

    @pytest.mark.asyncio
    async def test_call_contract_error(self, connected_client, mock_web3):
        mock_web3.eth.contract.return_value.functions.ownerOf.return_value.call = AsyncMock(
            side_effect=Web3Exception("execution reverted")
        )

        with pytest.raises(ChainClientError, match="ownerOf"):
            await connected_client.call_contract(CONTRACT, "ownerOf", [99], [])

    @pytest.mark.asyncio
    async def test_get_code(self, connected_client):
        assert await connected_client.get_code(CONTRACT) == b"\x60\x80"


# ==================== Wallet Request Tests ====================


class TestEVMClientWalletRequests:
    """Tests for network switching and asset registration."""

    @pytest.mark.asyncio
    async def test_switch_network(self, connected_client, mock_web3):
        await connected_client.request_network_switch(8453)

        mock_web3.provider.make_request.assert_awaited_once_with(
            "wallet_switchEthereumChain", [{"chainId": "0x2105"}]
        )

    @pytest.mark.asyncio
    async def test_unknown_network_is_added(self, connected_client, mock_web3):
        mock_web3.provider.make_request = AsyncMock(
            side_effect=[
                {"error": {"code": 4902, "message": "Unrecognized chain ID"}},
                {"result": None},
            ]
        )

        await connected_client.request_network_switch(8453, "Base")

        method, params = mock_web3.provider.make_request.await_args_list[1].args
        assert method == "wallet_addEthereumChain"
        assert params[0]["chainName"] == "Base"
        assert params[0]["rpcUrls"] == [RPC_URL]

    @pytest.mark.asyncio
    async def test_rejected_switch(self, connected_client, mock_web3):
        mock_web3.provider.make_request = AsyncMock(
            return_value={"error": {"code": 4001, "message": "User rejected the request."}}
        )

        with pytest.raises(WalletRequestError) as exc_info:
            await connected_client.request_network_switch(8453)

        assert exc_info.value.code == 4001
        assert str(exc_info.value) == "User rejected the request."

    @pytest.mark.asyncio
    async def test_watch_asset(self, connected_client, mock_web3):
        added = await connected_client.watch_asset(CONTRACT, "7", "https://gw/ipfs/meta")

        assert added is True
        method, params = mock_web3.provider.make_request.await_args.args
        assert method == "wallet_watchAsset"
        assert params == {
            "type": "ERC721",
            "options": {"address": CONTRACT, "tokenId": "7", "tokenURI": "https://gw/ipfs/meta"},
        }


# ==================== Transport Error Tests ====================


class TestEVMClientTransportErrors:
    """Connection failures surface as ChainClientError from every call."""

    @pytest.mark.asyncio
    async def test_send_connection_reset(self, connected_client, mock_web3):
        mock_web3.eth.send_transaction = AsyncMock(side_effect=ConnectionResetError("peer reset"))

        with pytest.raises(ChainClientError, match="peer reset") as exc_info:
            await connected_client.send_transaction(CONTRACT, b"\x00")

        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_receipt_poll_timeout(self, connected_client, mock_web3):
        mock_web3.eth.get_transaction_receipt = AsyncMock(side_effect=TimeoutError())

        with pytest.raises(ChainClientError):
            await connected_client.wait_for_transaction_receipt("0xabc")

    @pytest.mark.asyncio
    async def test_call_connection_refused(self, connected_client, mock_web3):
        mock_web3.eth.contract.return_value.functions.ownerOf.return_value.call = AsyncMock(
            side_effect=ConnectionRefusedError("refused")
        )

        with pytest.raises(ChainClientError, match="ownerOf"):
            await connected_client.call_contract(CONTRACT, "ownerOf", [1], [])

    @pytest.mark.asyncio
    async def test_chain_id_connection_lost(self, connected_client, mock_web3):
        mock_web3.eth.chain_id = AwaitableValue(error=ConnectionError("connection lost"))

        with pytest.raises(ChainClientError, match="eth_chainId failed: connection lost"):
            await connected_client.get_chain_id()

    @pytest.mark.asyncio
    async def test_chain_id_web3_error(self, connected_client, mock_web3):
        mock_web3.eth.chain_id = AwaitableValue(error=Web3Exception("bad response"))

        with pytest.raises(ChainClientError):
            await connected_client.get_chain_id()

    @pytest.mark.asyncio
    async def test_get_code_connection_lost(self, connected_client, mock_web3):
        mock_web3.eth.get_code = AsyncMock(side_effect=OSError("network unreachable"))

        with pytest.raises(ChainClientError, match="network unreachable"):
            await connected_client.get_code(CONTRACT)

    @pytest.mark.asyncio
    async def test_wallet_request_connection_lost(self, connected_client, mock_web3):
        mock_web3.provider.make_request = AsyncMock(side_effect=ConnectionError("closed"))

        with pytest.raises(ChainClientError, match="wallet_watchAsset"):
            await connected_client.watch_asset(CONTRACT, "7")


class TestToHex:
    """Tests for hex normalization."""

    def test_bytes(self):
        assert to_hex(b"\xab\xcd") == "0xabcd"

    def test_strings(self):
        assert to_hex("0xABCD") == "0xabcd"
        assert to_hex("abcd") == "0xabcd"
