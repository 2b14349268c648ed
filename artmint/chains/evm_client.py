"""
EVM Chain Client Implementation

Concrete chain client for EVM-compatible networks, built on web3.py.

Transactions are signed locally when an operator private key is configured;
otherwise they are handed to the node's managed account through
eth_sendTransaction (a local dev node, or a wallet-backed provider). Wallet
requests (network switching, asset registration) go straight to the
provider as raw JSON-RPC calls.
"""

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TransactionNotFound

from ..models import EventLog, TransactionReceipt, TransactionRecord
from .base_client import (
    UNRECOGNIZED_CHAIN_ERROR_CODE,
    BaseChainClient,
    ChainClientError,
    ReceiptTimeoutError,
    TransactionFailedError,
    WalletRequestError,
)

logger = structlog.get_logger(__name__)


def to_hex(value: Any) -> str:
    """Normalize HexBytes, bytes or hex strings to a lowercase 0x-prefixed string."""
    if isinstance(value, str):
        text = value.lower()
        return text if text.startswith("0x") else f"0x{text}"
    return "0x" + bytes(value).hex()


@contextmanager
def rpc_errors(action: str | None = None) -> Iterator[None]:
    """
    Re-raise node and transport failures as ChainClientError.

    Covers web3 errors, JSON-RPC error payloads and the provider's
    connection errors (resets, timeouts, dropped sessions). Errors that
    already are ChainClientError pass through unchanged.
    """
    try:
        yield
    except ChainClientError:
        raise
    except Exception as e:
        raise ChainClientError(f"{action} failed: {e}" if action else str(e)) from e


class EVMChainClient(BaseChainClient):
    """
    Chain client implementation for EVM-compatible blockchains.

    The client is not connected until initialize() is called.
    """

    def __init__(
        self,
        rpc_url: str,
        operator_private_key: str | None = None,
        network_name: str | None = None,
    ) -> None:
        """
        Initialize the EVM chain client.

        Args:
            rpc_url: JSON-RPC endpoint
            operator_private_key: Key used to sign transactions locally
            network_name: Display name used when asking a wallet to add this network
        """
        super().__init__(rpc_url)
        self._operator_private_key = operator_private_key
        self._network_name = network_name
        self._w3: AsyncWeb3 | None = None
        self._operator_account: LocalAccount | None = None
        self._chain_id: int | None = None

    def _get_w3(self) -> AsyncWeb3:
        """Return the Web3 instance, raising if not initialized."""
        if self._w3 is None:
            raise ChainClientError("Chain client not initialized. Call initialize() first.")
        return self._w3

    async def initialize(self) -> None:
        """
        Connect to the RPC endpoint and load the operator account.

        Raises:
            ChainClientError: If the endpoint is unreachable or the key is invalid
        """
        self._w3 = AsyncWeb3(AsyncHTTPProvider(self._rpc_url))

        try:
            self._chain_id = await self._w3.eth.chain_id
        except Exception as e:
            raise ChainClientError(f"Failed to connect to {self._rpc_url}: {e}") from e

        if self._operator_private_key:
            try:
                self._operator_account = Account.from_key(self._operator_private_key)
            except (ValueError, TypeError) as e:
                raise ChainClientError(f"Invalid operator private key: {e}") from e
            logger.info("operator_account_loaded", address=self._operator_account.address)

        self._initialized = True
        logger.info("chain_client_connected", rpc_url=self._rpc_url, chain_id=self._chain_id)

    async def close(self) -> None:
        if self._w3 is not None and hasattr(self._w3.provider, "disconnect"):
            await self._w3.provider.disconnect()
        self._w3 = None
        self._operator_account = None
        self._initialized = False

    # ==================== Transactions ====================

    async def send_transaction(
        self,
        to_address: str | None,
        data: bytes | None = None,
        value: int = 0,
        transaction_type: str = "contract_call",
    ) -> TransactionRecord:
        """
        Submit a transaction.

        Signs with the operator account when one is loaded, otherwise asks
        the node to send from its first managed account.
        """
        self._ensure_initialized()
        w3 = self._get_w3()

        with rpc_errors():
            if self._operator_account is not None:
                sender = self._operator_account.address
                tx_hash = await self._send_signed(w3, self._operator_account, to_address, data, value)
            else:
                accounts = await w3.eth.accounts
                if not accounts:
                    raise ChainClientError(
                        "No operator key configured and the node manages no accounts"
                    )
                sender = accounts[0]
                tx: dict[str, Any] = {"from": sender, "value": value}
                if to_address is not None:
                    tx["to"] = w3.to_checksum_address(to_address)
                if data:
                    tx["data"] = data
                tx_hash = await w3.eth.send_transaction(tx)

        record = TransactionRecord(
            tx_hash=to_hex(tx_hash),
            chain_id=self._chain_id,
            from_address=sender,
            to_address=to_address,
            status="pending",
            transaction_type=transaction_type,
        )
        logger.info(
            "transaction_submitted",
            tx_hash=record.tx_hash,
            to_address=to_address,
            transaction_type=transaction_type,
        )
        return record

    async def _send_signed(
        self,
        w3: AsyncWeb3,
        account: LocalAccount,
        to_address: str | None,
        data: bytes | None,
        value: int,
    ) -> Any:
        tx: dict[str, Any] = {
            "from": account.address,
            "value": value,
            "nonce": await w3.eth.get_transaction_count(account.address),
            "chainId": self._chain_id,
        }
        if to_address is not None:
            tx["to"] = w3.to_checksum_address(to_address)
        if data:
            tx["data"] = data

        tx["gas"] = await w3.eth.estimate_gas(tx)

        latest_block: Any = await w3.eth.get_block("latest")
        base_fee = latest_block.get("baseFeePerGas")
        if base_fee is not None:
            max_priority_fee: int = await w3.eth.max_priority_fee
            tx["maxFeePerGas"] = base_fee * 2 + max_priority_fee
            tx["maxPriorityFeePerGas"] = max_priority_fee
        else:
            # Pre-London chains
            tx["gasPrice"] = await w3.eth.gas_price

        signed_tx: Any = account.sign_transaction(tx)
        return await w3.eth.send_raw_transaction(signed_tx.raw_transaction)

    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout_seconds: int = 120,
    ) -> TransactionReceipt:
        """
        Poll for a receipt with exponential backoff.

        Raises:
            ReceiptTimeoutError: No receipt within timeout_seconds
            TransactionFailedError: The transaction reverted
        """
        self._ensure_initialized()
        w3 = self._get_w3()

        loop = asyncio.get_running_loop()
        start_time = loop.time()
        poll_interval = 1.0

        while True:
            if loop.time() - start_time > timeout_seconds:
                raise ReceiptTimeoutError(
                    f"Transaction {tx_hash} not confirmed within {timeout_seconds}s"
                )

            with rpc_errors():
                try:
                    raw: Any = await w3.eth.get_transaction_receipt(tx_hash)
                except TransactionNotFound:
                    raw = None

            if raw:
                receipt = self._convert_receipt(tx_hash, raw)
                if not receipt.succeeded:
                    raise TransactionFailedError(f"Transaction {tx_hash} reverted", receipt)
                logger.info(
                    "transaction_confirmed",
                    tx_hash=tx_hash,
                    block_number=receipt.block_number,
                    logs=len(receipt.logs),
                )
                return receipt

            await asyncio.sleep(poll_interval)
            poll_interval = min(poll_interval * 1.5, 10.0)

    @staticmethod
    def _convert_receipt(tx_hash: str, raw: Any) -> TransactionReceipt:
        logs = [
            EventLog(
                address=str(entry.get("address", "")),
                topics=[to_hex(topic) for topic in entry.get("topics", [])],
                data=to_hex(entry.get("data", b"")),
            )
            for entry in raw.get("logs", [])
        ]
        return TransactionReceipt(
            tx_hash=tx_hash,
            block_number=raw.get("blockNumber") or 0,
            status="success" if raw.get("status") == 1 else "failed",
            gas_used=raw.get("gasUsed") or 0,
            logs=logs,
            contract_address=raw.get("contractAddress"),
        )

    # ==================== Reads ====================

    async def call_contract(
        self,
        contract_address: str,
        function_name: str,
        args: list[Any],
        abi: list[dict[str, Any]],
    ) -> Any:
        """
        Call a read-only contract function.

        No transaction is sent and no gas is consumed.
        """
        self._ensure_initialized()
        w3 = self._get_w3()

        with rpc_errors(f"{function_name}()"):
            contract: Any = w3.eth.contract(
                address=w3.to_checksum_address(contract_address), abi=abi
            )
            func: Any = getattr(contract.functions, function_name)
            return await func(*args).call()

    async def get_code(self, address: str) -> bytes:
        self._ensure_initialized()
        w3 = self._get_w3()
        with rpc_errors("eth_getCode"):
            return bytes(await w3.eth.get_code(w3.to_checksum_address(address)))

    async def get_chain_id(self) -> int:
        self._ensure_initialized()
        with rpc_errors("eth_chainId"):
            self._chain_id = await self._get_w3().eth.chain_id
        return self._chain_id

    # ==================== Wallet Requests ====================

    async def _wallet_request(self, method: str, params: Any) -> Any:
        w3 = self._get_w3()
        with rpc_errors(method):
            response: Any = await w3.provider.make_request(method, params)
        error = response.get("error") if isinstance(response, dict) else None
        if error:
            code = error.get("code") if isinstance(error, dict) else None
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise WalletRequestError(message, code=code)
        return response.get("result") if isinstance(response, dict) else response

    async def request_network_switch(
        self,
        chain_id: int,
        network_name: str | None = None,
    ) -> None:
        """
        Ask the wallet to switch networks, adding the network if it is unknown.
        """
        self._ensure_initialized()
        params = [{"chainId": hex(chain_id)}]
        try:
            await self._wallet_request("wallet_switchEthereumChain", params)
        except WalletRequestError as e:
            if e.code != UNRECOGNIZED_CHAIN_ERROR_CODE:
                raise
            logger.info("wallet_network_unknown_adding", chain_id=chain_id)
            await self._wallet_request(
                "wallet_addEthereumChain",
                [
                    {
                        "chainId": hex(chain_id),
                        "chainName": network_name or self._network_name or f"Chain {chain_id}",
                        "rpcUrls": [self._rpc_url],
                        "nativeCurrency": {"name": "Ether", "symbol": "ETH", "decimals": 18},
                    }
                ],
            )
        self._chain_id = chain_id
        logger.info("wallet_network_switched", chain_id=chain_id)

    async def watch_asset(
        self,
        contract_address: str,
        token_id: str,
        token_uri: str | None = None,
    ) -> bool:
        self._ensure_initialized()
        options: dict[str, Any] = {"address": contract_address, "tokenId": token_id}
        if token_uri:
            options["tokenURI"] = token_uri
        result = await self._wallet_request(
            "wallet_watchAsset", {"type": "ERC721", "options": options}
        )
        return bool(result)
