"""
Chain Client Base

This module provides the abstract base class for the chain interactions the
asset pipeline consumes: submitting transactions, waiting for receipts,
read-only contract calls, and the wallet requests used to switch networks
and register minted tokens.

Implementations report failures by raising ChainClientError (or a subclass);
the pipeline services translate these into the artmint error taxonomy and
keep the original message intact.
"""

from abc import ABC, abstractmethod
from typing import Any

from ..models import TransactionReceipt, TransactionRecord


class ChainClientError(Exception):
    """Base exception for chain client errors."""
    pass


class TransactionFailedError(ChainClientError):
    """Raised when a transaction is mined but reverted."""

    def __init__(self, message: str, receipt: TransactionReceipt | None = None) -> None:
        super().__init__(message)
        self.receipt = receipt


class ReceiptTimeoutError(ChainClientError):
    """Raised when no receipt arrives within the wait window."""
    pass


class WalletRequestError(ChainClientError):
    """
    Raised when a wallet RPC request is refused.

    Carries the EIP-1193 error code where the provider returned one
    (4001 user rejected, 4902 unrecognized chain).
    """

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


UNRECOGNIZED_CHAIN_ERROR_CODE = 4902


class BaseChainClient(ABC):
    """
    Abstract base class for chain client implementations.

    The client handles:
    - Transaction submission and receipt monitoring
    - Read-only contract calls and code lookups
    - Network identification and wallet switch requests
    - Asset registration with the connected wallet
    """

    def __init__(self, rpc_url: str) -> None:
        """
        Initialize the chain client.

        Args:
            rpc_url: JSON-RPC endpoint of the chain or wallet provider
        """
        self._rpc_url = rpc_url
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """Establish the RPC connection and verify the chain is reachable."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the connection and release resources."""
        pass

    # ==================== Transactions ====================

    @abstractmethod
    async def send_transaction(
        self,
        to_address: str | None,
        data: bytes | None = None,
        value: int = 0,
        transaction_type: str = "contract_call",
    ) -> TransactionRecord:
        """
        Submit a transaction.

        Args:
            to_address: Recipient; None creates a contract from data
            data: Calldata, or init code for contract creation
            value: Native currency to send, in wei
            transaction_type: Label recorded on the returned record

        Returns:
            TransactionRecord with the submitted transaction hash
        """
        pass

    @abstractmethod
    async def wait_for_transaction_receipt(
        self,
        tx_hash: str,
        timeout_seconds: int = 120,
    ) -> TransactionReceipt:
        """
        Wait until a transaction is mined.

        Args:
            tx_hash: Hash returned by send_transaction
            timeout_seconds: Maximum time to wait

        Returns:
            The receipt, including emitted logs and any created contract address

        Raises:
            ReceiptTimeoutError: No receipt within timeout_seconds
            TransactionFailedError: The transaction reverted
        """
        pass

    # ==================== Reads ====================

    @abstractmethod
    async def call_contract(
        self,
        contract_address: str,
        function_name: str,
        args: list[Any],
        abi: list[dict[str, Any]],
    ) -> Any:
        """Call a read-only contract function."""
        pass

    @abstractmethod
    async def get_code(self, address: str) -> bytes:
        """Get the deployed bytecode at an address (empty for wallets)."""
        pass

    @abstractmethod
    async def get_chain_id(self) -> int:
        """Get the id of the network the client is connected to."""
        pass

    # ==================== Wallet Requests ====================

    @abstractmethod
    async def request_network_switch(
        self,
        chain_id: int,
        network_name: str | None = None,
    ) -> None:
        """
        Ask the wallet to switch to another network.

        Implementations add the network first when the wallet does not know
        it (error code 4902).
        """
        pass

    @abstractmethod
    async def watch_asset(
        self,
        contract_address: str,
        token_id: str,
        token_uri: str | None = None,
    ) -> bool:
        """
        Ask the wallet to track an ERC-721 token (EIP-747).

        Returns:
            True if the wallet accepted the token
        """
        pass

    # ==================== State ====================

    @property
    def is_initialized(self) -> bool:
        """Check if the client has been initialized."""
        return self._initialized

    def _ensure_initialized(self) -> None:
        """Raise if the client has not been initialized."""
        if not self._initialized:
            raise ChainClientError("Chain client not initialized. Call initialize() first.")
