"""
Artmint Chain Integration

Chain client abstraction, the web3.py implementation, and the NFT contract
surface the pipeline calls against.
"""

from ..config import MarketplaceConfig
from .base_client import (
    UNRECOGNIZED_CHAIN_ERROR_CODE,
    BaseChainClient,
    ChainClientError,
    ReceiptTimeoutError,
    TransactionFailedError,
    WalletRequestError,
)
from .contracts import (
    BASIC_NFT_ABI,
    EventTopics,
    encode_mint_call,
    find_minted_token_id,
    parse_transfer_token_id,
)
from .evm_client import EVMChainClient


async def create_chain_client(config: MarketplaceConfig) -> EVMChainClient:
    """Build and connect the chain client described by configuration."""
    client = EVMChainClient(
        rpc_url=config.rpc_url,
        operator_private_key=config.operator_private_key,
        network_name=config.network_name,
    )
    await client.initialize()
    return client


__all__ = [
    "UNRECOGNIZED_CHAIN_ERROR_CODE",
    "BaseChainClient",
    "ChainClientError",
    "ReceiptTimeoutError",
    "TransactionFailedError",
    "WalletRequestError",
    "BASIC_NFT_ABI",
    "EventTopics",
    "encode_mint_call",
    "find_minted_token_id",
    "parse_transfer_token_id",
    "EVMChainClient",
    "create_chain_client",
]
