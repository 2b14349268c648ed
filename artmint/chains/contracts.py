"""
NFT Contract ABI and Event Decoding

ABI of the marketplace's ERC-721 contract and helpers to encode mint calls
and decode the Transfer event a successful mint emits.

The contract prefixes every token URI with its own gateway base
(https://gateway.pinata.cloud/ipfs/), so mint() must receive the bare
metadata CID.
"""

from typing import Any

from web3 import Web3

from ..exceptions import ParseError
from ..models import EventLog, TransactionReceipt

# ═══════════════════════════════════════════════════════════════════════════════
# ABI
# ═══════════════════════════════════════════════════════════════════════════════

BASIC_NFT_ABI: list[dict[str, Any]] = [
    {
        "inputs": [{"name": "tokenURI", "type": "string"}],
        "name": "mint",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "nonpayable",
        "type": "function",
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "tokenURI",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "ownerOf",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": True, "name": "tokenId", "type": "uint256"},
        ],
        "name": "Transfer",
        "type": "event",
    },
]


class EventTopics:
    """
    Keccak256 hashes of event signatures for log parsing.

    Transfer(address,address,uint256) -> 0xddf252...
    """

    TRANSFER = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


MINT_SELECTOR = bytes(Web3.keccak(text="mint(string)")[:4])

_CODEC = Web3().codec


def encode_mint_call(token_uri: str) -> bytes:
    """Encode calldata for mint(string)."""
    return MINT_SELECTOR + _CODEC.encode(["string"], [token_uri])


# ═══════════════════════════════════════════════════════════════════════════════
# EVENT DECODING
# ═══════════════════════════════════════════════════════════════════════════════


def is_transfer_log(log: EventLog) -> bool:
    return bool(log.topics) and log.topics[0].lower() == EventTopics.TRANSFER


def parse_transfer_token_id(log: EventLog) -> str:
    """
    Decode the token id carried in the third indexed topic of a Transfer log.

    Raises:
        ParseError: If the log is not an ERC-721 Transfer or the topic is not hex
    """
    if not is_transfer_log(log):
        raise ParseError("Log is not a Transfer event")
    # ERC-20 Transfer carries the amount in data; only ERC-721 indexes the id
    if len(log.topics) < 4:
        raise ParseError(f"Transfer log has {len(log.topics)} topics, expected 4")
    try:
        return str(int(log.topics[3], 16))
    except (TypeError, ValueError) as e:
        raise ParseError(f"Malformed token id topic {log.topics[3]!r}") from e


def find_minted_token_id(receipt: TransactionReceipt) -> str | None:
    """
    Token id of the first decodable Transfer event in a receipt.

    Returns None when the receipt has no decodable Transfer log.
    """
    for log in receipt.logs:
        if not is_transfer_log(log):
            continue
        try:
            return parse_transfer_token_id(log)
        except ParseError:
            continue
    return None
