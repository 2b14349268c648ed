"""
Artmint - Digital Asset Listing and NFT Minting Pipeline

Lists digital assets for sale, pins them and their metadata to IPFS, mints
pinned listings as ERC-721 tokens and reconstructs the tokens a wallet owns.
"""

__version__ = "0.1.0"

from artmint.config import MarketplaceConfig, get_config

__all__ = ["MarketplaceConfig", "get_config", "__version__"]
