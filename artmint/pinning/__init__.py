"""
Artmint Content Pinning

Clients for content-addressed uploads. The pinning capability is chosen
once from configuration: a client when one can be built, None when listings
must be stored inline.
"""

import structlog

from ..config import MarketplaceConfig
from .base_client import BasePinningClient, PinningClientError, PinResult, RawAsset
from .ipfs_node_client import IPFSNodeClient
from .pinata_client import PinataClient

logger = structlog.get_logger(__name__)


def create_pinning_client(config: MarketplaceConfig) -> BasePinningClient | None:
    """
    Build the pinning client selected by configuration.

    Precedence: Pinata JWT, Pinata key/secret, IPFS node API. Returns None
    when nothing is configured.
    """
    if config.has_pinata_credentials:
        logger.info("pinning_client_selected", client="pinata")
        return PinataClient(
            jwt=config.pinata_jwt,
            api_key=config.pinata_api_key,
            secret_api_key=config.pinata_secret_api_key,
            api_url=config.pinata_api_url,
            gateway=config.ipfs_gateway,
            timeout=config.http_timeout_seconds,
        )
    if config.ipfs_api_url:
        logger.info("pinning_client_selected", client="ipfs_node", api_url=config.ipfs_api_url)
        return IPFSNodeClient(
            api_url=config.ipfs_api_url,
            gateway=config.ipfs_gateway,
            timeout=config.http_timeout_seconds,
        )
    logger.info("pinning_client_selected", client=None)
    return None


__all__ = [
    "BasePinningClient",
    "PinningClientError",
    "PinResult",
    "RawAsset",
    "PinataClient",
    "IPFSNodeClient",
    "create_pinning_client",
]
