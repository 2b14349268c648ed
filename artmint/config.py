"""
Artmint Configuration

This module defines all configuration settings for the asset pipeline:
contract location, chain RPC, pinning credentials, listing persistence and
logging.

Configuration is loaded from environment variables prefixed with ARTMINT_
(or a .env file) with sensible defaults for a local development chain.

SECURITY NOTE: Pinning credentials and operator keys should come from a
secrets manager in production rather than plain environment variables.
"""

import logging
import os
import re
import warnings
from enum import Enum

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


CONTRACT_ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")

DEFAULT_IPFS_GATEWAY = "https://gateway.pinata.cloud/ipfs/"


class SecurityWarning(UserWarning):
    """Warning for security-related issues (insecure configurations, etc.)."""

    pass


class StorageBackendType(str, Enum):
    """Where the listing set is persisted."""

    FILE = "file"
    REDIS = "redis"


def is_valid_contract_address(address: str | None) -> bool:
    """Check that an address is a 0x-prefixed, 20-byte hex string."""
    if not address:
        return False
    return CONTRACT_ADDRESS_PATTERN.match(address) is not None


class MarketplaceConfig(BaseSettings):
    """
    Main configuration class for the asset pipeline.

    All settings can be overridden via environment variables prefixed with
    ARTMINT_. For example, ARTMINT_CONTRACT_ADDRESS sets contract_address.
    """

    # Contract / Chain Configuration
    contract_address: str | None = Field(
        default=None,
        description="Deployed NFT contract address. Minting and scanning are "
        "unavailable while this is absent or malformed.",
    )
    rpc_url: str = Field(
        default="http://127.0.0.1:8545", description="JSON-RPC endpoint of the chain"
    )
    expected_chain_id: int | None = Field(
        default=None, description="Chain id the contract is deployed on"
    )
    network_name: str | None = Field(
        default=None, description="Display name used when asking a wallet to add the network"
    )
    auto_switch_network: bool = Field(
        default=False,
        description="Request a network switch instead of failing when the wallet is on another chain",
    )
    operator_private_key: str | None = Field(
        default=None,
        description="Private key used to sign transactions locally. When absent the "
        "node's managed account sends transactions.",
    )
    receipt_timeout_seconds: int = Field(
        default=120, ge=1, description="How long the chain client waits for a receipt"
    )

    # Pinning Configuration
    pinata_jwt: str | None = Field(default=None, description="Pinata JWT")
    pinata_api_key: str | None = Field(default=None, description="Pinata API key")
    pinata_secret_api_key: str | None = Field(default=None, description="Pinata API secret")
    pinata_api_url: str = Field(
        default="https://api.pinata.cloud", description="Base URL of the Pinata API"
    )
    ipfs_api_url: str | None = Field(
        default=None,
        description="IPFS node HTTP API (e.g. http://127.0.0.1:5001) used when "
        "no Pinata credentials are configured",
    )
    ipfs_gateway: str = Field(
        default=DEFAULT_IPFS_GATEWAY, description="Gateway used to build fetch URLs from CIDs"
    )
    http_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for pinning uploads and metadata fetches"
    )

    # Listing Persistence
    storage_backend: StorageBackendType = Field(
        default=StorageBackendType.FILE, description="Listing persistence backend"
    )
    storage_path: str = Field(
        default=".artmint/storage.json", description="File used by the file backend"
    )
    redis_url: str | None = Field(default=None, description="Redis URL for the redis backend")
    redis_channel: str = Field(
        default="artmint:storage", description="Redis pub/sub channel for change notifications"
    )
    resync_interval_seconds: float = Field(
        default=2.0, gt=0, description="Interval of the best-effort store re-read"
    )
    persist_mint_records: bool = Field(
        default=True, description="Keep mint records (with tx hash) across restarts"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_json: bool = Field(default=False, description="Render logs as JSON")

    @field_validator("ipfs_gateway")
    @classmethod
    def normalize_gateway(cls, v: str) -> str:
        """Gateways are joined with a CID, so they must end with an /ipfs/ path."""
        gateway = v if v.endswith("/") else f"{v}/"
        if not gateway.endswith("/ipfs/"):
            raise ValueError(
                f"IPFS gateway '{v}' must be a path gateway ending in /ipfs/, "
                "e.g. https://gateway.pinata.cloud/ipfs/"
            )
        return gateway

    @field_validator("contract_address")
    @classmethod
    def warn_malformed_contract(cls, v: str | None) -> str | None:
        """Warn about a malformed contract address but keep it; callers check it lazily."""
        if v and not is_valid_contract_address(v):
            warnings.warn(
                f"ARTMINT_CONTRACT_ADDRESS '{v}' is not a valid contract address. "
                "Minting and ownership scanning will be unavailable.",
                stacklevel=2,
            )
        return v

    @field_validator("operator_private_key", "pinata_jwt", "pinata_secret_api_key")
    @classmethod
    def validate_secret_source(cls, v: str | None, info: ValidationInfo) -> str | None:
        """Warn about secrets loaded from the environment in production."""
        if v is not None:
            environment = os.environ.get("ARTMINT_ENVIRONMENT", "development")
            if environment == "production":
                warnings.warn(
                    f"Secret '{info.field_name}' loaded from environment variable "
                    "in production. Use a secrets manager.",
                    SecurityWarning,
                    stacklevel=2,
                )
        return v

    @property
    def has_valid_contract(self) -> bool:
        """Whether minting and scanning can run against the configured contract."""
        return is_valid_contract_address(self.contract_address)

    @property
    def has_pinata_credentials(self) -> bool:
        """Whether Pinata uploads are possible."""
        return bool(self.pinata_jwt) or bool(self.pinata_api_key and self.pinata_secret_api_key)

    model_config = {
        "env_prefix": "ARTMINT_",
        "env_file": ".env",
        "extra": "ignore",
    }


# Singleton instance for global access
_config: MarketplaceConfig | None = None


def get_config() -> MarketplaceConfig:
    """
    Get the global configuration instance.

    This function implements a singleton pattern to ensure consistent
    configuration across the application.
    """
    global _config
    if _config is None:
        _config = MarketplaceConfig()
    return _config


def configure(config: MarketplaceConfig) -> None:
    """
    Set a custom configuration instance.

    Useful for testing or when configuration needs to be loaded
    from a non-standard source.
    """
    global _config
    _config = config
