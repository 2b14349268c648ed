"""
Content Pinning Client Base

Abstract interface for uploading bytes and JSON documents to a
content-addressed store. Implementations (Pinata, a plain IPFS node) return
the content identifier of what they stored; fetch URLs are always derived
from that identifier through the configured gateway.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from ..config import DEFAULT_IPFS_GATEWAY
from ..ipfs import gateway_url
from ..models import ContentRef


class PinningClientError(Exception):
    """Base exception for pinning transport errors."""
    pass


@dataclass(frozen=True)
class RawAsset:
    """Bytes supplied by the user when listing."""

    payload: bytes
    filename: str = "asset"
    content_type: str = "application/octet-stream"

    def __post_init__(self) -> None:
        if not self.payload:
            raise ValueError("Asset payload is empty")


@dataclass(frozen=True)
class PinResult:
    """Outcome of a successful pin."""

    cid: str
    url: str

    def to_content_ref(self) -> ContentRef:
        return ContentRef(cid=self.cid, url=self.url)


class BasePinningClient(ABC):
    """
    Abstract base class for pinning service clients.

    Implementations raise PinningClientError (or an httpx error) on any
    transport or protocol failure; the pipeline wraps these into
    artmint.exceptions.PinningError.
    """

    name: str = "pinning"

    def __init__(self, gateway: str = DEFAULT_IPFS_GATEWAY) -> None:
        self.gateway = gateway

    def _result(self, cid: str) -> PinResult:
        return PinResult(cid=cid, url=gateway_url(cid, self.gateway))

    @abstractmethod
    async def upload_bytes(
        self,
        payload: bytes,
        filename: str,
        content_type: str = "application/octet-stream",
    ) -> PinResult:
        """
        Pin raw bytes.

        Args:
            payload: Content to store
            filename: Name recorded by the service
            content_type: MIME type of the payload

        Returns:
            The CID of the stored content and its gateway URL
        """
        pass

    @abstractmethod
    async def upload_json(self, document: dict[str, Any], name: str) -> PinResult:
        """
        Pin a JSON document.

        Args:
            document: JSON-serializable mapping, pinned with key order preserved
            name: Name recorded by the service

        Returns:
            The CID of the stored document and its gateway URL
        """
        pass

    async def close(self) -> None:
        """Release HTTP resources."""
        return None
