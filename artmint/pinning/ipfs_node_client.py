"""
IPFS Node Pinning Client

Uploads through the HTTP API of a Kubo-compatible IPFS node
(POST /api/v0/add?pin=true). Used when no Pinata credentials exist.
"""

import json
from typing import Any

import httpx
import structlog

from ..config import DEFAULT_IPFS_GATEWAY
from .base_client import BasePinningClient, PinningClientError, PinResult

logger = structlog.get_logger(__name__)

ADD_PATH = "/api/v0/add"


class IPFSNodeClient(BasePinningClient):
    """Pinning client for a self-hosted or public IPFS node API."""

    name = "ipfs_node"

    def __init__(
        self,
        api_url: str,
        gateway: str = DEFAULT_IPFS_GATEWAY,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(gateway)
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"), timeout=timeout, transport=transport
        )

    async def _add(self, filename: str, payload: bytes, content_type: str) -> PinResult:
        response = await self._client.post(
            ADD_PATH,
            params={"pin": "true", "cid-version": "1"},
            files={"file": (filename, payload, content_type)},
        )
        if response.status_code >= 400:
            raise PinningClientError(
                f"IPFS add failed with HTTP {response.status_code}: {response.text[:500]}"
            )
        try:
            cid = response.json()["Hash"]
        except (ValueError, KeyError, TypeError) as e:
            raise PinningClientError(f"IPFS add returned no Hash: {e}") from e
        return self._result(cid)

    async def upload_bytes(
        self,
        payload: bytes,
        filename: str,
        content_type: str = "application/octet-stream",
    ) -> PinResult:
        result = await self._add(filename, payload, content_type)
        logger.info("ipfs_file_added", cid=result.cid, filename=filename, size=len(payload))
        return result

    async def upload_json(self, document: dict[str, Any], name: str) -> PinResult:
        payload = json.dumps(document, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        result = await self._add(f"{name}.json", payload, "application/json")
        logger.info("ipfs_json_added", cid=result.cid, name=name)
        return result

    async def close(self) -> None:
        await self._client.aclose()
