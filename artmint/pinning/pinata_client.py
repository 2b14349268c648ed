"""
Pinata Pinning Client

Uploads assets and metadata documents through the Pinata pinning API.
Authentication is either a JWT (Authorization: Bearer) or the legacy
API key / secret header pair; the JWT wins when both are configured.
"""

import json
from typing import Any

import httpx
import structlog

from ..config import DEFAULT_IPFS_GATEWAY
from .base_client import BasePinningClient, PinningClientError, PinResult

logger = structlog.get_logger(__name__)

PIN_FILE_PATH = "/pinning/pinFileToIPFS"
PIN_JSON_PATH = "/pinning/pinJSONToIPFS"


class PinataClient(BasePinningClient):
    """Pinning client for the Pinata API."""

    name = "pinata"

    def __init__(
        self,
        jwt: str | None = None,
        api_key: str | None = None,
        secret_api_key: str | None = None,
        api_url: str = "https://api.pinata.cloud",
        gateway: str = DEFAULT_IPFS_GATEWAY,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the Pinata client.

        Args:
            jwt: Pinata JWT
            api_key: Legacy API key, used with secret_api_key when no JWT is given
            secret_api_key: Legacy API secret
            api_url: Base URL of the Pinata API
            gateway: Gateway used to build fetch URLs
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        super().__init__(gateway)
        if not jwt and not (api_key and secret_api_key):
            raise ValueError("Pinata requires a JWT or an API key and secret")
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=self._auth_headers(jwt, api_key, secret_api_key),
            timeout=timeout,
            transport=transport,
        )

    @staticmethod
    def _auth_headers(
        jwt: str | None, api_key: str | None, secret_api_key: str | None
    ) -> dict[str, str]:
        if jwt:
            return {"Authorization": f"Bearer {jwt}"}
        return {
            "pinata_api_key": api_key or "",
            "pinata_secret_api_key": secret_api_key or "",
        }

    def _parse_response(self, response: httpx.Response, operation: str) -> PinResult:
        if response.status_code >= 400:
            detail = response.text[:500]
            logger.warning(
                "pinata_request_failed",
                operation=operation,
                status_code=response.status_code,
                detail=detail,
            )
            raise PinningClientError(
                f"Pinata {operation} failed with HTTP {response.status_code}: {detail}"
            )
        try:
            cid = response.json()["IpfsHash"]
        except (ValueError, KeyError, TypeError) as e:
            raise PinningClientError(f"Pinata {operation} returned no IpfsHash: {e}") from e
        return self._result(cid)

    async def upload_bytes(
        self,
        payload: bytes,
        filename: str,
        content_type: str = "application/octet-stream",
    ) -> PinResult:
        response = await self._client.post(
            PIN_FILE_PATH,
            files={"file": (filename, payload, content_type)},
            data={"pinataMetadata": json.dumps({"name": filename})},
        )
        result = self._parse_response(response, "pinFileToIPFS")
        logger.info("pinata_file_pinned", cid=result.cid, filename=filename, size=len(payload))
        return result

    async def upload_json(self, document: dict[str, Any], name: str) -> PinResult:
        response = await self._client.post(
            PIN_JSON_PATH,
            json={"pinataContent": document, "pinataMetadata": {"name": name}},
        )
        result = self._parse_response(response, "pinJSONToIPFS")
        logger.info("pinata_json_pinned", cid=result.cid, name=name)
        return result

    async def close(self) -> None:
        await self._client.aclose()
