"""
Ownership Scanner

Reconstructs the tokens a wallet owns by walking the contract's token ids
in ascending order: ownerOf() for each id, then tokenURI() and the metadata
document for the wallet's tokens.

This is an O(totalSupply) sequential scan, acceptable only while supply is
small. A Transfer-event index would be the scalable replacement.
"""

from typing import Any

import httpx
import structlog

from ..chains import BASIC_NFT_ABI, BaseChainClient, ChainClientError
from ..config import MarketplaceConfig, is_valid_contract_address
from ..exceptions import ChainReadError, FetchError, PreconditionError
from ..ipfs import resolve_gateway_url
from ..models import OwnedNFT
from ..monitoring import log_duration

logger = structlog.get_logger(__name__)


class OwnershipScanner:
    """Finds and fetches the NFTs held by a wallet."""

    def __init__(
        self,
        chain_client: BaseChainClient | None,
        config: MarketplaceConfig,
        http_client: httpx.AsyncClient | None = None,
        contract_address: str | None = None,
    ) -> None:
        self._chain = chain_client
        self._config = config
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=config.http_timeout_seconds, follow_redirects=True
        )
        self.contract_address = contract_address or config.contract_address

    async def close(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()

    async def _call(self, function_name: str, *args: Any) -> Any:
        chain, address = self._chain, self.contract_address
        if chain is None or address is None:
            raise PreconditionError("No chain client or contract address is configured")
        return await chain.call_contract(
            address, function_name, list(args), BASIC_NFT_ABI
        )

    async def scan_owned(self, wallet_address: str) -> list[OwnedNFT]:
        """
        List the wallet's tokens in ascending token id order.

        A token whose owner, URI or metadata lookup fails is logged and
        skipped; it never aborts the scan.

        Raises:
            PreconditionError: No valid contract address or chain client
            ChainReadError: totalSupply() could not be read
        """
        if not is_valid_contract_address(self.contract_address):
            raise PreconditionError(
                f"Contract address {self.contract_address!r} is missing or invalid"
            )
        if self._chain is None:
            raise PreconditionError("No chain client is configured")

        try:
            supply = int(await self._call("totalSupply"))
        except ChainClientError as e:
            raise ChainReadError(f"totalSupply() failed: {e}", str(e)) from e

        owner_key = wallet_address.lower()
        owned: list[OwnedNFT] = []
        with log_duration(logger, "ownership_scan", wallet=wallet_address, supply=supply):
            for token_id in range(supply):
                try:
                    nft = await self._load_if_owned(token_id, owner_key)
                except (ChainClientError, httpx.HTTPError, ValueError) as e:
                    logger.warning("owned_token_skipped", token_id=token_id, error=str(e))
                    continue
                if nft is not None:
                    owned.append(nft)

        logger.info("ownership_scan_result", wallet=wallet_address, owned=len(owned))
        return owned

    async def _load_if_owned(self, token_id: int, owner_key: str) -> OwnedNFT | None:
        owner = await self._call("ownerOf", token_id)
        if str(owner).lower() != owner_key:
            return None

        token_uri = str(await self._call("tokenURI", token_id))
        metadata = await self.fetch_metadata(token_uri)
        image = metadata.get("image")
        return OwnedNFT(
            token_id=str(token_id),
            token_uri=token_uri,
            metadata=metadata,
            image_url=resolve_gateway_url(image, self._config.ipfs_gateway)
            if isinstance(image, str) and image
            else "",
        )

    async def fetch_metadata(self, token_uri: str) -> dict[str, Any]:
        """
        Fetch and parse the metadata document a token URI points at.

        Raises:
            httpx.HTTPError: Transport failure or error status
            ValueError: The body is not a JSON object
        """
        url = resolve_gateway_url(token_uri, self._config.ipfs_gateway)
        response = await self._http.get(url)
        response.raise_for_status()
        document = response.json()
        if not isinstance(document, dict):
            raise ValueError(f"Metadata at {url} is not a JSON object")
        return document

    async def download_image(self, nft: OwnedNFT) -> tuple[bytes, str]:
        """
        Fetch a token's image.

        Returns:
            The image bytes and the proposed file name

        Raises:
            FetchError: No image reference, or the download failed
        """
        if not nft.image_url:
            raise FetchError(f"Token {nft.token_id} has no image")
        try:
            response = await self._http.get(nft.image_url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchError(f"Image download failed: {e}", str(e)) from e
        logger.info("image_downloaded", token_id=nft.token_id, size=len(response.content))
        return response.content, nft.download_filename
