"""
Wallet API Routes

Tokens owned by a wallet and their images.
"""

from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Response
from pydantic import BaseModel

from artmint.api.dependencies import ScannerDep
from artmint.config import is_valid_contract_address
from artmint.exceptions import ValidationError
from artmint.models import OwnedNFT

router = APIRouter(prefix="/wallets")


class OwnedNFTResponse(BaseModel):
    token_id: str
    token_uri: str
    name: str | None
    image_url: str
    metadata: dict[str, Any]

    @classmethod
    def from_nft(cls, nft: OwnedNFT) -> "OwnedNFTResponse":
        return cls(
            token_id=nft.token_id,
            token_uri=nft.token_uri,
            name=nft.name,
            image_url=nft.image_url,
            metadata=nft.metadata,
        )


def _check_address(address: str) -> None:
    if not is_valid_contract_address(address):
        raise ValidationError(f"Invalid wallet address: {address!r}")


@router.get("/{address}/nfts", response_model=list[OwnedNFTResponse])
async def list_owned_nfts(address: str, scanner: ScannerDep) -> list[OwnedNFTResponse]:
    """Tokens owned by the wallet, in ascending token id order."""
    _check_address(address)
    return [OwnedNFTResponse.from_nft(nft) for nft in await scanner.scan_owned(address)]


@router.get("/{address}/nfts/{token_id}/image")
async def download_nft_image(address: str, token_id: str, scanner: ScannerDep) -> Response:
    """Download the image of one of the wallet's tokens."""
    _check_address(address)
    for nft in await scanner.scan_owned(address):
        if nft.token_id == token_id:
            content, filename = await scanner.download_image(nft)
            return Response(
                content=content,
                media_type="image/png",
                headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"},
            )
    raise HTTPException(status_code=404, detail=f"Token {token_id} is not owned by {address}")
