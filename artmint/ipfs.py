"""
IPFS Reference Handling

Content identifiers reach the pipeline in three shapes: a bare CID
("bafy..."), a scheme URI ("ipfs://bafy...") or a gateway URL
("https://gateway.pinata.cloud/ipfs/bafy..."). The deployed contract
prefixes token URIs with its own gateway base, so mint calls must carry the
bare CID; reads go the other way and turn any of the three shapes into a
fetchable gateway URL.
"""

import re

from .config import DEFAULT_IPFS_GATEWAY

IPFS_SCHEME = "ipfs://"

_GATEWAY_PATH = re.compile(r"ipfs/([^/?]+)")


def normalize_cid(reference: str) -> str:
    """
    Reduce any accepted reference form to the bare content identifier.

    Idempotent: normalize_cid(normalize_cid(x)) == normalize_cid(x).
    HTTP URLs without an /ipfs/<cid> segment and anything else unrecognised
    are returned unchanged.
    """
    if reference.startswith("http"):
        match = _GATEWAY_PATH.search(reference)
        if match:
            return match.group(1)
    if reference.startswith(IPFS_SCHEME):
        return reference[len(IPFS_SCHEME):]
    return reference


def to_ipfs_uri(cid: str) -> str:
    """Build the scheme URI embedded in metadata documents."""
    return f"{IPFS_SCHEME}{cid}"


def gateway_url(cid: str, gateway: str = DEFAULT_IPFS_GATEWAY) -> str:
    """Build the gateway URL for a bare CID."""
    base = gateway if gateway.endswith("/") else f"{gateway}/"
    return f"{base}{cid}"


def resolve_gateway_url(uri: str, gateway: str = DEFAULT_IPFS_GATEWAY) -> str:
    """
    Turn a token URI or metadata image reference into a fetchable URL.

    ipfs:// URIs and bare CIDs are mapped onto the gateway; http(s) URLs are
    already fetchable and pass through.
    """
    if uri.startswith(IPFS_SCHEME):
        return gateway_url(uri[len(IPFS_SCHEME):], gateway)
    if uri.startswith("http"):
        return uri
    return gateway_url(uri, gateway)
