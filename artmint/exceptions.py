"""
Artmint Error Taxonomy

Every failure the asset pipeline reports to its callers derives from
ArtmintError. Failures coming from external collaborators (pinning service,
wallet, chain RPC) are wrapped so the original message survives unchanged
in both str(error) and the cause_message attribute.
"""


class ArtmintError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(self, message: str, cause_message: str | None = None) -> None:
        super().__init__(message)
        self.cause_message = cause_message if cause_message is not None else message


class ValidationError(ArtmintError, ValueError):
    """Raised for bad user input before any external call is made."""
    pass


class PinningError(ArtmintError):
    """Raised when an upload to the content pinning service fails."""
    pass


class ChainSubmissionError(ArtmintError):
    """Raised when the wallet or RPC rejects a transaction submission."""
    pass


class ChainConfirmationError(ArtmintError):
    """
    Raised when waiting for a submitted transaction fails.

    The transaction's on-chain fate is independent of this report; the
    transaction hash is kept so the caller can look it up later.
    """

    def __init__(
        self,
        message: str,
        tx_hash: str | None = None,
        cause_message: str | None = None,
    ) -> None:
        super().__init__(message, cause_message)
        self.tx_hash = tx_hash


class ParseError(ArtmintError):
    """Raised when an event log cannot be decoded."""
    pass


class PreconditionError(ArtmintError):
    """Raised when an operation's preconditions do not hold."""
    pass


class AlreadyInProgressError(ArtmintError):
    """Raised when a mint is requested for a listing that is already minting."""
    pass


class ListingNotFoundError(ArtmintError, LookupError):
    """Raised when a listing id is not present in the store."""
    pass


class ChainReadError(ArtmintError):
    """Raised when a read-only contract call needed by an operation fails."""
    pass


class FetchError(ArtmintError):
    """Raised when a metadata document or image cannot be fetched."""
    pass
