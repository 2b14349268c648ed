"""
Minting Orchestrator

Drives one mint attempt per listing through

    IDLE -> SUBMITTED -> CONFIRMING -> CONFIRMED | FAILED

Every precondition (metadata reference, contract address, network) is
checked before any transaction is submitted. Once a transaction is
submitted it cannot be retracted; the orchestrator only observes its
outcome. A mined mint whose Transfer event cannot be decoded is still
CONFIRMED, just without a token id (a degraded success).

Usage:
    orchestrator = MintingOrchestrator(store, chain_client, config)
    record = await orchestrator.mint(listing_id)
    if record.degraded:
        ...  # minted, token id unknown
"""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from ..chains import (
    BaseChainClient,
    ChainClientError,
    encode_mint_call,
    find_minted_token_id,
)
from ..config import MarketplaceConfig, is_valid_contract_address
from ..exceptions import (
    AlreadyInProgressError,
    ChainConfirmationError,
    ChainSubmissionError,
    ListingNotFoundError,
    PreconditionError,
)
from ..ipfs import gateway_url, normalize_cid
from ..models import MintRecord, MintStatus
from ..storage import ListingStore, MintRecordStore

logger = structlog.get_logger(__name__)

MintCallback = Callable[[MintRecord], Awaitable[Any] | Any]


class MintingOrchestrator:
    """
    Per-listing mint state machine.

    At most one attempt per listing is in flight; a finished attempt
    (CONFIRMED or FAILED) does not block a new one.
    """

    def __init__(
        self,
        store: ListingStore,
        chain_client: BaseChainClient | None,
        config: MarketplaceConfig,
        records: MintRecordStore | None = None,
        contract_address: str | None = None,
    ) -> None:
        self._store = store
        self._chain = chain_client
        self._config = config
        self._records = records or MintRecordStore()
        self.contract_address = contract_address or config.contract_address
        self._in_flight: set[str] = set()
        self._subscribers: list[MintCallback] = []

    # ==================== Observation ====================

    def subscribe(self, callback: MintCallback) -> Callable[[], None]:
        """
        Receive every mint record transition.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def _publish(self, record: MintRecord) -> MintRecord:
        await self._records.put(record)
        for callback in list(self._subscribers):
            try:
                result = callback(record)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(
                    "mint_callback_failed",
                    listing_id=record.listing_id,
                    status=record.status.value,
                    error=str(e),
                )
        return record

    async def status(self, listing_id: str) -> MintStatus:
        """Current state for a listing; IDLE when it was never minted."""
        record = await self._records.get(listing_id)
        return record.status if record is not None else MintStatus.IDLE

    async def get_record(self, listing_id: str) -> MintRecord | None:
        return await self._records.get(listing_id)

    def is_in_progress(self, listing_id: str) -> bool:
        return listing_id in self._in_flight

    # ==================== Preconditions ====================

    def _require_contract(self) -> str:
        address = self.contract_address
        if address is None or not is_valid_contract_address(address):
            raise PreconditionError(f"Contract address {address!r} is missing or invalid")
        return address

    def _require_chain(self) -> BaseChainClient:
        if self._chain is None:
            raise PreconditionError("No chain client is configured")
        return self._chain

    async def ensure_network(self, switch: bool | None = None) -> None:
        """
        Make sure the chain client is on the expected network.

        Args:
            switch: Request a network switch on mismatch; defaults to
                the auto_switch_network setting

        Raises:
            PreconditionError: Wrong network and no (successful) switch
        """
        expected = self._config.expected_chain_id
        if expected is None:
            return
        chain = self._require_chain()
        try:
            current = await chain.get_chain_id()
        except ChainClientError as e:
            raise PreconditionError(f"Cannot determine current network: {e}", str(e)) from e
        if current == expected:
            return

        if switch is None:
            switch = self._config.auto_switch_network
        if not switch:
            raise PreconditionError(f"Wrong network: connected to {current}, expected {expected}")

        logger.info("network_switch_requested", current=current, expected=expected)
        try:
            await chain.request_network_switch(expected, self._config.network_name)
        except ChainClientError as e:
            raise PreconditionError(f"Network switch to {expected} failed: {e}", str(e)) from e

    # ==================== Minting ====================

    async def mint(self, listing_id: str) -> MintRecord:
        """
        Mint the listing's metadata as a token and wait for confirmation.

        Returns:
            The CONFIRMED record; token_id is None for a degraded success

        Raises:
            AlreadyInProgressError: An attempt for this listing is in flight
            ListingNotFoundError: Unknown listing id
            PreconditionError: Missing metadata, invalid contract or wrong network
            ChainSubmissionError: The transaction was rejected
            ChainConfirmationError: Waiting for the receipt failed
        """
        if listing_id in self._in_flight:
            raise AlreadyInProgressError(f"Listing {listing_id} is already being minted")
        self._in_flight.add(listing_id)
        try:
            # An attempt submitted by an earlier run or another context
            previous = await self._records.get(listing_id)
            if previous is not None and previous.is_active and previous.transaction_hash:
                raise AlreadyInProgressError(
                    f"Listing {listing_id} has a {previous.status.value} mint "
                    f"(tx {previous.transaction_hash}) awaiting confirmation"
                )
            token_uri = await self._check_preconditions(listing_id)
            record = await self._submit(listing_id, token_uri)
            return await self._confirm(record)
        finally:
            self._in_flight.discard(listing_id)

    async def _check_preconditions(self, listing_id: str) -> str:
        listing = await self._store.get(listing_id)
        if listing is None:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        if listing.metadata_ref is None or not listing.metadata_ref.cid:
            raise PreconditionError(f"Listing {listing_id} has no pinned metadata")
        self._require_contract()
        self._require_chain()
        await self.ensure_network()
        return normalize_cid(listing.metadata_ref.cid)

    async def _submit(self, listing_id: str, token_uri: str) -> MintRecord:
        chain = self._require_chain()
        contract = self._require_contract()
        try:
            tx = await chain.send_transaction(
                contract, encode_mint_call(token_uri), transaction_type="mint"
            )
        except ChainClientError as e:
            failed = MintRecord(
                listing_id=listing_id,
                token_uri=token_uri,
                status=MintStatus.FAILED,
                error=str(e),
            )
            await self._publish(failed)
            logger.warning("mint_submission_failed", listing_id=listing_id, error=str(e))
            raise ChainSubmissionError(str(e), cause_message=str(e)) from e

        logger.info(
            "mint_submitted", listing_id=listing_id, tx_hash=tx.tx_hash, token_uri=token_uri
        )
        return await self._publish(
            MintRecord(
                listing_id=listing_id,
                token_uri=token_uri,
                status=MintStatus.SUBMITTED,
                transaction_hash=tx.tx_hash,
            )
        )

    async def _confirm(self, record: MintRecord) -> MintRecord:
        chain = self._require_chain()
        tx_hash = record.transaction_hash
        if tx_hash is None:
            raise PreconditionError(f"Mint of listing {record.listing_id} has no transaction hash")
        record = await self._publish(record.transition(MintStatus.CONFIRMING))

        try:
            receipt = await chain.wait_for_transaction_receipt(
                tx_hash, self._config.receipt_timeout_seconds
            )
        except ChainClientError as e:
            await self._publish(record.transition(MintStatus.FAILED, error=str(e)))
            logger.warning(
                "mint_confirmation_failed",
                listing_id=record.listing_id,
                tx_hash=record.transaction_hash,
                error=str(e),
            )
            raise ChainConfirmationError(
                str(e), tx_hash=record.transaction_hash, cause_message=str(e)
            ) from e

        token_id = find_minted_token_id(receipt)
        record = await self._publish(record.transition(MintStatus.CONFIRMED, token_id=token_id))
        if token_id is None:
            logger.warning(
                "mint_confirmed_token_id_unknown",
                listing_id=record.listing_id,
                tx_hash=record.transaction_hash,
            )
        else:
            logger.info(
                "mint_confirmed",
                listing_id=record.listing_id,
                tx_hash=record.transaction_hash,
                token_id=token_id,
            )
        return record

    async def resume_pending(self) -> list[MintRecord]:
        """
        Follow up on attempts left SUBMITTED or CONFIRMING by a previous run.

        Returns:
            The records that reached a terminal state
        """
        resolved: list[MintRecord] = []
        for record in await self._records.pending():
            if record.listing_id in self._in_flight or self._chain is None:
                continue
            self._in_flight.add(record.listing_id)
            try:
                logger.info(
                    "mint_resuming",
                    listing_id=record.listing_id,
                    tx_hash=record.transaction_hash,
                )
                resolved.append(await self._confirm(record))
            except ChainConfirmationError as e:
                failed = await self._records.get(record.listing_id)
                if failed is not None:
                    resolved.append(failed)
                logger.warning("mint_resume_failed", listing_id=record.listing_id, error=str(e))
            finally:
                self._in_flight.discard(record.listing_id)
        return resolved

    # ==================== Wallet Registration ====================

    async def register_with_wallet(self, listing_id: str) -> bool:
        """
        Ask the connected wallet to display the minted token.

        The wallet is switched to the expected network first when needed.

        Returns:
            True if the wallet accepted the token

        Raises:
            PreconditionError: Not minted, token id unknown, invalid contract
                or the network switch failed
            ChainSubmissionError: The wallet refused the request
        """
        record = await self._records.get(listing_id)
        if record is None or record.status != MintStatus.CONFIRMED:
            raise PreconditionError(f"Listing {listing_id} has no confirmed mint")
        if record.token_id is None:
            raise PreconditionError(f"Token id of listing {listing_id} is unknown")
        contract = self._require_contract()
        chain = self._require_chain()

        await self.ensure_network(switch=True)

        metadata_url = gateway_url(record.token_uri, self._config.ipfs_gateway)
        try:
            accepted = await chain.watch_asset(contract, record.token_id, metadata_url)
        except ChainClientError as e:
            raise ChainSubmissionError(str(e), cause_message=str(e)) from e
        logger.info(
            "wallet_asset_registered",
            listing_id=listing_id,
            token_id=record.token_id,
            accepted=accepted,
        )
        return accepted
