"""
Artmint - FastAPI Application Factory

Creates the HTTP surface of the asset pipeline:
- Listing routes (create, list, purchase, remove)
- Mint routes (mint, status, wallet registration)
- Wallet ownership and contract deployment routes
- Error handlers mapping the pipeline's error taxonomy to HTTP statuses
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from artmint.chains import BaseChainClient, ChainClientError, create_chain_client
from artmint.config import MarketplaceConfig, get_config
from artmint.exceptions import (
    AlreadyInProgressError,
    ArtmintError,
    ChainConfirmationError,
    ListingNotFoundError,
    PreconditionError,
    ValidationError,
)
from artmint.monitoring import LoggingContextMiddleware, configure_logging
from artmint.pinning import BasePinningClient, create_pinning_client
from artmint.services import (
    ContractDeployer,
    ListingLifecycleManager,
    MintingOrchestrator,
    OwnershipScanner,
)
from artmint.storage import StorageBundle, StoreResyncTask, open_storage

logger = structlog.get_logger(__name__)


class MarketplaceApp:
    """
    Application container.

    Holds references to all pipeline components for dependency injection.
    """

    def __init__(self, config: MarketplaceConfig | None = None) -> None:
        self.config = config or get_config()

        # Initialized in initialize()
        self.storage: StorageBundle | None = None
        self.pinning: BasePinningClient | None = None
        self.chain: BaseChainClient | None = None
        self.listings: ListingLifecycleManager | None = None
        self.minting: MintingOrchestrator | None = None
        self.scanner: OwnershipScanner | None = None
        self.deployer: ContractDeployer | None = None
        self.resync: StoreResyncTask | None = None

        self.started_at: datetime | None = None
        self.is_ready: bool = False
        self._resume_task: asyncio.Task[object] | None = None

    async def initialize(self) -> None:
        """Initialize all components."""
        if self.is_ready:
            return
        logger.info("marketplace_initializing")

        self.storage = await open_storage(self.config)
        await self.storage.start()

        self.pinning = create_pinning_client(self.config)

        # Minting, scanning and deployment stay unavailable without a chain
        try:
            self.chain = await create_chain_client(self.config)
        except ChainClientError as e:
            logger.warning("chain_unavailable", rpc_url=self.config.rpc_url, error=str(e))
            self.chain = None

        self.deployer = ContractDeployer(self.chain, self.config, self.storage.backend)
        contract_address = await self.deployer.resolve_contract_address()

        self.listings = ListingLifecycleManager(self.storage.listings, self.pinning)
        self.minting = MintingOrchestrator(
            self.storage.listings,
            self.chain,
            self.config,
            records=self.storage.mint_records,
            contract_address=contract_address,
        )
        self.scanner = OwnershipScanner(self.chain, self.config, contract_address=contract_address)

        self.resync = StoreResyncTask(self.storage.listings, self.config.resync_interval_seconds)
        await self.resync.start()

        if self.chain is not None:
            self._resume_task = asyncio.create_task(
                self.minting.resume_pending(), name="artmint_resume_mints"
            )

        self.started_at = datetime.now(UTC)
        self.is_ready = True
        logger.info(
            "marketplace_initialized",
            pinning=self.pinning.name if self.pinning else None,
            chain=self.chain is not None,
            contract_address=contract_address,
        )

    def set_contract_address(self, address: str) -> None:
        """Point minting and scanning at a newly deployed contract."""
        if self.minting is not None:
            self.minting.contract_address = address
        if self.scanner is not None:
            self.scanner.contract_address = address

    async def shutdown(self) -> None:
        """Shut down all components."""
        logger.info("marketplace_shutting_down")
        self.is_ready = False

        if self._resume_task is not None:
            self._resume_task.cancel()
            try:
                await self._resume_task
            except asyncio.CancelledError:
                pass
            except ArtmintError as e:
                logger.warning("mint_resume_aborted", error=str(e))
            self._resume_task = None
        if self.resync is not None:
            await self.resync.stop()
        if self.scanner is not None:
            await self.scanner.close()
        if self.pinning is not None:
            await self.pinning.close()
        if self.chain is not None:
            await self.chain.close()
        if self.storage is not None:
            await self.storage.close()

        logger.info("marketplace_shutdown_complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize the marketplace on startup and release it on shutdown."""
    marketplace: MarketplaceApp = app.state.marketplace
    try:
        await marketplace.initialize()
        yield
    finally:
        await marketplace.shutdown()


ERROR_STATUS_CODES: list[tuple[type[ArtmintError], int]] = [
    (ListingNotFoundError, 404),
    (AlreadyInProgressError, 409),
    (ValidationError, 400),
    (PreconditionError, 400),
]


def status_code_for(exc: ArtmintError) -> int:
    """HTTP status for a pipeline error; external collaborator failures are 502."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 502


def create_app(
    marketplace: MarketplaceApp | None = None,
    title: str = "Artmint",
    version: str = "0.1.0",
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        marketplace: Pre-built container (tests inject one with stub clients)
        title: API title for documentation
        version: API version string

    Returns:
        Configured FastAPI application
    """
    marketplace = marketplace or MarketplaceApp()
    configure_logging(
        level=marketplace.config.log_level,
        json_output=marketplace.config.log_json,
    )

    app = FastAPI(
        title=title,
        description="Digital asset listing, pinning and NFT minting pipeline",
        version=version,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Listings", "description": "Listing lifecycle and minting"},
            {"name": "Wallets", "description": "Tokens owned by a wallet"},
            {"name": "Contracts", "description": "NFT contract deployment"},
        ],
    )
    app.state.marketplace = marketplace
    app.add_middleware(LoggingContextMiddleware)

    @app.exception_handler(ArtmintError)
    async def artmint_error_handler(request: Request, exc: ArtmintError) -> JSONResponse:
        status_code = status_code_for(exc)
        content: dict[str, object] = {
            "error": str(exc),
            "error_type": type(exc).__name__,
            "cause": exc.cause_message,
            "path": str(request.url.path),
        }
        if isinstance(exc, ChainConfirmationError):
            content["tx_hash"] = exc.tx_hash
        log = logger.warning if status_code < 500 else logger.error
        log("request_failed", path=str(request.url.path), status_code=status_code, error=str(exc))
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Omit 'input' (user-submitted values) from the response
        sanitized_errors = [
            {
                "loc": error.get("loc", []),
                "type": error.get("type", "unknown"),
                "msg": error.get("msg", "Validation failed"),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content={
                "error": "Validation error",
                "details": sanitized_errors,
                "path": str(request.url.path),
            },
        )

    from artmint.api.routes import contracts, listings, wallets

    app.include_router(listings.router, prefix="/api/v1", tags=["Listings"])
    app.include_router(wallets.router, prefix="/api/v1", tags=["Wallets"])
    app.include_router(contracts.router, prefix="/api/v1", tags=["Contracts"])

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {
            "status": "ok" if marketplace.is_ready else "starting",
            "started_at": marketplace.started_at.isoformat() if marketplace.started_at else None,
            "chain": marketplace.chain is not None,
            "pinning": marketplace.pinning.name if marketplace.pinning else None,
        }

    return app
