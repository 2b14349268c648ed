"""
Contract Deployer

Deploys the marketplace's NFT contract from a compiled artifact and
remembers the resulting address under the nft_contract_address storage key,
so a session without ARTMINT_CONTRACT_ADDRESS can still mint and scan.
"""

import json
from datetime import UTC, datetime
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

from ..chains import BaseChainClient, ChainClientError
from ..config import MarketplaceConfig, is_valid_contract_address
from ..exceptions import (
    ChainConfirmationError,
    ChainSubmissionError,
    PreconditionError,
    ValidationError,
)
from ..storage import StorageBackend

logger = structlog.get_logger(__name__)

CONTRACT_ADDRESS_KEY = "nft_contract_address"
MIN_BYTECODE_LENGTH = 10


class DeploymentResult(BaseModel):
    """Outcome of a contract deployment."""

    tx_hash: str
    contract_address: str | None = Field(
        default=None, description="None when the receipt carried no created address"
    )
    deployed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def degraded(self) -> bool:
        return self.contract_address is None


class ContractDeployer:
    """Deploys the NFT contract and tracks its address."""

    def __init__(
        self,
        chain_client: BaseChainClient | None,
        config: MarketplaceConfig,
        backend: StorageBackend | None = None,
    ) -> None:
        self._chain = chain_client
        self._config = config
        self._backend = backend

    @staticmethod
    def load_bytecode(artifact_path: str | Path) -> str:
        """
        Read creation bytecode from a compiled artifact.

        Accepts artifacts whose "bytecode" is a hex string or an object with
        an "object" field. A missing 0x prefix is added.

        Raises:
            ValidationError: Unreadable artifact, missing or too short bytecode
        """
        path = Path(artifact_path)
        try:
            artifact = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ValidationError(f"Cannot read contract artifact {path}: {e}", str(e)) from e

        bytecode = artifact.get("bytecode") if isinstance(artifact, dict) else None
        if isinstance(bytecode, dict):
            bytecode = bytecode.get("object")
        if not isinstance(bytecode, str) or not bytecode.strip():
            raise ValidationError(f"Contract artifact {path} has no bytecode field")

        bytecode = bytecode.strip()
        if not bytecode.startswith("0x"):
            bytecode = f"0x{bytecode}"
        if len(bytecode) < MIN_BYTECODE_LENGTH:
            raise ValidationError(f"Bytecode in {path} is too short ({len(bytecode)} characters)")
        return bytecode

    async def deploy(self, bytecode: str) -> DeploymentResult:
        """
        Submit a contract-creation transaction and wait for its receipt.

        The created address is saved for later sessions. A receipt without a
        created address is reported as a degraded result carrying the
        transaction hash.

        Raises:
            PreconditionError: No chain client
            ValidationError: Bytecode is not hex
            ChainSubmissionError: The transaction was rejected
            ChainConfirmationError: Waiting for the receipt failed
        """
        if self._chain is None:
            raise PreconditionError("No chain client is configured")
        try:
            init_code = bytes.fromhex(bytecode.removeprefix("0x"))
        except ValueError as e:
            raise ValidationError(f"Bytecode is not valid hex: {e}", str(e)) from e

        try:
            tx = await self._chain.send_transaction(None, init_code, transaction_type="deploy")
        except ChainClientError as e:
            raise ChainSubmissionError(str(e), cause_message=str(e)) from e
        logger.info("contract_deploy_submitted", tx_hash=tx.tx_hash, size=len(init_code))

        try:
            receipt = await self._chain.wait_for_transaction_receipt(
                tx.tx_hash, self._config.receipt_timeout_seconds
            )
        except ChainClientError as e:
            raise ChainConfirmationError(str(e), tx_hash=tx.tx_hash, cause_message=str(e)) from e

        result = DeploymentResult(tx_hash=tx.tx_hash, contract_address=receipt.contract_address)
        if result.contract_address is None:
            logger.warning("contract_deployed_address_unknown", tx_hash=tx.tx_hash)
        else:
            await self.save_contract_address(result.contract_address)
            logger.info(
                "contract_deployed",
                tx_hash=tx.tx_hash,
                contract_address=result.contract_address,
            )
        return result

    async def save_contract_address(self, address: str) -> None:
        """
        Remember a contract address.

        Raises:
            ValidationError: The address is not 0x followed by 40 hex digits
        """
        if not is_valid_contract_address(address):
            raise ValidationError(f"Invalid contract address: {address!r}")
        if self._backend is not None:
            await self._backend.set(CONTRACT_ADDRESS_KEY, address)

    async def resolve_contract_address(self) -> str | None:
        """Configured contract address, falling back to the saved one."""
        if self._config.has_valid_contract:
            return self._config.contract_address
        if self._backend is None:
            return None
        saved = await self._backend.get(CONTRACT_ADDRESS_KEY)
        return saved if isinstance(saved, str) and is_valid_contract_address(saved) else None

    @staticmethod
    def render_env_file(address: str) -> str:
        """Build the .env snippet that pins the deployed address."""
        generated = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
        return (
            "# NFT contract configuration\n"
            f"# Generated {generated}\n"
            f"ARTMINT_CONTRACT_ADDRESS={address}\n"
            "\n"
            "# Pinning credentials (copy from your secrets store if needed)\n"
            "# ARTMINT_PINATA_JWT=your_jwt_token_here\n"
        )
