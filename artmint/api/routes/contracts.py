"""
Contract API Routes

Deploy the NFT contract or register an existing deployment.
"""

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, Field

from artmint.api.dependencies import DeployerDep, MarketplaceDep
from artmint.exceptions import ValidationError

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/contracts")


class DeployRequest(BaseModel):
    """Creation bytecode, or the path of a compiled artifact holding it."""

    bytecode: str | None = Field(default=None, description="0x-prefixed creation bytecode")
    artifact_path: str | None = Field(default=None, description="Compiled artifact JSON on the server")


class DeployResponse(BaseModel):
    tx_hash: str
    contract_address: str | None
    degraded: bool
    env_file: str | None = Field(default=None, description=".env snippet for the new address")


class RegisterContractRequest(BaseModel):
    contract_address: str


class ContractResponse(BaseModel):
    contract_address: str | None
    env_file: str | None = None


@router.post("/deploy", response_model=DeployResponse)
async def deploy_contract(
    request: DeployRequest,
    deployer: DeployerDep,
    marketplace: MarketplaceDep,
) -> DeployResponse:
    """
    Deploy the NFT contract and wait for the receipt.

    The new address is saved and used for minting and scanning from now on.
    """
    if request.bytecode:
        bytecode = request.bytecode
    elif request.artifact_path:
        bytecode = deployer.load_bytecode(request.artifact_path)
    else:
        raise ValidationError("Either bytecode or artifact_path is required")

    result = await deployer.deploy(bytecode)
    env_file = None
    if result.contract_address:
        marketplace.set_contract_address(result.contract_address)
        env_file = deployer.render_env_file(result.contract_address)
    return DeployResponse(
        tx_hash=result.tx_hash,
        contract_address=result.contract_address,
        degraded=result.degraded,
        env_file=env_file,
    )


@router.get("", response_model=ContractResponse)
async def get_contract(deployer: DeployerDep) -> ContractResponse:
    address = await deployer.resolve_contract_address()
    return ContractResponse(
        contract_address=address,
        env_file=deployer.render_env_file(address) if address else None,
    )


@router.put("", response_model=ContractResponse)
async def register_contract(
    request: RegisterContractRequest,
    deployer: DeployerDep,
    marketplace: MarketplaceDep,
) -> ContractResponse:
    """Use an already deployed contract."""
    await deployer.save_contract_address(request.contract_address)
    marketplace.set_contract_address(request.contract_address)
    logger.info("contract_registered", contract_address=request.contract_address)
    return ContractResponse(
        contract_address=request.contract_address,
        env_file=deployer.render_env_file(request.contract_address),
    )
