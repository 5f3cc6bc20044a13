"""Contract endpoints — drafting, signing, anchoring and verification."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from anchoring import lifecycle
from anchoring.canonical import contract_hash
from anchoring.ledger_client import SolanaLedgerClient
from src.config import explorer_url
from src.database import get_db
from src.dependencies import get_ledger
from src.entities.company import Company
from src.entities.contract import Contract, ContractStatus, ContractType
from src.errors import CompanyNotFoundError, StateConflictError
from src.routes.listing import contract_filters, contract_order, matches_any, paginate
from src.schemas.companies import CompanyContractPage, CompanyContractSummary
from src.schemas.contracts import (
    ContractCreate,
    ContractResponse,
    SignContractRequest,
    SortField,
    SortOrder,
    VerificationResponse,
)

router = APIRouter(prefix="/contracts", tags=["contracts"])

_VALID_MESSAGE = "Contract has not been tampered with."
_TAMPERED_MESSAGE = "Contract has been tampered with: current data does not match the ledger record."
_UNVERIFIABLE_MESSAGE = "Ledger record could not be read; integrity is undetermined."


@router.post("", response_model=ContractResponse, status_code=201)
async def create_contract(body: ContractCreate, db: AsyncSession = Depends(get_db)):
    """Draft a new contract."""
    if body.company_id and await db.get(Company, body.company_id) is None:
        raise CompanyNotFoundError(body.company_id)

    contract = Contract(
        id=f"ctr_{uuid.uuid4().hex[:20]}",
        status=ContractStatus.DRAFT.value,
        **body.model_dump(exclude={"contract_type"}),
        contract_type=body.contract_type.value,
    )
    db.add(contract)
    await db.commit()
    await db.refresh(contract)
    return contract


@router.get("", response_model=CompanyContractPage)
async def list_contracts(
    search: str | None = None,
    company_id: str | None = Query(default=None, alias="companyId"),
    status: ContractStatus | None = None,
    contract_type: ContractType | None = Query(default=None, alias="contractType"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: SortField = Query(default=SortField.CREATED_AT, alias="sortBy"),
    sort_order: SortOrder = Query(default=SortOrder.DESC, alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
):
    """List contracts across all companies.

    ``search`` matches worker name, worker phone or employer name. Each row
    carries the issuing company's id and name.
    """
    filters = contract_filters(status, contract_type)
    if company_id:
        filters.append(Contract.company_id == company_id)
    if search:
        filters.append(
            matches_any(search, Contract.worker_name, Contract.worker_phone, Contract.employer_name)
        )

    total = (await db.execute(select(func.count(Contract.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        select(Contract)
        .options(selectinload(Contract.company))
        .where(*filters)
        .order_by(contract_order(sort_by, sort_order), Contract.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    contracts = result.scalars().all()

    return CompanyContractPage(
        contracts=[CompanyContractSummary.model_validate(c) for c in contracts],
        pagination=paginate(page, limit, total),
    )


@router.get("/{contract_id}", response_model=ContractResponse)
async def get_contract(contract_id: str, db: AsyncSession = Depends(get_db)):
    """Get a single contract by ID."""
    return await lifecycle.load_contract(db, contract_id)


@router.patch("/{contract_id}/employer-sign", response_model=ContractResponse)
async def employer_sign(
    contract_id: str,
    body: SignContractRequest,
    db: AsyncSession = Depends(get_db),
):
    return await lifecycle.employer_sign(db, contract_id, body.signature)


@router.patch("/{contract_id}/worker-sign", response_model=ContractResponse)
async def worker_sign(
    contract_id: str,
    body: SignContractRequest,
    db: AsyncSession = Depends(get_db),
    ledger: SolanaLedgerClient = Depends(get_ledger),
):
    """Worker signature, then anchor the contract hash on Solana.

    If anchoring fails the contract stays SIGNED and the ledger error is
    returned; POST /contracts/{id}/anchor retries it.
    """
    await lifecycle.worker_sign(db, contract_id, body.signature)
    return await lifecycle.complete_contract(db, ledger, contract_id)


@router.post("/{contract_id}/anchor", response_model=ContractResponse)
async def anchor_contract(
    contract_id: str,
    db: AsyncSession = Depends(get_db),
    ledger: SolanaLedgerClient = Depends(get_ledger),
):
    """Retry anchoring a SIGNED contract. No-op for COMPLETED ones."""
    return await lifecycle.complete_contract(db, ledger, contract_id)


@router.get("/{contract_id}/verify", response_model=VerificationResponse)
async def verify_contract(
    contract_id: str,
    db: AsyncSession = Depends(get_db),
    ledger: SolanaLedgerClient = Depends(get_ledger),
):
    """Recompute the contract hash and compare it with the anchored memo."""
    contract = await lifecycle.load_contract(db, contract_id)
    if not contract.solana_tx_id:
        raise StateConflictError(contract_id, contract.status, "verify unanchored")

    current_hash = contract_hash(contract)
    result = await ledger.verify_transaction(contract.solana_tx_id, current_hash)

    if result.matches:
        message = _VALID_MESSAGE
    elif result.blockchain_hash is None:
        message = _UNVERIFIABLE_MESSAGE
    else:
        message = _TAMPERED_MESSAGE

    return VerificationResponse(
        is_valid=result.matches,
        current_hash=current_hash,
        blockchain_hash=result.blockchain_hash,
        original_hash=contract.pdf_hash,
        solana_tx_id=contract.solana_tx_id,
        explorer_url=explorer_url(contract.solana_tx_id),
        error=None if result.blockchain_hash is not None else result.error.value,
        message=message,
    )
