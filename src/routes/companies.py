"""Company endpoints and company-scoped contract administration."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select, func, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.database import get_db
from src.entities.company import Company
from src.entities.contract import Contract, ContractStatus, ContractType
from src.errors import (
    CompanyNotFoundError,
    ContractNotFoundError,
    DuplicateCompanyError,
    TenantAccessError,
)
from src.routes.listing import contract_filters, contract_order, matches_any, paginate
from src.schemas.companies import CompanyCreate, CompanyPage, CompanyResponse
from src.schemas.contracts import (
    ContractPage,
    ContractResponse,
    ContractSummary,
    SortField,
    SortOrder,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/companies", tags=["companies"])


def _company_to_response(company: Company, contract_count: int) -> CompanyResponse:
    return CompanyResponse(
        id=company.id,
        name=company.name,
        business_number=company.business_number,
        ceo_name=company.ceo_name,
        address=company.address,
        phone=company.phone,
        created_at=company.created_at,
        contract_count=contract_count,
    )


async def _require_company(db: AsyncSession, company_id: str) -> Company:
    company = await db.get(Company, company_id)
    if company is None:
        raise CompanyNotFoundError(company_id)
    return company


async def _company_contract(db: AsyncSession, company_id: str, contract_id: str) -> Contract:
    await _require_company(db, company_id)
    contract = await db.get(Contract, contract_id)
    if contract is None:
        raise ContractNotFoundError(contract_id)
    if contract.company_id != company_id:
        raise TenantAccessError(company_id, contract_id)
    return contract


@router.post("", response_model=CompanyResponse, status_code=201)
async def create_company(body: CompanyCreate, db: AsyncSession = Depends(get_db)):
    """Register a company."""
    company = Company(id=f"comp_{uuid.uuid4().hex[:16]}", **body.model_dump())
    db.add(company)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateCompanyError(body.business_number)
    await db.refresh(company)
    return _company_to_response(company, 0)


def _with_contract_count():
    return (
        select(Company, func.count(Contract.id).label("contract_count"))
        .outerjoin(Contract, Company.id == Contract.company_id)
        .group_by(Company.id)
    )


@router.get("", response_model=CompanyPage)
async def list_companies(
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """List companies, newest first, with contract counts.

    ``search`` matches name, business number or CEO name.
    """
    filters = []
    if search:
        filters.append(
            matches_any(search, Company.name, Company.business_number, Company.ceo_name)
        )

    total = (await db.execute(select(func.count(Company.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        _with_contract_count()
        .where(*filters)
        .order_by(Company.created_at.desc(), Company.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return CompanyPage(
        companies=[_company_to_response(company, count) for company, count in result.all()],
        pagination=paginate(page, limit, total),
    )


@router.get("/{company_id}", response_model=CompanyResponse)
async def get_company(company_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(_with_contract_count().where(Company.id == company_id))
    row = result.one_or_none()
    if not row:
        raise CompanyNotFoundError(company_id)
    company, count = row
    return _company_to_response(company, count)


@router.get("/{company_id}/contracts", response_model=ContractPage)
async def list_company_contracts(
    company_id: str,
    search: str | None = None,
    status: ContractStatus | None = None,
    contract_type: ContractType | None = Query(default=None, alias="contractType"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort_by: SortField = Query(default=SortField.CREATED_AT, alias="sortBy"),
    sort_order: SortOrder = Query(default=SortOrder.DESC, alias="sortOrder"),
    db: AsyncSession = Depends(get_db),
):
    """List a company's contracts with search, filters and pagination."""
    await _require_company(db, company_id)

    filters = [Contract.company_id == company_id, *contract_filters(status, contract_type)]
    if search:
        filters.append(matches_any(search, Contract.worker_name, Contract.worker_phone))

    total = (await db.execute(select(func.count(Contract.id)).where(*filters))).scalar() or 0
    result = await db.execute(
        select(Contract)
        .where(*filters)
        .order_by(contract_order(sort_by, sort_order), Contract.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    contracts = result.scalars().all()

    return ContractPage(
        contracts=[ContractSummary.model_validate(c) for c in contracts],
        pagination=paginate(page, limit, total),
    )


@router.get("/{company_id}/contracts/{contract_id}", response_model=ContractResponse)
async def get_company_contract(
    company_id: str, contract_id: str, db: AsyncSession = Depends(get_db)
):
    return await _company_contract(db, company_id, contract_id)


@router.delete("/{company_id}/contracts/{contract_id}", status_code=204)
async def delete_company_contract(
    company_id: str, contract_id: str, db: AsyncSession = Depends(get_db)
):
    """Hard-delete a contract. Anchored memos stay on the ledger."""
    contract = await _company_contract(db, company_id, contract_id)
    if contract.solana_tx_id:
        logger.warning(
            "Deleting anchored contract %s (tx %s)", contract_id, contract.solana_tx_id
        )
    await db.execute(delete(Contract).where(Contract.id == contract_id))
    await db.commit()
