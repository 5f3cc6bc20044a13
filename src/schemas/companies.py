"""Pydantic schemas for company endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from src.schemas.contracts import CamelModel, ContractSummary, Pagination


class CompanyCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200)
    business_number: str | None = Field(default=None, max_length=20)
    ceo_name: str | None = None
    address: str | None = None
    phone: str | None = None


class CompanyResponse(CamelModel):
    id: str
    name: str
    business_number: str | None = None
    ceo_name: str | None = None
    address: str | None = None
    phone: str | None = None
    created_at: datetime
    contract_count: int = 0


class CompanyPage(CamelModel):
    companies: list[CompanyResponse]
    pagination: Pagination


class CompanyBrief(CamelModel):
    id: str
    name: str


class CompanyContractSummary(ContractSummary):
    """Contract row in the cross-company listing, tagged with its issuer."""

    company: CompanyBrief | None = None


class CompanyContractPage(CamelModel):
    contracts: list[CompanyContractSummary]
    pagination: Pagination
