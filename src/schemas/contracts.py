"""Pydantic schemas for contract endpoints (camelCase on the wire)."""

from __future__ import annotations

import enum
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from src.entities.contract import ContractStatus, ContractType

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ContractCreate(CamelModel):
    contract_type: ContractType
    company_id: str | None = None

    employer_name: str = Field(min_length=1)
    employer_ceo: str = Field(min_length=1)
    employer_address: str = Field(min_length=1)
    employer_phone: str = Field(min_length=1)

    worker_name: str = Field(min_length=1)
    worker_birth: str = Field(min_length=1)
    worker_phone: str = Field(min_length=1)
    worker_address: str = Field(min_length=1)

    start_date: date
    end_date: date | None = None
    work_days: list[str]
    work_start: str = Field(pattern=_HHMM)
    work_end: str = Field(pattern=_HHMM)
    break_time: int = Field(ge=0)
    hourly_wage: int = Field(ge=0)
    pay_day: int = Field(ge=1, le=31)
    special_terms: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class SignContractRequest(CamelModel):
    signature: str = Field(min_length=1)  # base64 image data URL


class ContractResponse(CamelModel):
    id: str
    company_id: str | None = None
    status: ContractStatus
    contract_type: ContractType

    employer_name: str
    employer_ceo: str
    employer_address: str
    employer_phone: str

    worker_name: str
    worker_birth: str
    worker_phone: str
    worker_address: str

    start_date: date
    end_date: date | None = None
    work_days: list[str]
    work_start: str
    work_end: str
    break_time: int
    hourly_wage: int
    pay_day: int
    special_terms: str | None = None

    employer_sign: str | None = None
    worker_sign: str | None = None
    signed_at: datetime | None = None

    pdf_hash: str | None = None
    solana_tx_id: str | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class ContractSummary(CamelModel):
    id: str
    status: ContractStatus
    contract_type: ContractType
    employer_name: str
    worker_name: str
    worker_phone: str
    start_date: date
    end_date: date | None = None
    hourly_wage: int
    created_at: datetime
    signed_at: datetime | None = None
    solana_tx_id: str | None = None


class SortField(str, enum.Enum):
    CREATED_AT = "createdAt"
    START_DATE = "startDate"
    WORKER_NAME = "workerName"
    HOURLY_WAGE = "hourlyWage"
    STATUS = "status"


class SortOrder(str, enum.Enum):
    ASC = "asc"
    DESC = "desc"


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class ContractPage(CamelModel):
    contracts: list[ContractSummary]
    pagination: Pagination


class VerificationResponse(CamelModel):
    is_valid: bool
    current_hash: str
    blockchain_hash: str | None = None
    original_hash: str | None = None
    solana_tx_id: str
    explorer_url: str
    error: str | None = None
    message: str
