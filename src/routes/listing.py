"""Search, sort and paging helpers shared by the list endpoints."""

from __future__ import annotations

import math

from sqlalchemy import or_

from src.entities.contract import Contract, ContractStatus, ContractType
from src.schemas.contracts import Pagination, SortField, SortOrder

SORT_COLUMNS = {
    SortField.CREATED_AT: Contract.created_at,
    SortField.START_DATE: Contract.start_date,
    SortField.WORKER_NAME: Contract.worker_name,
    SortField.HOURLY_WAGE: Contract.hourly_wage,
    SortField.STATUS: Contract.status,
}


def contains_pattern(text: str) -> str:
    """LIKE pattern matching ``text`` literally anywhere; use with escape="\\"."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def matches_any(search: str, *columns):
    pattern = contains_pattern(search)
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))


def contract_order(sort_by: SortField, sort_order: SortOrder):
    column = SORT_COLUMNS[sort_by]
    return column.asc() if sort_order == SortOrder.ASC else column.desc()


def paginate(page: int, limit: int, total: int) -> Pagination:
    return Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


def contract_filters(status: ContractStatus | None, contract_type: ContractType | None) -> list:
    filters = []
    if status:
        filters.append(Contract.status == status.value)
    if contract_type:
        filters.append(Contract.contract_type == contract_type.value)
    return filters
