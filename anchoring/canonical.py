"""Canonical contract hashing.

The digest anchored on-chain must be reproducible byte-for-byte long after
the contract was signed, so the serialized form is pinned down here rather
than left to dict ordering or a JSON encoder's defaults:

- exactly the fields in CANONICAL_FIELDS, in that order (sorted by key);
- absent optional values are emitted as ``null``, never dropped;
- dates and datetimes become ISO-8601 UTC with millisecond precision and a
  trailing ``Z`` (``2024-03-01T00:00:00.000Z``);
- compact JSON, UTF-8, non-ASCII characters kept literal;
- signatures are hashed exactly as stored.

Records anchored by earlier deployments used the same rules, so the output
must not change without a migration plan for existing memos.
"""

from __future__ import annotations

import enum
import hashlib
import json
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any

# (json key, entity attribute), sorted by json key.
CANONICAL_FIELDS: tuple[tuple[str, str], ...] = (
    ("breakTime", "break_time"),
    ("contractType", "contract_type"),
    ("employerAddress", "employer_address"),
    ("employerCeo", "employer_ceo"),
    ("employerName", "employer_name"),
    ("employerPhone", "employer_phone"),
    ("employerSign", "employer_sign"),
    ("endDate", "end_date"),
    ("hourlyWage", "hourly_wage"),
    ("payDay", "pay_day"),
    ("signedAt", "signed_at"),
    ("specialTerms", "special_terms"),
    ("startDate", "start_date"),
    ("workDays", "work_days"),
    ("workEnd", "work_end"),
    ("workStart", "work_start"),
    ("workerAddress", "worker_address"),
    ("workerBirth", "worker_birth"),
    ("workerName", "worker_name"),
    ("workerPhone", "worker_phone"),
    ("workerSign", "worker_sign"),
)


def format_instant(value: date | datetime) -> str:
    """Render a date/datetime the one way it is ever hashed."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
    else:
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _canonical_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return format_instant(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_canonical_value(v) for v in value]
    return value


def _lookup(source: Any, key: str, attr: str) -> Any:
    if isinstance(source, Mapping):
        if key in source:
            return source[key]
        return source.get(attr)
    return getattr(source, attr, None)


def canonical_pairs(source: Any) -> list[tuple[str, Any]]:
    """Ordered (key, value) pairs for a contract entity or a field mapping.

    Mappings may use either the camelCase json keys or the entity attribute
    names. Keys outside CANONICAL_FIELDS are ignored.
    """
    return [
        (key, _canonical_value(_lookup(source, key, attr)))
        for key, attr in CANONICAL_FIELDS
    ]


def canonical_bytes(source: Any) -> bytes:
    body = ",".join(
        json.dumps(key, ensure_ascii=False)
        + ":"
        + json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        for key, value in canonical_pairs(source)
    )
    return ("{" + body + "}").encode("utf-8")


def contract_hash(source: Any) -> str:
    """SHA-256 hex digest of the canonical serialization."""
    return hashlib.sha256(canonical_bytes(source)).hexdigest()
