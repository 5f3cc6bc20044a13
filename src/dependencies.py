"""Request-scoped dependencies beyond the database session."""

from __future__ import annotations

from fastapi import Request

from anchoring.ledger_client import SolanaLedgerClient
from src.errors import LedgerNotConfiguredError


def get_ledger(request: Request) -> SolanaLedgerClient:
    """Ledger client created by the app lifespan."""
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is None:
        raise LedgerNotConfiguredError()
    return ledger
