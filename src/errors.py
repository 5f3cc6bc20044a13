"""Contract-notary exception hierarchy and its HTTP rendering."""

from __future__ import annotations

import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.config import LAMPORTS_PER_SOL

logger = logging.getLogger(__name__)


class ContractNotaryError(Exception):
    """Base exception for all contract-notary errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def extra(self) -> dict:
        return {}


class ContractNotFoundError(ContractNotaryError):
    status_code = 404

    def __init__(self, contract_id: str) -> None:
        self.contract_id = contract_id
        super().__init__(f"Contract {contract_id} not found")


class CompanyNotFoundError(ContractNotaryError):
    status_code = 404

    def __init__(self, company_id: str) -> None:
        self.company_id = company_id
        super().__init__(f"Company {company_id} not found")


class DuplicateCompanyError(ContractNotaryError):
    status_code = 409

    def __init__(self, business_number: str | None) -> None:
        self.business_number = business_number
        super().__init__(f"Company with business number {business_number} already exists")

    def extra(self) -> dict:
        return {"businessNumber": self.business_number}


class TenantAccessError(ContractNotaryError):
    """Contract belongs to a different company."""

    status_code = 403

    def __init__(self, company_id: str, contract_id: str) -> None:
        self.company_id = company_id
        self.contract_id = contract_id
        super().__init__(f"Company {company_id} has no access to contract {contract_id}")


class StateConflictError(ContractNotaryError):
    """Lifecycle transition attempted from the wrong status."""

    status_code = 409

    def __init__(self, contract_id: str, current: str | None, action: str) -> None:
        self.contract_id = contract_id
        self.current = current
        self.action = action
        super().__init__(f"Cannot {action} contract {contract_id} in status {current}")

    def extra(self) -> dict:
        return {"status": self.current}


class LedgerError(ContractNotaryError):
    """Base for Solana ledger failures."""

    status_code = 502


class LedgerNotConfiguredError(LedgerError):
    status_code = 503

    def __init__(self) -> None:
        super().__init__(
            "Solana ledger is not configured. "
            "Set CONTRACT_NOTARY_SOLANA_PRIVATE_KEY to enable anchoring."
        )


class InsufficientBalanceError(LedgerError):
    """Operator account cannot cover transaction fees."""

    status_code = 503

    def __init__(self, balance_lamports: int, required_lamports: int, address: str) -> None:
        self.balance_lamports = balance_lamports
        self.required_lamports = required_lamports
        self.address = address
        self.balance_sol = balance_lamports / LAMPORTS_PER_SOL
        self.required_sol = required_lamports / LAMPORTS_PER_SOL
        super().__init__(
            f"Insufficient SOL balance: current {self.balance_sol:.6f} SOL, "
            f"required at least {self.required_sol:.6f} SOL. Wallet address: {address}"
        )

    def extra(self) -> dict:
        return {
            "balanceSol": self.balance_sol,
            "requiredSol": self.required_sol,
            "address": self.address,
        }


class LedgerRpcError(LedgerError):
    """The RPC node answered with an error object or a failed transaction."""

    def __init__(self, method: str, message: str, code: int | None = None) -> None:
        self.method = method
        self.code = code
        super().__init__(f"Solana RPC {method} failed: {message}")


class LedgerTimeoutError(LedgerError):
    """Transaction was submitted but not confirmed in time; safe to retry."""

    status_code = 504

    def __init__(self, signature: str, timeout: float) -> None:
        self.signature = signature
        self.timeout = timeout
        super().__init__(
            f"Transaction {signature} not confirmed within {timeout:.0f}s; retry anchoring"
        )

    def extra(self) -> dict:
        return {"retryable": True, "signature": self.signature}


async def _notary_error_handler(request: Request, exc: ContractNotaryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, **exc.extra()},
    )


async def _ledger_http_error_handler(request: Request, exc: httpx.HTTPError) -> JSONResponse:
    logger.error("Solana RPC transport error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=502,
        content={"detail": "Solana RPC request failed", "retryable": True},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ContractNotaryError, _notary_error_handler)
    app.add_exception_handler(httpx.HTTPError, _ledger_http_error_handler)
