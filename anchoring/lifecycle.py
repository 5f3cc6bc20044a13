"""Contract status lifecycle: DRAFT -> SENT -> SIGNED -> COMPLETED.

Every transition is a single-row conditional update guarded by the expected
prior status, so concurrent or retried requests cannot move a contract out
of order or anchor it twice under different hashes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from anchoring.canonical import contract_hash
from anchoring.ledger_client import VerificationResult
from src.entities.contract import Contract, ContractStatus
from src.errors import ContractNotFoundError, StateConflictError

logger = logging.getLogger(__name__)


class Ledger(Protocol):
    async def submit_hash(self, digest: str) -> str: ...

    async def confirm_transaction(self, signature: str) -> None: ...

    async def verify_transaction(self, signature: str, expected_hash: str) -> VerificationResult: ...


def _now_ms() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


async def load_contract(db: AsyncSession, contract_id: str) -> Contract:
    contract = await db.get(Contract, contract_id, populate_existing=True)
    if contract is None:
        raise ContractNotFoundError(contract_id)
    return contract


async def _transition(
    db: AsyncSession,
    contract_id: str,
    expected: ContractStatus,
    action: str,
    **values,
) -> Contract:
    """Apply ``values`` only if the row is still in ``expected`` status."""
    result = await db.execute(
        update(Contract)
        .where(Contract.id == contract_id, Contract.status == expected.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    contract = await db.get(Contract, contract_id, populate_existing=True)
    if contract is None:
        raise ContractNotFoundError(contract_id)
    if result.rowcount == 0:
        raise StateConflictError(contract_id, contract.status, action)
    return contract


async def employer_sign(db: AsyncSession, contract_id: str, signature: str) -> Contract:
    """Attach the employer signature and send the contract to the worker."""
    contract = await _transition(
        db,
        contract_id,
        ContractStatus.DRAFT,
        "employer-sign",
        employer_sign=signature,
        status=ContractStatus.SENT.value,
    )
    logger.info("Contract %s signed by employer", contract_id)
    return contract


async def worker_sign(db: AsyncSession, contract_id: str, signature: str) -> Contract:
    """Attach the worker signature; the contract becomes SIGNED."""
    contract = await _transition(
        db,
        contract_id,
        ContractStatus.SENT,
        "worker-sign",
        worker_sign=signature,
        signed_at=_now_ms(),
        status=ContractStatus.SIGNED.value,
    )
    logger.info("Contract %s signed by worker", contract_id)
    return contract


async def _reconcile_pending(
    contract: Contract, ledger: Ledger, digest: str
) -> str | None:
    """Reuse an earlier anchoring tx if it already carries ``digest``."""
    if not contract.pending_tx_id:
        return None
    result = await ledger.verify_transaction(contract.pending_tx_id, digest)
    if result.matches:
        logger.info(
            "Reusing pending anchoring tx %s for contract %s",
            contract.pending_tx_id, contract.id,
        )
        return contract.pending_tx_id
    logger.warning(
        "Pending tx %s for contract %s does not carry the current hash (%s); anchoring again",
        contract.pending_tx_id, contract.id, result.error.value,
    )
    return None


async def _store_pending(db: AsyncSession, contract_id: str, tx_id: str) -> None:
    await db.execute(
        update(Contract)
        .where(Contract.id == contract_id, Contract.status == ContractStatus.SIGNED.value)
        .values(pending_tx_id=tx_id)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def complete_contract(db: AsyncSession, ledger: Ledger, contract_id: str) -> Contract:
    """Anchor a SIGNED contract's hash and transition it to COMPLETED.

    Already COMPLETED contracts are returned unchanged. Ledger errors
    propagate and leave the contract SIGNED so the call can be repeated.
    """
    contract = await load_contract(db, contract_id)
    if contract.status == ContractStatus.COMPLETED.value:
        return contract
    if contract.status != ContractStatus.SIGNED.value:
        raise StateConflictError(contract_id, contract.status, "complete")

    digest = contract_hash(contract)
    tx_id = await _reconcile_pending(contract, ledger, digest)
    if tx_id is None:
        tx_id = await ledger.submit_hash(digest)
        # recorded before confirmation so a failed poll cannot orphan the tx
        await _store_pending(db, contract_id, tx_id)
        await ledger.confirm_transaction(tx_id)

    try:
        contract = await _transition(
            db,
            contract_id,
            ContractStatus.SIGNED,
            "complete",
            pdf_hash=digest,
            solana_tx_id=tx_id,
            pending_tx_id=None,
            completed_at=datetime.now(timezone.utc),
            status=ContractStatus.COMPLETED.value,
        )
    except StateConflictError as exc:
        if exc.current != ContractStatus.COMPLETED.value:
            raise
        # Another request completed it first; ours is a redundant anchor.
        logger.warning(
            "Contract %s completed concurrently; tx %s is a duplicate anchor",
            contract_id, tx_id,
        )
        return await load_contract(db, contract_id)

    logger.info("Contract %s completed: hash=%s tx=%s", contract_id, digest[:16], tx_id)
    return contract
