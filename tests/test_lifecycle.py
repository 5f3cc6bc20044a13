"""Tests for contract status transitions and anchoring completion."""

from __future__ import annotations

from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy import update

from anchoring import lifecycle
from anchoring.canonical import contract_hash
from anchoring.ledger_client import VerificationResult
from anchoring.memo import VerifyError
from conftest import create_contract
from src.entities.contract import Contract, ContractStatus
from src.errors import (
    ContractNotFoundError,
    InsufficientBalanceError,
    LedgerRpcError,
    LedgerTimeoutError,
    StateConflictError,
)

EMPLOYER_SIG = "data:image/png;base64,RU1QTE9ZRVI="
WORKER_SIG = "data:image/png;base64,V09SS0VS"


async def _signed_contract(session_factory) -> str:
    contract_id = await create_contract(session_factory)
    async with session_factory() as db:
        await lifecycle.employer_sign(db, contract_id, EMPLOYER_SIG)
        await lifecycle.worker_sign(db, contract_id, WORKER_SIG)
    return contract_id


class TestSigning:
    @pytest.mark.asyncio
    async def test_employer_sign_moves_draft_to_sent(self, session_factory):
        contract_id = await create_contract(session_factory)
        async with session_factory() as db:
            contract = await lifecycle.employer_sign(db, contract_id, EMPLOYER_SIG)

        assert contract.status == ContractStatus.SENT.value
        assert contract.employer_sign == EMPLOYER_SIG
        assert contract.signed_at is None

    @pytest.mark.asyncio
    async def test_worker_sign_sets_signed_at(self, session_factory):
        contract_id = await create_contract(session_factory)
        async with session_factory() as db:
            await lifecycle.employer_sign(db, contract_id, EMPLOYER_SIG)
            contract = await lifecycle.worker_sign(db, contract_id, WORKER_SIG)

        assert contract.status == ContractStatus.SIGNED.value
        assert contract.worker_sign == WORKER_SIG
        assert contract.signed_at is not None
        assert contract.signed_at.microsecond % 1000 == 0

    @pytest.mark.asyncio
    async def test_worker_cannot_sign_draft(self, session_factory):
        contract_id = await create_contract(session_factory)
        async with session_factory() as db:
            with pytest.raises(StateConflictError) as exc_info:
                await lifecycle.worker_sign(db, contract_id, WORKER_SIG)
            contract = await lifecycle.load_contract(db, contract_id)

        assert exc_info.value.current == ContractStatus.DRAFT.value
        assert contract.status == ContractStatus.DRAFT.value
        assert contract.worker_sign is None

    @pytest.mark.asyncio
    async def test_employer_cannot_sign_twice(self, session_factory):
        contract_id = await create_contract(session_factory)
        async with session_factory() as db:
            await lifecycle.employer_sign(db, contract_id, EMPLOYER_SIG)
            with pytest.raises(StateConflictError):
                await lifecycle.employer_sign(db, contract_id, "data:image/png;base64,U0VDT05E")
            contract = await lifecycle.load_contract(db, contract_id)

        assert contract.employer_sign == EMPLOYER_SIG

    @pytest.mark.asyncio
    async def test_missing_contract(self, session_factory):
        async with session_factory() as db:
            with pytest.raises(ContractNotFoundError):
                await lifecycle.employer_sign(db, "ctr_missing", EMPLOYER_SIG)


class TestCompleteContract:
    @pytest.mark.asyncio
    async def test_anchors_and_completes(self, session_factory, ledger, fake_rpc):
        contract_id = await _signed_contract(session_factory)

        async with session_factory() as db:
            contract = await lifecycle.complete_contract(db, ledger, contract_id)

        assert contract.status == ContractStatus.COMPLETED.value
        assert contract.pdf_hash == contract_hash(contract)
        assert contract.solana_tx_id in fake_rpc.transactions
        assert contract.pending_tx_id is None
        assert contract.completed_at is not None
        assert fake_rpc.memo_of(contract.solana_tx_id) == f"KIMCONTRACT:{contract.pdf_hash}"

    @pytest.mark.asyncio
    async def test_draft_cannot_complete(self, session_factory, ledger, fake_rpc):
        contract_id = await create_contract(session_factory)
        async with session_factory() as db:
            with pytest.raises(StateConflictError):
                await lifecycle.complete_contract(db, ledger, contract_id)
        assert fake_rpc.calls == []

    @pytest.mark.asyncio
    async def test_completed_contract_is_returned_unchanged(self, session_factory, ledger, fake_rpc):
        contract_id = await _signed_contract(session_factory)
        async with session_factory() as db:
            first = await lifecycle.complete_contract(db, ledger, contract_id)
        calls_after_first = len(fake_rpc.calls)

        async with session_factory() as db:
            second = await lifecycle.complete_contract(db, ledger, contract_id)

        assert second.solana_tx_id == first.solana_tx_id
        assert second.pdf_hash == first.pdf_hash
        assert len(fake_rpc.calls) == calls_after_first

    @pytest.mark.asyncio
    async def test_insufficient_balance_leaves_contract_signed(self, session_factory, ledger, fake_rpc):
        contract_id = await _signed_contract(session_factory)
        fake_rpc.balance = 0

        async with session_factory() as db:
            with pytest.raises(InsufficientBalanceError):
                await lifecycle.complete_contract(db, ledger, contract_id)
            contract = await lifecycle.load_contract(db, contract_id)

        assert contract.status == ContractStatus.SIGNED.value
        assert contract.pdf_hash is None
        assert contract.solana_tx_id is None

        fake_rpc.balance = 2_000_000_000
        async with session_factory() as db:
            contract = await lifecycle.complete_contract(db, ledger, contract_id)
        assert contract.status == ContractStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_retry_reuses_pending_transaction(self, session_factory, ledger, fake_rpc):
        contract_id = await _signed_contract(session_factory)
        async with session_factory() as db:
            contract = await lifecycle.load_contract(db, contract_id)
            # a previous attempt anchored this hash but never recorded completion
            tx_id = await ledger.record_hash(contract_hash(contract))
            await db.execute(
                update(Contract).where(Contract.id == contract_id).values(pending_tx_id=tx_id)
            )
            await db.commit()
        sends_before = fake_rpc.calls.count("sendTransaction")

        async with session_factory() as db:
            contract = await lifecycle.complete_contract(db, ledger, contract_id)

        assert contract.solana_tx_id == tx_id
        assert contract.status == ContractStatus.COMPLETED.value
        assert fake_rpc.calls.count("sendTransaction") == sends_before

    @pytest.mark.asyncio
    async def test_confirmation_timeout_keeps_signature_for_retry(self, session_factory, ledger, fake_rpc):
        contract_id = await _signed_contract(session_factory)
        fake_rpc.status_sequence = []
        ledger.confirm_timeout = 0

        async with session_factory() as db:
            with pytest.raises(LedgerTimeoutError) as exc_info:
                await lifecycle.complete_contract(db, ledger, contract_id)
            contract = await lifecycle.load_contract(db, contract_id)

        assert contract.status == ContractStatus.SIGNED.value
        assert contract.pending_tx_id == exc_info.value.signature

        fake_rpc.status_sequence = None
        ledger.confirm_timeout = 1
        async with session_factory() as db:
            contract = await lifecycle.complete_contract(db, ledger, contract_id)

        assert contract.status == ContractStatus.COMPLETED.value
        assert contract.solana_tx_id == exc_info.value.signature
        assert fake_rpc.calls.count("sendTransaction") == 1

    @pytest.mark.asyncio
    async def test_status_poll_failure_keeps_signature_for_retry(self, session_factory, ledger, fake_rpc):
        contract_id = await _signed_contract(session_factory)
        fake_rpc.unreachable.add("getSignatureStatuses")

        async with session_factory() as db:
            with pytest.raises(httpx.ConnectError):
                await lifecycle.complete_contract(db, ledger, contract_id)
            contract = await lifecycle.load_contract(db, contract_id)

        assert contract.status == ContractStatus.SIGNED.value
        submitted = contract.pending_tx_id
        assert submitted in fake_rpc.transactions

        fake_rpc.unreachable.clear()
        async with session_factory() as db:
            contract = await lifecycle.complete_contract(db, ledger, contract_id)

        assert contract.status == ContractStatus.COMPLETED.value
        assert contract.solana_tx_id == submitted
        assert fake_rpc.calls.count("sendTransaction") == 1
        assert len(fake_rpc.transactions) == 1

    @pytest.mark.asyncio
    async def test_failed_pending_transaction_is_not_reused(self, session_factory, ledger, fake_rpc):
        contract_id = await _signed_contract(session_factory)
        fake_rpc.tx_error = {"InstructionError": [1, "InvalidInstructionData"]}

        async with session_factory() as db:
            with pytest.raises(LedgerRpcError):
                await lifecycle.complete_contract(db, ledger, contract_id)
            failed_tx = (await lifecycle.load_contract(db, contract_id)).pending_tx_id

        fake_rpc.tx_error = None
        async with session_factory() as db:
            contract = await lifecycle.complete_contract(db, ledger, contract_id)

        assert failed_tx is not None
        assert contract.solana_tx_id != failed_tx
        assert contract.status == ContractStatus.COMPLETED.value

    @pytest.mark.asyncio
    async def test_stale_pending_transaction_is_replaced(self, session_factory, ledger, fake_rpc):
        contract_id = await _signed_contract(session_factory)
        stale_tx = await ledger.record_hash("0" * 64)
        async with session_factory() as db:
            await db.execute(
                update(Contract).where(Contract.id == contract_id).values(pending_tx_id=stale_tx)
            )
            await db.commit()

        async with session_factory() as db:
            contract = await lifecycle.complete_contract(db, ledger, contract_id)

        assert contract.solana_tx_id != stale_tx
        assert fake_rpc.memo_of(contract.solana_tx_id) == f"KIMCONTRACT:{contract.pdf_hash}"

    @pytest.mark.asyncio
    async def test_concurrent_completion_keeps_first_anchor(self, session_factory):
        contract_id = await _signed_contract(session_factory)

        async def racing_submit_hash(digest: str) -> str:
            # another request finishes the transition while we are on-chain
            async with session_factory() as other:
                await other.execute(
                    update(Contract)
                    .where(Contract.id == contract_id)
                    .values(
                        status=ContractStatus.COMPLETED.value,
                        pdf_hash=digest,
                        solana_tx_id="tx_winner",
                    )
                )
                await other.commit()
            return "tx_loser"

        ledger = AsyncMock()
        ledger.submit_hash.side_effect = racing_submit_hash

        async with session_factory() as db:
            contract = await lifecycle.complete_contract(db, ledger, contract_id)

        assert contract.status == ContractStatus.COMPLETED.value
        assert contract.solana_tx_id == "tx_winner"

    @pytest.mark.asyncio
    async def test_ledger_failure_surfaces_unmodified(self, session_factory):
        contract_id = await _signed_contract(session_factory)
        ledger = AsyncMock()
        ledger.submit_hash.side_effect = ConnectionError("rpc unreachable")

        async with session_factory() as db:
            with pytest.raises(ConnectionError, match="rpc unreachable"):
                await lifecycle.complete_contract(db, ledger, contract_id)
            contract = await lifecycle.load_contract(db, contract_id)

        assert contract.status == ContractStatus.SIGNED.value
        assert contract.pending_tx_id is None
        ledger.verify_transaction.assert_not_called()


class TestVerificationResultShape:
    def test_defaults_to_no_error(self):
        result = VerificationResult(True, "abc")
        assert result.error == VerifyError.NONE
