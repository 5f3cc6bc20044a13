"""Solana JSON-RPC client — anchors contract hashes as memo transactions."""

from __future__ import annotations

import asyncio
import base64
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from anchoring.memo import MEMO_PROGRAM_ID, VerifyError, build_memo, extract_memo_hash
from src.config import Settings
from src.errors import (
    InsufficientBalanceError,
    LedgerNotConfiguredError,
    LedgerRpcError,
    LedgerTimeoutError,
)

logger = logging.getLogger(__name__)

_CONFIRMED_LEVELS = {
    "processed": {"processed", "confirmed", "finalized"},
    "confirmed": {"confirmed", "finalized"},
    "finalized": {"finalized"},
}


@dataclass(frozen=True)
class VerificationResult:
    matches: bool
    blockchain_hash: str | None
    error: VerifyError = VerifyError.NONE


class SolanaLedgerClient:
    """Owns the operator keypair and the RPC connection.

    Built once per application (see ``src.main.lifespan``) and closed on
    shutdown. Writes are never retried here: a failed or unconfirmed write
    surfaces to the caller, which keeps the contract in SIGNED.
    """

    def __init__(
        self,
        rpc_url: str,
        payer: Keypair,
        *,
        memo_tag: str = "KIMCONTRACT",
        min_balance_lamports: int = 1_000_000,
        commitment: str = "confirmed",
        confirm_timeout: float = 60.0,
        poll_interval: float = 1.0,
        http_timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.rpc_url = rpc_url
        self.payer = payer
        self.memo_tag = memo_tag
        self.min_balance_lamports = min_balance_lamports
        self.commitment = commitment
        self.confirm_timeout = confirm_timeout
        self.poll_interval = poll_interval
        self._client = http_client or httpx.AsyncClient(timeout=http_timeout)
        self._ids = itertools.count(1)
        self._memo_program = Pubkey.from_string(MEMO_PROGRAM_ID)

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient | None = None) -> "SolanaLedgerClient":
        if not settings.solana_private_key:
            raise LedgerNotConfiguredError()
        payer = Keypair.from_base58_string(settings.solana_private_key)
        return cls(
            settings.solana_rpc_url,
            payer,
            memo_tag=settings.memo_tag,
            min_balance_lamports=settings.min_balance_lamports,
            commitment=settings.solana_commitment,
            confirm_timeout=settings.ledger_confirm_timeout_seconds,
            poll_interval=settings.ledger_poll_interval_seconds,
            http_timeout=settings.ledger_http_timeout_seconds,
            http_client=http_client,
        )

    @property
    def address(self) -> str:
        return str(self.payer.pubkey())

    async def close(self):
        await self._client.aclose()

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        """POST one JSON-RPC call and return its ``result``.

        Transport and HTTP status errors propagate as httpx exceptions; an
        ``error`` member in the body raises LedgerRpcError.
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        resp = await self._client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        body = resp.json()
        if body.get("error"):
            error = body["error"]
            raise LedgerRpcError(method, str(error.get("message", error)), error.get("code"))
        return body.get("result")

    async def get_balance(self) -> int:
        """Operator balance in lamports."""
        result = await self._rpc("getBalance", [self.address, {"commitment": self.commitment}])
        return int(result["value"])

    async def _latest_blockhash(self) -> Hash:
        result = await self._rpc("getLatestBlockhash", [{"commitment": self.commitment}])
        return Hash.from_string(result["value"]["blockhash"])

    def build_transaction(self, digest: str, blockhash: Hash) -> Transaction:
        """Zero-value self-transfer plus one memo instruction, signed by the payer."""
        owner = self.payer.pubkey()
        instructions = [
            transfer(TransferParams(from_pubkey=owner, to_pubkey=owner, lamports=0)),
            Instruction(self._memo_program, build_memo(self.memo_tag, digest), []),
        ]
        return Transaction.new_signed_with_payer(instructions, owner, [self.payer], blockhash)

    async def submit_hash(self, digest: str) -> str:
        """Send the memo transaction for ``digest`` and return its signature.

        The transaction is not yet confirmed when this returns.
        """
        balance = await self.get_balance()
        if balance < self.min_balance_lamports:
            raise InsufficientBalanceError(balance, self.min_balance_lamports, self.address)

        tx = self.build_transaction(digest, await self._latest_blockhash())
        encoded = base64.b64encode(bytes(tx)).decode("ascii")
        signature = await self._rpc(
            "sendTransaction",
            [encoded, {"encoding": "base64", "preflightCommitment": self.commitment}],
        )
        logger.info("Submitted anchoring tx %s for hash %s...", signature, digest[:16])
        return signature

    async def record_hash(self, digest: str) -> str:
        """Anchor ``digest`` on-chain and return the confirmed tx signature."""
        signature = await self.submit_hash(digest)
        await self.confirm_transaction(signature)
        return signature

    async def confirm_transaction(self, signature: str) -> None:
        """Poll until ``signature`` reaches the configured commitment."""
        accepted = _CONFIRMED_LEVELS.get(self.commitment, _CONFIRMED_LEVELS["confirmed"])
        deadline = time.monotonic() + self.confirm_timeout
        while True:
            result = await self._rpc("getSignatureStatuses", [[signature]])
            status = ((result or {}).get("value") or [None])[0]
            if status is not None:
                if status.get("err") is not None:
                    raise LedgerRpcError(
                        "sendTransaction", f"transaction {signature} failed: {status['err']}"
                    )
                if status.get("confirmationStatus") in accepted:
                    logger.info("Solana TX confirmed: %s", signature)
                    return
            if time.monotonic() >= deadline:
                raise LedgerTimeoutError(signature, self.confirm_timeout)
            await asyncio.sleep(self.poll_interval)

    async def fetch_transaction(self, signature: str) -> dict | None:
        return await self._rpc(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )

    async def verify_transaction(self, signature: str, expected_hash: str) -> VerificationResult:
        """Compare the memo recorded in ``signature`` with ``expected_hash``.

        A missing or failed transaction and an unreadable memo are reported
        through ``error`` and never count as tampering.
        """
        tx = await self.fetch_transaction(signature)
        if not tx:
            logger.error("Transaction not found: %s", signature)
            return VerificationResult(False, None, VerifyError.NOT_FOUND)
        if (tx.get("meta") or {}).get("err") is not None:
            logger.error("Transaction %s failed on-chain: %s", signature, tx["meta"]["err"])
            return VerificationResult(False, None, VerifyError.FAILED)

        message = (tx.get("transaction") or {}).get("message") or {}
        blockchain_hash, error = extract_memo_hash(message, self.memo_tag)
        if blockchain_hash is None:
            logger.error("Could not extract hash from transaction %s", signature)
            return VerificationResult(False, None, error)

        matches = blockchain_hash == expected_hash
        logger.info(
            "Verification %s (ledger: %s..., current: %s...)",
            "matched" if matches else "MISMATCH",
            blockchain_hash[:16],
            expected_hash[:16],
        )
        return VerificationResult(matches, blockchain_hash)
