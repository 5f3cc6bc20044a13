"""Shared fixtures: in-memory database and a fake Solana JSON-RPC node."""

from __future__ import annotations

import base64
import json
from datetime import date

import base58
import httpx
import pytest
import pytest_asyncio
from solders.hash import Hash
from solders.keypair import Keypair
from solders.transaction import Transaction
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import src.entities  # noqa: F401
from anchoring.ledger_client import SolanaLedgerClient
from src.database import Base
from src.entities.contract import Contract, ContractStatus


class FakeSolanaRpc:
    """Answers the handful of JSON-RPC methods the ledger client uses.

    Submitted transactions are decoded and stored in the ``json`` encoding
    shape that ``getTransaction`` returns on a real node.
    """

    def __init__(self, balance: int = 2_000_000_000):
        self.balance = balance
        self.transactions: dict[str, dict] = {}
        self.calls: list[str] = []
        self.errors: dict[str, dict] = {}
        self.status_sequence: list[dict | None] | None = None
        self.tx_error: dict | None = None
        self.unreachable: set[str] = set()
        self._slot = 1000

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method, params = body["method"], body["params"]
        self.calls.append(method)
        if method in self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)
        if method in self.errors:
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": body["id"], "error": self.errors[method]}
            )
        result = getattr(self, f"_{method}")(params)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def _getBalance(self, params):
        return {"context": {"slot": self._slot}, "value": self.balance}

    def _getLatestBlockhash(self, params):
        return {
            "context": {"slot": self._slot},
            "value": {"blockhash": str(Hash.new_unique()), "lastValidBlockHeight": self._slot + 150},
        }

    def _sendTransaction(self, params):
        tx = Transaction.from_bytes(base64.b64decode(params[0]))
        signature = str(tx.signatures[0])
        message = tx.message
        self._slot += 1
        self.transactions[signature] = {
            "slot": self._slot,
            "blockTime": None,
            "meta": {"err": self.tx_error, "fee": 5000},
            "transaction": {
                "signatures": [signature],
                "message": {
                    "accountKeys": [str(key) for key in message.account_keys],
                    "recentBlockhash": str(message.recent_blockhash),
                    "instructions": [
                        {
                            "programIdIndex": ix.program_id_index,
                            "accounts": list(ix.accounts),
                            "data": base58.b58encode(bytes(ix.data)).decode("ascii"),
                        }
                        for ix in message.instructions
                    ],
                },
            },
        }
        return signature

    def _getSignatureStatuses(self, params):
        signature = params[0][0]
        if self.status_sequence is not None:
            status = self.status_sequence.pop(0) if self.status_sequence else None
        elif signature in self.transactions:
            status = {
                "slot": self._slot,
                "confirmations": 0,
                "err": self.tx_error,
                "confirmationStatus": "confirmed",
            }
        else:
            status = None
        return {"context": {"slot": self._slot}, "value": [status]}

    def _getTransaction(self, params):
        return self.transactions.get(params[0])

    def memo_of(self, signature: str) -> str:
        """Decoded memo text of a stored transaction."""
        message = self.transactions[signature]["transaction"]["message"]
        keys = message["accountKeys"]
        for ix in message["instructions"]:
            if keys[ix["programIdIndex"]].startswith("Memo"):
                return base58.b58decode(ix["data"]).decode("utf-8")
        raise KeyError(signature)


@pytest.fixture
def fake_rpc():
    return FakeSolanaRpc()


@pytest_asyncio.fixture
async def ledger(fake_rpc):
    client = SolanaLedgerClient(
        "http://solana.test",
        Keypair(),
        memo_tag="KIMCONTRACT",
        min_balance_lamports=1_000_000,
        confirm_timeout=1.0,
        poll_interval=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(fake_rpc.handler)),
    )
    yield client
    await client.close()


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


def contract_fields(**overrides) -> dict:
    fields = {
        "contract_type": "PARTTIME",
        "employer_name": "Hanbit Bakery",
        "employer_ceo": "Kim Minsoo",
        "employer_address": "12 Sejong-daero, Seoul",
        "employer_phone": "02-1234-5678",
        "worker_name": "홍길동",
        "worker_birth": "1995-03-14",
        "worker_phone": "010-1111-2222",
        "worker_address": "Mapo-gu, Seoul",
        "start_date": date(2025, 3, 1),
        "end_date": None,
        "work_days": ["월", "화", "수"],
        "work_start": "09:00",
        "work_end": "18:00",
        "break_time": 60,
        "hourly_wage": 10320,
        "pay_day": 10,
        "special_terms": None,
    }
    fields.update(overrides)
    return fields


async def create_contract(session_factory, contract_id: str = "ctr_test", **overrides) -> str:
    async with session_factory() as db:
        values = contract_fields(**overrides)
        values.setdefault("status", ContractStatus.DRAFT.value)
        db.add(Contract(id=contract_id, **values))
        await db.commit()
    return contract_id
