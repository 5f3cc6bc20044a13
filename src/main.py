"""Contract Notary — labor contract drafting, e-signing and Solana anchoring."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from anchoring.ledger_client import SolanaLedgerClient
from src.config import settings
from src.database import init_db, close_db, async_session
from src.errors import register_error_handlers
from src.logging_setup import configure_logging
from src.middleware.api_key_auth import ApiKeyAuthMiddleware
from src.routes import contracts, companies

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    # after init_db: alembic.ini logging config replaces root handlers
    configure_logging(settings.log_level)

    if settings.seed_demo_data:
        from sqlalchemy import select, func
        from src.entities.company import Company
        from src.seed import seed_data

        async with async_session() as db:
            result = await db.execute(select(func.count(Company.id)))
            if result.scalar() == 0:
                await seed_data(db)

    if settings.solana_private_key:
        app.state.ledger = SolanaLedgerClient.from_settings(settings)
        logger.info(
            "Solana ledger connected (%s). Payer: %s",
            settings.solana_rpc_url, app.state.ledger.address,
        )
    else:
        app.state.ledger = None
        logger.warning("CONTRACT_NOTARY_SOLANA_PRIVATE_KEY not set; anchoring disabled")
    if not settings.api_key:
        logger.warning("CONTRACT_NOTARY_API_KEY not set; requests are not authenticated")

    yield

    if app.state.ledger is not None:
        await app.state.ledger.close()
    await close_db()


app = FastAPI(
    title="Contract Notary",
    description="Standard labor contracts with e-signatures and Solana-anchored integrity checks",
    version=settings.api_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ApiKeyAuthMiddleware)

register_error_handlers(app)

app.include_router(contracts.router, prefix=settings.api_prefix)
app.include_router(companies.router, prefix=settings.api_prefix)


@app.get("/health")
async def health(request: Request):
    return {
        "status": "healthy",
        "service": "contract-notary",
        "version": settings.api_version,
        "ledgerConfigured": getattr(request.app.state, "ledger", None) is not None,
    }
