"""
FastAPI application factory for the VoxPay transfer service.

This module wires together:
- Logging configuration (rotating files under LOG_DIR)
- CORS and request-logging middleware
- The transfer, internal-transfer and lookup routers under /api
- Background sweeping of expired pending transactions

Run with ``voxpay-server`` or ``uvicorn voxpay.app:create_app --factory``.
"""

import asyncio
import os
from datetime import timedelta
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.requests import Request

from . import __version__
from .api.deps import Services
from .api.errors import register_exception_handlers
from .api.lookups import router as lookups_router
from .api.transfers import router as transfers_router
from .banks.resolver import AccountResolver
from .clients.bank_verification import BankVerificationClient, PaystackVerificationClient
from .config import Settings, get_settings
from .db.session import build_engine, build_session_factory, create_schema
from .ledger import LedgerExecutor
from .logging_config import get_logger, setup_logging
from .orchestrator import TransferOrchestrator
from .pending import PendingTransactionStore
from .pin import HashedPinVerifier, PinVerifier
from .recipients import RecipientMatcher

logger = get_logger("voxpay")


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker,
    verifier: BankVerificationClient,
    pin_verifier: Optional[PinVerifier] = None,
    store: Optional[PendingTransactionStore] = None,
) -> Services:
    store = store or PendingTransactionStore(ttl=timedelta(minutes=settings.pending_ttl_minutes))
    resolver = AccountResolver(verifier)
    matcher = RecipientMatcher(session_factory, limit=settings.recipient_search_limit)
    ledger = LedgerExecutor(session_factory, default_currency=settings.default_currency)
    orchestrator = TransferOrchestrator(
        session_factory=session_factory,
        store=store,
        resolver=resolver,
        matcher=matcher,
        executor=ledger,
        pin_verifier=pin_verifier or HashedPinVerifier(session_factory),
        pin_max_attempts=settings.pin_max_attempts,
    )
    return Services(
        session_factory=session_factory,
        store=store,
        resolver=resolver,
        matcher=matcher,
        ledger=ledger,
        orchestrator=orchestrator,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[async_sessionmaker] = None,
    verifier: Optional[BankVerificationClient] = None,
    pin_verifier: Optional[PinVerifier] = None,
    store: Optional[PendingTransactionStore] = None,
) -> FastAPI:
    settings = settings or get_settings()

    # Configure logging before creating the app
    setup_logging(settings)

    engine = None
    if session_factory is None:
        engine = build_engine(settings)
        session_factory = build_session_factory(engine)
        logger.info("Database engine created (echo=%s)", settings.database_echo)

    if verifier is None:
        if not settings.paystack_secret_key:
            logger.warning("PAYSTACK_SECRET_KEY not set; external account verification will fail")
        verifier = PaystackVerificationClient(
            settings.paystack_secret_key,
            base_url=settings.paystack_api_url,
            timeout=settings.verification_timeout_seconds,
        )

    app = FastAPI(title="VoxPay Transfer API", version=__version__)
    app.state.settings = settings
    app.state.services = build_services(settings, session_factory, verifier, pin_verifier, store)

    # CORS (open for demo)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Lightweight request logger; bodies are not logged since they may carry PINs.
        """
        logger.info(
            "HTTP %s %s from %s",
            request.method,
            request.url.path,
            request.client.host if request.client else "?",
        )
        response = await call_next(request)
        logger.info("HTTP %s %s -> %s", request.method, request.url.path, response.status_code)
        return response

    @app.get("/api/health")
    async def health():
        """
        Simple health check endpoint.
        """
        return {"status": "healthy", "pending_transactions": len(app.state.services.store)}

    register_exception_handlers(app)
    app.include_router(transfers_router, prefix="/api")
    app.include_router(lookups_router, prefix="/api")

    @app.on_event("startup")
    async def on_startup():
        logger.info("VoxPay starting up")
        services: Services = app.state.services
        if engine is not None:
            await create_schema(engine)
        await services.ledger.ensure_external_sink()
        app.state.sweeper = asyncio.create_task(
            services.store.run_sweeper(settings.pending_sweep_seconds)
        )

    @app.on_event("shutdown")
    async def on_shutdown():
        sweeper = getattr(app.state, "sweeper", None)
        if sweeper is not None:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass
        if isinstance(verifier, PaystackVerificationClient):
            await verifier.aclose()
        if engine is not None:
            try:
                await engine.dispose()
            except Exception:
                logger.exception("Error disposing engine on shutdown")
        logger.info("VoxPay shutting down")

    return app


def main() -> None:
    uvicorn.run(
        "voxpay.app:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
