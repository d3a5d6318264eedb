"""Escrow Ledger API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map EscrowLedgerError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Event store and escrow service initialized on startup via lifespan context manager

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Error handlers live in api/error_handlers.py (registered here)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from escrow_ledger.api import dependencies
from escrow_ledger.api.error_handlers import register_error_handlers
from escrow_ledger.api.routes import (
    escrow_actions, escrow_events, escrow_lifecycle, health,
)
from escrow_ledger.config import get_settings
from escrow_ledger.infrastructure import database
from escrow_ledger.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    dependencies.init_escrow_service(settings)
    logger.info(
        f"Escrow Ledger API started (event store: {settings.event_store_backend})",
    )
    yield
    if database.db_manager:
        await database.db_manager.dispose()
    logger.info("Escrow Ledger API shutting down")


app = FastAPI(
    title="Escrow Ledger API", version="1.0.0", lifespan=lifespan,
)

# CORS — configured from settings, not hardcoded
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes — explicit registration
app.include_router(health.router)
app.include_router(escrow_lifecycle.router)
app.include_router(escrow_actions.router)
app.include_router(escrow_events.router)

register_error_handlers(app)
