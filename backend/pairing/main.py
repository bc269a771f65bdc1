"""Pairing API - FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map PairingError -> structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database, rate limiter and PartnershipService built once on startup via lifespan

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Shutdown awaits pending post-commit cleanup before disposing the engine
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pairing.api.error_handlers import register_error_handlers
from pairing.api.routes import health, partnerships, projects, supervisor_partnerships
from pairing.config import Settings, get_settings
from pairing.infrastructure.database import init_db
from pairing.infrastructure.observability import setup_logging
from pairing.infrastructure.rate_limit_backends import (
    MemoryWindowCounter, RedisWindowCounter,
)
from pairing.infrastructure.sql_store import SqlEntityStore
from pairing.services.partnership_service import PartnershipService
from pairing.services.rate_limiter import RateLimiter, default_rules

logger = logging.getLogger(__name__)


def build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.rate_limit_backend == "memory":
        backend = MemoryWindowCounter()
    else:
        backend = RedisWindowCounter.from_url(settings.redis_url)
    return RateLimiter(
        backend,
        default_rules(
            settings.partnership_request_limit,
            settings.partnership_response_limit,
            settings.rate_limit_window_seconds,
        ),
        settings.rate_limit_fail_strategy,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    manager = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        isolation_level=settings.transaction_isolation_level,
    )
    store = SqlEntityStore(
        manager,
        max_retries=settings.transaction_max_retries,
        base_delay_ms=settings.transaction_base_delay_ms,
        max_delay_ms=settings.transaction_max_delay_ms,
        max_batch_size=settings.batch_write_limit,
    )
    app.state.store = store
    app.state.rate_limiter = build_rate_limiter(settings)
    app.state.partnership_service = PartnershipService(store)
    logger.info("Pairing API started")
    yield
    logger.info("Pairing API shutting down")
    await app.state.partnership_service.wait_for_cleanup()
    await app.state.rate_limiter.close()
    await manager.dispose()


app = FastAPI(title="Pairing API", version="1.0.0", lifespan=lifespan)

# CORS - configured from settings, not hardcoded
settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes - explicit registration
app.include_router(health.router)
app.include_router(partnerships.router)
app.include_router(supervisor_partnerships.router)
app.include_router(projects.router)

register_error_handlers(app)
