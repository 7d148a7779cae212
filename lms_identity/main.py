"""FastAPI application wiring for the identity service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from psycopg_pool import AsyncConnectionPool

from .api.routes import router as v1_router
from .config import get_settings
from .domain.resolver import IdentityResolver
from .repository import PostgresAccountStore
from .security.rate_limit import build_rate_limiter
from .seeds import build_seed_provider

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the Postgres pool and build the resolver for the app lifecycle."""
    seed_provider = build_seed_provider(settings.seed_accounts_path)
    statement_timeout_ms = int(settings.store_timeout_seconds * 1000)
    pool = AsyncConnectionPool(
        settings.database_url,
        open=False,
        timeout=settings.store_timeout_seconds,
        kwargs={"options": f"-c statement_timeout={statement_timeout_ms}"},
    )
    await pool.open()
    store = PostgresAccountStore(pool)
    app.state.pool = pool
    app.state.account_store = store
    app.state.seed_provider = seed_provider
    app.state.resolver = IdentityResolver(store, seed_provider)
    app.state.rate_limiter = build_rate_limiter(settings)
    logger.info("identity service ready with %d seed accounts", len(seed_provider.list_seed_accounts()))
    try:
        yield
    finally:
        await pool.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=600,
)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


app.include_router(v1_router)
