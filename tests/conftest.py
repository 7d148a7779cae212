from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from fakes import FakeAccountStore
from lms_identity.api import routes
from lms_identity.domain.account import Role, SeedAccount
from lms_identity.domain.resolver import IdentityResolver
from lms_identity.security.rate_limit import InMemoryRateLimiter
from lms_identity.seeds import StaticSeedAccountProvider

SEEDS = (
    SeedAccount(legacy_id="1", email="admin@example.com", role=Role.admin),
    SeedAccount(legacy_id="2", email="Instructor@Example.com", role=Role.instructor),
    SeedAccount(legacy_id="4", email="student@example.com", role=Role.user),
    SeedAccount(legacy_id="9", email="new@example.com", role=Role.content_creator),
)


@pytest.fixture
def store() -> FakeAccountStore:
    return FakeAccountStore()


@pytest.fixture
def seeds() -> StaticSeedAccountProvider:
    return StaticSeedAccountProvider(SEEDS)


@pytest.fixture
def resolver(store, seeds) -> IdentityResolver:
    return IdentityResolver(store, seeds)


@pytest.fixture
def api_app(store, seeds, resolver) -> FastAPI:
    """Provide a FastAPI app with in-memory state."""
    app = FastAPI()
    app.include_router(routes.router)
    app.state.account_store = store
    app.state.seed_provider = seeds
    app.state.resolver = resolver
    app.state.rate_limiter = InMemoryRateLimiter(max_requests=100, window_seconds=60)
    return app


@pytest.fixture
def api_client(api_app):
    with TestClient(api_app) as client:
        yield client
