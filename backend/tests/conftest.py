"""Root conftest - shared test configuration and engine fixtures."""

import os

import pytest

# Tests never reach a real Postgres or Redis
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

from pairing.services.partnership_service import PartnershipService  # noqa: E402
from tests.fake_store import InMemoryEntityStore  # noqa: E402


@pytest.fixture
def store():
    return InMemoryEntityStore()


@pytest.fixture
async def service(store):
    svc = PartnershipService(store)
    yield svc
    await svc.wait_for_cleanup()
