"""Shared pytest fixtures for the grade calculator test suite.

Provides:
- anyio_backend: run ``@pytest.mark.anyio`` tests on asyncio
- snapshot: the reference two-year sample snapshot
- store: a GradeStore seeded with the sample snapshot
- client: AsyncClient with get_grade_store overridden to use ``store``
"""

import pytest
from httpx import ASGITransport, AsyncClient

from src.api.dependencies import get_grade_store
from src.models.grades import GradeSnapshot
from src.store.grade_store import GradeStore
from src.store.sample import sample_snapshot


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def snapshot() -> GradeSnapshot:
    return sample_snapshot()


@pytest.fixture
def store(snapshot: GradeSnapshot) -> GradeStore:
    return GradeStore(snapshot)


@pytest.fixture
async def client(store: GradeStore):
    """AsyncClient whose grade store dependency resolves to ``store``."""
    from src.api.main import app

    async def _override_store() -> GradeStore:
        return store

    app.dependency_overrides[get_grade_store] = _override_store

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
