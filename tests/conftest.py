"""Shared test fixtures: file-backed async SQLite DB per test + test client."""

import os
from collections.abc import AsyncGenerator, Callable

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

# Import all models so metadata is populated
import app.models  # noqa: F401
from app.core.database import get_engine, init_db
from app.core.security import UserRole, create_access_token
from app.main import app
from app.models.customer import Customer
from app.services.code_entity.repository import CodeEntityRepository
from app.services.code_entity.rules import upper_code
from app.services.code_entity.service import CodeEntityService
from app.services.customers import CUSTOMER_CONFIG, validate_customer


@pytest.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    # A file, not :memory:, so concurrent connections see the same database.
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'qc.db'}", echo=False)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def customer_repo(engine) -> CodeEntityRepository[Customer]:
    return CodeEntityRepository(engine, Customer, CUSTOMER_CONFIG)


@pytest.fixture
def customer_service(customer_repo) -> CodeEntityService[Customer]:
    return CodeEntityService(
        customer_repo,
        extra_rules=(validate_customer,),
        normalize_code=upper_code,
    )


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build bearer headers for a caller with the given role."""

    def _headers(role: UserRole = UserRole.ADMIN, user_id: int = 7) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}

    return _headers


@pytest.fixture
async def client(engine) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with the engine dependency overridden."""
    app.dependency_overrides[get_engine] = lambda: engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
