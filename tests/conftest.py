"""
Test configuration and fixtures for pytest.

Every test gets a fresh in-memory SQLite database (aiosqlite) with all
tables created from the models. The Redis cache is switched off so tests
never need a running server.
"""

import pytest
import pytest_asyncio
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.async_session import get_async_db
from app.db.base_class import Base
from app.models.budget import Budget
from app.models.customer import Customer
from app.models.lead import Lead
from app.services.cache import cache_service
from tests.async_test_utils import COACH_ID, OTHER_COACH_ID
from tests.utils_jwt import generate_test_jwt


@pytest.fixture(autouse=True)
def disable_cache(monkeypatch):
    monkeypatch.setattr(cache_service, "enabled", False)


@pytest_asyncio.fixture
async def async_engine():
    """Create an in-memory async SQLite engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def async_db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create an async SQLAlchemy session for tests."""
    async_session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )
    async with async_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def async_client(async_db_session):
    """Create a FastAPI test client bound to the test database session."""

    async def override_get_async_db():
        yield async_db_session

    app.dependency_overrides[get_async_db] = override_get_async_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides = {}


@pytest.fixture
def auth_header():
    """Authorization header for the acting coach."""
    return {"Authorization": f"Bearer {generate_test_jwt(user_id=COACH_ID)}"}


@pytest.fixture
def other_auth_header():
    return {"Authorization": f"Bearer {generate_test_jwt(user_id=OTHER_COACH_ID, email='other@example.com')}"}


@pytest_asyncio.fixture
async def test_customer(async_db_session: AsyncSession):
    customer = Customer(full_name="Dana Levi", phone="050-123-4567", email="dana@example.com")
    async_db_session.add(customer)
    await async_db_session.commit()
    await async_db_session.refresh(customer)
    return customer


@pytest_asyncio.fixture
async def test_lead(async_db_session: AsyncSession):
    lead = Lead(full_name="Noa Cohen", phone="052-765-4321", status="new")
    async_db_session.add(lead)
    await async_db_session.commit()
    await async_db_session.refresh(lead)
    return lead


@pytest_asyncio.fixture
async def make_budget(async_db_session: AsyncSession):
    """Factory creating budgets owned by the acting coach unless told otherwise."""

    async def _make_budget(**overrides) -> Budget:
        values = {
            "name": "Cut phase",
            "nutrition_targets": {"calories": 1800, "protein": 160, "carbs": 150, "fat": 60, "fiber": 30},
            "steps_goal": 8000,
            "supplements": [{"name": "Creatine", "dosage": "5g", "timing": "Morning"}],
            "is_public": False,
            "created_by": COACH_ID,
        }
        values.update(overrides)
        budget = Budget(**values)
        async_db_session.add(budget)
        await async_db_session.commit()
        await async_db_session.refresh(budget)
        return budget

    return _make_budget
