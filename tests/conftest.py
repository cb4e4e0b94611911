"""Pytest configuration and fixtures for ClaimCalc tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from claimcalc.config import reset_config
from claimcalc.db.models import Base, HODCodeModel
from claimcalc.models import HODCategory, HODCode, ReserveAmounts, ReserveRecord, ReserveType, UnitType


@pytest.fixture(autouse=True)
def test_env(monkeypatch):
    """Point configuration at an in-memory database for every test."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    reset_config()
    yield
    reset_config()


@pytest.fixture
def project_id() -> str:
    """Test project (claim) ID."""
    return "CLM-2024-0117"


@pytest.fixture
def actor_id() -> str:
    return "surveyor-1"


@pytest.fixture
def laminate_code() -> HODCode:
    return HODCode(
        code="B008",
        description="Flooring - laminate replacement",
        category=HODCategory.BUILDING,
        sub_category="flooring",
        typical_rate_low=Decimal("35.00"),
        typical_rate_high=Decimal("85.00"),
        unit_type=UnitType.PER_SQUARE_METRE,
    )


@pytest.fixture
def draft_reserve(project_id: str) -> ReserveRecord:
    return ReserveRecord(
        project_id=project_id,
        reserve_type=ReserveType.INITIAL,
        estimated=ReserveAmounts(building=Decimal("10000.00"), contents=Decimal("2500.00")),
        created_by="surveyor-1",
    )


@pytest_asyncio.fixture()
async def db_session() -> AsyncIterator[AsyncSession]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def empty_session() -> AsyncIterator[AsyncSession]:
    """Session against a database with no tables provisioned."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        await session.close()
        await engine.dispose()


@pytest_asyncio.fixture()
async def hod_code(db_session: AsyncSession) -> HODCodeModel:
    model = HODCodeModel(
        code="B008",
        description="Flooring - laminate replacement",
        category="building",
        sub_category="flooring",
        typical_rate_low=Decimal("35.00"),
        typical_rate_high=Decimal("85.00"),
        unit_type="per_square_metre",
    )
    db_session.add(model)
    await db_session.flush()
    return model
