"""Pytest configuration and fixtures for API tests."""

from collections.abc import AsyncGenerator
from datetime import date, datetime
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fos_dashboard.core.cache import response_cache
from fos_dashboard.models import Base
from fos_dashboard.models.complaint_metric import ComplaintMetric
from fos_dashboard.models.fos_decision import FosDecision
from fos_dashboard.models.ingestion_run import IngestionRun

# Test database URL - use SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(engine, db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client with dependency overrides."""
    from fos_dashboard.core.database import get_db
    from fos_dashboard.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clear_response_cache():
    """Start every test with an empty trend response cache."""
    response_cache.clear()
    yield
    response_cache.clear()


# ============================================================================
# Factory Functions
# ============================================================================


class ComplaintMetricFactory:
    """Factory for creating complaint metric rows."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def create(
        self,
        firm_name: str = "Acme Bank",
        reporting_period: str | None = "2022 H1",
        product_category: str | None = "Banking",
        upheld_rate_pct: float | None = 30.0,
        closed_within_3_days_pct: float | None = 50.0,
        closed_after_3_days_within_8_weeks_pct: float | None = 40.0,
    ) -> ComplaintMetric:
        """Create a complaint metric row with the given attributes."""
        metric = ComplaintMetric(
            firm_name=firm_name,
            reporting_period=reporting_period,
            product_category=product_category,
            upheld_rate_pct=upheld_rate_pct,
            closed_within_3_days_pct=closed_within_3_days_pct,
            closed_after_3_days_within_8_weeks_pct=closed_after_3_days_within_8_weeks_pct,
        )
        self.db_session.add(metric)
        await self.db_session.commit()
        await self.db_session.refresh(metric)
        return metric

    async def create_series(
        self,
        firm_name: str,
        upheld_by_year: dict[int, float],
        **kwargs: Any,
    ) -> list[ComplaintMetric]:
        """Create one H1 row per year with the given uphold rates."""
        return [
            await self.create(
                firm_name=firm_name,
                reporting_period=f"{year} H1",
                upheld_rate_pct=rate,
                **kwargs,
            )
            for year, rate in upheld_by_year.items()
        ]


class DecisionFactory:
    """Factory for creating ombudsman decisions."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session
        self._counter = 0

    async def create(
        self,
        decision_reference: str | None = None,
        decision_date: date | None = date(2023, 5, 1),
        business_name: str | None = "Acme Bank",
        product_sector: str | None = "Banking and credit",
        outcome: str | None = "Upheld",
        **kwargs: Any,
    ) -> FosDecision:
        """Create a decision with the given attributes."""
        self._counter += 1
        if decision_reference is None:
            decision_reference = f"DRN-{1000000 + self._counter}"

        decision = FosDecision(
            decision_reference=decision_reference,
            decision_date=decision_date,
            business_name=business_name,
            product_sector=product_sector,
            outcome=outcome,
            **kwargs,
        )
        self.db_session.add(decision)
        await self.db_session.commit()
        await self.db_session.refresh(decision)
        return decision


class IngestionRunFactory:
    """Factory for creating ingestion runs."""

    def __init__(self, db_session: AsyncSession):
        self.db_session = db_session

    async def create(
        self,
        status: str = "completed",
        updated_at: datetime = datetime(2024, 1, 1, 12, 0),
        **kwargs: Any,
    ) -> IngestionRun:
        """Create an ingestion run with an explicit update time."""
        run = IngestionRun(status=status, updated_at=updated_at, **kwargs)
        self.db_session.add(run)
        await self.db_session.commit()
        await self.db_session.refresh(run)
        return run


@pytest.fixture
def metric_factory(db_session: AsyncSession) -> ComplaintMetricFactory:
    """Factory fixture for creating complaint metric rows."""
    return ComplaintMetricFactory(db_session)


@pytest.fixture
def decision_factory(db_session: AsyncSession) -> DecisionFactory:
    """Factory fixture for creating decisions."""
    return DecisionFactory(db_session)


@pytest.fixture
def ingestion_run_factory(db_session: AsyncSession) -> IngestionRunFactory:
    """Factory fixture for creating ingestion runs."""
    return IngestionRunFactory(db_session)
