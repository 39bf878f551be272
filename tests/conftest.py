"""Shared test fixtures for async database, sessions, storage, data source, and auth tokens."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from wastecollect_api.core.config import Settings
from wastecollect_api.core.security import create_access_token
from wastecollect_api.lib.reports import (
    CollectionSummary,
    LocalFileStorage,
    PerformanceSummary,
    PredictiveSummary,
    ReportFilters,
)
from wastecollect_api.models.base import Base


class FakeReportDataSource:
    """In-memory report data source returning fixed aggregates."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, ReportFilters | int]] = []
        self.municipalities = {7: "Springfield"}
        self.closed = False

    async def get_performance_summary(self, filters: ReportFilters) -> PerformanceSummary:
        self.calls.append(("performance", filters))
        return PerformanceSummary(
            total_collections=120,
            completed_collections=110,
            completion_rate=91.7,
            average_rating=4.4,
            total_households=800,
            total_revenue=15250.5,
        )

    async def get_collection_summary(self, filters: ReportFilters) -> CollectionSummary:
        self.calls.append(("collections", filters))
        return CollectionSummary(
            total_collections=120,
            total_waste_volume_kg=5400.0,
            average_waste_per_collection_kg=45.0,
            pending_service_requests=3,
            completed_service_requests=17,
            waste_volume_by_type={"organic": 2600.0, "plastic": 1800.0, "glass": 1000.0},
        )

    async def get_predictive_summary(self, filters: ReportFilters) -> PredictiveSummary:
        self.calls.append(("predictive", filters))
        return PredictiveSummary(
            next_week_volume_prediction=5600.0,
            high_demand_areas=["Downtown", "Riverside"],
            suggested_routes=["Route A: Downtown -> Riverside"],
        )

    async def get_municipality_name(self, municipality_id: int) -> str | None:
        self.calls.append(("municipality", municipality_id))
        return self.municipalities.get(municipality_id)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """File-backed SQLite URL; report workers open their own connections."""
    return f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def settings(tmp_path: Path, database_url: str) -> Settings:
    """Test application settings."""
    return Settings(
        _env_file=None,
        database_url=database_url,
        jwt_secret_key="test-secret-key-not-for-production",
        jwt_algorithm="HS256",
        report_worker_pool_size=2,
        report_storage_dir=str(tmp_path / "reports"),
    )  # type: ignore[call-arg]


@pytest.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create a file-backed async SQLite engine with the schema applied."""
    engine = create_async_engine(database_url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def report_storage(tmp_path: Path) -> LocalFileStorage:
    """Local artifact storage under the test's temp directory."""
    return LocalFileStorage(tmp_path / "reports")


@pytest.fixture
def fake_data_source() -> FakeReportDataSource:
    """Report data source with fixed aggregates."""
    return FakeReportDataSource()


@pytest.fixture
def admin_token(settings: Settings) -> str:
    """Generate a JWT access token for an admin user."""
    return create_access_token(
        subject="testadmin",
        role="admin",
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )


@pytest.fixture
def viewer_token(settings: Settings) -> str:
    """Generate a JWT access token for a viewer user."""
    return create_access_token(
        subject="testviewer",
        role="viewer",
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
