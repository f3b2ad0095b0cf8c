"""Pytest fixtures for riskledger tests."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime

import pytest
import pytest_asyncio
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from riskledger.config.settings import Environment, Settings
from riskledger.core.clock import FixedClock
from riskledger.db.models.base import Base
from riskledger.db.repositories.risk import SqlAlchemyRiskGateway
from riskledger.risk.memory import InMemoryRiskGateway
from riskledger.risk.risk import Risk
from riskledger.risk.service import CreateRiskOptions, RiskLifecycleService
from riskledger.risk.treatment import Treatment
from riskledger.risk.types import (
    RiskCategory,
    RiskImpact,
    RiskLikelihood,
    TreatmentType,
)

EPOCH = datetime(2024, 1, 15, 9, 0, tzinfo=UTC)


# =============================================================================
# Structlog Configuration Fixture
# =============================================================================


@pytest.fixture(scope="function", autouse=True)
def reset_structlog_after_test():
    """Reset structlog configuration after each test.

    This ensures tests that modify structlog global state
    don't affect other tests.
    """
    yield
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


# =============================================================================
# Settings and Clock
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings for the test environment."""
    return Settings(
        environment=Environment.TEST,
        log_level="DEBUG",
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at 2024-01-15 09:00 UTC."""
    return FixedClock(EPOCH)


# =============================================================================
# Gateways and Service
# =============================================================================


@pytest.fixture
def memory_gateway(clock: FixedClock) -> InMemoryRiskGateway:
    return InMemoryRiskGateway(clock=clock)


@pytest.fixture
def service(
    memory_gateway: InMemoryRiskGateway,
    clock: FixedClock,
    test_settings: Settings,
) -> RiskLifecycleService:
    """Lifecycle service over the in-memory gateway."""
    return RiskLifecycleService(memory_gateway, clock=clock, settings=test_settings)


@pytest.fixture
def create_risk(
    service: RiskLifecycleService,
) -> Callable[..., Awaitable[Risk]]:
    """Factory that creates a risk through the service and unwraps it."""

    async def _create(
        name: str = "Vendor outage",
        description: str = "Primary payment vendor becomes unavailable",
        category: RiskCategory = RiskCategory.THIRD_PARTY,
        impact: RiskImpact = RiskImpact.MAJOR,
        likelihood: RiskLikelihood = RiskLikelihood.POSSIBLE,
        creator_id: str = "user-1",
        **options,
    ) -> Risk:
        result = await service.create_risk(
            name,
            description,
            category,
            impact,
            likelihood,
            creator_id,
            CreateRiskOptions(**options),
        )
        return result.unwrap()

    return _create


@pytest.fixture
def create_treatment(
    service: RiskLifecycleService,
) -> Callable[..., Awaitable[Treatment]]:
    """Factory that creates a treatment through the service and unwraps it."""

    async def _create(
        risk_id: str,
        type: TreatmentType = TreatmentType.MITIGATE,
        name: str = "Add secondary vendor",
        description: str = "Contract a failover payment provider",
        creator_id: str = "user-1",
    ) -> Treatment:
        result = await service.create_risk_treatment(risk_id, name, description, type, creator_id)
        return result.unwrap()

    return _create


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def test_engine():
    """Create an in-memory SQLite engine with all tables."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for a test."""
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Factory for opening additional sessions on the test engine."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def sql_gateway(db_session: AsyncSession, clock: FixedClock) -> SqlAlchemyRiskGateway:
    return SqlAlchemyRiskGateway(db_session, clock=clock)
