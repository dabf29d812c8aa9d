import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
import tempfile
import os

from smart_parking.infrastructure.persistence.models.models import Base
from smart_parking.infrastructure.api.dependencies import Repositories
from smart_parking.application.services.availability_service import AvailabilityService
from smart_parking.domain.entities import Facility, User


@pytest.fixture(scope="function")
async def test_db():
    """Create a test database for each test function."""
    # Create a temporary file for the test database
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp_file:
        test_db_path = tmp_file.name

    # Create async engine with NullPool to avoid connection issues
    test_db_url = f"sqlite+aiosqlite:///{test_db_path}"
    engine = create_async_engine(
        test_db_url,
        poolclass=NullPool,
        echo=False
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create session factory
    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    yield async_session_maker

    # Cleanup
    await engine.dispose()
    os.unlink(test_db_path)


@pytest.fixture
async def db_session(test_db):
    """Create a database session for a test."""
    async with test_db() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repos(db_session):
    """All SQLAlchemy repositories plus the unit of work over one session."""
    return Repositories(db_session)


@pytest.fixture
def availability(repos) -> AvailabilityService:
    return repos.availability()


@pytest.fixture
async def owner(repos):
    user = await repos.users.add(User(email="owner@example.com", full_name="Olivia Owner"))
    await repos.uow.commit()
    return user


@pytest.fixture
async def driver(repos):
    user = await repos.users.add(User(email="driver@example.com", full_name="Dana Driver"))
    await repos.uow.commit()
    return user


@pytest.fixture
async def other_driver(repos):
    user = await repos.users.add(User(email="other@example.com", full_name="Sam Other"))
    await repos.uow.commit()
    return user


@pytest.fixture
def make_facility(repos, owner):
    """Factory for facilities owned by ``owner``; always open unless hours are given."""

    async def _make(total_spaces=1, hourly_rate=10.0, opening_hours=None, latitude=48.8566, longitude=2.3522):
        facility = Facility.create(
            owner_id=owner.id,
            latitude=latitude,
            longitude=longitude,
            total_spaces=total_spaces,
            hourly_rate=hourly_rate,
            opening_hours=opening_hours,
        )
        facility = await repos.facilities.add(facility)
        await repos.uow.commit()
        return facility

    return _make


@pytest.fixture
async def facility(make_facility):
    """Capacity 1 at 10/h, open around the clock."""
    return await make_facility()
