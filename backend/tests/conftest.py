"""
Centralized Test Configuration.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.models.enums import UserRole
from backend.app.models.user import User
from backend.app.models.driver import Driver
from backend.app.models.fleet_vehicle import FleetVehicle
from backend.app.models.entitled_vehicle import EntitledVehicle

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)).lower():
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


@pytest.fixture(scope="session", autouse=True)
def apply_overrides():
    """Route the app's sessions to the test database for the whole run."""
    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session
    
    app.dependency_overrides[get_db] = override_get_db
    yield
    app.dependency_overrides = {}


@pytest.fixture(autouse=True)
async def setup_database():
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


async def _create_user(db_session, email, name, role, department=None, is_active=True) -> User:
    user = User(email=email, name=name, role=role, department=department, is_active=is_active)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


# --- Users ---

@pytest.fixture
async def employee(db_session):
    return await _create_user(db_session, "ali.hassan@example.com", "Ali Hassan", UserRole.EMPLOYEE, "Academics")


@pytest.fixture
async def other_employee(db_session):
    return await _create_user(db_session, "sara.khan@example.com", "Sara Khan", UserRole.EMPLOYEE, "Finance")


@pytest.fixture
async def manager(db_session):
    return await _create_user(db_session, "manager@example.com", "Maria Manager", UserRole.MANAGER, "Operations")


@pytest.fixture
async def transport_officer(db_session):
    return await _create_user(db_session, "transport@example.com", "Tariq Transport", UserRole.TRANSPORT, "Transport")


@pytest.fixture
async def admin(db_session):
    return await _create_user(db_session, "admin@example.com", "Admin", UserRole.ADMIN)


# --- Resources ---

@pytest.fixture
async def driver(db_session):
    record = Driver(name="Driver One", phone="0300-0000001", license_no="LHR-001")
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


@pytest.fixture
async def second_driver(db_session):
    record = Driver(name="Driver Two", phone="0300-0000002", license_no="LHR-002")
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


@pytest.fixture
async def vehicle(db_session):
    record = FleetVehicle(number="LEA-1001", vehicle_type="Sedan", capacity=4)
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


@pytest.fixture
async def second_vehicle(db_session):
    record = FleetVehicle(number="LEA-1002", vehicle_type="Van", capacity=10)
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


@pytest.fixture
async def entitled_vehicle(db_session, employee):
    record = EntitledVehicle(user_id=employee.id, vehicle_number="LEB-7777", vehicle_type="Hatchback")
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record
