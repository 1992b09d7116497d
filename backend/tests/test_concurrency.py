"""
Concurrency Tests.

Two workflow calls racing on separate connections: exactly one may win.
Uses a file-backed SQLite database so each session gets its own
connection.
"""

import asyncio

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from backend.app.core.config import settings
from backend.app.core.exceptions import ResourceConflictError, StateConflictError
from backend.app.db.session import Base
from backend.app.domain.workflow.trip_service import TripWorkflowService
from backend.app.models.driver import Driver
from backend.app.models.enums import Decision, UserRole
from backend.app.models.fleet_vehicle import FleetVehicle
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus, Company
from backend.app.models.user import User
from backend.tests.helpers import at


@pytest.fixture
async def race_sessions(tmp_path, mocker):
    """Session factory over a file database, one connection per session."""
    mocker.patch.object(settings, "notifications_enabled", False)
    
    race_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'race.db'}",
        connect_args={"timeout": 15},
        poolclass=NullPool,
    )
    async with race_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    
    yield async_sessionmaker(race_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    
    await race_engine.dispose()


async def _seed(session_factory, trip_windows, status=TripStatus.MANAGER_APPROVED):
    async with session_factory() as session:
        employee = User(email="emp@example.com", name="Employee", role=UserRole.EMPLOYEE)
        manager = User(email="mgr@example.com", name="Manager", role=UserRole.MANAGER)
        transport = User(email="tr@example.com", name="Transport", role=UserRole.TRANSPORT)
        driver = Driver(name="Driver One")
        vehicles = [FleetVehicle(number=f"LEA-{i}") for i in range(len(trip_windows))]
        session.add_all([employee, manager, transport, driver, *vehicles])
        await session.flush()
        
        trips = [
            Trip(
                requester_id=employee.id,
                purpose=f"Trip {index}",
                from_loc="A",
                to_loc="B",
                from_time=start,
                to_time=end,
                company=Company.KDP,
                status=status,
            )
            for index, (start, end) in enumerate(trip_windows)
        ]
        session.add_all(trips)
        await session.commit()
        
        return {
            "manager_id": manager.id,
            "transport_id": transport.id,
            "driver_id": driver.id,
            "vehicle_ids": [v.id for v in vehicles],
            "trip_ids": [t.id for t in trips],
        }


@pytest.mark.asyncio
async def test_concurrent_assign_same_driver(race_sessions):
    """Two overlapping trips, same driver, different vehicles: one assignment wins."""
    seeded = await _seed(race_sessions, [(at(9), at(11)), (at(10), at(12))])
    
    async def attempt(trip_id, vehicle_id):
        async with race_sessions() as session:
            trip = await TripWorkflowService.assign(
                session, trip_id, seeded["transport_id"], seeded["driver_id"], vehicle_id, 0
            )
            return trip.id
    
    results = await asyncio.gather(
        *(attempt(t, v) for t, v in zip(seeded["trip_ids"], seeded["vehicle_ids"])),
        return_exceptions=True
    )
    
    winners = [r for r in results if isinstance(r, int)]
    conflicts = [r for r in results if isinstance(r, ResourceConflictError)]
    assert len(winners) == 1, results
    assert len(conflicts) == 1, results
    
    async with race_sessions() as session:
        assigned = (await session.execute(
            select(Trip).where(Trip.driver_id == seeded["driver_id"])
        )).scalars().all()
    assert [t.id for t in assigned] == winners
    assert assigned[0].status == TripStatus.TRANSPORT_ASSIGNED


@pytest.mark.asyncio
async def test_concurrent_decisions_single_winner(race_sessions):
    """An approve and a reject racing on one trip: the loser sees a state conflict."""
    seeded = await _seed(race_sessions, [(at(9), at(11))], status=TripStatus.REQUESTED)
    trip_id = seeded["trip_ids"][0]
    
    async def attempt(decision):
        async with race_sessions() as session:
            trip = await TripWorkflowService.decide(session, trip_id, seeded["manager_id"], decision, "No")
            return trip.status
    
    results = await asyncio.gather(
        attempt(Decision.APPROVE), attempt(Decision.REJECT), return_exceptions=True
    )
    
    winners = [r for r in results if isinstance(r, TripStatus)]
    assert len(winners) == 1, results
    assert sum(isinstance(r, StateConflictError) for r in results) == 1, results
    
    async with race_sessions() as session:
        trip = await session.get(Trip, trip_id)
    assert trip.status == winners[0]
