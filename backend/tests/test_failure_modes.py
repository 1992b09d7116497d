"""
Failure injection tests.

Notification delivery is best-effort and never undoes a committed
transition; store failures and deadlines surface as retryable errors.
"""

import asyncio
import logging

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from backend.app.core.exceptions import TransactionError, TransactionTimeoutError
from backend.app.core.config import settings
from backend.app.core.reliability import deadline
from backend.app.db.session import transaction
from backend.app.domain.workflow.trip_service import TripWorkflowService
from backend.app.models.notification import Notification
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus
from backend.app.services.notification_fanout import EventKind, WorkflowEvent, dispatch, publish
from backend.app.services.notification_service import NotificationService
from backend.tests.helpers import auth_headers, trip_payload


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_trip(db_session, employee, manager, mocker, caplog):
    """A broken notification sink still leaves the trip committed."""
    mocker.patch.object(NotificationService, "notify_role", side_effect=RuntimeError("sink down"))
    
    with caplog.at_level(logging.ERROR, logger="backend.app.services.notification_fanout"):
        trip = await TripWorkflowService.create(db_session, employee.id, trip_payload())
    
    assert trip.status == TripStatus.REQUESTED
    stored = await db_session.get(Trip, trip.id)
    assert stored is not None
    
    result = await db_session.execute(select(Notification))
    assert result.scalars().all() == []
    assert "Failed to deliver notifications" in caplog.text


@pytest.mark.asyncio
async def test_dispatch_reports_zero_on_failure(db_session, manager, mocker):
    mocker.patch.object(NotificationService, "notify_role", side_effect=RuntimeError("sink down"))
    
    delivered = await dispatch(db_session.bind, WorkflowEvent(
        kind=EventKind.TRIP_CREATED, subject_id=1, requester_id=1, payload={"purpose": "x"}
    ))
    assert delivered == 0


@pytest.mark.asyncio
async def test_slow_notifications_do_not_fail_committed_create(db_session, employee, manager, mocker):
    """Fan-out runs after commit, outside the transaction deadline."""
    async def slow_notify(*args, **kwargs):
        await asyncio.sleep(0.3)
        return 1
    
    mocker.patch.object(settings, "transaction_timeout_seconds", 0.1)
    mocker.patch.object(NotificationService, "notify_role", side_effect=slow_notify)
    
    trip = await TripWorkflowService.create(db_session, employee.id, trip_payload())
    
    assert trip.status == TripStatus.REQUESTED
    result = await db_session.execute(select(Trip).where(Trip.id == trip.id))
    assert result.scalar_one().status == TripStatus.REQUESTED


@pytest.mark.asyncio
async def test_slow_notifications_still_return_created_over_http(client, employee, manager, mocker):
    async def slow_notify(*args, **kwargs):
        await asyncio.sleep(0.3)
        return 1
    
    mocker.patch.object(settings, "transaction_timeout_seconds", 0.1)
    mocker.patch.object(NotificationService, "notify_role", side_effect=slow_notify)
    
    response = await client.post(
        "/v1/trips",
        json={
            "purpose": "Client visit",
            "from_loc": "Head Office",
            "to_loc": "Campus 2",
            "from_time": "2024-01-10T09:00:00Z",
            "to_time": "2024-01-10T11:00:00Z",
            "company": "KIPS_PREPS",
            "vehicle_category": "FLEET",
        },
        headers=auth_headers(employee)
    )
    assert response.status_code == 201
    assert response.json()["status"] == "Requested"


@pytest.mark.asyncio
async def test_delivery_timeout_is_dropped(db_session, manager, mocker, caplog):
    async def slow_notify(*args, **kwargs):
        await asyncio.sleep(1)
        return 1
    
    mocker.patch.object(settings, "notification_timeout_seconds", 0.05)
    mocker.patch.object(NotificationService, "notify_role", side_effect=slow_notify)
    
    with caplog.at_level(logging.ERROR, logger="backend.app.services.notification_fanout"):
        delivered = await dispatch(db_session.bind, WorkflowEvent(
            kind=EventKind.TRIP_CREATED, subject_id=1, requester_id=1, payload={"purpose": "x"}
        ))
    
    assert delivered == 0
    assert "Failed to deliver notifications" in caplog.text


@pytest.mark.asyncio
async def test_malformed_event_is_logged_not_raised(db_session, caplog):
    """A planner error (missing payload key) is contained like a delivery error."""
    with caplog.at_level(logging.ERROR, logger="backend.app.services.notification_fanout"):
        delivered = await publish(db_session, WorkflowEvent(
            kind=EventKind.TRIP_CREATED, subject_id=1, payload={}
        ))
    
    assert delivered == 0
    assert "Failed to deliver notifications" in caplog.text


@pytest.mark.asyncio
async def test_deadline_exceeded():
    with pytest.raises(TransactionTimeoutError) as exc_info:
        async with deadline(0.01):
            await asyncio.sleep(1)
    
    assert exc_info.value.status_code == 503
    assert exc_info.value.details["retryable"] is True


@pytest.mark.asyncio
async def test_deadline_defaults_to_settings(mocker):
    mocker.patch.object(settings, "transaction_timeout_seconds", 2.5)
    
    async with deadline() as limit:
        await asyncio.sleep(0)
    
    assert limit == 2.5


@pytest.mark.asyncio
async def test_transaction_over_deadline_rolls_back(db_session, employee):
    employee_id = employee.id
    payload = trip_payload()
    
    with pytest.raises(TransactionTimeoutError):
        async with transaction(db_session, timeout=0.05):
            db_session.add(Trip(
                requester_id=employee_id,
                purpose="Too slow",
                from_loc="A",
                to_loc="B",
                from_time=payload.from_time,
                to_time=payload.to_time,
                company=payload.company,
                vehicle_category=payload.vehicle_category,
            ))
            await db_session.flush()
            await asyncio.sleep(0.5)
    
    result = await db_session.execute(select(Trip).where(Trip.purpose == "Too slow"))
    assert result.scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_store_failure_becomes_transaction_error(db_session, employee):
    employee_id = employee.id
    payload = trip_payload()
    
    with pytest.raises(TransactionError):
        async with transaction(db_session):
            db_session.add(Trip(
                requester_id=employee_id,
                purpose="Lost write",
                from_loc="A",
                to_loc="B",
                from_time=payload.from_time,
                to_time=payload.to_time,
                company=payload.company,
                vehicle_category=payload.vehicle_category,
            ))
            raise OperationalError("COMMIT", {}, Exception("connection reset"))
    
    result = await db_session.execute(select(Trip).where(Trip.purpose == "Lost write"))
    assert result.scalar_one_or_none() is None


@pytest.mark.asyncio
async def test_failed_check_rolls_back_earlier_writes(db_session, employee):
    """The first failing check aborts every write made in the same transaction."""
    employee_id = employee.id
    payload = trip_payload()
    
    with pytest.raises(ValueError):
        async with transaction(db_session):
            db_session.add(Trip(
                requester_id=employee_id,
                purpose="Half done",
                from_loc="A",
                to_loc="B",
                from_time=payload.from_time,
                to_time=payload.to_time,
                company=payload.company,
                vehicle_category=payload.vehicle_category,
            ))
            await db_session.flush()
            raise ValueError("validation failed after write")
    
    result = await db_session.execute(select(Trip).where(Trip.purpose == "Half done"))
    assert result.scalar_one_or_none() is None
