"""
Notification fan-out tests.

Planning is pure; dispatch delivers in its own transaction.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from backend.app.models.enums import UserRole
from backend.app.models.notification import Notification, NotificationType
from backend.app.models.user import User
from backend.app.services.notification_fanout import (
    EventKind,
    WorkflowEvent,
    dispatch,
    format_amount,
    plan_notifications,
)
from backend.app.services.notification_service import NotificationService


def test_format_amount():
    assert format_amount(Decimal("800")) == "800"
    assert format_amount(Decimal("800.00")) == "800"
    assert format_amount(Decimal("1250.5")) == "1,250.50"
    assert format_amount(12000) == "12,000"


def test_trip_created_goes_to_managers():
    plans = plan_notifications(WorkflowEvent(
        kind=EventKind.TRIP_CREATED,
        subject_id=1,
        requester_id=5,
        actor_id=5,
        payload={"purpose": "Board meeting", "requester_name": "Ali Hassan"},
    ))
    assert len(plans) == 1
    assert plans[0].role == UserRole.MANAGER
    assert plans[0].user_id is None
    assert "Ali Hassan" in plans[0].message


def test_fleet_assignment_notifies_transport_and_requester():
    payload = {
        "purpose": "Board meeting",
        "driver_name": "Driver One",
        "vehicle_number": "LEA-1001",
        "vehicle_category": "FLEET",
    }
    plans = plan_notifications(WorkflowEvent(
        kind=EventKind.TRIP_ASSIGNED, subject_id=1, requester_id=5, actor_id=9, payload=payload
    ))
    assert [(p.role, p.user_id) for p in plans] == [(UserRole.TRANSPORT, None), (None, 5)]
    assert "Driver: Driver One, Vehicle: LEA-1001" in plans[1].message


def test_cancellation_by_requester_is_silent():
    event = WorkflowEvent(
        kind=EventKind.TRIP_CANCELLED, subject_id=1, requester_id=5, actor_id=5, payload={"purpose": "x"}
    )
    assert plan_notifications(event) == []

    event = WorkflowEvent(
        kind=EventKind.TRIP_CANCELLED, subject_id=1, requester_id=5, actor_id=7, payload={"purpose": "x"}
    )
    plans = plan_notifications(event)
    assert [p.user_id for p in plans] == [5]
    assert plans[0].type == NotificationType.TRIP_CANCELLED


def test_tada_batch_summary():
    plans = plan_notifications(WorkflowEvent(
        kind=EventKind.TADA_SUBMITTED,
        subject_id=3,
        requester_id=5,
        payload={"purpose": "Site visit", "count": 3, "total": Decimal("800.00"), "requester_name": "Ali"},
    ))
    assert len(plans) == 1
    assert plans[0].role == UserRole.MANAGER
    assert "3 claims totaling 800 PKR" in plans[0].message


def test_rejection_reason_included():
    plans = plan_notifications(WorkflowEvent(
        kind=EventKind.TRIP_REJECTED,
        subject_id=1,
        requester_id=5,
        payload={"purpose": "Offsite", "rejection_reason": "Budget"},
    ))
    assert plans[0].message.endswith("Reason: Budget")


def test_issue_report_reaches_transport_and_managers():
    plans = plan_notifications(WorkflowEvent(
        kind=EventKind.MAINTENANCE_ISSUE_REPORTED,
        subject_id=4,
        requester_id=5,
        payload={"vehicle_number": "LEB-7777", "is_fleet": False, "issue_description": "Leak"},
    ))
    assert {p.role for p in plans} == {UserRole.TRANSPORT, UserRole.MANAGER}


@pytest.mark.asyncio
async def test_dispatch_skips_inactive_users(db_session, manager):
    manager_id = manager.id
    retired = User(email="old.manager@example.com", name="Old Manager", role=UserRole.MANAGER, is_active=False)
    db_session.add(retired)
    await db_session.commit()
    retired_id = retired.id

    delivered = await dispatch(db_session.bind, WorkflowEvent(
        kind=EventKind.TRIP_CREATED, subject_id=1, requester_id=99, payload={"purpose": "x"}
    ))
    assert delivered == 1

    result = await db_session.execute(select(Notification.user_id))
    recipients = result.scalars().all()
    assert recipients == [manager_id]
    assert retired_id not in recipients


@pytest.mark.asyncio
async def test_dispatch_disabled(db_session, manager, mocker):
    from backend.app.core.config import settings
    mocker.patch.object(settings, "notifications_enabled", False)

    delivered = await dispatch(db_session.bind, WorkflowEvent(
        kind=EventKind.TRIP_CREATED, subject_id=1, requester_id=99, payload={"purpose": "x"}
    ))
    assert delivered == 0


@pytest.mark.asyncio
async def test_inbox_read_flags(db_session, employee):
    employee_id = employee.id
    for index in range(3):
        await NotificationService.notify_user(
            db_session, employee_id, NotificationType.TRIP_UPDATE, f"Update {index}", "Trip moved"
        )
    await db_session.commit()

    notifications = await NotificationService.list_for_user(db_session, employee_id)
    assert len(notifications) == 3

    assert await NotificationService.mark_read(db_session, notifications[0].id, employee_id)
    assert not await NotificationService.mark_read(db_session, notifications[0].id, employee_id + 1)
    await db_session.commit()

    unread = await NotificationService.list_for_user(db_session, employee_id, unread_only=True)
    assert len(unread) == 2

    assert await NotificationService.mark_all_read(db_session, employee_id) == 2
    await db_session.commit()
    assert await NotificationService.list_for_user(db_session, employee_id, unread_only=True) == []
