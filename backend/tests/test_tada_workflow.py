"""
Allowance (TADA) workflow tests.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import select

from backend.app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidRequestError,
    ResourceNotFoundError,
    StateConflictError,
)
from backend.app.domain.workflow.tada_service import TadaWorkflowService
from backend.app.domain.workflow.trip_service import TripWorkflowService
from backend.app.models.claim_enums import ClaimType, TadaStatus
from backend.app.models.enums import Decision, UserRole
from backend.app.models.notification import Notification, NotificationType
from backend.app.models.trip_enums import TripStatus
from backend.app.schemas.tada import TadaClaim
from backend.tests.helpers import trip_payload


def _claims():
    return [
        TadaClaim(claim_type=ClaimType.FUEL, amount=Decimal("500"), description="Fuel"),
        TadaClaim(claim_type=ClaimType.TOLL, amount=Decimal("200"), description="Motorway toll"),
        TadaClaim(claim_type=ClaimType.PARKING, amount=Decimal("100"), description="Parking"),
    ]


async def _trip_in_status(db_session, requester, status):
    trip = await TripWorkflowService.create(db_session, requester.id, trip_payload())
    trip.status = status
    await db_session.commit()
    return trip.id


@pytest.mark.asyncio
async def test_batch_on_completed_trip(db_session, employee, manager):
    employee_id, manager_id = employee.id, manager.id
    trip_id = await _trip_in_status(db_session, employee, TripStatus.COMPLETED)
    
    requests = await TadaWorkflowService.create_batch(db_session, employee_id, trip_id, _claims())
    
    assert len(requests) == 3
    assert all(r.status == TadaStatus.PENDING for r in requests)
    assert sum(r.amount for r in requests) == Decimal("800")
    
    result = await db_session.execute(
        select(Notification).where(
            Notification.user_id == manager_id,
            Notification.type == NotificationType.TADA_REQUEST
        )
    )
    notifications = result.scalars().all()
    # One summary for the whole batch
    assert len(notifications) == 1
    assert "3 claims totaling 800" in notifications[0].message


@pytest.mark.asyncio
async def test_claims_allowed_once_approved(db_session, employee):
    employee_id = employee.id
    trip_id = await _trip_in_status(db_session, employee, TripStatus.MANAGER_APPROVED)
    
    requests = await TadaWorkflowService.create_batch(db_session, employee_id, trip_id, _claims()[:1])
    assert len(requests) == 1
    
    # A second batch on the same trip is fine
    requests = await TadaWorkflowService.create_batch(db_session, employee_id, trip_id, _claims()[1:])
    assert len(requests) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [TripStatus.REQUESTED, TripStatus.MANAGER_REJECTED, TripStatus.CANCELLED])
async def test_claims_refused_before_approval(db_session, employee, status):
    employee_id = employee.id
    trip_id = await _trip_in_status(db_session, employee, status)
    
    with pytest.raises(StateConflictError):
        await TadaWorkflowService.create_batch(db_session, employee_id, trip_id, _claims())


@pytest.mark.asyncio
async def test_claims_require_trip_ownership(db_session, employee, other_employee):
    other_id = other_employee.id
    trip_id = await _trip_in_status(db_session, employee, TripStatus.COMPLETED)
    
    with pytest.raises(InsufficientPermissionsError):
        await TadaWorkflowService.create_batch(db_session, other_id, trip_id, _claims())
    with pytest.raises(ResourceNotFoundError):
        await TadaWorkflowService.create_batch(db_session, other_id, 9999, _claims())


@pytest.mark.asyncio
async def test_batch_size_limits(db_session, employee, mocker):
    employee_id = employee.id
    trip_id = await _trip_in_status(db_session, employee, TripStatus.COMPLETED)
    
    with pytest.raises(InvalidRequestError):
        await TadaWorkflowService.create_batch(db_session, employee_id, trip_id, [])
    
    from backend.app.core.config import settings
    mocker.patch.object(settings, "tada_max_claims_per_batch", 2)
    with pytest.raises(InvalidRequestError):
        await TadaWorkflowService.create_batch(db_session, employee_id, trip_id, _claims())


def test_negative_amount_rejected_by_schema():
    with pytest.raises(ValidationError):
        TadaClaim(claim_type=ClaimType.FUEL, amount=Decimal("-1"), description="Refund?")


@pytest.mark.asyncio
async def test_decide_claims(db_session, employee, manager):
    employee_id, manager_id = employee.id, manager.id
    trip_id = await _trip_in_status(db_session, employee, TripStatus.COMPLETED)
    fuel, toll, _ = await TadaWorkflowService.create_batch(db_session, employee_id, trip_id, _claims())
    fuel_id, toll_id = fuel.id, toll.id
    
    fuel = await TadaWorkflowService.decide(db_session, fuel_id, manager_id, Decision.APPROVE)
    assert fuel.status == TadaStatus.APPROVED
    assert fuel.rejection_reason is None
    assert fuel.decided_by_id == manager_id
    
    toll = await TadaWorkflowService.decide(
        db_session, toll_id, manager_id, Decision.REJECT, "No receipt"
    )
    assert toll.status == TadaStatus.REJECTED
    assert toll.rejection_reason == "No receipt"
    
    with pytest.raises(StateConflictError):
        await TadaWorkflowService.decide(db_session, fuel_id, manager_id, Decision.REJECT)
    
    result = await db_session.execute(
        select(Notification)
        .where(Notification.user_id == employee_id)
        .order_by(Notification.id)
    )
    messages = [n.message for n in result.scalars().all()]
    assert "Your Fuel claim of PKR 500 has been approved." in messages
    assert any("Reason: No receipt" in m for m in messages)


@pytest.mark.asyncio
async def test_list_for_trip(db_session, employee, other_employee, manager):
    employee_id, other_id, manager_id = employee.id, other_employee.id, manager.id
    trip_id = await _trip_in_status(db_session, employee, TripStatus.COMPLETED)
    await TadaWorkflowService.create_batch(db_session, employee_id, trip_id, _claims())
    
    claims = await TadaWorkflowService.list_for_trip(db_session, trip_id, manager_id, UserRole.MANAGER)
    assert [c.claim_type for c in claims] == [ClaimType.FUEL, ClaimType.TOLL, ClaimType.PARKING]
    assert len(await TadaWorkflowService.list_pending(db_session)) == 3
    
    with pytest.raises(InsufficientPermissionsError):
        await TadaWorkflowService.list_for_trip(db_session, trip_id, other_id, UserRole.EMPLOYEE)
