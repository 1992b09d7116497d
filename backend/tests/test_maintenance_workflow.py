"""
Maintenance workflow tests.
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from backend.app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidTransitionError,
    ResourceNotFoundError,
    StateConflictError,
)
from backend.app.domain.workflow.maintenance_service import MaintenanceWorkflowService
from backend.app.models.enums import Decision, UserRole
from backend.app.models.maintenance_enums import MaintenanceStatus
from backend.app.models.notification import Notification, NotificationType


async def _notifications(db_session, user_id):
    result = await db_session.execute(
        select(Notification).where(Notification.user_id == user_id).order_by(Notification.id)
    )
    return result.scalars().all()


async def _completed_request(db_session, employee, manager, transport_officer, entitled_vehicle):
    employee_id, manager_id, transport_id = employee.id, manager.id, transport_officer.id
    request = await MaintenanceWorkflowService.create(
        db_session, employee_id, entitled_vehicle.id, "Brakes squeaking"
    )
    await MaintenanceWorkflowService.decide(db_session, request.id, manager_id, Decision.APPROVE)
    await MaintenanceWorkflowService.start(db_session, request.id, transport_id, UserRole.TRANSPORT)
    return await MaintenanceWorkflowService.complete(
        db_session, request.id, transport_id, UserRole.TRANSPORT, cost=Decimal("4500")
    )


@pytest.mark.asyncio
async def test_entitled_request_lifecycle(db_session, employee, manager, transport_officer, entitled_vehicle):
    employee_id, manager_id, transport_id = employee.id, manager.id, transport_officer.id
    
    request = await MaintenanceWorkflowService.create(
        db_session, employee_id, entitled_vehicle.id, "Oil change due"
    )
    assert request.status == MaintenanceStatus.REQUESTED
    assert not request.is_fleet
    
    # Entitled requests reach both managers and transport
    assert [n.type for n in await _notifications(db_session, manager_id)] == [NotificationType.MAINTENANCE_REQUEST]
    assert [n.type for n in await _notifications(db_session, transport_id)] == [NotificationType.MAINTENANCE_REQUEST]
    
    request = await MaintenanceWorkflowService.decide(db_session, request.id, manager_id, Decision.APPROVE)
    assert request.status == MaintenanceStatus.APPROVED
    assert request.approved_by_id == manager_id
    
    # Approval tells transport the work is ready
    transport_titles = [n.title for n in await _notifications(db_session, transport_id)]
    assert "Vehicle Maintenance Request Approved" in transport_titles
    
    request = await MaintenanceWorkflowService.start(db_session, request.id, transport_id, UserRole.TRANSPORT)
    assert request.status == MaintenanceStatus.IN_PROGRESS
    
    request = await MaintenanceWorkflowService.complete(
        db_session, request.id, transport_id, UserRole.TRANSPORT, cost=Decimal("2500.50")
    )
    assert request.status == MaintenanceStatus.COMPLETED
    assert request.cost == Decimal("2500.50")
    assert request.completed_at is not None
    
    messages = [n.message for n in await _notifications(db_session, employee_id)]
    assert any("Cost: PKR 2,500.50" in m for m in messages)


@pytest.mark.asyncio
async def test_fleet_request_notifies_managers_only(db_session, manager, transport_officer, vehicle):
    manager_id, transport_id = manager.id, transport_officer.id
    
    request = await MaintenanceWorkflowService.create_fleet(
        db_session, transport_id, vehicle.id, "Tyre replacement"
    )
    assert request.is_fleet
    assert len(await _notifications(db_session, manager_id)) == 1
    assert await _notifications(db_session, transport_id) == []
    
    await MaintenanceWorkflowService.decide(db_session, request.id, manager_id, Decision.APPROVE)
    # Requester (transport) hears about the approval, no separate work-ready notice
    notifications = await _notifications(db_session, transport_id)
    assert [n.type for n in notifications] == [NotificationType.MAINTENANCE_APPROVED]


@pytest.mark.asyncio
async def test_create_validations(db_session, employee, other_employee, transport_officer, entitled_vehicle, vehicle):
    other_id, transport_id = other_employee.id, transport_officer.id
    entitled_id, vehicle_id = entitled_vehicle.id, vehicle.id
    
    with pytest.raises(InsufficientPermissionsError):
        await MaintenanceWorkflowService.create(db_session, other_id, entitled_id, "Not mine")
    with pytest.raises(ResourceNotFoundError):
        await MaintenanceWorkflowService.create(db_session, other_id, 9999, "Unknown")
    
    vehicle.is_active = False
    await db_session.commit()
    with pytest.raises(ResourceNotFoundError):
        await MaintenanceWorkflowService.create_fleet(db_session, transport_id, vehicle_id, "Retired vehicle")


@pytest.mark.asyncio
async def test_decide_only_from_requested(db_session, employee, manager, entitled_vehicle):
    manager_id = manager.id
    request = await MaintenanceWorkflowService.create(db_session, employee.id, entitled_vehicle.id, "Battery")
    request = await MaintenanceWorkflowService.decide(
        db_session, request.id, manager_id, Decision.REJECT, "Under warranty"
    )
    request_id = request.id
    assert request.status == MaintenanceStatus.REJECTED
    assert request.rejection_reason == "Under warranty"
    
    with pytest.raises(StateConflictError):
        await MaintenanceWorkflowService.decide(db_session, request_id, manager_id, Decision.APPROVE)


@pytest.mark.asyncio
async def test_start_and_complete_guards(db_session, employee, manager, transport_officer, entitled_vehicle):
    employee_id, transport_id = employee.id, transport_officer.id
    request = await MaintenanceWorkflowService.create(db_session, employee_id, entitled_vehicle.id, "AC")
    request_id = request.id
    
    with pytest.raises(InsufficientPermissionsError):
        await MaintenanceWorkflowService.start(db_session, request_id, employee_id, UserRole.EMPLOYEE)
    # Not approved yet
    with pytest.raises(InvalidTransitionError):
        await MaintenanceWorkflowService.start(db_session, request_id, transport_id, UserRole.TRANSPORT)
    with pytest.raises(InvalidTransitionError):
        await MaintenanceWorkflowService.complete(db_session, request_id, transport_id, UserRole.ADMIN)


@pytest.mark.asyncio
async def test_issue_report_lifecycle(db_session, employee, other_employee, manager, transport_officer, entitled_vehicle):
    employee_id, other_id, transport_id = employee.id, other_employee.id, transport_officer.id
    manager_id = manager.id
    request = await _completed_request(db_session, employee, manager, transport_officer, entitled_vehicle)
    request_id = request.id
    
    with pytest.raises(InsufficientPermissionsError):
        await MaintenanceWorkflowService.report_issue(db_session, request_id, other_id, "Still squeaks")
    
    request = await MaintenanceWorkflowService.report_issue(db_session, request_id, employee_id, "Still squeaks")
    assert request.issue_reported is True
    assert request.issue_description == "Still squeaks"
    assert request.issue_reported_at is not None
    # Reporting does not reopen the request
    assert request.status == MaintenanceStatus.COMPLETED
    
    issue_types = {n.type for n in await _notifications(db_session, manager_id)}
    assert NotificationType.MAINTENANCE_ISSUE_REPORTED in issue_types
    
    # Already flagged
    with pytest.raises(StateConflictError):
        await MaintenanceWorkflowService.report_issue(db_session, request_id, employee_id, "Again")
    
    with pytest.raises(InsufficientPermissionsError):
        await MaintenanceWorkflowService.resolve_issue(db_session, request_id, employee_id, UserRole.EMPLOYEE)
    
    request = await MaintenanceWorkflowService.resolve_issue(db_session, request_id, transport_id, UserRole.TRANSPORT)
    assert request.issue_reported is False
    assert request.issue_resolved_at is not None
    
    with pytest.raises(StateConflictError):
        await MaintenanceWorkflowService.resolve_issue(db_session, request_id, transport_id, UserRole.TRANSPORT)
    
    # A fresh report is allowed after resolution
    request = await MaintenanceWorkflowService.report_issue(db_session, request_id, employee_id, "Squeaks again")
    assert request.issue_reported is True
    assert request.issue_resolved_at is None


@pytest.mark.asyncio
async def test_issue_needs_completed_request(db_session, employee, entitled_vehicle):
    employee_id = employee.id
    request = await MaintenanceWorkflowService.create(db_session, employee_id, entitled_vehicle.id, "Wipers")
    request_id = request.id
    
    with pytest.raises(StateConflictError):
        await MaintenanceWorkflowService.report_issue(db_session, request_id, employee_id, "Too early")


@pytest.mark.asyncio
async def test_list_requests(db_session, employee, other_employee, manager, entitled_vehicle):
    employee_id, other_id, manager_id = employee.id, other_employee.id, manager.id
    await MaintenanceWorkflowService.create(db_session, employee_id, entitled_vehicle.id, "Wipers")
    
    assert len(await MaintenanceWorkflowService.list_requests(db_session, employee_id, UserRole.EMPLOYEE)) == 1
    assert await MaintenanceWorkflowService.list_requests(db_session, other_id, UserRole.EMPLOYEE) == []
    assert len(await MaintenanceWorkflowService.list_requests(db_session, manager_id, UserRole.MANAGER)) == 1
    assert await MaintenanceWorkflowService.list_requests(
        db_session, manager_id, UserRole.MANAGER, MaintenanceStatus.COMPLETED
    ) == []
