"""
Maintenance Workflow Service.

Requests for entitled or fleet vehicles: manager decision, then transport
starts and completes the work. A completed request can carry an issue
report from its requester until transport resolves it.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidRequestError,
    ResourceNotFoundError,
    StateConflictError,
)
from backend.app.db.session import transaction
from backend.app.domain.workflow.transitions import WorkflowKind, apply_transition
from backend.app.models.entitled_vehicle import EntitledVehicle
from backend.app.models.enums import Decision, UserRole
from backend.app.models.fleet_vehicle import FleetVehicle
from backend.app.models.maintenance_enums import MaintenanceStatus
from backend.app.models.maintenance_request import MaintenanceRequest
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.notification_fanout import EventKind, WorkflowEvent, publish

logger = logging.getLogger(__name__)

WORKSHOP_ROLES = (UserRole.TRANSPORT, UserRole.ADMIN)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MaintenanceWorkflowService:
    
    @staticmethod
    async def _lock_request(db: AsyncSession, request_id: int) -> MaintenanceRequest:
        result = await db.execute(
            select(MaintenanceRequest)
            .where(MaintenanceRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()
        if not request:
            raise ResourceNotFoundError("Maintenance request", request_id)
        return request
    
    @staticmethod
    async def _vehicle_number(db: AsyncSession, request: MaintenanceRequest) -> str:
        if request.vehicle_id is not None:
            vehicle = await db.get(FleetVehicle, request.vehicle_id)
            return vehicle.number if vehicle else f"#{request.vehicle_id}"
        vehicle = await db.get(EntitledVehicle, request.entitled_vehicle_id)
        return vehicle.vehicle_number if vehicle else f"#{request.entitled_vehicle_id}"
    
    @staticmethod
    async def _publish(
        db: AsyncSession,
        kind: EventKind,
        request: MaintenanceRequest,
        actor_id: int,
        **payload
    ) -> None:
        payload.update(
            vehicle_number=await MaintenanceWorkflowService._vehicle_number(db, request),
            is_fleet=request.is_fleet,
        )
        await publish(db, WorkflowEvent(
            kind=kind,
            subject_id=request.id,
            requester_id=request.requester_id,
            actor_id=actor_id,
            payload=payload,
        ))
    
    @staticmethod
    async def _submit(db: AsyncSession, request: MaintenanceRequest) -> MaintenanceRequest:
        async with transaction(db):
            db.add(request)
            await db.flush()
            await log_event(
                db,
                action=AuditAction.MAINTENANCE_REQUESTED,
                entity_type="maintenance_request",
                entity_id=request.id,
                actor_id=request.requester_id,
                metadata={"fleet": request.is_fleet}
            )
        
        await db.refresh(request)
        logger.info(
            "Maintenance requested",
            extra={"request_id": request.id, "requester_id": request.requester_id, "fleet": request.is_fleet}
        )
        await MaintenanceWorkflowService._publish(
            db, EventKind.MAINTENANCE_CREATED, request, request.requester_id
        )
        return request
    
    @staticmethod
    async def create(
        db: AsyncSession,
        requester_id: int,
        entitled_vehicle_id: int,
        description: str
    ) -> MaintenanceRequest:
        """
        Request maintenance for the caller's entitled vehicle.
        
        Raises:
            ResourceNotFoundError: Vehicle missing or inactive
            InsufficientPermissionsError: Vehicle is entitled to someone else
        """
        description = (description or "").strip()
        if not description:
            raise InvalidRequestError("Description is required", field="description")
        
        vehicle = await db.get(EntitledVehicle, entitled_vehicle_id)
        if not vehicle or not vehicle.is_active:
            raise ResourceNotFoundError("Entitled vehicle", entitled_vehicle_id)
        if vehicle.user_id != requester_id:
            raise InsufficientPermissionsError(
                "Entitled vehicle is not assigned to you",
                details={"entitled_vehicle_id": entitled_vehicle_id}
            )
        
        return await MaintenanceWorkflowService._submit(db, MaintenanceRequest(
            requester_id=requester_id,
            entitled_vehicle_id=vehicle.id,
            description=description,
            status=MaintenanceStatus.REQUESTED,
        ))
    
    @staticmethod
    async def create_fleet(
        db: AsyncSession,
        requester_id: int,
        vehicle_id: int,
        description: str
    ) -> MaintenanceRequest:
        """
        Request maintenance for an active fleet vehicle.
        
        Raises:
            ResourceNotFoundError: Vehicle missing or inactive
        """
        description = (description or "").strip()
        if not description:
            raise InvalidRequestError("Description is required", field="description")
        
        vehicle = await db.get(FleetVehicle, vehicle_id)
        if not vehicle or not vehicle.is_active:
            raise ResourceNotFoundError("Vehicle", vehicle_id, reason="missing or inactive")
        
        return await MaintenanceWorkflowService._submit(db, MaintenanceRequest(
            requester_id=requester_id,
            vehicle_id=vehicle.id,
            description=description,
            status=MaintenanceStatus.REQUESTED,
        ))
    
    @staticmethod
    async def decide(
        db: AsyncSession,
        request_id: int,
        approver_id: int,
        decision: Decision,
        rejection_reason: Optional[str] = None
    ) -> MaintenanceRequest:
        """
        Approve or reject a REQUESTED maintenance request.
        
        Raises:
            StateConflictError: Request already decided
        """
        approved = decision == Decision.APPROVE
        
        async with transaction(db):
            request = await MaintenanceWorkflowService._lock_request(db, request_id)
            if request.status != MaintenanceStatus.REQUESTED:
                raise StateConflictError(
                    f"Maintenance request is already {request.status.value}",
                    details={"request_id": request_id, "status": request.status.value}
                )
            
            target = MaintenanceStatus.APPROVED if approved else MaintenanceStatus.REJECTED
            request.status = apply_transition(WorkflowKind.MAINTENANCE, request.status, target)
            request.rejection_reason = None if approved else rejection_reason
            request.approved_by_id = approver_id
            
            await log_event(
                db,
                action=AuditAction.MAINTENANCE_APPROVED if approved else AuditAction.MAINTENANCE_REJECTED,
                entity_type="maintenance_request",
                entity_id=request.id,
                actor_id=approver_id,
                metadata={"rejection_reason": request.rejection_reason}
            )
        
        await db.refresh(request)
        logger.info(
            "Maintenance decided",
            extra={"request_id": request.id, "approver_id": approver_id, "status": request.status.value}
        )
        await MaintenanceWorkflowService._publish(
            db,
            EventKind.MAINTENANCE_APPROVED if approved else EventKind.MAINTENANCE_REJECTED,
            request,
            approver_id,
            rejection_reason=request.rejection_reason,
        )
        return request
    
    @staticmethod
    async def start(
        db: AsyncSession,
        request_id: int,
        caller_id: int,
        caller_role: UserRole
    ) -> MaintenanceRequest:
        """Begin work on an APPROVED request."""
        if caller_role not in WORKSHOP_ROLES:
            raise InsufficientPermissionsError("Only transport staff can start maintenance")
        
        async with transaction(db):
            request = await MaintenanceWorkflowService._lock_request(db, request_id)
            request.status = apply_transition(
                WorkflowKind.MAINTENANCE, request.status, MaintenanceStatus.IN_PROGRESS
            )
            request.rejection_reason = None
            
            await log_event(
                db,
                action=AuditAction.MAINTENANCE_STARTED,
                entity_type="maintenance_request",
                entity_id=request.id,
                actor_id=caller_id
            )
        
        await db.refresh(request)
        logger.info("Maintenance started", extra={"request_id": request.id, "caller_id": caller_id})
        return request
    
    @staticmethod
    async def complete(
        db: AsyncSession,
        request_id: int,
        caller_id: int,
        caller_role: UserRole,
        cost: Optional[Decimal] = None
    ) -> MaintenanceRequest:
        """
        Finish an IN_PROGRESS request, recording the optional cost.
        
        Raises:
            InsufficientPermissionsError: Caller is not transport or admin
            InvalidRequestError: Negative cost
        """
        if caller_role not in WORKSHOP_ROLES:
            raise InsufficientPermissionsError("Only transport staff can complete maintenance")
        if cost is not None and cost < 0:
            raise InvalidRequestError("Cost cannot be negative", field="cost")
        
        async with transaction(db):
            request = await MaintenanceWorkflowService._lock_request(db, request_id)
            request.status = apply_transition(
                WorkflowKind.MAINTENANCE, request.status, MaintenanceStatus.COMPLETED
            )
            request.cost = cost
            request.completed_at = _now()
            request.rejection_reason = None
            
            await log_event(
                db,
                action=AuditAction.MAINTENANCE_COMPLETED,
                entity_type="maintenance_request",
                entity_id=request.id,
                actor_id=caller_id,
                metadata={"cost": str(cost) if cost is not None else None}
            )
        
        await db.refresh(request)
        logger.info("Maintenance completed", extra={"request_id": request.id, "caller_id": caller_id})
        await MaintenanceWorkflowService._publish(
            db, EventKind.MAINTENANCE_COMPLETED, request, caller_id, cost=request.cost
        )
        return request
    
    @staticmethod
    async def report_issue(
        db: AsyncSession,
        request_id: int,
        requester_id: int,
        issue_description: str
    ) -> MaintenanceRequest:
        """
        Flag a problem with completed work. The status stays COMPLETED.
        
        Raises:
            InsufficientPermissionsError: Caller is not the requester
            StateConflictError: Request not COMPLETED or already flagged
        """
        issue_description = (issue_description or "").strip()
        if not issue_description:
            raise InvalidRequestError("Issue description is required", field="issue_description")
        
        async with transaction(db):
            request = await MaintenanceWorkflowService._lock_request(db, request_id)
            if request.requester_id != requester_id:
                raise InsufficientPermissionsError("You can only report issues on your own requests")
            if request.status != MaintenanceStatus.COMPLETED:
                raise StateConflictError(
                    "Issues can only be reported on completed maintenance",
                    details={"request_id": request_id, "status": request.status.value}
                )
            if request.issue_reported:
                raise StateConflictError(
                    "An issue is already reported for this request",
                    details={"request_id": request_id}
                )
            
            request.issue_reported = True
            request.issue_description = issue_description
            request.issue_reported_at = _now()
            request.issue_resolved_at = None
            
            await log_event(
                db,
                action=AuditAction.MAINTENANCE_ISSUE_REPORTED,
                entity_type="maintenance_request",
                entity_id=request.id,
                actor_id=requester_id,
                metadata={"issue_description": issue_description}
            )
        
        await db.refresh(request)
        logger.info("Maintenance issue reported", extra={"request_id": request.id})
        await MaintenanceWorkflowService._publish(
            db,
            EventKind.MAINTENANCE_ISSUE_REPORTED,
            request,
            requester_id,
            issue_description=issue_description,
        )
        return request
    
    @staticmethod
    async def resolve_issue(
        db: AsyncSession,
        request_id: int,
        caller_id: int,
        caller_role: UserRole
    ) -> MaintenanceRequest:
        """Clear a reported issue. A new issue may be reported afterwards."""
        if caller_role not in WORKSHOP_ROLES:
            raise InsufficientPermissionsError("Only transport staff can resolve maintenance issues")
        
        async with transaction(db):
            request = await MaintenanceWorkflowService._lock_request(db, request_id)
            if not request.issue_reported:
                raise StateConflictError(
                    "No open issue on this request",
                    details={"request_id": request_id}
                )
            
            request.issue_reported = False
            request.issue_resolved_at = _now()
            
            await log_event(
                db,
                action=AuditAction.MAINTENANCE_ISSUE_RESOLVED,
                entity_type="maintenance_request",
                entity_id=request.id,
                actor_id=caller_id
            )
        
        await db.refresh(request)
        logger.info("Maintenance issue resolved", extra={"request_id": request.id, "caller_id": caller_id})
        await MaintenanceWorkflowService._publish(
            db, EventKind.MAINTENANCE_ISSUE_RESOLVED, request, caller_id
        )
        return request
    
    @staticmethod
    async def list_requests(
        db: AsyncSession,
        caller_id: int,
        caller_role: UserRole,
        status: Optional[MaintenanceStatus] = None
    ) -> List[MaintenanceRequest]:
        """Employees see their own requests; other roles see all of them."""
        query = select(MaintenanceRequest)
        if caller_role == UserRole.EMPLOYEE:
            query = query.where(MaintenanceRequest.requester_id == caller_id)
        if status is not None:
            query = query.where(MaintenanceRequest.status == status)
        
        result = await db.execute(
            query.order_by(MaintenanceRequest.created_at.desc(), MaintenanceRequest.id.desc())
        )
        return result.scalars().all()
