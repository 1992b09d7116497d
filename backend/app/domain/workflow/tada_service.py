"""
TADA Workflow Service.

Allowance claims filed against an approved trip and decided by a manager.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidRequestError,
    ResourceNotFoundError,
    StateConflictError,
)
from backend.app.db.session import transaction
from backend.app.domain.workflow.transitions import WorkflowKind, apply_transition
from backend.app.models.claim_enums import TadaStatus
from backend.app.models.enums import Decision, UserRole
from backend.app.models.tada_request import TadaRequest
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus
from backend.app.models.user import User
from backend.app.schemas.tada import TadaClaim
from backend.app.services.audit import AuditAction, log_event
from backend.app.services.notification_fanout import EventKind, WorkflowEvent, publish

logger = logging.getLogger(__name__)

# A trip must be at least approved before allowances can be claimed
CLAIMABLE_TRIP_STATUSES = (
    TripStatus.MANAGER_APPROVED,
    TripStatus.TRANSPORT_ASSIGNED,
    TripStatus.IN_PROGRESS,
    TripStatus.COMPLETED,
)


class TadaWorkflowService:
    
    @staticmethod
    async def create_batch(
        db: AsyncSession,
        requester_id: int,
        trip_id: int,
        claims: List[TadaClaim]
    ) -> List[TadaRequest]:
        """
        File one or more claims against a trip atomically.
        
        Each claim becomes its own PENDING request. Managers get a single
        notification summarizing the batch.
        
        Raises:
            InvalidRequestError: Empty or oversized batch, negative amount
            ResourceNotFoundError: Unknown trip
            InsufficientPermissionsError: Trip belongs to someone else
            StateConflictError: Trip not yet approved (or rejected/cancelled)
        """
        if not claims:
            raise InvalidRequestError("At least one claim is required", field="claims")
        if len(claims) > settings.tada_max_claims_per_batch:
            raise InvalidRequestError(
                f"A batch may contain at most {settings.tada_max_claims_per_batch} claims",
                field="claims"
            )
        for claim in claims:
            if claim.amount < 0:
                raise InvalidRequestError("Claim amount cannot be negative", field="amount")
        
        async with transaction(db):
            trip = (await db.execute(
                select(Trip).where(Trip.id == trip_id).with_for_update()
            )).scalar_one_or_none()
            if not trip:
                raise ResourceNotFoundError("Trip", trip_id)
            if trip.requester_id != requester_id:
                raise InsufficientPermissionsError(
                    "You can only claim allowances for your own trips",
                    details={"trip_id": trip_id}
                )
            if trip.status not in CLAIMABLE_TRIP_STATUSES:
                raise StateConflictError(
                    "Trip must be approved or completed to claim allowance",
                    details={"trip_id": trip_id, "status": trip.status.value}
                )
            
            requests = [
                TadaRequest(
                    trip_id=trip.id,
                    claim_type=claim.claim_type,
                    amount=claim.amount,
                    description=claim.description,
                    status=TadaStatus.PENDING,
                )
                for claim in claims
            ]
            db.add_all(requests)
            await db.flush()
            
            total = sum((Decimal(str(claim.amount)) for claim in claims), Decimal("0"))
            await log_event(
                db,
                action=AuditAction.TADA_SUBMITTED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=requester_id,
                metadata={"request_ids": [r.id for r in requests], "total": str(total)}
            )
            purpose = trip.purpose
        
        for request in requests:
            await db.refresh(request)
        
        logger.info(
            "Allowance claims submitted",
            extra={"trip_id": trip_id, "requester_id": requester_id, "count": len(requests)}
        )
        
        requester = await db.get(User, requester_id)
        await publish(db, WorkflowEvent(
            kind=EventKind.TADA_SUBMITTED,
            subject_id=trip_id,
            requester_id=requester_id,
            actor_id=requester_id,
            payload={
                "purpose": purpose,
                "count": len(requests),
                "total": total,
                "requester_name": requester.name if requester else None,
            },
        ))
        return requests
    
    @staticmethod
    async def decide(
        db: AsyncSession,
        request_id: int,
        decider_id: int,
        decision: Decision,
        rejection_reason: Optional[str] = None
    ) -> TadaRequest:
        """
        Approve or reject a PENDING claim.
        
        Raises:
            ResourceNotFoundError: Unknown request
            StateConflictError: Request already decided
        """
        async with transaction(db):
            request = (await db.execute(
                select(TadaRequest)
                .where(TadaRequest.id == request_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if not request:
                raise ResourceNotFoundError("TADA request", request_id)
            if request.status != TadaStatus.PENDING:
                raise StateConflictError(
                    f"Claim is already {request.status.value}",
                    details={"request_id": request_id, "status": request.status.value}
                )
            
            approved = decision == Decision.APPROVE
            target = TadaStatus.APPROVED if approved else TadaStatus.REJECTED
            request.status = apply_transition(WorkflowKind.TADA, request.status, target)
            request.rejection_reason = None if approved else rejection_reason
            request.decided_by_id = decider_id
            request.decided_at = datetime.now(timezone.utc)
            
            trip = await db.get(Trip, request.trip_id)
            
            await log_event(
                db,
                action=AuditAction.TADA_APPROVED if approved else AuditAction.TADA_REJECTED,
                entity_type="tada_request",
                entity_id=request.id,
                actor_id=decider_id,
                metadata={"rejection_reason": request.rejection_reason}
            )
        
        await db.refresh(request)
        logger.info(
            "Allowance claim decided",
            extra={"request_id": request.id, "decider_id": decider_id, "status": request.status.value}
        )
        
        await publish(db, WorkflowEvent(
            kind=EventKind.TADA_APPROVED if approved else EventKind.TADA_REJECTED,
            subject_id=request.id,
            requester_id=trip.requester_id,
            actor_id=decider_id,
            payload={
                "amount": request.amount,
                "claim_type": request.claim_type.value,
                "rejection_reason": request.rejection_reason,
            },
        ))
        return request
    
    @staticmethod
    async def list_for_trip(
        db: AsyncSession,
        trip_id: int,
        caller_id: int,
        caller_role: UserRole
    ) -> List[TadaRequest]:
        """Claims filed against a trip, visible to its requester and approvers."""
        trip = await db.get(Trip, trip_id)
        if not trip:
            raise ResourceNotFoundError("Trip", trip_id)
        if trip.requester_id != caller_id and caller_role not in (UserRole.MANAGER, UserRole.ADMIN):
            raise InsufficientPermissionsError("You can only view claims for your own trips")
        
        result = await db.execute(
            select(TadaRequest)
            .where(TadaRequest.trip_id == trip_id)
            .order_by(TadaRequest.created_at, TadaRequest.id)
        )
        return result.scalars().all()
    
    @staticmethod
    async def list_pending(db: AsyncSession) -> List[TadaRequest]:
        result = await db.execute(
            select(TadaRequest)
            .where(TadaRequest.status == TadaStatus.PENDING)
            .order_by(TadaRequest.created_at, TadaRequest.id)
        )
        return result.scalars().all()
