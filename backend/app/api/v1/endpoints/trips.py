"""
Trip workflow API endpoints.

Employees request trips, managers decide, the transport desk assigns and
runs them.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_role, caller_role, APPROVER_ROLES, TRANSPORT_DESK_ROLES
from backend.app.domain.workflow.trip_service import TripWorkflowService
from backend.app.schemas.audit import AuditEntryResponse
from backend.app.schemas.trip import (
    TripCreate, TripDecisionRequest, TripAssignRequest, TripCompleteRequest,
    TripResponse, TripListResponse
)

router = APIRouter(prefix="/trips", tags=["Trips"])


def _trip_list(trips) -> TripListResponse:
    return TripListResponse(
        trips=[TripResponse.model_validate(trip) for trip in trips],
        total=len(trips)
    )


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(
    trip_data: TripCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Request a trip.
    
    The trip starts in Requested and managers are notified.
    """
    trip = await TripWorkflowService.create(db, current_user["user_id"], trip_data)
    return TripResponse.model_validate(trip)


@router.get("/my", response_model=TripListResponse)
async def list_my_trips(
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List trips requested by the caller, newest first."""
    trips = await TripWorkflowService.list_for_requester(db, current_user["user_id"])
    return _trip_list(trips)


@router.get("/pending", response_model=TripListResponse)
async def list_pending_trips(
    current_user: dict = Depends(require_role(APPROVER_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """List trips awaiting a manager decision."""
    trips = await TripWorkflowService.list_pending(db)
    return _trip_list(trips)


@router.get("/approved", response_model=TripListResponse)
async def list_trips_awaiting_assignment(
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """List approved fleet trips waiting for a driver and vehicle."""
    trips = await TripWorkflowService.list_awaiting_assignment(db)
    return _trip_list(trips)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Get trip details."""
    trip = await TripWorkflowService.get_trip(
        db, trip_id, current_user["user_id"], caller_role(current_user)
    )
    return TripResponse.model_validate(trip)


@router.get("/{trip_id}/history", response_model=List[AuditEntryResponse])
async def get_trip_history(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Committed transitions of a trip, oldest first."""
    entries = await TripWorkflowService.get_history(
        db, trip_id, current_user["user_id"], caller_role(current_user)
    )
    return [AuditEntryResponse.model_validate(entry) for entry in entries]


@router.post("/{trip_id}/decision", response_model=TripResponse)
async def decide_trip(
    decision: TripDecisionRequest,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(APPROVER_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Approve or reject a Requested trip.
    
    Approving a PERSONAL or ENTITLED trip moves it straight to
    TransportAssigned with the requester as driver.
    """
    trip = await TripWorkflowService.decide(
        db, trip_id, current_user["user_id"], decision.decision, decision.rejection_reason
    )
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/assign", response_model=TripResponse)
async def assign_trip(
    assignment: TripAssignRequest,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Assign a fleet driver and vehicle to a ManagerApproved trip.
    
    Returns 409 when either resource is committed to an overlapping trip.
    """
    trip = await TripWorkflowService.assign(
        db,
        trip_id,
        current_user["user_id"],
        assignment.driver_id,
        assignment.vehicle_id,
        assignment.start_mileage
    )
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/cancel", response_model=TripResponse)
async def cancel_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Cancel a trip that has no driver or vehicle committed yet."""
    trip = await TripWorkflowService.cancel(
        db, trip_id, current_user["user_id"], caller_role(current_user)
    )
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/start", response_model=TripResponse)
async def start_trip(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripWorkflowService.start(
        db, trip_id, current_user["user_id"], caller_role(current_user)
    )
    return TripResponse.model_validate(trip)


@router.post("/{trip_id}/complete", response_model=TripResponse)
async def complete_trip(
    completion: TripCompleteRequest,
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    trip = await TripWorkflowService.complete(
        db, trip_id, current_user["user_id"], caller_role(current_user), completion.end_mileage
    )
    return TripResponse.model_validate(trip)
