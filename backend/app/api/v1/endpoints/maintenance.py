"""
Maintenance workflow API endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_role, caller_role, APPROVER_ROLES, TRANSPORT_DESK_ROLES
from backend.app.domain.workflow.maintenance_service import MaintenanceWorkflowService
from backend.app.models.maintenance_enums import MaintenanceStatus
from backend.app.schemas.maintenance import (
    MaintenanceCreate, FleetMaintenanceCreate, MaintenanceDecisionRequest,
    MaintenanceCompleteRequest, MaintenanceIssueReport,
    MaintenanceResponse, MaintenanceListResponse
)

router = APIRouter(prefix="/maintenance", tags=["Maintenance"])


@router.post("", response_model=MaintenanceResponse, status_code=status.HTTP_201_CREATED)
async def request_maintenance(
    request_data: MaintenanceCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Request maintenance for the caller's entitled vehicle."""
    request = await MaintenanceWorkflowService.create(
        db, current_user["user_id"], request_data.entitled_vehicle_id, request_data.description
    )
    return MaintenanceResponse.model_validate(request)


@router.post("/fleet", response_model=MaintenanceResponse, status_code=status.HTTP_201_CREATED)
async def request_fleet_maintenance(
    request_data: FleetMaintenanceCreate,
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Request maintenance for a fleet vehicle (transport desk)."""
    request = await MaintenanceWorkflowService.create_fleet(
        db, current_user["user_id"], request_data.vehicle_id, request_data.description
    )
    return MaintenanceResponse.model_validate(request)


@router.get("", response_model=MaintenanceListResponse)
async def list_maintenance_requests(
    status_filter: Optional[MaintenanceStatus] = Query(None, alias="status"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List maintenance requests: own for employees, all for other roles."""
    requests = await MaintenanceWorkflowService.list_requests(
        db, current_user["user_id"], caller_role(current_user), status_filter
    )
    return MaintenanceListResponse(
        requests=[MaintenanceResponse.model_validate(r) for r in requests],
        total=len(requests)
    )


@router.post("/{request_id}/decision", response_model=MaintenanceResponse)
async def decide_maintenance(
    decision: MaintenanceDecisionRequest,
    request_id: int = Path(..., description="Maintenance request ID"),
    current_user: dict = Depends(require_role(APPROVER_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    request = await MaintenanceWorkflowService.decide(
        db, request_id, current_user["user_id"], decision.decision, decision.rejection_reason
    )
    return MaintenanceResponse.model_validate(request)


@router.post("/{request_id}/start", response_model=MaintenanceResponse)
async def start_maintenance(
    request_id: int = Path(..., description="Maintenance request ID"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    request = await MaintenanceWorkflowService.start(
        db, request_id, current_user["user_id"], caller_role(current_user)
    )
    return MaintenanceResponse.model_validate(request)


@router.post("/{request_id}/complete", response_model=MaintenanceResponse)
async def complete_maintenance(
    completion: MaintenanceCompleteRequest,
    request_id: int = Path(..., description="Maintenance request ID"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    request = await MaintenanceWorkflowService.complete(
        db, request_id, current_user["user_id"], caller_role(current_user), completion.cost
    )
    return MaintenanceResponse.model_validate(request)


@router.post("/{request_id}/report-issue", response_model=MaintenanceResponse)
async def report_maintenance_issue(
    report: MaintenanceIssueReport,
    request_id: int = Path(..., description="Maintenance request ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Flag a problem with completed work (requester only)."""
    request = await MaintenanceWorkflowService.report_issue(
        db, request_id, current_user["user_id"], report.issue_description
    )
    return MaintenanceResponse.model_validate(request)


@router.post("/{request_id}/resolve-issue", response_model=MaintenanceResponse)
async def resolve_maintenance_issue(
    request_id: int = Path(..., description="Maintenance request ID"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    request = await MaintenanceWorkflowService.resolve_issue(
        db, request_id, current_user["user_id"], caller_role(current_user)
    )
    return MaintenanceResponse.model_validate(request)
