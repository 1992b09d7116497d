"""
Allowance (TADA) claim API endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.dependencies import get_current_user
from backend.app.core.guards import require_role, caller_role, APPROVER_ROLES
from backend.app.domain.workflow.tada_service import TadaWorkflowService
from backend.app.schemas.tada import TadaBatchCreate, TadaDecisionRequest, TadaResponse, TadaBatchResponse

router = APIRouter(prefix="/tada", tags=["Allowances"])


@router.post("", response_model=TadaBatchResponse, status_code=status.HTTP_201_CREATED)
async def submit_claims(
    batch: TadaBatchCreate,
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """
    File one or more allowance claims against one of the caller's trips.
    
    The trip must be at least ManagerApproved.
    """
    requests = await TadaWorkflowService.create_batch(db, current_user["user_id"], batch.trip_id, batch.claims)
    return TadaBatchResponse(
        requests=[TadaResponse.model_validate(r) for r in requests],
        count=len(requests),
        total_amount=float(sum(claim.amount for claim in batch.claims))
    )


@router.get("/pending", response_model=List[TadaResponse])
async def list_pending_claims(
    current_user: dict = Depends(require_role(APPROVER_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """List claims awaiting a decision."""
    return await TadaWorkflowService.list_pending(db)


@router.get("/trips/{trip_id}", response_model=List[TadaResponse])
async def list_trip_claims(
    trip_id: int = Path(..., description="Trip ID"),
    current_user: dict = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """List claims filed against a trip."""
    return await TadaWorkflowService.list_for_trip(
        db, trip_id, current_user["user_id"], caller_role(current_user)
    )


@router.post("/{request_id}/decision", response_model=TadaResponse)
async def decide_claim(
    decision: TadaDecisionRequest,
    request_id: int = Path(..., description="TADA request ID"),
    current_user: dict = Depends(require_role(APPROVER_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Approve or reject a PENDING claim."""
    request = await TadaWorkflowService.decide(
        db, request_id, current_user["user_id"], decision.decision, decision.rejection_reason
    )
    return TadaResponse.model_validate(request)
