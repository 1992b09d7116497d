"""
Maintenance request schemas.
"""

from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from backend.app.models.enums import Decision
from backend.app.models.maintenance_enums import MaintenanceStatus


class MaintenanceCreate(BaseModel):
    """Maintenance request for the caller's entitled vehicle."""
    entitled_vehicle_id: int
    description: str = Field(..., min_length=1, max_length=2000)


class FleetMaintenanceCreate(BaseModel):
    """Maintenance request raised by transport for a fleet vehicle."""
    vehicle_id: int
    description: str = Field(..., min_length=1, max_length=2000)


class MaintenanceDecisionRequest(BaseModel):
    decision: Decision
    rejection_reason: Optional[str] = Field(None, max_length=1000)


class MaintenanceCompleteRequest(BaseModel):
    cost: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)


class MaintenanceIssueReport(BaseModel):
    issue_description: str = Field(..., min_length=1, max_length=2000)


class MaintenanceResponse(BaseModel):
    id: int
    requester_id: int
    entitled_vehicle_id: Optional[int]
    vehicle_id: Optional[int]
    description: str
    status: MaintenanceStatus
    rejection_reason: Optional[str]
    approved_by_id: Optional[int]
    cost: Optional[float]
    issue_reported: bool
    issue_description: Optional[str]
    issue_reported_at: Optional[datetime]
    issue_resolved_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]
    
    class Config:
        from_attributes = True


class MaintenanceListResponse(BaseModel):
    requests: List[MaintenanceResponse]
    total: int
