"""
Allowance (TADA) claim schemas.
"""

from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from backend.app.models.enums import Decision
from backend.app.models.claim_enums import ClaimType, TadaStatus


class TadaClaim(BaseModel):
    """One expense line in a claim batch."""
    claim_type: ClaimType = ClaimType.OTHER
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2, description="Non-negative amount")
    description: str = Field(..., min_length=1, max_length=500)


class TadaBatchCreate(BaseModel):
    """A batch of claims filed against one trip."""
    trip_id: int
    claims: List[TadaClaim] = Field(..., min_length=1)


class TadaDecisionRequest(BaseModel):
    decision: Decision
    rejection_reason: Optional[str] = Field(None, max_length=1000)


class TadaResponse(BaseModel):
    id: int
    trip_id: int
    claim_type: ClaimType
    amount: float
    description: str
    status: TadaStatus
    rejection_reason: Optional[str]
    decided_by_id: Optional[int]
    created_at: datetime
    decided_at: Optional[datetime]
    
    class Config:
        from_attributes = True


class TadaBatchResponse(BaseModel):
    requests: List[TadaResponse]
    count: int
    total_amount: float
