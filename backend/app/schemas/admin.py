"""
Admin schemas: entitled vehicle assignments.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class EntitledVehicleAssign(BaseModel):
    """Give an employee an officially assigned vehicle."""
    user_id: int
    vehicle_number: str = Field(..., min_length=1, max_length=100)
    vehicle_type: Optional[str] = Field(None, max_length=100)


class EntitledVehicleResponse(BaseModel):
    id: int
    user_id: int
    vehicle_number: str
    vehicle_type: Optional[str]
    is_active: bool
    created_at: datetime
    
    class Config:
        from_attributes = True


class EntitledVehicleListResponse(BaseModel):
    vehicles: List[EntitledVehicleResponse]
    total: int
