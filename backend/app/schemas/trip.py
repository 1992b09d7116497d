"""
Trip schemas.

Request bodies for the trip workflow and the trip read model.
"""

from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime, timezone

from backend.app.models.enums import Decision
from backend.app.models.trip_enums import TripStatus, VehicleCategory, Company


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to UTC; naive timestamps are taken to be UTC already."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TripCreate(BaseModel):
    """Schema for a new trip request."""
    purpose: str = Field(..., min_length=1, max_length=500, description="Why the trip is needed")
    from_loc: str = Field(..., min_length=1, max_length=500, description="Origin")
    to_loc: str = Field(..., min_length=1, max_length=500, description="Destination")
    stops: List[str] = Field(default_factory=list, description="Intermediate stops in travel order")
    passenger_names: List[str] = Field(default_factory=list)
    from_time: datetime = Field(..., description="Scheduled start (UTC if no offset given)")
    to_time: datetime = Field(..., description="Scheduled end, strictly after from_time")
    company: Company
    department: Optional[str] = Field(None, max_length=100, description="Defaults to the requester's department")
    vehicle_category: VehicleCategory = VehicleCategory.FLEET
    personal_vehicle_details: Optional[str] = Field(None, max_length=500)
    entitled_vehicle_id: Optional[int] = None
    
    @field_validator("from_time", "to_time")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class TripDecisionRequest(BaseModel):
    """Manager decision on a requested trip."""
    decision: Decision
    rejection_reason: Optional[str] = Field(None, max_length=1000)


class TripAssignRequest(BaseModel):
    """Transport desk assignment of a fleet driver and vehicle."""
    driver_id: int
    vehicle_id: int
    start_mileage: int = Field(..., ge=0, description="Odometer reading at assignment")


class TripCompleteRequest(BaseModel):
    end_mileage: Optional[int] = Field(None, ge=0, description="Odometer reading at completion")


class TripStopResponse(BaseModel):
    """Schema for trip stop response."""
    sequence_number: int
    location: str
    
    class Config:
        from_attributes = True


class TripResponse(BaseModel):
    """Schema for trip response."""
    id: int
    requester_id: int
    purpose: str
    from_loc: str
    to_loc: str
    stops: List[TripStopResponse] = []
    passenger_names: Optional[List[str]] = None
    from_time: datetime
    to_time: datetime
    company: Company
    department: Optional[str]
    vehicle_category: VehicleCategory
    personal_vehicle_details: Optional[str]
    entitled_vehicle_id: Optional[int]
    status: TripStatus
    rejection_reason: Optional[str]
    approved_by_id: Optional[int]
    assigned_by_id: Optional[int]
    driver_id: Optional[int]
    vehicle_id: Optional[int]
    driver_name: Optional[str]
    vehicle_number: Optional[str]
    start_mileage: Optional[int]
    end_mileage: Optional[int]
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    
    class Config:
        from_attributes = True


class TripListResponse(BaseModel):
    """Schema for trip lists."""
    trips: List[TripResponse]
    total: int
