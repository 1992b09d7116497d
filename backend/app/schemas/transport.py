"""
Transport desk schemas: resources free for a time window and the
driver and fleet vehicle records the desk maintains.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime


class AvailableDriver(BaseModel):
    id: int
    name: str
    phone: Optional[str]
    
    class Config:
        from_attributes = True


class AvailableVehicle(BaseModel):
    id: int
    number: str
    vehicle_type: Optional[str]
    capacity: Optional[int]
    
    class Config:
        from_attributes = True


class AvailableResourcesResponse(BaseModel):
    drivers: List[AvailableDriver]
    vehicles: List[AvailableVehicle]


class DriverCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    license_no: Optional[str] = Field(None, max_length=100)


class DriverUpdate(BaseModel):
    """Partial update; omitted fields keep their value, blank strings clear optional ones."""
    name: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    license_no: Optional[str] = Field(None, max_length=100)
    is_active: Optional[bool] = None


class DriverResponse(BaseModel):
    id: int
    name: str
    phone: Optional[str]
    license_no: Optional[str]
    is_active: bool
    last_assigned_at: Optional[datetime]
    created_at: datetime
    
    class Config:
        from_attributes = True


class VehicleCreate(BaseModel):
    number: str = Field(..., min_length=1, max_length=100, description="Registration number, unique")
    vehicle_type: Optional[str] = Field(None, max_length=100)
    capacity: Optional[int] = Field(None, ge=1, description="Seats")


class VehicleUpdate(BaseModel):
    number: Optional[str] = Field(None, max_length=100)
    vehicle_type: Optional[str] = Field(None, max_length=100)
    capacity: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class VehicleResponse(BaseModel):
    id: int
    number: str
    vehicle_type: Optional[str]
    capacity: Optional[int]
    is_active: bool
    last_assigned_at: Optional[datetime]
    created_at: datetime
    
    class Config:
        from_attributes = True
