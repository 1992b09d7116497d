"""
Transport desk API endpoints.

Availability lookups plus maintenance of the driver pool and fleet.
"""

from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_role, TRANSPORT_DESK_ROLES
from backend.app.schemas.trip import ensure_utc
from backend.app.schemas.transport import (
    AvailableResourcesResponse, AvailableDriver, AvailableVehicle,
    DriverCreate, DriverUpdate, DriverResponse,
    VehicleCreate, VehicleUpdate, VehicleResponse
)
from backend.app.services.availability import list_available_resources
from backend.app.services.resource_admin import ResourceAdminService

router = APIRouter(prefix="/transport", tags=["Transport Desk"])


@router.get("/available", response_model=AvailableResourcesResponse)
async def available_resources(
    from_time: datetime = Query(..., description="Window start (ISO 8601)"),
    to_time: datetime = Query(..., description="Window end (ISO 8601), after from_time"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Active drivers and fleet vehicles with no committed trip overlapping
    the window. Back-to-back bookings count as free.
    """
    drivers, vehicles = await list_available_resources(db, ensure_utc(from_time), ensure_utc(to_time))
    return AvailableResourcesResponse(
        drivers=[AvailableDriver.model_validate(d) for d in drivers],
        vehicles=[AvailableVehicle.model_validate(v) for v in vehicles]
    )


# --- Drivers ---

@router.get("/drivers", response_model=List[DriverResponse])
async def list_drivers(
    active_only: bool = Query(False, description="Hide retired drivers"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    drivers = await ResourceAdminService.list_drivers(db, active_only)
    return [DriverResponse.model_validate(d) for d in drivers]


@router.post("/drivers", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def create_driver(
    driver_data: DriverCreate,
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    driver = await ResourceAdminService.create_driver(db, current_user["user_id"], driver_data)
    return DriverResponse.model_validate(driver)


@router.patch("/drivers/{driver_id}", response_model=DriverResponse)
async def update_driver(
    driver_data: DriverUpdate,
    driver_id: int = Path(..., description="Driver ID"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Update a driver. Send is_active=false to retire the driver from
    future assignments.
    """
    driver = await ResourceAdminService.update_driver(db, current_user["user_id"], driver_id, driver_data)
    return DriverResponse.model_validate(driver)


# --- Fleet vehicles ---

@router.get("/vehicles", response_model=List[VehicleResponse])
async def list_vehicles(
    active_only: bool = Query(False, description="Hide deactivated vehicles"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    vehicles = await ResourceAdminService.list_vehicles(db, active_only)
    return [VehicleResponse.model_validate(v) for v in vehicles]


@router.post("/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    vehicle_data: VehicleCreate,
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Add a fleet vehicle. Returns 409 if the number is already registered."""
    vehicle = await ResourceAdminService.create_vehicle(db, current_user["user_id"], vehicle_data)
    return VehicleResponse.model_validate(vehicle)


@router.patch("/vehicles/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_data: VehicleUpdate,
    vehicle_id: int = Path(..., description="Vehicle ID"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await ResourceAdminService.update_vehicle(db, current_user["user_id"], vehicle_id, vehicle_data)
    return VehicleResponse.model_validate(vehicle)


@router.delete("/vehicles/{vehicle_id}", response_model=VehicleResponse)
async def delete_vehicle(
    vehicle_id: int = Path(..., description="Vehicle ID"),
    current_user: dict = Depends(require_role(TRANSPORT_DESK_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """Deactivate a fleet vehicle. Past trips keep their reference to it."""
    vehicle = await ResourceAdminService.deactivate_vehicle(db, current_user["user_id"], vehicle_id)
    return VehicleResponse.model_validate(vehicle)
