"""
Admin API endpoints: entitled vehicle assignments.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.db.session import get_db
from backend.app.core.guards import require_role, ADMIN_ROLES
from backend.app.schemas.admin import EntitledVehicleAssign, EntitledVehicleResponse, EntitledVehicleListResponse
from backend.app.services.resource_admin import ResourceAdminService

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/entitled-vehicles", response_model=EntitledVehicleListResponse)
async def list_entitled_vehicles(
    user_id: Optional[int] = Query(None, description="Only this employee's vehicles"),
    include_removed: bool = Query(False),
    current_user: dict = Depends(require_role(ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    vehicles = await ResourceAdminService.list_entitled_vehicles(db, user_id, include_removed)
    return EntitledVehicleListResponse(
        vehicles=[EntitledVehicleResponse.model_validate(v) for v in vehicles],
        total=len(vehicles)
    )


@router.post("/entitled-vehicles", response_model=EntitledVehicleResponse, status_code=status.HTTP_201_CREATED)
async def assign_entitled_vehicle(
    assignment: EntitledVehicleAssign,
    current_user: dict = Depends(require_role(ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    """
    Entitle an employee to a vehicle.
    
    Returns 409 while the vehicle is entitled to someone else.
    """
    vehicle = await ResourceAdminService.assign_entitled_vehicle(db, current_user["user_id"], assignment)
    return EntitledVehicleResponse.model_validate(vehicle)


@router.delete("/entitled-vehicles/{vehicle_id}", response_model=EntitledVehicleResponse)
async def remove_entitled_vehicle(
    vehicle_id: int = Path(..., description="Entitled vehicle ID"),
    current_user: dict = Depends(require_role(ADMIN_ROLES)),
    db: AsyncSession = Depends(get_db)
):
    vehicle = await ResourceAdminService.remove_entitled_vehicle(db, current_user["user_id"], vehicle_id)
    return EntitledVehicleResponse.model_validate(vehicle)
