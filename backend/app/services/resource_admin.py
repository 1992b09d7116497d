"""
Resource administration.

Drivers and fleet vehicles are maintained by the transport desk; entitled
vehicles are assigned to employees by admins. Nothing is physically
deleted: trips and maintenance requests keep referring to retired
resources, so removal clears the active flag, which is what the workflow
services check before committing a resource.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidRequestError, ResourceNotFoundError, StateConflictError
from backend.app.db.session import transaction
from backend.app.models.driver import Driver
from backend.app.models.entitled_vehicle import EntitledVehicle
from backend.app.models.fleet_vehicle import FleetVehicle
from backend.app.models.user import User
from backend.app.schemas.admin import EntitledVehicleAssign
from backend.app.schemas.transport import DriverCreate, DriverUpdate, VehicleCreate, VehicleUpdate
from backend.app.services.audit import AuditAction, log_event

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    """Strip text; blank becomes None."""
    if value is None:
        return None
    return value.strip() or None


def _required(value: Optional[str], label: str, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidRequestError(f"{label} is required", field=field)
    return text


async def _lock(db: AsyncSession, model, record_id: int, label: str):
    result = await db.execute(
        select(model)
        .where(model.id == record_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    record = result.scalar_one_or_none()
    if not record:
        raise ResourceNotFoundError(label, record_id)
    return record


class ResourceAdminService:
    
    # --- Drivers ---
    
    @staticmethod
    async def create_driver(db: AsyncSession, actor_id: int, data: DriverCreate) -> Driver:
        name = _required(data.name, "Driver name", "name")
        driver = Driver(name=name, phone=_clean(data.phone), license_no=_clean(data.license_no))
        
        async with transaction(db):
            db.add(driver)
            await db.flush()
            await log_event(
                db,
                action=AuditAction.DRIVER_CREATED,
                entity_type="driver",
                entity_id=driver.id,
                actor_id=actor_id,
                metadata={"name": name}
            )
        
        await db.refresh(driver)
        logger.info("Driver created", extra={"driver_id": driver.id, "actor_id": actor_id})
        return driver
    
    @staticmethod
    async def update_driver(db: AsyncSession, actor_id: int, driver_id: int, data: DriverUpdate) -> Driver:
        """
        Apply a partial update. Setting is_active to False retires the driver
        from future assignments; trips already assigned keep their snapshot.
        
        Raises:
            ResourceNotFoundError: Unknown driver
            InvalidRequestError: Blank name
            StateConflictError: The driver was changed (or assigned) concurrently
        """
        changes = data.model_dump(exclude_unset=True)
        
        async with transaction(db):
            driver = await _lock(db, Driver, driver_id, "Driver")
            if "name" in changes:
                driver.name = _required(changes["name"], "Driver name", "name")
            for field in ("phone", "license_no"):
                if field in changes:
                    setattr(driver, field, _clean(changes[field]))
            if changes.get("is_active") is not None:
                driver.is_active = changes["is_active"]
            
            await log_event(
                db,
                action=AuditAction.DRIVER_UPDATED,
                entity_type="driver",
                entity_id=driver.id,
                actor_id=actor_id,
                metadata={"fields": sorted(changes), "is_active": driver.is_active}
            )
        
        await db.refresh(driver)
        logger.info(
            "Driver updated",
            extra={"driver_id": driver.id, "actor_id": actor_id, "active": driver.is_active}
        )
        return driver
    
    @staticmethod
    async def list_drivers(db: AsyncSession, active_only: bool = False) -> List[Driver]:
        query = select(Driver)
        if active_only:
            query = query.where(Driver.is_active == True)
        result = await db.execute(query.order_by(Driver.name, Driver.id))
        return result.scalars().all()
    
    # --- Fleet vehicles ---
    
    @staticmethod
    async def _ensure_number_free(db: AsyncSession, number: str, exclude_id: Optional[int] = None) -> None:
        query = select(FleetVehicle.id).where(FleetVehicle.number == number)
        if exclude_id is not None:
            query = query.where(FleetVehicle.id != exclude_id)
        if (await db.execute(query)).first():
            raise StateConflictError(
                f'Vehicle number "{number}" already exists',
                details={"number": number}
            )
    
    @staticmethod
    async def create_vehicle(db: AsyncSession, actor_id: int, data: VehicleCreate) -> FleetVehicle:
        """
        Add a fleet vehicle.
        
        Raises:
            InvalidRequestError: Blank number
            StateConflictError: Number already registered (active or not)
        """
        number = _required(data.number, "Vehicle number", "number")
        
        async with transaction(db):
            await ResourceAdminService._ensure_number_free(db, number)
            vehicle = FleetVehicle(number=number, vehicle_type=_clean(data.vehicle_type), capacity=data.capacity)
            db.add(vehicle)
            await db.flush()
            await log_event(
                db,
                action=AuditAction.VEHICLE_CREATED,
                entity_type="fleet_vehicle",
                entity_id=vehicle.id,
                actor_id=actor_id,
                metadata={"number": number}
            )
        
        await db.refresh(vehicle)
        logger.info("Fleet vehicle created", extra={"vehicle_id": vehicle.id, "actor_id": actor_id})
        return vehicle
    
    @staticmethod
    async def update_vehicle(db: AsyncSession, actor_id: int, vehicle_id: int, data: VehicleUpdate) -> FleetVehicle:
        changes = data.model_dump(exclude_unset=True)
        
        async with transaction(db):
            vehicle = await _lock(db, FleetVehicle, vehicle_id, "Vehicle")
            if "number" in changes:
                number = _required(changes["number"], "Vehicle number", "number")
                if number != vehicle.number:
                    await ResourceAdminService._ensure_number_free(db, number, exclude_id=vehicle.id)
                vehicle.number = number
            if "vehicle_type" in changes:
                vehicle.vehicle_type = _clean(changes["vehicle_type"])
            if "capacity" in changes:
                vehicle.capacity = changes["capacity"]
            if changes.get("is_active") is not None:
                vehicle.is_active = changes["is_active"]
            
            await log_event(
                db,
                action=AuditAction.VEHICLE_UPDATED,
                entity_type="fleet_vehicle",
                entity_id=vehicle.id,
                actor_id=actor_id,
                metadata={"fields": sorted(changes), "is_active": vehicle.is_active}
            )
        
        await db.refresh(vehicle)
        logger.info(
            "Fleet vehicle updated",
            extra={"vehicle_id": vehicle.id, "actor_id": actor_id, "active": vehicle.is_active}
        )
        return vehicle
    
    @staticmethod
    async def deactivate_vehicle(db: AsyncSession, actor_id: int, vehicle_id: int) -> FleetVehicle:
        """Soft delete: the vehicle stays on record but can no longer be assigned."""
        async with transaction(db):
            vehicle = await _lock(db, FleetVehicle, vehicle_id, "Vehicle")
            if vehicle.is_active:
                vehicle.is_active = False
                await log_event(
                    db,
                    action=AuditAction.VEHICLE_DEACTIVATED,
                    entity_type="fleet_vehicle",
                    entity_id=vehicle.id,
                    actor_id=actor_id
                )
        
        await db.refresh(vehicle)
        logger.info("Fleet vehicle deactivated", extra={"vehicle_id": vehicle.id, "actor_id": actor_id})
        return vehicle
    
    @staticmethod
    async def list_vehicles(db: AsyncSession, active_only: bool = False) -> List[FleetVehicle]:
        query = select(FleetVehicle)
        if active_only:
            query = query.where(FleetVehicle.is_active == True)
        result = await db.execute(query.order_by(FleetVehicle.number))
        return result.scalars().all()
    
    # --- Entitled vehicles ---
    
    @staticmethod
    async def assign_entitled_vehicle(db: AsyncSession, actor_id: int, data: EntitledVehicleAssign) -> EntitledVehicle:
        """
        Entitle an employee to a vehicle.
        
        A previously removed registration is handed to the new holder rather
        than duplicated, so its trip and maintenance history stays attached
        to one record.
        
        Raises:
            ResourceNotFoundError: Unknown or inactive user
            InvalidRequestError: Blank vehicle number
            StateConflictError: The vehicle is currently entitled to someone
        """
        number = _required(data.vehicle_number, "Vehicle number", "vehicle_number")
        
        async with transaction(db):
            user = await db.get(User, data.user_id)
            if not user or not user.is_active:
                raise ResourceNotFoundError("User", data.user_id)
            
            result = await db.execute(
                select(EntitledVehicle)
                .where(EntitledVehicle.vehicle_number == number)
                .with_for_update()
            )
            vehicle = result.scalar_one_or_none()
            if vehicle and vehicle.is_active:
                raise StateConflictError(
                    f'Vehicle "{number}" is already assigned',
                    details={"entitled_vehicle_id": vehicle.id, "user_id": vehicle.user_id}
                )
            
            if vehicle:
                vehicle.user_id = user.id
                vehicle.vehicle_type = _clean(data.vehicle_type)
                vehicle.is_active = True
            else:
                vehicle = EntitledVehicle(user_id=user.id, vehicle_number=number, vehicle_type=_clean(data.vehicle_type))
                db.add(vehicle)
            await db.flush()
            
            await log_event(
                db,
                action=AuditAction.ENTITLED_VEHICLE_ASSIGNED,
                entity_type="entitled_vehicle",
                entity_id=vehicle.id,
                actor_id=actor_id,
                metadata={"user_id": user.id, "vehicle_number": number}
            )
        
        await db.refresh(vehicle)
        logger.info(
            "Entitled vehicle assigned",
            extra={"entitled_vehicle_id": vehicle.id, "user_id": vehicle.user_id, "actor_id": actor_id}
        )
        return vehicle
    
    @staticmethod
    async def remove_entitled_vehicle(db: AsyncSession, actor_id: int, vehicle_id: int) -> EntitledVehicle:
        """Withdraw an entitlement; new trips and maintenance requests can no longer use it."""
        async with transaction(db):
            vehicle = await _lock(db, EntitledVehicle, vehicle_id, "Entitled vehicle")
            if vehicle.is_active:
                vehicle.is_active = False
                await log_event(
                    db,
                    action=AuditAction.ENTITLED_VEHICLE_REMOVED,
                    entity_type="entitled_vehicle",
                    entity_id=vehicle.id,
                    actor_id=actor_id,
                    metadata={"user_id": vehicle.user_id}
                )
        
        await db.refresh(vehicle)
        logger.info("Entitled vehicle removed", extra={"entitled_vehicle_id": vehicle.id, "actor_id": actor_id})
        return vehicle
    
    @staticmethod
    async def list_entitled_vehicles(
        db: AsyncSession,
        user_id: Optional[int] = None,
        include_removed: bool = False
    ) -> List[EntitledVehicle]:
        query = select(EntitledVehicle)
        if user_id is not None:
            query = query.where(EntitledVehicle.user_id == user_id)
        if not include_removed:
            query = query.where(EntitledVehicle.is_active == True)
        result = await db.execute(query.order_by(EntitledVehicle.vehicle_number))
        return result.scalars().all()
