"""
Driver and vehicle availability.

A resource is busy during a window when some trip in a committed status
(TransportAssigned or InProgress) references it with an overlapping
[from_time, to_time) interval. Busy state is always derived from trips and
never stored on the resource.
"""

import enum
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import InvalidRequestError
from backend.app.models.driver import Driver
from backend.app.models.fleet_vehicle import FleetVehicle
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import COMMITTED_STATUSES


class ResourceType(str, enum.Enum):
    DRIVER = "driver"
    VEHICLE = "vehicle"


_RESOURCE_COLUMNS = {
    ResourceType.DRIVER: Trip.driver_id,
    ResourceType.VEHICLE: Trip.vehicle_id,
}


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime
) -> bool:
    """
    Half-open interval overlap.
    
    Back-to-back windows, where one ends exactly as the other starts, do
    not overlap.
    """
    return a_start < b_end and a_end > b_start


def validate_window(window_start: datetime, window_end: datetime) -> None:
    """Reject empty or inverted windows."""
    if window_start is None or window_end is None:
        raise InvalidRequestError("Both fromTime and toTime are required", field="fromTime")
    if window_end <= window_start:
        raise InvalidRequestError("toTime must be after fromTime", field="toTime")


def _committed_overlap_filter(window_start: datetime, window_end: datetime):
    # Same predicate as intervals_overlap, expressed as SQL
    return (
        Trip.status.in_(COMMITTED_STATUSES),
        Trip.from_time < window_end,
        Trip.to_time > window_start,
    )


async def find_conflicting_trip(
    db: AsyncSession,
    resource_type: ResourceType,
    resource_id: int,
    window_start: datetime,
    window_end: datetime,
    exclude_trip_id: Optional[int] = None
) -> Optional[int]:
    """
    Find a committed trip holding the resource during the window.
    
    Args:
        db: Database session (the caller's transaction)
        resource_type: Driver or vehicle
        resource_id: Resource to check
        window_start: Candidate window start (inclusive)
        window_end: Candidate window end (exclusive)
        exclude_trip_id: Trip to ignore, e.g. the one being assigned
    
    Returns:
        ID of the first conflicting trip, or None
    """
    validate_window(window_start, window_end)
    
    column = _RESOURCE_COLUMNS[resource_type]
    query = select(Trip.id).where(
        column == resource_id,
        *_committed_overlap_filter(window_start, window_end)
    )
    if exclude_trip_id is not None:
        query = query.where(Trip.id != exclude_trip_id)
    
    result = await db.execute(query.order_by(Trip.from_time).limit(1))
    return result.scalar_one_or_none()


async def is_resource_busy(
    db: AsyncSession,
    resource_type: ResourceType,
    resource_id: int,
    window_start: datetime,
    window_end: datetime,
    exclude_trip_id: Optional[int] = None
) -> bool:
    conflict = await find_conflicting_trip(
        db, resource_type, resource_id, window_start, window_end, exclude_trip_id
    )
    return conflict is not None


async def _busy_ids(
    db: AsyncSession,
    resource_type: ResourceType,
    window_start: datetime,
    window_end: datetime
) -> set:
    column = _RESOURCE_COLUMNS[resource_type]
    result = await db.execute(
        select(column).where(
            column.is_not(None),
            *_committed_overlap_filter(window_start, window_end)
        ).distinct()
    )
    return set(result.scalars().all())


async def list_available_resources(
    db: AsyncSession,
    window_start: datetime,
    window_end: datetime
) -> Tuple[List[Driver], List[FleetVehicle]]:
    """
    Active drivers and fleet vehicles free for the whole window.
    
    Returns:
        (drivers ordered by name, vehicles ordered by number)
    
    Raises:
        InvalidRequestError: If the window is empty or inverted
    """
    validate_window(window_start, window_end)
    
    busy_drivers = await _busy_ids(db, ResourceType.DRIVER, window_start, window_end)
    busy_vehicles = await _busy_ids(db, ResourceType.VEHICLE, window_start, window_end)
    
    driver_query = select(Driver).where(Driver.is_active == True)
    if busy_drivers:
        driver_query = driver_query.where(Driver.id.not_in(busy_drivers))
    
    vehicle_query = select(FleetVehicle).where(FleetVehicle.is_active == True)
    if busy_vehicles:
        vehicle_query = vehicle_query.where(FleetVehicle.id.not_in(busy_vehicles))
    
    drivers = (await db.execute(driver_query.order_by(Driver.name))).scalars().all()
    vehicles = (await db.execute(vehicle_query.order_by(FleetVehicle.number))).scalars().all()
    
    return list(drivers), list(vehicles)
