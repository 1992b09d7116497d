"""
Trip Workflow Service.

Owns the trip lifecycle: creation, manager decision, transport assignment,
execution and cancellation. Each state-changing operation runs its
read-validate-write sequence in one transaction; notifications go out only
after that transaction commits.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.exceptions import (
    InsufficientPermissionsError,
    InvalidRequestError,
    ResourceConflictError,
    ResourceNotFoundError,
    StateConflictError,
)
from backend.app.db.session import transaction
from backend.app.domain.workflow.transitions import (
    WorkflowKind,
    apply_path,
    apply_transition,
    resolve_approval_outcome,
)
from backend.app.models.audit_log import AuditLog
from backend.app.models.driver import Driver
from backend.app.models.entitled_vehicle import EntitledVehicle
from backend.app.models.enums import Decision, UserRole
from backend.app.models.fleet_vehicle import FleetVehicle
from backend.app.models.trip import Trip
from backend.app.models.trip_enums import TripStatus, VehicleCategory
from backend.app.models.trip_stop import TripStop
from backend.app.models.user import User
from backend.app.schemas.trip import TripCreate
from backend.app.services.audit import AuditAction, get_audit_trail, log_event
from backend.app.services.availability import ResourceType, find_conflicting_trip
from backend.app.services.notification_fanout import EventKind, WorkflowEvent, publish

logger = logging.getLogger(__name__)

# Roles allowed to cancel trips they did not request
CANCEL_ANY_ROLES = (UserRole.ADMIN, UserRole.TRANSPORT, UserRole.MANAGER)
EXECUTION_ROLES = (UserRole.TRANSPORT, UserRole.ADMIN)
# Trips in these statuses hold (or have held) a driver and vehicle
NON_CANCELLABLE_STATUSES = (TripStatus.TRANSPORT_ASSIGNED, TripStatus.IN_PROGRESS, TripStatus.COMPLETED)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TripWorkflowService:
    
    @staticmethod
    async def _lock_trip(db: AsyncSession, trip_id: int) -> Trip:
        """Load a trip row for update, bypassing any stale identity-map copy."""
        result = await db.execute(
            select(Trip)
            .where(Trip.id == trip_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        trip = result.scalar_one_or_none()
        if not trip:
            raise ResourceNotFoundError("Trip", trip_id)
        return trip
    
    @staticmethod
    async def _requester_name(db: AsyncSession, user_id: int) -> Optional[str]:
        user = await db.get(User, user_id)
        return user.name if user else None
    
    @staticmethod
    async def _self_managed_vehicle(db: AsyncSession, trip: Trip) -> str:
        """Descriptor recorded as the vehicle of a PERSONAL or ENTITLED trip."""
        if trip.vehicle_category == VehicleCategory.PERSONAL:
            details = (trip.personal_vehicle_details or "").strip()
            return details or "Personal Vehicle"
        if trip.entitled_vehicle_id is not None:
            vehicle = await db.get(EntitledVehicle, trip.entitled_vehicle_id)
            if vehicle:
                return vehicle.vehicle_number
        return "Entitled Vehicle"
    
    @staticmethod
    async def create(db: AsyncSession, requester_id: int, data: TripCreate) -> Trip:
        """
        Create a trip in Requested.
        
        Validation:
        1. toTime strictly after fromTime
        2. PERSONAL trips describe the vehicle
        3. ENTITLED trips reference an active entitled vehicle of the requester
        
        Raises:
            ResourceNotFoundError: Unknown requester or entitled vehicle
            InvalidRequestError: Invalid window or missing vehicle details
            InsufficientPermissionsError: Entitled vehicle belongs to someone else
        """
        requester = await db.get(User, requester_id)
        if not requester:
            raise ResourceNotFoundError("User", requester_id)
        
        if data.to_time <= data.from_time:
            raise InvalidRequestError("toTime must be after fromTime", field="to_time")
        
        personal_details = None
        entitled_vehicle_id = None
        
        if data.vehicle_category == VehicleCategory.PERSONAL:
            personal_details = (data.personal_vehicle_details or "").strip()
            if not personal_details:
                raise InvalidRequestError(
                    "Personal vehicle details are required for PERSONAL trips",
                    field="personal_vehicle_details"
                )
        elif data.vehicle_category == VehicleCategory.ENTITLED:
            if data.entitled_vehicle_id is None:
                raise InvalidRequestError(
                    "An entitled vehicle is required for ENTITLED trips",
                    field="entitled_vehicle_id"
                )
            vehicle = await db.get(EntitledVehicle, data.entitled_vehicle_id)
            if not vehicle or not vehicle.is_active:
                raise ResourceNotFoundError("Entitled vehicle", data.entitled_vehicle_id)
            if vehicle.user_id != requester_id:
                raise InsufficientPermissionsError(
                    "Entitled vehicle is not assigned to you",
                    details={"entitled_vehicle_id": vehicle.id}
                )
            entitled_vehicle_id = vehicle.id
        
        stops = [stop.strip() for stop in data.stops if stop and stop.strip()]
        passengers = [name.strip() for name in data.passenger_names if name and name.strip()]
        
        trip = Trip(
            requester_id=requester_id,
            purpose=data.purpose,
            from_loc=data.from_loc,
            to_loc=data.to_loc,
            passenger_names=passengers or None,
            from_time=data.from_time,
            to_time=data.to_time,
            company=data.company,
            department=data.department or requester.department,
            vehicle_category=data.vehicle_category,
            personal_vehicle_details=personal_details,
            entitled_vehicle_id=entitled_vehicle_id,
            status=TripStatus.REQUESTED,
            stops=[
                TripStop(sequence_number=index, location=location)
                for index, location in enumerate(stops, start=1)
            ],
        )
        
        async with transaction(db):
            db.add(trip)
            await db.flush()
            await log_event(
                db,
                action=AuditAction.TRIP_CREATED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=requester_id,
                metadata={"vehicle_category": trip.vehicle_category.value}
            )
        
        await db.refresh(trip)
        logger.info("Trip created", extra={"trip_id": trip.id, "requester_id": requester_id})
        
        await publish(db, WorkflowEvent(
            kind=EventKind.TRIP_CREATED,
            subject_id=trip.id,
            requester_id=requester_id,
            actor_id=requester_id,
            payload={"purpose": trip.purpose, "requester_name": requester.name},
        ))
        return trip
    
    @staticmethod
    async def decide(
        db: AsyncSession,
        trip_id: int,
        approver_id: int,
        decision: Decision,
        rejection_reason: Optional[str] = None
    ) -> Trip:
        """
        Approve or reject a Requested trip.
        
        Approval of a PERSONAL or ENTITLED trip assigns the requester as
        driver and their own vehicle in the same step.
        
        Raises:
            ResourceNotFoundError: Unknown trip
            InsufficientPermissionsError: Approver is the requester
            StateConflictError: Trip is not Requested
        """
        auto_assigned = False
        
        async with transaction(db):
            trip = await TripWorkflowService._lock_trip(db, trip_id)
            
            if trip.requester_id == approver_id:
                raise InsufficientPermissionsError(
                    "You cannot decide on your own trip request",
                    details={"trip_id": trip_id}
                )
            if trip.status != TripStatus.REQUESTED:
                raise StateConflictError(
                    f"Trip is {trip.status.value}, only Requested trips can be decided",
                    details={"trip_id": trip_id, "status": trip.status.value}
                )
            
            trip.approved_by_id = approver_id
            
            if decision == Decision.REJECT:
                trip.status = apply_transition(WorkflowKind.TRIP, trip.status, TripStatus.MANAGER_REJECTED)
                trip.rejection_reason = rejection_reason
                action = AuditAction.TRIP_REJECTED
            else:
                outcome = resolve_approval_outcome(trip.vehicle_category)
                new_status = apply_path(WorkflowKind.TRIP, trip.status, *outcome.path)
                
                if outcome.auto_assign:
                    trip.driver_name = await TripWorkflowService._requester_name(db, trip.requester_id)
                    trip.vehicle_number = await TripWorkflowService._self_managed_vehicle(db, trip)
                    trip.assigned_by_id = approver_id
                    auto_assigned = True
                
                trip.status = new_status
                trip.rejection_reason = None
                action = AuditAction.TRIP_AUTO_ASSIGNED if auto_assigned else AuditAction.TRIP_APPROVED
            
            await log_event(
                db,
                action=action,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=approver_id,
                metadata={"status": trip.status.value, "rejection_reason": trip.rejection_reason}
            )
        
        await db.refresh(trip)
        logger.info(
            "Trip decided",
            extra={"trip_id": trip.id, "approver_id": approver_id, "status": trip.status.value}
        )
        
        if decision == Decision.REJECT:
            kind = EventKind.TRIP_REJECTED
        elif auto_assigned:
            kind = EventKind.TRIP_AUTO_ASSIGNED
        else:
            kind = EventKind.TRIP_APPROVED
        
        await publish(db, WorkflowEvent(
            kind=kind,
            subject_id=trip.id,
            requester_id=trip.requester_id,
            actor_id=approver_id,
            payload={
                "purpose": trip.purpose,
                "rejection_reason": trip.rejection_reason,
                "vehicle_number": trip.vehicle_number,
            },
        ))
        return trip
    
    @staticmethod
    async def assign(
        db: AsyncSession,
        trip_id: int,
        assigner_id: int,
        driver_id: int,
        vehicle_id: int,
        start_mileage: int
    ) -> Trip:
        """
        Commit a fleet driver and vehicle to a ManagerApproved trip.
        
        The availability checks and the write share one transaction. The
        driver and then the vehicle are stamped first so that a concurrent
        assignment of either resource fails at flush instead of committing a
        double booking.
        
        Raises:
            ResourceNotFoundError: Unknown trip, or driver/vehicle missing or inactive
            StateConflictError: Trip is not ManagerApproved
            ResourceConflictError: Driver or vehicle busy in an overlapping window
        """
        async with transaction(db):
            trip = await TripWorkflowService._lock_trip(db, trip_id)
            
            if trip.status != TripStatus.MANAGER_APPROVED:
                raise StateConflictError(
                    f"Trip is {trip.status.value}, only ManagerApproved trips can be assigned",
                    details={"trip_id": trip_id, "status": trip.status.value}
                )
            
            driver = (await db.execute(
                select(Driver)
                .where(Driver.id == driver_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if not driver or not driver.is_active:
                raise ResourceNotFoundError("Driver", driver_id, reason="missing or inactive")
            
            vehicle = (await db.execute(
                select(FleetVehicle)
                .where(FleetVehicle.id == vehicle_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )).scalar_one_or_none()
            if not vehicle or not vehicle.is_active:
                raise ResourceNotFoundError("Vehicle", vehicle_id, reason="missing or inactive")
            
            conflict = await find_conflicting_trip(
                db, ResourceType.DRIVER, driver_id, trip.from_time, trip.to_time, exclude_trip_id=trip.id
            )
            if conflict is not None:
                raise ResourceConflictError(
                    "Selected driver is already occupied in this time slot",
                    details={"driver_id": driver_id, "conflicting_trip_id": conflict}
                )
            
            conflict = await find_conflicting_trip(
                db, ResourceType.VEHICLE, vehicle_id, trip.from_time, trip.to_time, exclude_trip_id=trip.id
            )
            if conflict is not None:
                raise ResourceConflictError(
                    "Selected vehicle is already assigned in this time slot",
                    details={"vehicle_id": vehicle_id, "conflicting_trip_id": conflict}
                )
            
            new_status = apply_transition(WorkflowKind.TRIP, trip.status, TripStatus.TRANSPORT_ASSIGNED)
            
            assigned_at = _now()
            try:
                driver.last_assigned_at = assigned_at
                await db.flush()
                vehicle.last_assigned_at = assigned_at
                await db.flush()
            except StaleDataError as exc:
                raise ResourceConflictError(
                    "Driver or vehicle was just committed by a concurrent assignment",
                    details={"driver_id": driver_id, "vehicle_id": vehicle_id}
                ) from exc
            
            trip.status = new_status
            trip.assigned_by_id = assigner_id
            trip.driver_id = driver.id
            trip.vehicle_id = vehicle.id
            trip.driver_name = driver.name
            trip.vehicle_number = vehicle.number
            trip.start_mileage = start_mileage
            trip.rejection_reason = None
            
            await log_event(
                db,
                action=AuditAction.TRIP_ASSIGNED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=assigner_id,
                metadata={
                    "driver_id": driver.id,
                    "vehicle_id": vehicle.id,
                    "start_mileage": start_mileage,
                }
            )
        
        await db.refresh(trip)
        logger.info(
            "Trip assigned",
            extra={"trip_id": trip.id, "driver_id": driver_id, "vehicle_id": vehicle_id}
        )
        
        await publish(db, WorkflowEvent(
            kind=EventKind.TRIP_ASSIGNED,
            subject_id=trip.id,
            requester_id=trip.requester_id,
            actor_id=assigner_id,
            payload={
                "purpose": trip.purpose,
                "driver_name": trip.driver_name,
                "vehicle_number": trip.vehicle_number,
                "vehicle_category": trip.vehicle_category.value,
                "requester_name": await TripWorkflowService._requester_name(db, trip.requester_id),
            },
        ))
        return trip
    
    @staticmethod
    async def cancel(db: AsyncSession, trip_id: int, caller_id: int, caller_role: UserRole) -> Trip:
        """
        Cancel a trip that holds no committed resources.
        
        Raises:
            ResourceNotFoundError: Unknown trip
            InsufficientPermissionsError: Caller neither owns the trip nor holds a cancelling role
            StateConflictError: Trip is assigned, in progress, completed or already cancelled
        """
        async with transaction(db):
            trip = await TripWorkflowService._lock_trip(db, trip_id)
            
            if trip.requester_id != caller_id and caller_role not in CANCEL_ANY_ROLES:
                raise InsufficientPermissionsError(
                    "You can only cancel your own trips",
                    details={"trip_id": trip_id}
                )
            if trip.status in NON_CANCELLABLE_STATUSES:
                raise StateConflictError(
                    f"Trip is {trip.status.value} and can no longer be cancelled",
                    details={"trip_id": trip_id, "status": trip.status.value}
                )
            
            trip.status = apply_transition(WorkflowKind.TRIP, trip.status, TripStatus.CANCELLED)
            trip.cancelled_at = _now()
            trip.rejection_reason = None
            
            await log_event(
                db,
                action=AuditAction.TRIP_CANCELLED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=caller_id,
                metadata={"role": caller_role.value}
            )
        
        await db.refresh(trip)
        logger.info("Trip cancelled", extra={"trip_id": trip.id, "caller_id": caller_id})
        
        await publish(db, WorkflowEvent(
            kind=EventKind.TRIP_CANCELLED,
            subject_id=trip.id,
            requester_id=trip.requester_id,
            actor_id=caller_id,
            payload={"purpose": trip.purpose},
        ))
        return trip
    
    @staticmethod
    async def start(db: AsyncSession, trip_id: int, caller_id: int, caller_role: UserRole) -> Trip:
        """Move an assigned trip to InProgress."""
        if caller_role not in EXECUTION_ROLES:
            raise InsufficientPermissionsError("Only transport can start trips")
        
        async with transaction(db):
            trip = await TripWorkflowService._lock_trip(db, trip_id)
            trip.status = apply_transition(WorkflowKind.TRIP, trip.status, TripStatus.IN_PROGRESS)
            trip.started_at = _now()
            trip.rejection_reason = None
            
            await log_event(
                db,
                action=AuditAction.TRIP_STARTED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=caller_id
            )
        
        await db.refresh(trip)
        logger.info("Trip started", extra={"trip_id": trip.id, "caller_id": caller_id})
        
        await publish(db, WorkflowEvent(
            kind=EventKind.TRIP_STARTED,
            subject_id=trip.id,
            requester_id=trip.requester_id,
            actor_id=caller_id,
            payload={"purpose": trip.purpose},
        ))
        return trip
    
    @staticmethod
    async def complete(
        db: AsyncSession,
        trip_id: int,
        caller_id: int,
        caller_role: UserRole,
        end_mileage: Optional[int] = None
    ) -> Trip:
        """
        Move an in-progress trip to Completed.
        
        Raises:
            InvalidRequestError: end_mileage below the recorded start_mileage
        """
        if caller_role not in EXECUTION_ROLES:
            raise InsufficientPermissionsError("Only transport can complete trips")
        
        async with transaction(db):
            trip = await TripWorkflowService._lock_trip(db, trip_id)
            new_status = apply_transition(WorkflowKind.TRIP, trip.status, TripStatus.COMPLETED)
            
            if (
                end_mileage is not None
                and trip.start_mileage is not None
                and end_mileage < trip.start_mileage
            ):
                raise InvalidRequestError(
                    f"End mileage {end_mileage} is below start mileage {trip.start_mileage}",
                    field="end_mileage"
                )
            
            trip.status = new_status
            trip.end_mileage = end_mileage
            trip.completed_at = _now()
            trip.rejection_reason = None
            
            await log_event(
                db,
                action=AuditAction.TRIP_COMPLETED,
                entity_type="trip",
                entity_id=trip.id,
                actor_id=caller_id,
                metadata={"end_mileage": end_mileage}
            )
        
        await db.refresh(trip)
        logger.info("Trip completed", extra={"trip_id": trip.id, "caller_id": caller_id})
        
        await publish(db, WorkflowEvent(
            kind=EventKind.TRIP_COMPLETED,
            subject_id=trip.id,
            requester_id=trip.requester_id,
            actor_id=caller_id,
            payload={"purpose": trip.purpose},
        ))
        return trip
    
    # --- Reads ---
    
    @staticmethod
    async def get_trip(db: AsyncSession, trip_id: int, caller_id: int, caller_role: UserRole) -> Trip:
        """Trip detail, visible to its requester and to non-employee roles."""
        trip = await db.get(Trip, trip_id)
        if not trip:
            raise ResourceNotFoundError("Trip", trip_id)
        if trip.requester_id != caller_id and caller_role == UserRole.EMPLOYEE:
            raise InsufficientPermissionsError("You can only view your own trips")
        return trip
    
    @staticmethod
    async def get_history(db: AsyncSession, trip_id: int, caller_id: int, caller_role: UserRole) -> List[AuditLog]:
        """Audit trail of a trip, oldest first, with the same visibility as the trip."""
        await TripWorkflowService.get_trip(db, trip_id, caller_id, caller_role)
        return await get_audit_trail(db, "trip", trip_id)
    
    @staticmethod
    async def list_for_requester(db: AsyncSession, requester_id: int) -> List[Trip]:
        result = await db.execute(
            select(Trip)
            .where(Trip.requester_id == requester_id)
            .order_by(Trip.created_at.desc(), Trip.id.desc())
        )
        return result.scalars().all()
    
    @staticmethod
    async def list_pending(db: AsyncSession) -> List[Trip]:
        """Trips awaiting a manager decision, earliest departure first."""
        result = await db.execute(
            select(Trip)
            .where(Trip.status == TripStatus.REQUESTED)
            .order_by(Trip.from_time, Trip.id)
        )
        return result.scalars().all()
    
    @staticmethod
    async def list_awaiting_assignment(db: AsyncSession) -> List[Trip]:
        """Approved fleet trips waiting for a driver and vehicle."""
        result = await db.execute(
            select(Trip)
            .where(
                Trip.status == TripStatus.MANAGER_APPROVED,
                Trip.vehicle_category == VehicleCategory.FLEET
            )
            .order_by(Trip.from_time, Trip.id)
        )
        return result.scalars().all()
