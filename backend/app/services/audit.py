"""
Audit logging service for workflow transitions.

Entries are added to the caller's session and commit together with the
transition they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.models.audit_log import AuditLog


class AuditAction:
    """Standardized audit action constants."""
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_APPROVED = "TRIP_APPROVED"
    TRIP_REJECTED = "TRIP_REJECTED"
    TRIP_AUTO_ASSIGNED = "TRIP_AUTO_ASSIGNED"
    TRIP_ASSIGNED = "TRIP_ASSIGNED"
    TRIP_CANCELLED = "TRIP_CANCELLED"
    TRIP_STARTED = "TRIP_STARTED"
    TRIP_COMPLETED = "TRIP_COMPLETED"
    
    TADA_SUBMITTED = "TADA_SUBMITTED"
    TADA_APPROVED = "TADA_APPROVED"
    TADA_REJECTED = "TADA_REJECTED"
    
    MAINTENANCE_REQUESTED = "MAINTENANCE_REQUESTED"
    MAINTENANCE_APPROVED = "MAINTENANCE_APPROVED"
    MAINTENANCE_REJECTED = "MAINTENANCE_REJECTED"
    MAINTENANCE_STARTED = "MAINTENANCE_STARTED"
    MAINTENANCE_COMPLETED = "MAINTENANCE_COMPLETED"
    MAINTENANCE_ISSUE_REPORTED = "MAINTENANCE_ISSUE_REPORTED"
    MAINTENANCE_ISSUE_RESOLVED = "MAINTENANCE_ISSUE_RESOLVED"
    
    DRIVER_CREATED = "DRIVER_CREATED"
    DRIVER_UPDATED = "DRIVER_UPDATED"
    VEHICLE_CREATED = "VEHICLE_CREATED"
    VEHICLE_UPDATED = "VEHICLE_UPDATED"
    VEHICLE_DEACTIVATED = "VEHICLE_DEACTIVATED"
    ENTITLED_VEHICLE_ASSIGNED = "ENTITLED_VEHICLE_ASSIGNED"
    ENTITLED_VEHICLE_REMOVED = "ENTITLED_VEHICLE_REMOVED"


async def log_event(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: int,
    actor_id: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record a workflow event in the current transaction.
    
    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        entity_type: Record kind, e.g. "trip", "maintenance_request", "driver"
        entity_id: ID of the record acted upon
        actor_id: ID of user performing the action
        metadata: Additional context as JSON
        
    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_data=metadata
    )
    db.add(audit_log)
    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    entity_type: str,
    entity_id: int,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve the audit trail of one record, oldest first.
    """
    query = (
        select(AuditLog)
        .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
        .order_by(AuditLog.timestamp, AuditLog.id)
        .limit(limit)
    )
    result = await db.execute(query)
    return result.scalars().all()
