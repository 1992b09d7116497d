"""
Notification fan-out for committed workflow transitions.

Workflow services publish a WorkflowEvent after their transaction commits.
`plan_notifications` decides who hears about it and what they are told;
`dispatch` delivers the plan in a separate transaction. Delivery is
best-effort: failures are logged and never reach the workflow caller.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from backend.app.core.config import settings
from backend.app.models.enums import UserRole
from backend.app.models.notification import NotificationType
from backend.app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class EventKind(str, enum.Enum):
    TRIP_CREATED = "TRIP_CREATED"
    TRIP_APPROVED = "TRIP_APPROVED"
    TRIP_AUTO_ASSIGNED = "TRIP_AUTO_ASSIGNED"
    TRIP_REJECTED = "TRIP_REJECTED"
    TRIP_ASSIGNED = "TRIP_ASSIGNED"
    TRIP_CANCELLED = "TRIP_CANCELLED"
    TRIP_STARTED = "TRIP_STARTED"
    TRIP_COMPLETED = "TRIP_COMPLETED"
    TADA_SUBMITTED = "TADA_SUBMITTED"
    TADA_APPROVED = "TADA_APPROVED"
    TADA_REJECTED = "TADA_REJECTED"
    MAINTENANCE_CREATED = "MAINTENANCE_CREATED"
    MAINTENANCE_APPROVED = "MAINTENANCE_APPROVED"
    MAINTENANCE_REJECTED = "MAINTENANCE_REJECTED"
    MAINTENANCE_COMPLETED = "MAINTENANCE_COMPLETED"
    MAINTENANCE_ISSUE_REPORTED = "MAINTENANCE_ISSUE_REPORTED"
    MAINTENANCE_ISSUE_RESOLVED = "MAINTENANCE_ISSUE_RESOLVED"


@dataclass(frozen=True)
class WorkflowEvent:
    """A committed transition, described with the data its notifications need."""
    kind: EventKind
    subject_id: int
    requester_id: Optional[int] = None
    actor_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlannedNotification:
    """One notification to deliver, to a single user or to a whole role."""
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    user_id: Optional[int] = None
    role: Optional[UserRole] = None


def format_amount(amount) -> str:
    """Render a currency amount without a trailing .00 for whole values."""
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return f"{value.to_integral_value():,}"
    return f"{value.quantize(Decimal('0.01')):,}"


def _reason_suffix(event: WorkflowEvent) -> str:
    reason = event.payload.get("rejection_reason")
    return f" Reason: {reason}" if reason else ""


# --- Trip plans ---

def _trip_created(event: WorkflowEvent) -> List[PlannedNotification]:
    requester = event.payload.get("requester_name") or "An employee"
    return [PlannedNotification(
        role=UserRole.MANAGER,
        type=NotificationType.TRIP_REQUEST,
        title="New Trip Request",
        message=f"{requester} has submitted a new trip request: {event.payload['purpose']}",
        link="/manager",
    )]


def _trip_approved(event: WorkflowEvent) -> List[PlannedNotification]:
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.TRIP_APPROVED,
        title="Trip Request Approved",
        message=f"Your trip request \"{event.payload['purpose']}\" has been approved.",
        link="/employee/trips",
    )]


def _trip_auto_assigned(event: WorkflowEvent) -> List[PlannedNotification]:
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.VEHICLE_ASSIGNED,
        title="Trip Approved & Assigned",
        message=(
            f"Your trip request \"{event.payload['purpose']}\" has been approved and "
            f"auto-assigned to {event.payload['vehicle_number']}."
        ),
        link="/employee/trips",
    )]


def _trip_rejected(event: WorkflowEvent) -> List[PlannedNotification]:
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.TRIP_REJECTED,
        title="Trip Request Rejected",
        message=f"Your trip request \"{event.payload['purpose']}\" has been rejected.{_reason_suffix(event)}",
        link="/employee/trips",
    )]


def _trip_assigned(event: WorkflowEvent) -> List[PlannedNotification]:
    payload = event.payload
    plans = []
    if payload.get("vehicle_category") == "FLEET":
        plans.append(PlannedNotification(
            role=UserRole.TRANSPORT,
            type=NotificationType.VEHICLE_ASSIGNED,
            title="Fleet Vehicle Assigned",
            message=(
                f"Vehicle {payload['vehicle_number']} has been assigned to "
                f"{payload.get('requester_name') or 'employee'} for trip: {payload['purpose']}. "
                f"Driver: {payload['driver_name']}"
            ),
            link="/transport",
        ))
    plans.append(PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.VEHICLE_ASSIGNED,
        title="Vehicle Assigned to Your Trip",
        message=(
            f"Your trip request \"{payload['purpose']}\" has been assigned. "
            f"Driver: {payload['driver_name']}, Vehicle: {payload['vehicle_number']}"
        ),
        link="/employee/trips",
    ))
    return plans


def _trip_cancelled(event: WorkflowEvent) -> List[PlannedNotification]:
    if event.actor_id == event.requester_id:
        return []
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.TRIP_CANCELLED,
        title="Trip Cancelled",
        message=f"Your trip request \"{event.payload['purpose']}\" has been cancelled.",
        link="/employee/trips",
    )]


def _trip_started(event: WorkflowEvent) -> List[PlannedNotification]:
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.TRIP_UPDATE,
        title="Trip Started",
        message=f"Your trip \"{event.payload['purpose']}\" is now in progress.",
        link="/employee/trips",
    )]


def _trip_completed(event: WorkflowEvent) -> List[PlannedNotification]:
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.TRIP_UPDATE,
        title="Trip Completed",
        message=(
            f"Your trip \"{event.payload['purpose']}\" has been completed. "
            "You can now submit allowance claims."
        ),
        link="/employee/allowances",
    )]


# --- TADA plans ---

def _tada_submitted(event: WorkflowEvent) -> List[PlannedNotification]:
    payload = event.payload
    count = payload["count"]
    noun = "claim" if count == 1 else "claims"
    return [PlannedNotification(
        role=UserRole.MANAGER,
        type=NotificationType.TADA_REQUEST,
        title="New Allowance Request",
        message=(
            f"{payload.get('requester_name') or 'An employee'} submitted {count} {noun} totaling "
            f"{format_amount(payload['total'])} {settings.currency_code} for trip: {payload['purpose']}"
        ),
        link="/manager/allowances",
    )]


def _tada_decided(event: WorkflowEvent) -> List[PlannedNotification]:
    approved = event.kind == EventKind.TADA_APPROVED
    amount = f"{settings.currency_code} {format_amount(event.payload['amount'])}"
    claim_type = event.payload.get("claim_type", "allowance")
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.TADA_APPROVED if approved else NotificationType.TADA_REJECTED,
        title="Allowance Claim Approved" if approved else "Allowance Claim Rejected",
        message=(
            f"Your {claim_type} claim of {amount} has been approved."
            if approved else
            f"Your {claim_type} claim of {amount} has been rejected.{_reason_suffix(event)}"
        ),
        link="/employee/allowances",
    )]


# --- Maintenance plans ---

def _maintenance_link(event: WorkflowEvent) -> str:
    return "/transport/maintenance" if event.payload.get("is_fleet") else "/employee/maintenance"


def _maintenance_created(event: WorkflowEvent) -> List[PlannedNotification]:
    vehicle = event.payload["vehicle_number"]
    if event.payload.get("is_fleet"):
        return [PlannedNotification(
            role=UserRole.MANAGER,
            type=NotificationType.MAINTENANCE_REQUEST,
            title="New Fleet Vehicle Maintenance Request",
            message=f"Transport department has submitted a maintenance request for fleet vehicle {vehicle}",
            link="/manager/maintenance",
        )]
    return [
        PlannedNotification(
            role=UserRole.MANAGER,
            type=NotificationType.MAINTENANCE_REQUEST,
            title="New Maintenance Request",
            message=f"A new maintenance request has been submitted for vehicle {vehicle}",
            link="/manager/maintenance",
        ),
        PlannedNotification(
            role=UserRole.TRANSPORT,
            type=NotificationType.MAINTENANCE_REQUEST,
            title="New Vehicle Maintenance Request",
            message=f"A new maintenance request has been submitted for vehicle {vehicle}. Awaiting manager approval.",
            link="/transport/maintenance",
        ),
    ]


def _maintenance_approved(event: WorkflowEvent) -> List[PlannedNotification]:
    vehicle = event.payload["vehicle_number"]
    is_fleet = event.payload.get("is_fleet")
    plans = [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.MAINTENANCE_APPROVED,
        title="Maintenance Request Approved",
        message=(
            f"Your maintenance request for vehicle {vehicle} has been approved"
            f"{'' if is_fleet else ' and sent to transport'}."
        ),
        link=_maintenance_link(event),
    )]
    if not is_fleet:
        plans.append(PlannedNotification(
            role=UserRole.TRANSPORT,
            type=NotificationType.MAINTENANCE_REQUEST,
            title="Vehicle Maintenance Request Approved",
            message=f"A maintenance request has been approved for vehicle {vehicle}. Ready for work.",
            link="/transport/maintenance",
        ))
    return plans


def _maintenance_rejected(event: WorkflowEvent) -> List[PlannedNotification]:
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.MAINTENANCE_REJECTED,
        title="Maintenance Request Rejected",
        message=(
            f"Your maintenance request for vehicle {event.payload['vehicle_number']} "
            f"has been rejected.{_reason_suffix(event)}"
        ),
        link=_maintenance_link(event),
    )]


def _maintenance_completed(event: WorkflowEvent) -> List[PlannedNotification]:
    cost = event.payload.get("cost")
    cost_text = f" Cost: {settings.currency_code} {format_amount(cost)}" if cost is not None else ""
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.MAINTENANCE_COMPLETED,
        title="Maintenance Completed",
        message=f"Maintenance for vehicle {event.payload['vehicle_number']} has been completed.{cost_text}",
        link=_maintenance_link(event),
    )]


def _maintenance_issue_reported(event: WorkflowEvent) -> List[PlannedNotification]:
    message = (
        f"An issue was reported on completed maintenance for vehicle "
        f"{event.payload['vehicle_number']}: {event.payload['issue_description']}"
    )
    return [
        PlannedNotification(
            role=role,
            type=NotificationType.MAINTENANCE_ISSUE_REPORTED,
            title="Maintenance Issue Reported",
            message=message,
            link=link,
        )
        for role, link in (
            (UserRole.TRANSPORT, "/transport/maintenance"),
            (UserRole.MANAGER, "/manager/maintenance"),
        )
    ]


def _maintenance_issue_resolved(event: WorkflowEvent) -> List[PlannedNotification]:
    return [PlannedNotification(
        user_id=event.requester_id,
        type=NotificationType.MAINTENANCE_ISSUE_RESOLVED,
        title="Maintenance Issue Resolved",
        message=f"The issue you reported for vehicle {event.payload['vehicle_number']} has been resolved.",
        link=_maintenance_link(event),
    )]


_PLANNERS: Dict[EventKind, Callable[[WorkflowEvent], List[PlannedNotification]]] = {
    EventKind.TRIP_CREATED: _trip_created,
    EventKind.TRIP_APPROVED: _trip_approved,
    EventKind.TRIP_AUTO_ASSIGNED: _trip_auto_assigned,
    EventKind.TRIP_REJECTED: _trip_rejected,
    EventKind.TRIP_ASSIGNED: _trip_assigned,
    EventKind.TRIP_CANCELLED: _trip_cancelled,
    EventKind.TRIP_STARTED: _trip_started,
    EventKind.TRIP_COMPLETED: _trip_completed,
    EventKind.TADA_SUBMITTED: _tada_submitted,
    EventKind.TADA_APPROVED: _tada_decided,
    EventKind.TADA_REJECTED: _tada_decided,
    EventKind.MAINTENANCE_CREATED: _maintenance_created,
    EventKind.MAINTENANCE_APPROVED: _maintenance_approved,
    EventKind.MAINTENANCE_REJECTED: _maintenance_rejected,
    EventKind.MAINTENANCE_COMPLETED: _maintenance_completed,
    EventKind.MAINTENANCE_ISSUE_REPORTED: _maintenance_issue_reported,
    EventKind.MAINTENANCE_ISSUE_RESOLVED: _maintenance_issue_resolved,
}


def plan_notifications(event: WorkflowEvent) -> List[PlannedNotification]:
    """Decide recipients and content for a committed transition. Pure."""
    planner = _PLANNERS.get(event.kind)
    if planner is None:
        return []
    return planner(event)


async def dispatch(bind: AsyncEngine, event: WorkflowEvent) -> int:
    """
    Deliver the notifications planned for an event in their own transaction.
    
    Runs after the workflow transaction has committed, so nothing here may
    fail the caller: planning errors, store errors and a delivery slower
    than settings.notification_timeout_seconds are logged and dropped.
    
    Returns:
        Number of notifications stored (0 when disabled or on failure)
    """
    if not settings.notifications_enabled:
        return 0
    
    try:
        plans = plan_notifications(event)
        if not plans:
            return 0
        
        async with asyncio.timeout(settings.notification_timeout_seconds):
            async with AsyncSession(bind, expire_on_commit=False) as session:
                delivered = 0
                for plan in plans:
                    if plan.role is not None:
                        delivered += await NotificationService.notify_role(
                            session, plan.role, plan.type, plan.title, plan.message, plan.link
                        )
                    else:
                        await NotificationService.notify_user(
                            session, plan.user_id, plan.type, plan.title, plan.message, plan.link
                        )
                        delivered += 1
                await session.commit()
    except Exception:
        logger.exception(
            "Failed to deliver notifications",
            extra={"event": event.kind.value, "subject_id": event.subject_id}
        )
        return 0
    
    logger.debug(
        "Notifications delivered",
        extra={"event": event.kind.value, "subject_id": event.subject_id, "count": delivered}
    )
    return delivered


async def publish(db: AsyncSession, event: WorkflowEvent) -> int:
    """Fan out an event using the engine the workflow session is bound to."""
    return await dispatch(db.bind, event)
