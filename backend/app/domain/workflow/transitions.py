"""
Status transition tables.

One explicit map per workflow from current status to the statuses reachable
in a single step. Terminal statuses map to an empty set. Workflow services
go through `apply_transition` before persisting any status change.
"""

import enum
from typing import Dict, FrozenSet, NamedTuple, Tuple

from backend.app.core.exceptions import InvalidTransitionError
from backend.app.models.trip_enums import TripStatus, VehicleCategory
from backend.app.models.claim_enums import TadaStatus
from backend.app.models.maintenance_enums import MaintenanceStatus


class WorkflowKind(str, enum.Enum):
    TRIP = "trip"
    TADA = "tada"
    MAINTENANCE = "maintenance"


TRIP_TRANSITIONS: Dict[TripStatus, FrozenSet[TripStatus]] = {
    TripStatus.REQUESTED: frozenset({
        TripStatus.MANAGER_APPROVED,
        TripStatus.MANAGER_REJECTED,
        TripStatus.CANCELLED,
    }),
    TripStatus.MANAGER_APPROVED: frozenset({TripStatus.TRANSPORT_ASSIGNED, TripStatus.CANCELLED}),
    TripStatus.MANAGER_REJECTED: frozenset({TripStatus.CANCELLED}),
    TripStatus.TRANSPORT_ASSIGNED: frozenset({TripStatus.IN_PROGRESS, TripStatus.CANCELLED}),
    TripStatus.IN_PROGRESS: frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}

TADA_TRANSITIONS: Dict[TadaStatus, FrozenSet[TadaStatus]] = {
    TadaStatus.PENDING: frozenset({TadaStatus.APPROVED, TadaStatus.REJECTED}),
    TadaStatus.APPROVED: frozenset(),
    TadaStatus.REJECTED: frozenset(),
}

MAINTENANCE_TRANSITIONS: Dict[MaintenanceStatus, FrozenSet[MaintenanceStatus]] = {
    MaintenanceStatus.REQUESTED: frozenset({MaintenanceStatus.APPROVED, MaintenanceStatus.REJECTED}),
    MaintenanceStatus.APPROVED: frozenset({MaintenanceStatus.IN_PROGRESS, MaintenanceStatus.REJECTED}),
    MaintenanceStatus.IN_PROGRESS: frozenset({MaintenanceStatus.COMPLETED}),
    MaintenanceStatus.REJECTED: frozenset(),
    MaintenanceStatus.COMPLETED: frozenset(),
}

TRANSITIONS = {
    WorkflowKind.TRIP: TRIP_TRANSITIONS,
    WorkflowKind.TADA: TADA_TRANSITIONS,
    WorkflowKind.MAINTENANCE: MAINTENANCE_TRANSITIONS,
}


def allowed_transitions(kind: WorkflowKind, current) -> FrozenSet:
    """Statuses reachable from `current` in one step."""
    return TRANSITIONS[kind].get(current, frozenset())


def is_valid_transition(kind: WorkflowKind, current, next_status) -> bool:
    return next_status in allowed_transitions(kind, current)


def is_terminal(kind: WorkflowKind, status) -> bool:
    return not allowed_transitions(kind, status)


def apply_transition(kind: WorkflowKind, current, target):
    """
    Validate a status change against the workflow's table.
    
    Returns:
        The target status, ready to assign to the record
    
    Raises:
        InvalidTransitionError: If `target` is not reachable from `current`
    """
    if not is_valid_transition(kind, current, target):
        raise InvalidTransitionError(
            kind.value,
            getattr(current, "value", str(current)),
            getattr(target, "value", str(target)),
        )
    return target


def apply_path(kind: WorkflowKind, current, *targets):
    """
    Validate a chain of steps that is persisted as a single status change.
    
    Each hop must be legal from the one before it. Returns the final status.
    """
    status = current
    for target in targets:
        status = apply_transition(kind, status, target)
    return status


class ApprovalOutcome(NamedTuple):
    target_status: TripStatus
    auto_assign: bool
    
    @property
    def path(self) -> Tuple[TripStatus, ...]:
        """Table steps the approval covers, in order."""
        if self.auto_assign:
            return (TripStatus.MANAGER_APPROVED, TripStatus.TRANSPORT_ASSIGNED)
        return (self.target_status,)


def resolve_approval_outcome(category: VehicleCategory) -> ApprovalOutcome:
    """
    Decide where an approved trip goes next.
    
    PERSONAL and ENTITLED trips bring their own vehicle, so approval assigns
    the requester directly. FLEET trips always wait for the transport desk.
    """
    if category in (VehicleCategory.PERSONAL, VehicleCategory.ENTITLED):
        return ApprovalOutcome(TripStatus.TRANSPORT_ASSIGNED, True)
    return ApprovalOutcome(TripStatus.MANAGER_APPROVED, False)
