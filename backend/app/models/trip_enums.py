"""
Trip-related enumerations.
"""

import enum


class TripStatus(str, enum.Enum):
    """Trip status enumeration."""
    REQUESTED = "Requested"  # Submitted by employee, awaiting manager
    MANAGER_APPROVED = "ManagerApproved"  # Fleet trip awaiting transport assignment
    MANAGER_REJECTED = "ManagerRejected"
    TRANSPORT_ASSIGNED = "TransportAssigned"  # Driver and vehicle committed
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class VehicleCategory(str, enum.Enum):
    """Where the trip's vehicle comes from."""
    FLEET = "FLEET"  # Pool vehicle allocated by transport
    PERSONAL = "PERSONAL"  # Employee's own vehicle
    ENTITLED = "ENTITLED"  # Vehicle officially assigned to the employee


class Company(str, enum.Enum):
    """Requesting company."""
    KIPS_PREPS = "KIPS_PREPS"
    TETB = "TETB"
    QUALITY_BRANDS = "QUALITY_BRANDS"
    KDP = "KDP"


# Statuses in which a trip holds its driver and vehicle
COMMITTED_STATUSES = (TripStatus.TRANSPORT_ASSIGNED, TripStatus.IN_PROGRESS)
