"""
User roles and shared decision enumerations.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.
    
    Roles:
        EMPLOYEE: Requests trips, files allowance claims (default role)
        MANAGER: Approves or rejects trips, claims and maintenance
        TRANSPORT: Assigns drivers/vehicles and runs maintenance work
        ADMIN: Supreme user with system-level access
    """
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    TRANSPORT = "TRANSPORT"
    ADMIN = "ADMIN"


class Decision(str, enum.Enum):
    """Approver decision on a pending request."""
    APPROVE = "approve"
    REJECT = "reject"
