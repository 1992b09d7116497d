"""
Security guards for role-based access control.

Route gating only; ownership rules that depend on workflow state live in
the workflow services.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user

# Roles that run the transport desk
TRANSPORT_DESK_ROLES = [UserRole.TRANSPORT, UserRole.ADMIN]

# Roles that take approval decisions
APPROVER_ROLES = [UserRole.MANAGER, UserRole.ADMIN]

# Roles that manage entitlements
ADMIN_ROLES = [UserRole.ADMIN]


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.
    
    Usage:
        @router.post("/trips/{trip_id}/assign")
        async def assign(current_user: dict = Depends(require_role([UserRole.TRANSPORT]))):
            ...
    
    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint
        
    Returns:
        FastAPI dependency function that validates user role
        
    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role = caller_role(current_user)
        
        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )
        
        return current_user
    
    return role_checker


def caller_role(current_user: dict) -> UserRole:
    """Resolve the caller's role from the authenticated payload."""
    user_role_str = current_user.get("role")
    
    if not user_role_str:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Role information missing from token"
        )
    
    try:
        return UserRole(user_role_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid role in token"
        )
