"""
Authentication dependencies for FastAPI.

The auth layer issues the bearer token; this module only verifies it and
resolves the caller's `{user_id, role}` pair.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from backend.app.core.exceptions import AuthenticationError
from backend.app.core.jwt import decode_access_token
from backend.app.db.session import get_db
from backend.app.models.user import User

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    FastAPI dependency for JWT authentication.
    
    1. Validates JWT token signature and expiry
    2. Verifies user still exists and is active (real-time check)
    3. Takes the role from the user record, not the token
        
    Returns:
        Payload dict with user_id, sub and role
        
    Raises:
        AuthenticationError: 401 if the token or its user is invalid
        HTTPException: 403 if the account is inactive
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Could not validate credentials")
    
    user_id = payload.get("user_id")
    if not user_id:
        raise AuthenticationError("Invalid token payload")
    
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    
    if not user:
        raise AuthenticationError("User not found")
    
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )
    
    return {
        "user_id": user.id,
        "sub": payload.get("sub") or user.email,
        "role": user.role.value,
    }
