"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import trips, tada, maintenance, transport, notifications, admin

router = APIRouter()

# Trip workflow
router.include_router(trips.router)

# Allowance claims
router.include_router(tada.router)

# Vehicle maintenance
router.include_router(maintenance.router)

# Transport desk availability
router.include_router(transport.router)

# In-app notification inbox
router.include_router(notifications.router)

# Entitled vehicle administration
router.include_router(admin.router)
