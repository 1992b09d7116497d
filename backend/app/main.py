"""
FastAPI Application Entry Point.

This is the main application file for the Transport Workflow Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.core.dependencies import get_current_user
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.db.session import engine, Base
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from fastapi import HTTPException

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.audit_log import AuditLog
from backend.app.models.driver import Driver
from backend.app.models.fleet_vehicle import FleetVehicle
from backend.app.models.entitled_vehicle import EntitledVehicle
from backend.app.models.trip_stop import TripStop
from backend.app.models.trip import Trip
from backend.app.models.tada_request import TadaRequest
from backend.app.models.maintenance_request import MaintenanceRequest
from backend.app.models.notification import Notification

configure_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.
    
    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Trip, allowance and maintenance workflows for the transport department",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.
    
    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.
    
    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Transport Workflow API",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/auth/me", tags=["Authentication"])
async def whoami(current_user: dict = Depends(get_current_user)):
    """Identity resolved from the bearer token."""
    return {"authenticated_user": current_user}
