"""
Shared test helpers.
"""

from datetime import datetime, timezone

from backend.app.core.jwt import create_access_token
from backend.app.models.trip_enums import Company, VehicleCategory
from backend.app.models.user import User
from backend.app.schemas.trip import TripCreate


def at(hour: int, minute: int = 0, day: int = 10) -> datetime:
    """UTC timestamp on January `day`, 2024."""
    return datetime(2024, 1, day, hour, minute, tzinfo=timezone.utc)


def trip_payload(**overrides) -> TripCreate:
    """A valid fleet trip request from 09:00 to 11:00."""
    data = {
        "purpose": "Client visit",
        "from_loc": "Head Office",
        "to_loc": "Campus 2",
        "from_time": at(9),
        "to_time": at(11),
        "company": Company.KIPS_PREPS,
        "vehicle_category": VehicleCategory.FLEET,
    }
    data.update(overrides)
    return TripCreate(**data)


def auth_headers(user: User) -> dict:
    token = create_access_token(data={"sub": user.email, "user_id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}
