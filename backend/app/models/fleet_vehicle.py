"""
Fleet Vehicle database model.

Pool vehicles owned by the organization and assignable to any fleet trip.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class FleetVehicle(Base):
    """
    Fleet Vehicle model.
    
    Like drivers, vehicles carry no busy flag. `version` is bumped by each
    assignment so two racing assignments cannot both commit.
    """
    __tablename__ = "fleet_vehicles"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Vehicle identification
    number = Column(String(100), unique=True, nullable=False, index=True)
    vehicle_type = Column(String(100), nullable=True)  # e.g., "Sedan", "SUV", "Van"
    capacity = Column(Integer, nullable=True)  # Seats
    
    # Status
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    
    last_assigned_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    __mapper_args__ = {"version_id_col": version}
    
    def __repr__(self):
        return f"<FleetVehicle(id={self.id}, number='{self.number}', active={self.is_active})>"
