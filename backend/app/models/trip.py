"""
Trip database model.

A trip is a transport request raised by an employee. It is never deleted;
cancellation is a terminal status.
"""

from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime, Enum, JSON, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.trip_enums import TripStatus, VehicleCategory, Company
from backend.app.models.trip_stop import TripStop


class Trip(Base):
    """
    Trip model.
    
    `driver_name` and `vehicle_number` are snapshots written at assignment
    time and stay as recorded even if the driver or vehicle is edited later.
    """
    __tablename__ = "trips"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Ownership - Trip belongs to the requesting employee
    requester_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    
    # Request details
    purpose = Column(String(500), nullable=False)
    from_loc = Column(String(500), nullable=False)
    to_loc = Column(String(500), nullable=False)
    passenger_names = Column(JSON, nullable=True)
    from_time = Column(DateTime(timezone=True), nullable=False)
    to_time = Column(DateTime(timezone=True), nullable=False)
    company = Column(Enum(Company), nullable=False)
    department = Column(String(100), nullable=True)
    
    # Vehicle source
    vehicle_category = Column(Enum(VehicleCategory), default=VehicleCategory.FLEET, nullable=False)
    personal_vehicle_details = Column(String(500), nullable=True)
    entitled_vehicle_id = Column(Integer, ForeignKey('entitled_vehicles.id'), nullable=True)
    
    # Status
    status = Column(Enum(TripStatus), default=TripStatus.REQUESTED, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)
    
    # Decision trail
    approved_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    assigned_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    
    # Assignment (fleet trips reference resources, all trips carry snapshots)
    driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=True)
    vehicle_id = Column(Integer, ForeignKey('fleet_vehicles.id'), nullable=True)
    driver_name = Column(String(255), nullable=True)
    vehicle_number = Column(String(500), nullable=True)
    start_mileage = Column(Integer, nullable=True)
    end_mileage = Column(Integer, nullable=True)
    
    version = Column(Integer, nullable=False)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    
    stops = relationship(
        TripStop,
        order_by=TripStop.sequence_number,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    
    __table_args__ = (
        Index('ix_trips_driver_status', 'driver_id', 'status'),
        Index('ix_trips_vehicle_status', 'vehicle_id', 'status'),
    )
    
    __mapper_args__ = {"version_id_col": version}
    
    def __repr__(self):
        return f"<Trip(id={self.id}, requester_id={self.requester_id}, status='{self.status.value}')>"
