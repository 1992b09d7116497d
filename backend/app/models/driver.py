"""
Driver database model.

Drivers are transport-department staff assignable to fleet trips.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func
from backend.app.db.session import Base


class Driver(Base):
    """
    Driver model.
    
    A driver never stores whether it is busy; commitments are derived from
    trips. `last_assigned_at` and `version` make concurrent assignments of
    the same driver collide at write time.
    """
    __tablename__ = "drivers"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    license_no = Column(String(100), nullable=True)
    
    # Status
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    
    last_assigned_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    __mapper_args__ = {"version_id_col": version}
    
    def __repr__(self):
        return f"<Driver(id={self.id}, name='{self.name}', active={self.is_active})>"
