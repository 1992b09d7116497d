"""
Entitled Vehicle database model.

A vehicle officially assigned to one employee, distinct from the shared fleet.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from backend.app.db.session import Base


class EntitledVehicle(Base):
    __tablename__ = "entitled_vehicles"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Ownership - vehicle is entitled to exactly one employee
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    
    vehicle_number = Column(String(100), unique=True, nullable=False, index=True)
    vehicle_type = Column(String(100), nullable=True)
    
    is_active = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<EntitledVehicle(id={self.id}, number='{self.vehicle_number}', user_id={self.user_id})>"
