"""
Maintenance Request database model.

Targets either an entitled vehicle or a fleet vehicle, never both.
"""

from sqlalchemy import Column, Integer, Text, Numeric, Boolean, ForeignKey, DateTime, Enum, CheckConstraint
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.maintenance_enums import MaintenanceStatus


class MaintenanceRequest(Base):
    """
    Maintenance Request model.
    
    The issue-report fields are side attributes on a COMPLETED request and
    do not move it out of COMPLETED.
    """
    __tablename__ = "maintenance_requests"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    requester_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    
    # Exactly one vehicle reference
    entitled_vehicle_id = Column(Integer, ForeignKey('entitled_vehicles.id'), nullable=True, index=True)
    vehicle_id = Column(Integer, ForeignKey('fleet_vehicles.id'), nullable=True, index=True)
    
    description = Column(Text, nullable=False)
    
    status = Column(Enum(MaintenanceStatus), default=MaintenanceStatus.REQUESTED, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)
    approved_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    
    cost = Column(Numeric(12, 2), nullable=True)  # Set at completion
    
    # Post-completion dispute
    issue_reported = Column(Boolean, default=False, nullable=False)
    issue_description = Column(Text, nullable=True)
    issue_reported_at = Column(DateTime(timezone=True), nullable=True)
    issue_resolved_at = Column(DateTime(timezone=True), nullable=True)
    
    version = Column(Integer, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    
    __table_args__ = (
        CheckConstraint(
            '(entitled_vehicle_id IS NULL) != (vehicle_id IS NULL)',
            name='ck_maintenance_single_vehicle'
        ),
    )
    
    __mapper_args__ = {"version_id_col": version}
    
    @property
    def is_fleet(self) -> bool:
        return self.vehicle_id is not None
    
    def __repr__(self):
        return f"<MaintenanceRequest(id={self.id}, requester_id={self.requester_id}, status='{self.status.value}')>"
