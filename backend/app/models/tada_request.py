"""
TADA (Traveling & Dearness Allowance) claim database model.

An expense reimbursement claim tied to one trip. A trip may carry many.
"""

from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, DateTime, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.claim_enums import TadaStatus, ClaimType


class TadaRequest(Base):
    __tablename__ = "tada_requests"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    
    claim_type = Column(Enum(ClaimType), default=ClaimType.OTHER, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(String(500), nullable=False)
    
    status = Column(Enum(TadaStatus), default=TadaStatus.PENDING, nullable=False, index=True)
    rejection_reason = Column(Text, nullable=True)
    decided_by_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    
    version = Column(Integer, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    decided_at = Column(DateTime(timezone=True), nullable=True)
    
    __mapper_args__ = {"version_id_col": version}
    
    def __repr__(self):
        return f"<TadaRequest(id={self.id}, trip_id={self.trip_id}, amount={self.amount}, status='{self.status.value}')>"
