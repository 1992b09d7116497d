"""
Audit Log Database Model.

Records every committed workflow transition, written in the same
transaction as the transition itself.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Who performed the action
    actor_id = Column(Integer, index=True, nullable=True)
    
    # What action was performed
    action = Column(String(100), nullable=False, index=True)
    
    # Which record was acted upon
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False, index=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', {self.entity_type}={self.entity_id})>"
