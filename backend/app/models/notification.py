"""
Notification Database Model.

Written only as a side effect of committed workflow transitions.
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Enum
from sqlalchemy.sql import func
from backend.app.db.session import Base
import enum


class NotificationType(str, enum.Enum):
    TRIP_REQUEST = "TRIP_REQUEST"
    TRIP_APPROVED = "TRIP_APPROVED"
    TRIP_REJECTED = "TRIP_REJECTED"
    TRIP_CANCELLED = "TRIP_CANCELLED"
    TRIP_UPDATE = "TRIP_UPDATE"
    VEHICLE_ASSIGNED = "VEHICLE_ASSIGNED"
    TADA_REQUEST = "TADA_REQUEST"
    TADA_APPROVED = "TADA_APPROVED"
    TADA_REJECTED = "TADA_REJECTED"
    MAINTENANCE_REQUEST = "MAINTENANCE_REQUEST"
    MAINTENANCE_APPROVED = "MAINTENANCE_APPROVED"
    MAINTENANCE_REJECTED = "MAINTENANCE_REJECTED"
    MAINTENANCE_COMPLETED = "MAINTENANCE_COMPLETED"
    MAINTENANCE_ISSUE_REPORTED = "MAINTENANCE_ISSUE_REPORTED"
    MAINTENANCE_ISSUE_RESOLVED = "MAINTENANCE_ISSUE_RESOLVED"


class Notification(Base):
    """
    In-App Notification.
    Stores messages for users.
    """
    __tablename__ = "notifications"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Recipient
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    
    # Content
    type = Column(Enum(NotificationType), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(255), nullable=True)  # Deep link into the UI
    
    # State
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Notification(id={self.id}, user={self.user_id}, title='{self.title}')>"
