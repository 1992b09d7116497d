"""
Audit trail schemas.
"""

from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime


class AuditEntryResponse(BaseModel):
    """One committed transition of a record."""
    id: int
    actor_id: Optional[int]
    action: str
    meta_data: Optional[Dict[str, Any]]
    timestamp: datetime
    
    class Config:
        from_attributes = True
