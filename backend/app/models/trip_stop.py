"""
Trip Stop database model.

Intermediate stops between a trip's origin and destination, in travel order.
"""

from sqlalchemy import Column, Integer, String, ForeignKey
from backend.app.db.session import Base


class TripStop(Base):
    __tablename__ = "trip_stops"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    trip_id = Column(Integer, ForeignKey('trips.id'), nullable=False, index=True)
    
    sequence_number = Column(Integer, nullable=False)  # Order in trip (1, 2, 3, ...)
    location = Column(String(500), nullable=False)
    
    def __repr__(self):
        return f"<TripStop(id={self.id}, trip_id={self.trip_id}, seq={self.sequence_number})>"
