"""
Pydantic schemas for offering availability.
"""

from datetime import datetime
from pydantic import BaseModel


class SessionAvailabilityResponse(BaseModel):
    session_id: int
    starts_at: datetime
    available_spots: int
    capacity: int

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    offering_id: int
    sessions: list[SessionAvailabilityResponse]
    cached: bool = False
