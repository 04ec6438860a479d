from pydantic import BaseModel, Field
from typing import Optional
from datetime import date
from scheduling.models.mod_booking import DayOfWeek

class RescheduleRequest(BaseModel):
    room_id: str
    day: DayOfWeek = Field(description="New day within the appointment's current week")
    hour: int = Field(ge=0, le=23)

class RescheduleResponse(BaseModel):
    appointment_id: str
    date: date
    hour: int
    room_id: str
    reschedule_left: Optional[int] = None
