from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from scheduling.models.mod_booking import TimeSlot

class AssignmentCreate(BaseModel):
    package_id: str
    room_id: Optional[str] = None
    trainer_id: Optional[str] = None
    start_date: date = Field(
        description="First day the weekly pattern may be placed on (YYYY-MM-DD)"
    )
    time_slots: List[TimeSlot]
    trainee_ids: List[str] = []

class ExtendChainRequest(BaseModel):
    package_count: int = Field(
        default=1, ge=1,
        description="Number of successive private packages to append"
    )
    weeks: Optional[int] = Field(
        default=None, ge=1,
        description="Weeks to append for group bookings"
    )

class JoinGroupLessonRequest(BaseModel):
    trainee_ids: List[str]
    weeks: Optional[int] = Field(default=None, ge=1)

class SeriesResponse(BaseModel):
    series_ids: List[str] = []
    booking_ids: List[str] = []
    group_lesson_id: Optional[str] = None
    appointment_ids: List[str] = []
    created_count: int = 0
    enrollment_count: int = 0
    message: Optional[str] = None

class ChainResponse(BaseModel):
    booking_ids: List[str]
    terminal_id: str
