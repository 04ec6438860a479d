from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from enum import Enum

class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class SeriesKind(str, Enum):
    BOOKING = "booking"
    GROUP_LESSON = "group_lesson"

class SeriesRef(BaseModel):
    """Points at the owner of a series: a booking or a group lesson"""
    kind: SeriesKind
    id: str

class SlotOccurrence(BaseModel):
    date: date
    hour: int = Field(ge=0, le=23)

    @property
    def sort_key(self):
        return (self.date, self.hour)

class Appointment(BaseModel):
    id: str
    booking_id: Optional[str] = None
    group_lesson_id: Optional[str] = None
    room_id: Optional[str] = None
    trainer_id: Optional[str] = None
    date: date
    hour: int = Field(ge=0, le=23)
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    series_id: Optional[str] = None
    session_number: Optional[int] = None
    total_sessions: Optional[int] = None  # None for open-ended series

    class Config:
        from_attributes = True

    @property
    def sort_key(self):
        return (self.date, self.hour)

    @property
    def series_ref(self) -> Optional[SeriesRef]:
        if self.booking_id:
            return SeriesRef(kind=SeriesKind.BOOKING, id=self.booking_id)
        if self.group_lesson_id:
            return SeriesRef(kind=SeriesKind.GROUP_LESSON, id=self.group_lesson_id)
        return None

class Enrollment(BaseModel):
    id: str
    appointment_id: str
    trainee_id: str
    booking_id: str
    session_number: Optional[int] = None
    total_sessions: Optional[int] = None

class RescheduleHistory(BaseModel):
    id: str
    appointment_id: str
    operation: str
    changed_by: str
    changed_at: datetime
    previous_room_id: Optional[str] = None
    previous_trainer_id: Optional[str] = None
    previous_date: Optional[date] = None
    previous_hour: Optional[int] = None
    new_room_id: Optional[str] = None
    new_trainer_id: Optional[str] = None
    new_date: Optional[date] = None
    new_hour: Optional[int] = None
