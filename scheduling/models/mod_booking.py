from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from enum import Enum

class DayOfWeek(str, Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @property
    def index(self) -> int:
        """Monday-first weekday number, matching date.weekday()"""
        return list(DayOfWeek).index(self)

    @classmethod
    def from_date(cls, value: date) -> "DayOfWeek":
        return list(cls)[value.weekday()]

class PackageType(str, Enum):
    PRIVATE = "private"
    GROUP = "group"

class TimeSlot(BaseModel):
    day: DayOfWeek
    hour: int = Field(ge=0, le=23)

    @property
    def sort_key(self):
        return (self.day.index, self.hour)

class Package(BaseModel):
    id: str
    name: str
    package_type: PackageType
    weeks_duration: int = 1
    lessons_per_week: int = 1
    max_capacity: int = 1
    reschedulable: bool = False
    reschedule_limit: Optional[int] = None  # None means unlimited

class Booking(BaseModel):
    id: str
    package_id: str
    room_id: Optional[str] = None
    trainer_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None     # None for open-ended bookings
    time_slots: List[TimeSlot] = []
    reschedule_left: int = 0
    successor_id: Optional[str] = None
    group_lesson_id: Optional[str] = None  # Set when the booking joins a group lesson
    trainee_ids: List[str] = []

    class Config:
        from_attributes = True

class GroupLesson(BaseModel):
    id: str
    package_id: str
    room_id: str
    trainer_id: str
    start_date: date
    end_date: Optional[date] = None     # Group lessons run indefinitely
    time_slots: List[TimeSlot]
    appointments_created_until: Optional[date] = None

    class Config:
        from_attributes = True
