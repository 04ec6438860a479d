from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date
from enum import Enum

class TransferScope(str, Enum):
    SINGLE = "single"
    FROM_SELECTED = "from_selected"
    ALL_FROM_NOW = "all_from_now"

class TransferOperation(str, Enum):
    TRANSFER = "transfer"
    SHIFT_BY_TIME = "shift_by_time"
    SHIFT_BY_SLOT = "shift_by_slot"
    TRAINEE_SHIFT_BY_TIME = "trainee_shift_by_time"
    TRAINEE_SHIFT_BY_SLOT = "trainee_shift_by_slot"
    RESCHEDULE = "reschedule"

class TransferRequest(BaseModel):
    scope: TransferScope
    room_id: Optional[str] = None
    trainer_id: Optional[str] = None

class ShiftByTimeRequest(BaseModel):
    scope: TransferScope
    weeks: int = Field(description="Signed number of weeks, non-zero, between -52 and 52")

class ShiftBySlotRequest(BaseModel):
    scope: TransferScope = TransferScope.FROM_SELECTED
    slots: int = Field(description="Positions to move along the weekly pattern, 1 to 20")

class TraineeShiftByTimeRequest(BaseModel):
    weeks: int

class TraineeShiftBySlotRequest(BaseModel):
    slots: int

class AppointmentSummary(BaseModel):
    id: str
    date: date
    hour: int
    room_id: Optional[str] = None
    trainer_id: Optional[str] = None

class ScopePreviewResponse(BaseModel):
    scope: TransferScope
    count: int
    appointments: List[AppointmentSummary]

class TransferResponse(BaseModel):
    operation: TransferOperation
    scope: Optional[TransferScope] = None
    appointment_ids: List[str]
    updated_count: int
