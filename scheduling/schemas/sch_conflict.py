from pydantic import BaseModel, Field
from typing import List, Optional, Set
from datetime import date

class ConflictCandidate(BaseModel):
    room_id: Optional[str] = None
    trainer_id: Optional[str] = None
    date: date
    hour: int = Field(ge=0, le=23)
    exclude_ids: Set[str] = Field(
        default_factory=set,
        description="Appointment ids that never count as a collision (the batch being moved)"
    )
    appointment_id: Optional[str] = Field(
        default=None,
        description="Existing appointment this candidate would move, if any"
    )

class ConflictEntry(BaseModel):
    candidate: ConflictCandidate
    appointment_id: Optional[str] = None
    date: date
    hour: int
    room_conflict: bool = False
    trainer_conflict: bool = False
    conflicting_ids: List[str] = []

class ConflictCheckRequest(BaseModel):
    candidates: List[ConflictCandidate]

class ConflictCheckResponse(BaseModel):
    has_conflicts: bool
    conflicts: List[ConflictEntry]
