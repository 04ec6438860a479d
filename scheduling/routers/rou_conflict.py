from fastapi import APIRouter, Depends
from scheduling.configuration.database import get_schedule_store
from scheduling.dependencies.dep_auth import get_current_scheduler
from scheduling.models.mod_auth import CallerContext
from scheduling.schemas.sch_conflict import ConflictCheckRequest, ConflictCheckResponse
from scheduling.services.svc_conflict import ConflictService
from scheduling.services.svc_store import ScheduleStore

router = APIRouter(
    prefix="/conflicts",
    tags=["Conflicts"],
)

@router.post('/check', response_model=ConflictCheckResponse)
def check_conflicts(
    request: ConflictCheckRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """
    Check candidate appointments against the schedule without writing anything.

    - A candidate collides when its room or trainer is held by a scheduled
      appointment at the same date and hour
    - Ids in exclude_ids never count as collisions
    - Returns every collision; an empty list means all candidates are free
    """
    conflicts = ConflictService.check_conflicts(store, request.candidates)
    return ConflictCheckResponse(has_conflicts=bool(conflicts), conflicts=conflicts)
