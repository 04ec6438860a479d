from fastapi import APIRouter, Depends
from scheduling.configuration.database import get_schedule_store
from scheduling.dependencies.dep_auth import get_current_scheduler
from scheduling.models.mod_auth import CallerContext
from scheduling.schemas.sch_reschedule import RescheduleRequest, RescheduleResponse
from scheduling.services.svc_reschedule import RescheduleService
from scheduling.services.svc_store import ScheduleStore

router = APIRouter(
    prefix="/reschedules",
    tags=["Reschedules"],
    responses={404: {"description": "Not found"}},
)

@router.post('/{appointment_id}', response_model=RescheduleResponse)
def reschedule_appointment(
    appointment_id: str,
    request: RescheduleRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """
    Reschedule one appointment within its week.

    - Past appointments cannot be rescheduled
    - Admins are not limited; coordinators need a reschedule left on the booking
      and at least 23 hours notice
    - Each non-admin reschedule uses up one of the booking's reschedules
    """
    return RescheduleService.reschedule_appointment(store, appointment_id, request, current_user)
