from fastapi import APIRouter, Depends
from scheduling.configuration.database import get_schedule_store
from scheduling.dependencies.dep_auth import get_current_scheduler, get_current_user
from scheduling.models.mod_auth import CallerContext
from scheduling.schemas.sch_series import (
    AssignmentCreate, ChainResponse, ExtendChainRequest, JoinGroupLessonRequest, SeriesResponse
)
from scheduling.services.svc_chain import ChainService
from scheduling.services.svc_series import SeriesService
from scheduling.services.svc_store import ScheduleStore

router = APIRouter(
    prefix="/series",
    tags=["Series"],
    responses={404: {"description": "Not found"}},
)

@router.post('/assignments', response_model=SeriesResponse, status_code=201)
def create_assignment(
    assignment: AssignmentCreate,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """
    Create a new assignment and generate its appointments.

    - Private packages: creates one booking with weeks_duration weeks of appointments
      and enrolls every trainee
    - Group packages: creates an open-ended group lesson and, when trainees are given,
      enrolls them into its upcoming appointments
    - Rejects the whole request with 409 when any appointment would double-book
      the room or the trainer
    """
    return SeriesService.create_assignment(store, assignment, current_user)

@router.post('/{booking_id}/extend', response_model=SeriesResponse, status_code=201)
def extend_chain(
    booking_id: str,
    request: ExtendChainRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """
    Extend a booking chain after its last booking.

    - The chain is always extended from its terminal booking, whichever booking is given
    - New appointments start the day after the last appointment, or next Monday
      when the chain has already ended
    """
    return SeriesService.extend_chain(store, booking_id, request, current_user)

@router.post('/group-lessons/{group_lesson_id}/join', response_model=SeriesResponse, status_code=201)
def join_group_lesson(
    group_lesson_id: str,
    request: JoinGroupLessonRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """Enroll trainees into the upcoming appointments of a group lesson"""
    return SeriesService.join_group_lesson(store, group_lesson_id, request, current_user)

@router.get('/{booking_id}/chain', response_model=ChainResponse)
def get_chain(
    booking_id: str,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_user)
):
    chain = ChainService.resolve_chain(store, booking_id)
    return ChainResponse(
        booking_ids=[booking.id for booking in chain],
        terminal_id=chain[-1].id
    )
