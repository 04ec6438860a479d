from fastapi import APIRouter, Depends
from scheduling.configuration.database import get_schedule_store
from scheduling.dependencies.dep_auth import get_current_scheduler
from scheduling.models.mod_auth import CallerContext
from scheduling.schemas.sch_transfer import (
    ScopePreviewResponse, ShiftBySlotRequest, ShiftByTimeRequest, TraineeShiftBySlotRequest,
    TraineeShiftByTimeRequest, TransferRequest, TransferResponse, TransferScope
)
from scheduling.services.svc_enrollment import EnrollmentService
from scheduling.services.svc_store import ScheduleStore
from scheduling.services.svc_transfer import TransferService

router = APIRouter(
    prefix="/transfers",
    tags=["Transfers"],
    responses={404: {"description": "Not found"}},
)

@router.get('/{appointment_id}/preview', response_model=ScopePreviewResponse)
def preview_scope(
    appointment_id: str,
    scope: TransferScope,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """List the appointments a scope would move, for confirmation before the change"""
    return TransferService.preview(store, appointment_id, scope)

@router.post('/{appointment_id}/transfer', response_model=TransferResponse)
def transfer_appointments(
    appointment_id: str,
    request: TransferRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """
    Move appointments to another room and/or trainer.

    - Dates and hours stay the same
    - The whole scope is rejected when any appointment would collide
    """
    return TransferService.transfer(store, appointment_id, request, current_user)

@router.post('/{appointment_id}/shift-by-time', response_model=TransferResponse)
def shift_by_time(
    appointment_id: str,
    request: ShiftByTimeRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """
    Move appointments forward or backward by whole weeks.

    - weeks must be non-zero and between -52 and 52
    """
    return TransferService.shift_by_time(store, appointment_id, request, current_user)

@router.post('/{appointment_id}/shift-by-slot', response_model=TransferResponse)
def shift_by_slot(
    appointment_id: str,
    request: ShiftBySlotRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """
    Move the selected appointment and everything after it a number of
    positions along the weekly pattern (1 to 20 positions, from_selected only).
    """
    return TransferService.shift_by_slot(store, appointment_id, request, current_user)

@router.post('/{appointment_id}/trainees/{trainee_id}/shift-by-time', response_model=TransferResponse)
def shift_trainee_by_time(
    appointment_id: str,
    trainee_id: str,
    request: TraineeShiftByTimeRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """Move one trainee's group lesson enrollments by whole weeks"""
    return EnrollmentService.shift_trainee_by_time(store, appointment_id, trainee_id, request.weeks, current_user)

@router.post('/{appointment_id}/trainees/{trainee_id}/shift-by-slot', response_model=TransferResponse)
def shift_trainee_by_slot(
    appointment_id: str,
    trainee_id: str,
    request: TraineeShiftBySlotRequest,
    store: ScheduleStore = Depends(get_schedule_store),
    current_user: CallerContext = Depends(get_current_scheduler)
):
    """Move one trainee's group lesson enrollments a number of positions along the lesson's appointments"""
    return EnrollmentService.shift_trainee_by_slot(store, appointment_id, trainee_id, request.slots, current_user)
