from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple
from scheduling.configuration.monitor import log_event, log_exception, log_metric, start_span
from scheduling.models.mod_appointment import Appointment, AppointmentStatus, SeriesKind, SeriesRef
from scheduling.models.mod_auth import CallerContext
from scheduling.schemas.sch_conflict import ConflictCandidate
from scheduling.schemas.sch_transfer import (
    AppointmentSummary, ScopePreviewResponse, ShiftBySlotRequest, ShiftByTimeRequest,
    TransferOperation, TransferRequest, TransferResponse, TransferScope
)
from scheduling.services.svc_chain import ChainService
from scheduling.services.svc_conflict import ConflictService
from scheduling.services.svc_history import HistoryService
from scheduling.services.svc_slots import SlotService
from scheduling.services.svc_store import ScheduleStore
from scheduling.validators.val_errors import NotFoundError
from scheduling.validators.val_transfer import TransferValidator

class TransferService:
    """
    Moves already generated appointments. A scope, anchored at one selected
    appointment, picks which appointments move:

    - single: only the selected appointment
    - from_selected: the selected appointment, every later one of its series
      and every appointment of the bookings that succeed it in the chain
    - all_from_now: every appointment of the whole chain dated today or later

    Every mode conflict-checks the full batch before the first write, so a
    rejected request leaves all appointments untouched.
    """

    @staticmethod
    def _chain_appointments(store: ScheduleStore, start_booking_id: str) -> List[Appointment]:
        appointments: Dict[str, Appointment] = {}
        for booking in ChainService.resolve_chain(store, start_booking_id):
            for appointment in store.appointments_for_series(SeriesRef(kind=SeriesKind.BOOKING, id=booking.id)):
                appointments.setdefault(appointment.id, appointment)
        return list(appointments.values())

    @staticmethod
    def select_appointments(store: ScheduleStore, appointment_id: str, scope: TransferScope,
                            today: Optional[date] = None) -> List[Appointment]:
        """Scheduled appointments a scope selects, in (date, hour) order"""
        today = today or date.today()
        selected = store.read_appointment(appointment_id)
        if selected is None:
            raise NotFoundError(f"Appointment {appointment_id} not found", appointment_id=appointment_id)
        TransferValidator.validate_selectable(selected)

        if scope == TransferScope.SINGLE:
            return [selected]

        series_ref = selected.series_ref
        if series_ref is None:
            pool = [selected]
        elif series_ref.kind == SeriesKind.GROUP_LESSON:
            pool = store.read_appointments_by_group_lesson(series_ref.id)
        elif scope == TransferScope.FROM_SELECTED:
            pool = TransferService._chain_appointments(store, series_ref.id)
        else:
            head = ChainService.find_head(store, series_ref.id)
            pool = TransferService._chain_appointments(store, head.id)

        if scope == TransferScope.FROM_SELECTED:
            chosen = [appointment for appointment in pool if appointment.sort_key >= selected.sort_key]
        else:
            chosen = [appointment for appointment in pool if appointment.date >= today]

        return sorted(
            (appointment for appointment in chosen if appointment.status == AppointmentStatus.SCHEDULED),
            key=lambda appointment: appointment.sort_key
        )

    @staticmethod
    def preview(store: ScheduleStore, appointment_id: str, scope: TransferScope,
                today: Optional[date] = None) -> ScopePreviewResponse:
        try:
            with start_span("preview_scope", attributes={"appointment_id": appointment_id, "scope": scope.value}):
                selected = TransferService.select_appointments(store, appointment_id, scope, today)
                return ScopePreviewResponse(
                    scope=scope,
                    count=len(selected),
                    appointments=[
                        AppointmentSummary(
                            id=appointment.id,
                            date=appointment.date,
                            hour=appointment.hour,
                            room_id=appointment.room_id,
                            trainer_id=appointment.trainer_id
                        )
                        for appointment in selected
                    ]
                )
        except Exception as e:
            log_exception(e, {"operation": "preview_scope", "appointment_id": appointment_id})
            raise

    @staticmethod
    def _apply(store: ScheduleStore, operation: TransferOperation, scope: TransferScope, context: CallerContext,
               moves: List[Tuple[Appointment, Appointment]]) -> TransferResponse:
        """Conflict-check the full batch, then write the moves in the order given"""
        moving_ids = {before.id for before, _ in moves}
        check_room = any(before.room_id != after.room_id or before.sort_key != after.sort_key for before, after in moves)
        check_trainer = any(before.trainer_id != after.trainer_id or before.sort_key != after.sort_key for before, after in moves)
        ConflictService.ensure_no_conflicts(store, [
            ConflictCandidate(
                room_id=after.room_id if check_room else None,
                trainer_id=after.trainer_id if check_trainer else None,
                date=after.date,
                hour=after.hour,
                exclude_ids=moving_ids,
                appointment_id=before.id
            )
            for before, after in moves
        ])

        store.update_appointments([
            (before.id, {
                field: getattr(after, field)
                for field in ("room_id", "trainer_id", "date", "hour")
                if getattr(after, field) != getattr(before, field)
            })
            for before, after in moves
        ])
        HistoryService.record(store, operation.value, context, moves)

        log_metric("appointments_moved", len(moves), {"operation": operation.value})
        return TransferResponse(
            operation=operation,
            scope=scope,
            appointment_ids=[before.id for before, _ in sorted(moves, key=lambda move: move[0].sort_key)],
            updated_count=len(moves)
        )

    @staticmethod
    def transfer(store: ScheduleStore, appointment_id: str, request: TransferRequest,
                 context: CallerContext, today: Optional[date] = None) -> TransferResponse:
        """Move the selected appointments to another room and/or trainer, keeping their dates"""
        TransferValidator.validate_transfer(request)
        try:
            with start_span("transfer_appointments", attributes={
                "appointment_id": appointment_id,
                "scope": request.scope.value
            }):
                log_event("Transfer started", {
                    "appointment_id": appointment_id,
                    "scope": request.scope.value,
                    "room_id": request.room_id,
                    "trainer_id": request.trainer_id,
                    "requested_by": context.id
                })

                selected = TransferService.select_appointments(store, appointment_id, request.scope, today)
                changes = {}
                if request.room_id:
                    changes["room_id"] = request.room_id
                if request.trainer_id:
                    changes["trainer_id"] = request.trainer_id
                moves = [(appointment, appointment.model_copy(update=changes)) for appointment in selected]

                response = TransferService._apply(store, TransferOperation.TRANSFER, request.scope, context, moves)
                log_event("Transfer completed successfully", {
                    "appointment_id": appointment_id,
                    "updated": response.updated_count
                })
                return response
        except Exception as e:
            log_exception(e, {"operation": "transfer", "appointment_id": appointment_id})
            raise

    @staticmethod
    def shift_by_time(store: ScheduleStore, appointment_id: str, request: ShiftByTimeRequest,
                      context: CallerContext, today: Optional[date] = None) -> TransferResponse:
        """Move the selected appointments by a whole number of weeks"""
        TransferValidator.validate_shift_weeks(request.weeks)
        try:
            with start_span("shift_by_time", attributes={
                "appointment_id": appointment_id,
                "scope": request.scope.value,
                "weeks": request.weeks
            }):
                log_event("Shift by time started", {
                    "appointment_id": appointment_id,
                    "scope": request.scope.value,
                    "weeks": request.weeks,
                    "requested_by": context.id
                })

                selected = TransferService.select_appointments(store, appointment_id, request.scope, today)
                offset = timedelta(weeks=request.weeks)
                moves = [
                    (appointment, appointment.model_copy(update={"date": appointment.date + offset}))
                    for appointment in selected
                ]
                # Forward shifts write the latest first, backward shifts the earliest first
                if request.weeks > 0:
                    moves.reverse()

                response = TransferService._apply(store, TransferOperation.SHIFT_BY_TIME, request.scope, context, moves)
                log_event("Shift by time completed successfully", {
                    "appointment_id": appointment_id,
                    "updated": response.updated_count
                })
                return response
        except Exception as e:
            log_exception(e, {"operation": "shift_by_time", "appointment_id": appointment_id})
            raise

    @staticmethod
    def shift_by_slot(store: ScheduleStore, appointment_id: str, request: ShiftBySlotRequest,
                      context: CallerContext, today: Optional[date] = None) -> TransferResponse:
        """Move the selected appointments a number of positions along their weekly pattern"""
        TransferValidator.validate_slot_shift(request.slots, request.scope)
        try:
            with start_span("shift_by_slot", attributes={
                "appointment_id": appointment_id,
                "slots": request.slots
            }):
                log_event("Shift by slot started", {
                    "appointment_id": appointment_id,
                    "slots": request.slots,
                    "requested_by": context.id
                })

                selected = TransferService.select_appointments(store, appointment_id, request.scope, today)
                targets = SlotService.remap_by_slot(selected, request.slots)
                moves = [
                    (appointment, appointment.model_copy(update={"date": target.date, "hour": target.hour}))
                    for appointment, target in zip(selected, targets)
                ]
                moves.reverse()

                response = TransferService._apply(store, TransferOperation.SHIFT_BY_SLOT, request.scope, context, moves)
                log_event("Shift by slot completed successfully", {
                    "appointment_id": appointment_id,
                    "updated": response.updated_count
                })
                return response
        except Exception as e:
            log_exception(e, {"operation": "shift_by_slot", "appointment_id": appointment_id})
            raise
