from datetime import datetime, time, timedelta
from typing import Optional
from scheduling.configuration.config import Config
from scheduling.configuration.monitor import log_event, log_exception, start_span
from scheduling.models.mod_auth import CallerContext
from scheduling.schemas.sch_conflict import ConflictCandidate
from scheduling.schemas.sch_reschedule import RescheduleRequest, RescheduleResponse
from scheduling.schemas.sch_transfer import TransferOperation
from scheduling.services.svc_conflict import ConflictService
from scheduling.services.svc_history import HistoryService
from scheduling.services.svc_slots import SlotService
from scheduling.services.svc_store import ScheduleStore
from scheduling.validators.val_errors import NotFoundError, SchedulingValidationError
from scheduling.validators.val_reschedule import RescheduleValidator
from scheduling.validators.val_transfer import TransferValidator

class RescheduleService:
    @staticmethod
    def reschedule_appointment(store: ScheduleStore, appointment_id: str, request: RescheduleRequest,
                               context: CallerContext, now: Optional[datetime] = None) -> RescheduleResponse:
        """
        Move one booking appointment to another room, day and hour inside its
        current week. Non-admin callers spend one of the booking's reschedules.
        """
        now = now or datetime.now()
        try:
            with start_span("reschedule_appointment", attributes={"appointment_id": appointment_id}):
                log_event("Reschedule started", {
                    "appointment_id": appointment_id,
                    "room_id": request.room_id,
                    "day": request.day.value,
                    "hour": request.hour,
                    "requested_by": context.id,
                    "role": context.role.value
                })

                appointment = store.read_appointment(appointment_id)
                if appointment is None:
                    raise NotFoundError(f"Appointment {appointment_id} not found", appointment_id=appointment_id)
                TransferValidator.validate_selectable(appointment)
                if not appointment.booking_id:
                    raise SchedulingValidationError(
                        "Only booking appointments can be rescheduled individually",
                        appointment_id=appointment_id
                    )
                booking = store.read_booking(appointment.booking_id)
                if booking is None:
                    raise NotFoundError(f"Booking {appointment.booking_id} not found", booking_id=appointment.booking_id)

                RescheduleValidator.validate_reschedule(context, booking, appointment, now)

                new_date = SlotService.week_start(appointment.date) + timedelta(days=request.day.index)
                if datetime.combine(new_date, time(hour=request.hour)) <= now:
                    raise SchedulingValidationError("Appointments cannot be moved into the past")

                updated = appointment.model_copy(update={
                    "room_id": request.room_id,
                    "date": new_date,
                    "hour": request.hour
                })
                ConflictService.ensure_no_conflicts(store, [ConflictCandidate(
                    room_id=updated.room_id,
                    trainer_id=updated.trainer_id,
                    date=updated.date,
                    hour=updated.hour,
                    exclude_ids={appointment.id},
                    appointment_id=appointment.id
                )])

                store.update_appointments([(appointment.id, {
                    "room_id": updated.room_id,
                    "date": updated.date,
                    "hour": updated.hour
                })])

                reschedule_left = booking.reschedule_left
                if not context.is_admin and reschedule_left < Config.UNLIMITED_RESCHEDULES:
                    reschedule_left -= 1
                    store.update_booking(booking.id, {"reschedule_left": reschedule_left})

                HistoryService.record(store, TransferOperation.RESCHEDULE.value, context, [(appointment, updated)])

                log_event("Appointment rescheduled successfully", {
                    "appointment_id": appointment_id,
                    "date": new_date.isoformat(),
                    "hour": request.hour,
                    "reschedule_left": reschedule_left
                })
                return RescheduleResponse(
                    appointment_id=appointment.id,
                    date=new_date,
                    hour=request.hour,
                    room_id=request.room_id,
                    reschedule_left=reschedule_left
                )
        except Exception as e:
            log_exception(e, {"operation": "reschedule_appointment", "appointment_id": appointment_id})
            raise
