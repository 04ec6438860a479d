from datetime import timedelta
from typing import Callable, Dict, List, Optional, Tuple
from scheduling.configuration.monitor import log_event, log_exception, log_metric, start_span
from scheduling.models.mod_appointment import Appointment, AppointmentStatus, Enrollment
from scheduling.models.mod_auth import CallerContext
from scheduling.schemas.sch_transfer import TransferOperation, TransferResponse
from scheduling.services.svc_history import HistoryService
from scheduling.services.svc_store import ScheduleStore
from scheduling.validators.val_errors import NotFoundError, SchedulingValidationError
from scheduling.validators.val_transfer import TransferValidator

class EnrollmentService:
    """Moves one trainee between appointments of a group lesson without touching the appointments"""

    @staticmethod
    def _trainee_enrollments(store: ScheduleStore, appointment_id: str, trainee_id: str
                             ) -> Tuple[Appointment, List[Appointment], List[Tuple[Enrollment, Appointment]], Optional[int]]:
        """
        Returns the selected appointment, the group lesson's scheduled
        appointments in order, the trainee's enrollments from the selected
        appointment onward paired with their current appointment, and the
        capacity of the group package.
        """
        selected = store.read_appointment(appointment_id)
        if selected is None:
            raise NotFoundError(f"Appointment {appointment_id} not found", appointment_id=appointment_id)
        if not selected.group_lesson_id:
            raise SchedulingValidationError(
                "Trainee shifts are only available for group lesson appointments",
                appointment_id=appointment_id
            )

        enrollment = next(
            (item for item in store.read_enrollments_by_appointment(selected.id) if item.trainee_id == trainee_id),
            None
        )
        if enrollment is None:
            raise NotFoundError(
                f"Trainee {trainee_id} is not enrolled in appointment {appointment_id}",
                appointment_id=appointment_id, trainee_id=trainee_id
            )

        lesson = [
            appointment for appointment in store.read_appointments_by_group_lesson(selected.group_lesson_id)
            if appointment.status == AppointmentStatus.SCHEDULED
        ]
        by_id = {appointment.id: appointment for appointment in lesson}
        pairs = [
            (item, by_id[item.appointment_id])
            for item in store.read_enrollments_by_booking(enrollment.booking_id)
            if item.trainee_id == trainee_id
            and item.appointment_id in by_id
            and by_id[item.appointment_id].sort_key >= selected.sort_key
        ]
        pairs.sort(key=lambda pair: pair[1].sort_key)

        group_lesson = store.read_group_lesson(selected.group_lesson_id)
        package = store.read_package(group_lesson.package_id) if group_lesson else None
        return selected, lesson, pairs, package.max_capacity if package else None

    @staticmethod
    def _move(store: ScheduleStore, operation: TransferOperation, trainee_id: str, context: CallerContext,
              pairs: List[Tuple[Enrollment, Appointment]], max_capacity: Optional[int],
              target_for: Callable[[Appointment], Optional[Appointment]], reverse: bool) -> TransferResponse:
        moves = []
        missing = []
        for enrollment, source in pairs:
            target = target_for(source)
            if target is None:
                missing.append(source.id)
            else:
                moves.append((enrollment, source, target))
        if missing:
            raise SchedulingValidationError(
                f"{len(missing)} enrollment(s) have no group appointment to move to",
                appointment_ids=missing
            )

        # Targets inside the moving set lose and regain this trainee, so only outside targets are checked
        moving = {source.id for _, source, _ in moves}
        for _, _, target in moves:
            if target.id in moving:
                continue
            enrolled = store.read_enrollments_by_appointment(target.id)
            if any(item.trainee_id == trainee_id for item in enrolled):
                raise SchedulingValidationError(
                    f"Trainee {trainee_id} is already enrolled in appointment {target.id}",
                    appointment_id=target.id, trainee_id=trainee_id
                )
            if max_capacity is not None and len(enrolled) >= max_capacity:
                raise SchedulingValidationError(
                    f"Group appointment {target.id} is at capacity ({max_capacity})",
                    full_appointment_ids=[target.id]
                )

        if reverse:
            moves.reverse()
        store.update_enrollments([
            (enrollment.id, {"appointment_id": target.id}) for enrollment, _, target in moves
        ])
        HistoryService.record(store, operation.value, context, [(source, target) for _, source, target in moves])

        log_metric("enrollments_moved", len(moves), {"operation": operation.value, "trainee_id": trainee_id})
        return TransferResponse(
            operation=operation,
            appointment_ids=[target.id for _, _, target in sorted(moves, key=lambda move: move[2].sort_key)],
            updated_count=len(moves)
        )

    @staticmethod
    def shift_trainee_by_time(store: ScheduleStore, appointment_id: str, trainee_id: str, weeks: int,
                              context: CallerContext) -> TransferResponse:
        """Move a trainee's enrollments from the selected appointment onward by whole weeks"""
        TransferValidator.validate_shift_weeks(weeks)
        try:
            with start_span("shift_trainee_by_time", attributes={
                "appointment_id": appointment_id,
                "trainee_id": trainee_id,
                "weeks": weeks
            }):
                log_event("Trainee shift by time started", {
                    "appointment_id": appointment_id,
                    "trainee_id": trainee_id,
                    "weeks": weeks,
                    "requested_by": context.id
                })

                _, lesson, pairs, max_capacity = EnrollmentService._trainee_enrollments(store, appointment_id, trainee_id)
                by_key: Dict[tuple, Appointment] = {appointment.sort_key: appointment for appointment in lesson}
                offset = timedelta(weeks=weeks)

                response = EnrollmentService._move(
                    store, TransferOperation.TRAINEE_SHIFT_BY_TIME, trainee_id, context, pairs, max_capacity,
                    lambda source: by_key.get((source.date + offset, source.hour)),
                    reverse=weeks > 0
                )
                log_event("Trainee shift by time completed successfully", {
                    "appointment_id": appointment_id,
                    "trainee_id": trainee_id,
                    "updated": response.updated_count
                })
                return response
        except Exception as e:
            log_exception(e, {"operation": "shift_trainee_by_time", "appointment_id": appointment_id})
            raise

    @staticmethod
    def shift_trainee_by_slot(store: ScheduleStore, appointment_id: str, trainee_id: str, slots: int,
                              context: CallerContext) -> TransferResponse:
        """Move a trainee's enrollments a number of positions along the group lesson's appointments"""
        TransferValidator.validate_slot_shift(slots)
        try:
            with start_span("shift_trainee_by_slot", attributes={
                "appointment_id": appointment_id,
                "trainee_id": trainee_id,
                "slots": slots
            }):
                log_event("Trainee shift by slot started", {
                    "appointment_id": appointment_id,
                    "trainee_id": trainee_id,
                    "slots": slots,
                    "requested_by": context.id
                })

                _, lesson, pairs, max_capacity = EnrollmentService._trainee_enrollments(store, appointment_id, trainee_id)
                position = {appointment.id: index for index, appointment in enumerate(lesson)}

                def target_for(source: Appointment) -> Optional[Appointment]:
                    index = position[source.id] + slots
                    return lesson[index] if index < len(lesson) else None

                response = EnrollmentService._move(
                    store, TransferOperation.TRAINEE_SHIFT_BY_SLOT, trainee_id, context, pairs, max_capacity,
                    target_for, reverse=True
                )
                log_event("Trainee shift by slot completed successfully", {
                    "appointment_id": appointment_id,
                    "trainee_id": trainee_id,
                    "updated": response.updated_count
                })
                return response
        except Exception as e:
            log_exception(e, {"operation": "shift_trainee_by_slot", "appointment_id": appointment_id})
            raise
