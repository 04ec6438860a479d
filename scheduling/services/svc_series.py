import uuid
from datetime import date
from typing import Dict, List, Optional, Tuple
from scheduling.configuration.config import Config
from scheduling.configuration.monitor import log_event, log_exception, log_metric, start_span
from scheduling.models.mod_appointment import (
    Appointment, AppointmentStatus, Enrollment, SeriesKind, SeriesRef, SlotOccurrence
)
from scheduling.models.mod_auth import CallerContext
from scheduling.models.mod_booking import Booking, GroupLesson, Package, PackageType
from scheduling.schemas.sch_conflict import ConflictCandidate
from scheduling.schemas.sch_series import (
    AssignmentCreate, ExtendChainRequest, JoinGroupLessonRequest, SeriesResponse
)
from scheduling.services.svc_chain import ChainService
from scheduling.services.svc_conflict import ConflictService
from scheduling.services.svc_slots import SlotService
from scheduling.services.svc_store import ScheduleStore
from scheduling.validators.val_errors import NotFoundError, SchedulingValidationError
from scheduling.validators.val_series import SeriesValidator

def _new_id() -> str:
    return str(uuid.uuid4())

def _initial_reschedules(package: Package) -> int:
    if not package.reschedulable:
        return 0
    if package.reschedule_limit is None:
        return Config.UNLIMITED_RESCHEDULES
    return package.reschedule_limit

class SeriesService:
    # ---- building blocks ----

    @staticmethod
    def build_appointments(
        occurrences: List[SlotOccurrence],
        room_id: Optional[str],
        trainer_id: Optional[str],
        booking_id: Optional[str] = None,
        group_lesson_id: Optional[str] = None,
        bounded: bool = True
    ) -> List[Appointment]:
        """One appointment per occurrence, numbered 1..N in generation order under a fresh series id"""
        series_id = _new_id()
        total = len(occurrences) if bounded else None
        return [
            Appointment(
                id=_new_id(),
                booking_id=booking_id,
                group_lesson_id=group_lesson_id,
                room_id=room_id,
                trainer_id=trainer_id,
                date=occurrence.date,
                hour=occurrence.hour,
                status=AppointmentStatus.SCHEDULED,
                series_id=series_id,
                session_number=number,
                total_sessions=total
            )
            for number, occurrence in enumerate(occurrences, start=1)
        ]

    @staticmethod
    def build_enrollments(appointments: List[Appointment], trainee_ids: List[str], booking_id: str,
                          bounded: bool = True) -> List[Enrollment]:
        """Enroll every trainee into every appointment; session numbers follow the list order"""
        total = len(appointments) if bounded else None
        return [
            Enrollment(
                id=_new_id(),
                appointment_id=appointment.id,
                trainee_id=trainee_id,
                booking_id=booking_id,
                session_number=number,
                total_sessions=total
            )
            for trainee_id in trainee_ids
            for number, appointment in enumerate(appointments, start=1)
        ]

    @staticmethod
    def _candidates(appointments: List[Appointment]) -> List[ConflictCandidate]:
        return [
            ConflictCandidate(
                room_id=appointment.room_id,
                trainer_id=appointment.trainer_id,
                date=appointment.date,
                hour=appointment.hour
            )
            for appointment in appointments
        ]

    @staticmethod
    def _occurrences(booking: Booking, anchor_date: date, weeks: Optional[int], count: Optional[int]) -> List[SlotOccurrence]:
        SeriesValidator.validate_time_slots(booking.time_slots)
        occurrences = SlotService.generate(booking.time_slots, anchor_date, weeks=weeks, count=count)
        if not occurrences:
            raise SchedulingValidationError("The requested horizon produces no appointments")
        return occurrences

    # ---- operations ----

    @staticmethod
    def generate_series(
        store: ScheduleStore,
        booking: Booking,
        anchor_date: date,
        context: CallerContext,
        weeks: Optional[int] = None,
        count: Optional[int] = None,
        bounded: bool = True,
        persist_booking: bool = False,
        predecessor_id: Optional[str] = None
    ) -> Tuple[Booking, List[Appointment]]:
        """
        Generate, conflict-check and commit the appointments of one booking.
        With persist_booking the booking itself (and the predecessor's successor
        link) is written in the same atomic step as its appointments.
        Nothing is written when any occurrence collides.
        """
        try:
            with start_span("generate_series", attributes={
                "booking_id": booking.id,
                "anchor_date": anchor_date.isoformat()
            }):
                log_event("Generate series started", {
                    "booking_id": booking.id,
                    "anchor_date": anchor_date.isoformat(),
                    "weeks": weeks,
                    "count": count,
                    "requested_by": context.id
                })

                occurrences = SeriesService._occurrences(booking, anchor_date, weeks, count)
                if persist_booking:
                    booking = booking.model_copy(update={
                        "start_date": occurrences[0].date,
                        "end_date": occurrences[-1].date if bounded else None
                    })

                appointments = SeriesService.build_appointments(
                    occurrences, booking.room_id, booking.trainer_id,
                    booking_id=booking.id, bounded=bounded
                )
                ConflictService.ensure_no_conflicts(store, SeriesService._candidates(appointments))

                enrollments = SeriesService.build_enrollments(appointments, booking.trainee_ids, booking.id, bounded)
                store.commit_series(
                    appointments,
                    enrollments,
                    new_booking=booking if persist_booking else None,
                    predecessor_id=predecessor_id
                )

                log_metric("appointments_created", len(appointments), {"booking_id": booking.id})
                log_event("Series generated successfully", {
                    "booking_id": booking.id,
                    "appointments": len(appointments),
                    "enrollments": len(enrollments)
                })
                return booking, appointments
        except Exception as e:
            log_exception(e, {"operation": "generate_series", "booking_id": booking.id})
            raise

    @staticmethod
    def create_assignment(store: ScheduleStore, request: AssignmentCreate, context: CallerContext,
                          today: Optional[date] = None) -> SeriesResponse:
        """Create a private booking or a new group lesson and generate its appointments"""
        today = today or date.today()
        try:
            with start_span("create_assignment", attributes={"package_id": request.package_id}):
                log_event("Create assignment started", {
                    "package_id": request.package_id,
                    "room_id": request.room_id,
                    "trainer_id": request.trainer_id,
                    "start_date": request.start_date.isoformat(),
                    "requested_by": context.id
                })

                package = store.read_package(request.package_id)
                if package is None:
                    raise NotFoundError(f"Package {request.package_id} not found", package_id=request.package_id)
                SeriesValidator.validate_assignment(request, package)
                time_slots = SlotService.canonical_pattern(request.time_slots)

                if package.package_type == PackageType.GROUP:
                    return SeriesService._create_group_lesson(store, request, package, time_slots, context, today)

                booking = Booking(
                    id=_new_id(),
                    package_id=package.id,
                    room_id=request.room_id,
                    trainer_id=request.trainer_id,
                    start_date=request.start_date,
                    time_slots=time_slots,
                    reschedule_left=_initial_reschedules(package),
                    trainee_ids=request.trainee_ids
                )
                booking, appointments = SeriesService.generate_series(
                    store, booking, request.start_date, context,
                    weeks=package.weeks_duration, persist_booking=True
                )

                log_event("Assignment created successfully", {
                    "booking_id": booking.id,
                    "appointments": len(appointments)
                })
                return SeriesResponse(
                    series_ids=[appointments[0].series_id],
                    booking_ids=[booking.id],
                    appointment_ids=[appointment.id for appointment in appointments],
                    created_count=len(appointments),
                    enrollment_count=len(appointments) * len(booking.trainee_ids),
                    message=f"Created {len(appointments)} appointments"
                )
        except Exception as e:
            log_exception(e, {"operation": "create_assignment", "package_id": request.package_id})
            raise

    @staticmethod
    def _create_group_lesson(store: ScheduleStore, request: AssignmentCreate, package: Package,
                             time_slots, context: CallerContext, today: date) -> SeriesResponse:
        group_lesson = GroupLesson(
            id=_new_id(),
            package_id=package.id,
            room_id=request.room_id,
            trainer_id=request.trainer_id,
            start_date=request.start_date,
            time_slots=time_slots
        )
        occurrences = SlotService.generate(time_slots, request.start_date, weeks=Config.GROUP_LESSON_WEEKS)
        appointments = SeriesService.build_appointments(
            occurrences, group_lesson.room_id, group_lesson.trainer_id,
            group_lesson_id=group_lesson.id, bounded=False
        )
        ConflictService.ensure_no_conflicts(store, SeriesService._candidates(appointments))

        # Trainees are checked and enrolled in the same commit as the lesson itself
        bookings, enrollments = [], []
        if request.trainee_ids:
            _, bookings, enrollments = SeriesService._plan_join(
                store, group_lesson, package, appointments,
                JoinGroupLessonRequest(trainee_ids=request.trainee_ids, weeks=package.weeks_duration),
                today
            )

        group_lesson.appointments_created_until = occurrences[-1].date
        store.commit_series(appointments, enrollments, new_group_lesson=group_lesson, member_bookings=bookings)
        log_metric("appointments_created", len(appointments), {"group_lesson_id": group_lesson.id})

        return SeriesResponse(
            series_ids=[appointments[0].series_id],
            group_lesson_id=group_lesson.id,
            booking_ids=[booking.id for booking in bookings],
            appointment_ids=[appointment.id for appointment in appointments],
            created_count=len(appointments),
            enrollment_count=len(enrollments),
            message=f"Created group lesson with {len(appointments)} appointments"
        )

    @staticmethod
    def extend_chain(store: ScheduleStore, booking_id: str, request: ExtendChainRequest,
                     context: CallerContext, today: Optional[date] = None) -> SeriesResponse:
        """
        Append new bookings after the terminal booking of a chain. Private
        packages get package_count consecutive bookings with their own
        appointments; group bookings get one booking enrolled into the group
        lesson's appointments for the requested weeks.
        """
        today = today or date.today()
        try:
            with start_span("extend_chain", attributes={"booking_id": booking_id}):
                log_event("Extend chain started", {
                    "booking_id": booking_id,
                    "package_count": request.package_count,
                    "weeks": request.weeks,
                    "requested_by": context.id
                })

                terminal = ChainService.find_terminal(store, booking_id)
                package = store.read_package(terminal.package_id)
                if package is None:
                    raise NotFoundError(f"Package {terminal.package_id} not found", package_id=terminal.package_id)
                SeriesValidator.validate_extendable(package)

                existing = store.appointments_for_series(SeriesRef(kind=SeriesKind.BOOKING, id=terminal.id))
                last = existing[-1] if existing else None

                if package.package_type == PackageType.GROUP:
                    response = SeriesService._extend_group(store, terminal, package, last, request, today)
                else:
                    response = SeriesService._extend_private(store, terminal, package, last, request, today)

                log_event("Chain extended successfully", {
                    "booking_id": booking_id,
                    "previous_terminal_id": terminal.id,
                    "new_booking_ids": ",".join(response.booking_ids)
                })
                return response
        except Exception as e:
            log_exception(e, {"operation": "extend_chain", "booking_id": booking_id})
            raise

    @staticmethod
    def _extend_private(store: ScheduleStore, terminal: Booking, package: Package,
                        last: Optional[Appointment], request: ExtendChainRequest, today: date) -> SeriesResponse:
        room_id = (last.room_id if last else None) or terminal.room_id
        trainer_id = (last.trainer_id if last else None) or terminal.trainer_id
        SeriesValidator.validate_time_slots(terminal.time_slots)

        # Plan every package first so the whole extension is checked before anything is written
        plans = []
        predecessor = terminal
        last_date = last.date if last else None
        for _ in range(request.package_count):
            anchor = SlotService.extension_anchor(last_date, today)
            occurrences = SlotService.generate(terminal.time_slots, anchor, weeks=package.weeks_duration)
            booking = Booking(
                id=_new_id(),
                package_id=package.id,
                room_id=room_id,
                trainer_id=trainer_id,
                start_date=occurrences[0].date,
                end_date=occurrences[-1].date,
                time_slots=terminal.time_slots,
                reschedule_left=_initial_reschedules(package),
                trainee_ids=terminal.trainee_ids
            )
            appointments = SeriesService.build_appointments(
                occurrences, room_id, trainer_id, booking_id=booking.id
            )
            enrollments = SeriesService.build_enrollments(appointments, booking.trainee_ids, booking.id)
            plans.append((booking, predecessor.id, appointments, enrollments))
            predecessor = booking
            last_date = occurrences[-1].date

        ConflictService.ensure_no_conflicts(
            store,
            [candidate for plan in plans for candidate in SeriesService._candidates(plan[2])]
        )

        response = SeriesResponse(message=f"Extended with {len(plans)} package(s)")
        for booking, predecessor_id, appointments, enrollments in plans:
            store.commit_series(appointments, enrollments, new_booking=booking, predecessor_id=predecessor_id)
            response.booking_ids.append(booking.id)
            response.series_ids.append(appointments[0].series_id)
            response.appointment_ids.extend(appointment.id for appointment in appointments)
            response.enrollment_count += len(enrollments)
        response.created_count = len(response.appointment_ids)
        log_metric("appointments_created", response.created_count, {"booking_id": terminal.id})
        return response

    @staticmethod
    def _extend_group(store: ScheduleStore, terminal: Booking, package: Package,
                      last: Optional[Appointment], request: ExtendChainRequest, today: date) -> SeriesResponse:
        if not terminal.group_lesson_id:
            raise SchedulingValidationError(
                f"Booking {terminal.id} is not attached to a group lesson",
                booking_id=terminal.id
            )
        group_lesson = store.read_group_lesson(terminal.group_lesson_id)
        if group_lesson is None:
            raise NotFoundError(
                f"Group lesson {terminal.group_lesson_id} not found",
                group_lesson_id=terminal.group_lesson_id
            )

        weeks = request.weeks or package.weeks_duration
        pattern = terminal.time_slots or group_lesson.time_slots
        anchor = SlotService.extension_anchor(last.date if last else None, today)
        wanted = {occurrence.sort_key for occurrence in SlotService.generate(pattern, anchor, weeks=weeks)}

        matched = [
            appointment for appointment in store.read_appointments_by_group_lesson(group_lesson.id)
            if appointment.status == AppointmentStatus.SCHEDULED and appointment.sort_key in wanted
        ]
        if not matched:
            raise SchedulingValidationError(
                f"Group lesson {group_lesson.id} has no appointments in the requested period",
                group_lesson_id=group_lesson.id
            )
        SeriesService._check_capacity(store, matched, len(terminal.trainee_ids), package)

        booking = Booking(
            id=_new_id(),
            package_id=package.id,
            room_id=group_lesson.room_id,
            trainer_id=group_lesson.trainer_id,
            start_date=matched[0].date,
            end_date=matched[-1].date,
            time_slots=pattern,
            reschedule_left=_initial_reschedules(package),
            group_lesson_id=group_lesson.id,
            trainee_ids=terminal.trainee_ids
        )
        enrollments = SeriesService.build_enrollments(matched, booking.trainee_ids, booking.id)
        store.commit_series([], enrollments, new_booking=booking, predecessor_id=terminal.id)

        return SeriesResponse(
            booking_ids=[booking.id],
            group_lesson_id=group_lesson.id,
            appointment_ids=[appointment.id for appointment in matched],
            enrollment_count=len(enrollments),
            message=f"Enrolled into {len(matched)} group appointments"
        )

    @staticmethod
    def _check_capacity(store: ScheduleStore, appointments: List[Appointment], joining: int, package: Package):
        enrolled: Dict[str, int] = {
            appointment.id: len(store.read_enrollments_by_appointment(appointment.id))
            for appointment in appointments
        }
        SeriesValidator.validate_capacity(enrolled, joining, package.max_capacity)

    @staticmethod
    def _plan_join(store: ScheduleStore, group_lesson: GroupLesson, package: Package,
                   appointments: List[Appointment], request: JoinGroupLessonRequest,
                   today: date) -> Tuple[List[Appointment], List[Booking], List[Enrollment]]:
        """
        Check a join against the lesson's next appointments and build one
        booking per trainee with its enrollments. Nothing is written here.
        """
        SeriesValidator.validate_join(request, package)

        weeks = request.weeks or Config.DEFAULT_JOIN_WEEKS
        upcoming = sorted(
            (appointment for appointment in appointments
             if appointment.status == AppointmentStatus.SCHEDULED and appointment.date >= today),
            key=lambda appointment: appointment.sort_key
        )[:weeks * package.lessons_per_week]
        if not upcoming:
            raise SchedulingValidationError(
                f"Group lesson {group_lesson.id} has no upcoming appointments",
                group_lesson_id=group_lesson.id
            )

        joining = set(request.trainee_ids)
        enrolled: Dict[str, int] = {}
        for appointment in upcoming:
            current = store.read_enrollments_by_appointment(appointment.id)
            already = sorted(joining & {item.trainee_id for item in current})
            if already:
                raise SchedulingValidationError(
                    f"Trainee(s) {', '.join(already)} already enrolled in appointment {appointment.id}",
                    appointment_id=appointment.id, trainee_ids=already
                )
            enrolled[appointment.id] = len(current)
        SeriesValidator.validate_capacity(enrolled, len(request.trainee_ids), package.max_capacity)

        bookings, enrollments = [], []
        for trainee_id in request.trainee_ids:
            booking = Booking(
                id=_new_id(),
                package_id=package.id,
                room_id=group_lesson.room_id,
                trainer_id=group_lesson.trainer_id,
                start_date=upcoming[0].date,
                end_date=upcoming[-1].date,
                time_slots=group_lesson.time_slots,
                reschedule_left=_initial_reschedules(package),
                group_lesson_id=group_lesson.id,
                trainee_ids=[trainee_id]
            )
            bookings.append(booking)
            enrollments.extend(SeriesService.build_enrollments(upcoming, [trainee_id], booking.id))
        return upcoming, bookings, enrollments

    @staticmethod
    def join_group_lesson(store: ScheduleStore, group_lesson_id: str, request: JoinGroupLessonRequest,
                          context: CallerContext, today: Optional[date] = None) -> SeriesResponse:
        """Give each trainee a booking enrolled into the next upcoming appointments of a group lesson"""
        today = today or date.today()
        try:
            with start_span("join_group_lesson", attributes={"group_lesson_id": group_lesson_id}):
                log_event("Join group lesson started", {
                    "group_lesson_id": group_lesson_id,
                    "trainees": len(request.trainee_ids),
                    "requested_by": context.id
                })

                group_lesson = store.read_group_lesson(group_lesson_id)
                if group_lesson is None:
                    raise NotFoundError(f"Group lesson {group_lesson_id} not found", group_lesson_id=group_lesson_id)
                package = store.read_package(group_lesson.package_id)
                if package is None:
                    raise NotFoundError(f"Package {group_lesson.package_id} not found", package_id=group_lesson.package_id)

                upcoming, bookings, enrollments = SeriesService._plan_join(
                    store, group_lesson, package,
                    store.read_appointments_by_group_lesson(group_lesson_id),
                    request, today
                )
                store.commit_series([], enrollments, member_bookings=bookings)

                response = SeriesResponse(
                    group_lesson_id=group_lesson_id,
                    booking_ids=[booking.id for booking in bookings],
                    appointment_ids=[appointment.id for appointment in upcoming],
                    enrollment_count=len(enrollments),
                    message=f"Enrolled {len(request.trainee_ids)} trainee(s)"
                )

                log_metric("enrollments_created", response.enrollment_count, {"group_lesson_id": group_lesson_id})
                log_event("Group lesson joined successfully", {
                    "group_lesson_id": group_lesson_id,
                    "bookings": len(response.booking_ids),
                    "enrollments": response.enrollment_count
                })
                return response
        except Exception as e:
            log_exception(e, {"operation": "join_group_lesson", "group_lesson_id": group_lesson_id})
            raise
