import pytest
from datetime import date
from typing import Dict, List

from scheduling.models.mod_appointment import (
    Appointment, AppointmentStatus, Enrollment, RescheduleHistory, SeriesKind, SeriesRef
)
from scheduling.models.mod_auth import CallerContext, UserRole
from scheduling.models.mod_booking import Booking, DayOfWeek, GroupLesson, Package, PackageType, TimeSlot
from scheduling.validators.val_errors import StoreUnavailableError


class InMemoryScheduleStore:
    """Dictionary backed stand-in for ScheduleStore with failure injection"""

    def __init__(self):
        self.packages: Dict[str, Package] = {}
        self.bookings: Dict[str, Booking] = {}
        self.group_lessons: Dict[str, GroupLesson] = {}
        self.appointments: Dict[str, Appointment] = {}
        self.enrollments: Dict[str, Enrollment] = {}
        self.history: List[RescheduleHistory] = []
        self.fail_operations = set()
        self.reads = 0
        self.appointment_update_order: List[str] = []
        self.enrollment_update_order: List[str] = []

    def _check(self, operation):
        if operation in self.fail_operations:
            raise StoreUnavailableError(operation, "injected failure")

    def _read(self, operation):
        self.reads += 1
        self._check(operation)

    # ---- seeding helpers ----

    def add(self, *records):
        for record in records:
            target = {
                Package: self.packages,
                Booking: self.bookings,
                GroupLesson: self.group_lessons,
                Appointment: self.appointments,
                Enrollment: self.enrollments
            }[type(record)]
            target[record.id] = record
        return records[0] if len(records) == 1 else records

    # ---- reads ----

    def read_booking(self, booking_id):
        self._read("read_booking")
        return self.bookings.get(booking_id)

    def read_predecessor(self, booking_id):
        self._read("read_predecessor")
        return next((b for b in self.bookings.values() if b.successor_id == booking_id), None)

    def read_package(self, package_id):
        self._read("read_package")
        return self.packages.get(package_id)

    def read_group_lesson(self, group_lesson_id):
        self._read("read_group_lesson")
        return self.group_lessons.get(group_lesson_id)

    def read_appointment(self, appointment_id):
        self._read("read_appointment")
        return self.appointments.get(appointment_id)

    def read_appointments_by_ids(self, appointment_ids):
        self._read("read_appointments_by_ids")
        return sorted((self.appointments[i] for i in appointment_ids if i in self.appointments), key=lambda a: a.sort_key)

    def read_appointments_by_booking(self, booking_id):
        self._read("read_appointments_by_booking")
        return sorted((a for a in self.appointments.values() if a.booking_id == booking_id), key=lambda a: a.sort_key)

    def read_appointments_by_group_lesson(self, group_lesson_id):
        self._read("read_appointments_by_group_lesson")
        return sorted((a for a in self.appointments.values() if a.group_lesson_id == group_lesson_id), key=lambda a: a.sort_key)

    def read_enrollments_by_booking(self, booking_id):
        self._read("read_enrollments_by_booking")
        return [e for e in self.enrollments.values() if e.booking_id == booking_id]

    def read_enrollments_by_appointment(self, appointment_id):
        self._read("read_enrollments_by_appointment")
        return [e for e in self.enrollments.values() if e.appointment_id == appointment_id]

    def appointments_for_series(self, series_ref: SeriesRef):
        if series_ref.kind == SeriesKind.GROUP_LESSON:
            return self.read_appointments_by_group_lesson(series_ref.id)
        owned = {a.id: a for a in self.read_appointments_by_booking(series_ref.id)}
        for enrollment in self.read_enrollments_by_booking(series_ref.id):
            if enrollment.appointment_id in self.appointments:
                owned.setdefault(enrollment.appointment_id, self.appointments[enrollment.appointment_id])
        return sorted(owned.values(), key=lambda a: a.sort_key)

    def find_appointments(self, date, hour, room_id=None, trainer_id=None,
                          status=AppointmentStatus.SCHEDULED, exclude_id=None):
        self._read("find_appointments")
        return [
            a for a in self.appointments.values()
            if a.date == date and a.hour == hour and a.status == status and a.id != exclude_id
            and (room_id is None or a.room_id == room_id)
            and (trainer_id is None or a.trainer_id == trainer_id)
        ]

    # ---- writes ----

    def insert_booking(self, booking):
        self._check("insert_booking")
        self.bookings[booking.id] = booking
        return booking

    def insert_group_lesson(self, group_lesson):
        self._check("insert_group_lesson")
        self.group_lessons[group_lesson.id] = group_lesson
        return group_lesson

    def insert_appointments(self, appointments):
        self._check("insert_appointments")
        for appointment in appointments:
            self.appointments[appointment.id] = appointment
        return appointments

    def insert_enrollments(self, enrollments):
        self._check("insert_enrollments")
        for enrollment in enrollments:
            self.enrollments[enrollment.id] = enrollment
        return enrollments

    def insert_history(self, entries):
        self._check("insert_history")
        self.history.extend(entries)
        return entries

    def update_booking(self, booking_id, fields):
        self._check("update_booking")
        self.bookings[booking_id] = self.bookings[booking_id].model_copy(update=fields)
        return self.bookings[booking_id]

    def update_appointments(self, updates):
        self._check("update_appointments")
        results = []
        for appointment_id, fields in updates:
            self.appointment_update_order.append(appointment_id)
            self.appointments[appointment_id] = self.appointments[appointment_id].model_copy(update=fields)
            results.append(self.appointments[appointment_id])
        return results

    def update_enrollments(self, updates):
        self._check("update_enrollments")
        results = []
        for enrollment_id, fields in updates:
            self.enrollment_update_order.append(enrollment_id)
            self.enrollments[enrollment_id] = self.enrollments[enrollment_id].model_copy(update=fields)
            results.append(self.enrollments[enrollment_id])
        return results

    def commit_series(self, appointments, enrollments, new_booking=None, predecessor_id=None, new_group_lesson=None,
                      member_bookings=None):
        # All or nothing
        self._check("commit_series")
        if new_group_lesson is not None:
            self.group_lessons[new_group_lesson.id] = new_group_lesson
        if new_booking is not None:
            self.bookings[new_booking.id] = new_booking
            if predecessor_id is not None:
                self.bookings[predecessor_id] = self.bookings[predecessor_id].model_copy(
                    update={"successor_id": new_booking.id}
                )
        for booking in member_bookings or []:
            self.bookings[booking.id] = booking
        for appointment in appointments:
            self.appointments[appointment.id] = appointment
        for enrollment in enrollments:
            self.enrollments[enrollment.id] = enrollment


def make_appointment(appointment_id, on, hour=9, room_id="room-1", trainer_id="trainer-1",
                     booking_id=None, group_lesson_id=None, status=AppointmentStatus.SCHEDULED,
                     session_number=None):
    return Appointment(
        id=appointment_id,
        booking_id=booking_id,
        group_lesson_id=group_lesson_id,
        room_id=room_id,
        trainer_id=trainer_id,
        date=on,
        hour=hour,
        status=status,
        series_id="series-1",
        session_number=session_number
    )


@pytest.fixture
def store():
    return InMemoryScheduleStore()

@pytest.fixture
def today():
    # A Monday
    return date(2026, 10, 19)

@pytest.fixture
def coordinator():
    return CallerContext(id="coord-1", role=UserRole.COORDINATOR, name="Coordinator")

@pytest.fixture
def admin():
    return CallerContext(id="admin-1", role=UserRole.ADMIN, name="Admin")

@pytest.fixture
def monday_wednesday():
    return [TimeSlot(day=DayOfWeek.MONDAY, hour=9), TimeSlot(day=DayOfWeek.WEDNESDAY, hour=9)]

@pytest.fixture
def private_package():
    return Package(
        id="pkg-private",
        name="Private 4 weeks",
        package_type=PackageType.PRIVATE,
        weeks_duration=2,
        lessons_per_week=2,
        max_capacity=2,
        reschedulable=True,
        reschedule_limit=2
    )

@pytest.fixture
def group_package():
    return Package(
        id="pkg-group",
        name="Group",
        package_type=PackageType.GROUP,
        weeks_duration=2,
        lessons_per_week=1,
        max_capacity=2
    )

@pytest.fixture
def appointment_factory():
    return make_appointment
