from azure.cosmos import ContainerProxy
from azure.cosmos.exceptions import CosmosHttpResponseError
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type, TypeVar
from pydantic import BaseModel
from scheduling.models.mod_booking import Booking, GroupLesson, Package
from scheduling.models.mod_appointment import (
    Appointment, AppointmentStatus, Enrollment, RescheduleHistory, SeriesKind, SeriesRef
)
from scheduling.validators.val_errors import StoreUnavailableError
from scheduling.configuration.monitor import log_event, log_exception

ModelT = TypeVar("ModelT", bound=BaseModel)

def _jsonable(value: Any) -> Any:
    """Convert a field value to what Cosmos stores"""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(item) for item in value]
    return value

def _sorted_appointments(appointments: Iterable[Appointment]) -> List[Appointment]:
    return sorted(appointments, key=lambda appointment: appointment.sort_key)

class ScheduleStore:
    """
    Cosmos DB backed store used by the scheduling core.
    One container per record kind, every container partitioned by /id.
    Any Cosmos failure is raised as StoreUnavailableError naming the operation.
    """

    def __init__(self, containers: Dict[str, ContainerProxy]):
        self.containers = containers

    # ---- low level helpers ----

    def _query(self, operation: str, container_key: str, query: str, parameters: List[Dict[str, Any]]) -> List[dict]:
        try:
            return list(self.containers[container_key].query_items(
                query=query,
                parameters=parameters,
                enable_cross_partition_query=True
            ))
        except CosmosHttpResponseError as e:
            log_exception(e, {"operation": operation, "container": container_key})
            raise StoreUnavailableError(operation, str(e))

    def _read_one(self, operation: str, container_key: str, model: Type[ModelT], item_id: str) -> Optional[ModelT]:
        items = self._query(
            operation, container_key,
            "SELECT * FROM c WHERE c.id = @id",
            [{"name": "@id", "value": item_id}]
        )
        return model.model_validate(items[0]) if items else None

    def _create(self, operation: str, container_key: str, document: dict):
        try:
            self.containers[container_key].create_item(body=document)
        except CosmosHttpResponseError as e:
            log_exception(e, {"operation": operation, "id": document.get("id")})
            raise StoreUnavailableError(operation, str(e))

    def _create_many(self, operation: str, container_key: str, models: List[BaseModel],
                     created: Optional[List[Tuple[str, str]]] = None):
        """Writes in order and stops at the first failure; the error lists every index left unwritten"""
        for index, model in enumerate(models):
            document = model.model_dump(mode="json")
            try:
                self.containers[container_key].create_item(body=document)
            except CosmosHttpResponseError as e:
                log_exception(e, {"operation": operation, "index": index, "id": document.get("id")})
                raise StoreUnavailableError(operation, str(e), failed_indices=list(range(index, len(models))))
            if created is not None:
                created.append((container_key, document["id"]))

    def _update_many(self, operation: str, container_key: str, model: Type[ModelT],
                     updates: List[Tuple[str, Dict[str, Any]]]) -> List[ModelT]:
        results = []
        for index, (item_id, fields) in enumerate(updates):
            try:
                items = list(self.containers[container_key].query_items(
                    query="SELECT * FROM c WHERE c.id = @id",
                    parameters=[{"name": "@id", "value": item_id}],
                    enable_cross_partition_query=True
                ))
                if not items:
                    raise StoreUnavailableError(
                        operation, f"record {item_id} disappeared",
                        failed_indices=list(range(index, len(updates)))
                    )
                document = {key: value for key, value in items[0].items() if not key.startswith("_")}
                document.update({key: _jsonable(value) for key, value in fields.items()})
                self.containers[container_key].upsert_item(body=document)
            except CosmosHttpResponseError as e:
                log_exception(e, {"operation": operation, "index": index, "id": item_id})
                raise StoreUnavailableError(operation, str(e), failed_indices=list(range(index, len(updates))))
            results.append(model.model_validate(document))
        return results

    def _delete(self, container_key: str, item_id: str):
        self.containers[container_key].delete_item(item=item_id, partition_key=item_id)

    # ---- reads ----

    def read_booking(self, booking_id: str) -> Optional[Booking]:
        return self._read_one("read_booking", "bookings", Booking, booking_id)

    def read_predecessor(self, booking_id: str) -> Optional[Booking]:
        """The booking whose successor_id points at booking_id, if any"""
        items = self._query(
            "read_predecessor", "bookings",
            "SELECT * FROM c WHERE c.successor_id = @booking_id",
            [{"name": "@booking_id", "value": booking_id}]
        )
        return Booking.model_validate(items[0]) if items else None

    def read_package(self, package_id: str) -> Optional[Package]:
        return self._read_one("read_package", "packages", Package, package_id)

    def read_group_lesson(self, group_lesson_id: str) -> Optional[GroupLesson]:
        return self._read_one("read_group_lesson", "group_lessons", GroupLesson, group_lesson_id)

    def read_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._read_one("read_appointment", "appointments", Appointment, appointment_id)

    def read_appointments_by_ids(self, appointment_ids: List[str]) -> List[Appointment]:
        if not appointment_ids:
            return []
        items = self._query(
            "read_appointments_by_ids", "appointments",
            "SELECT * FROM c WHERE ARRAY_CONTAINS(@ids, c.id)",
            [{"name": "@ids", "value": list(appointment_ids)}]
        )
        return _sorted_appointments(Appointment.model_validate(item) for item in items)

    def read_appointments_by_booking(self, booking_id: str) -> List[Appointment]:
        items = self._query(
            "read_appointments_by_booking", "appointments",
            "SELECT * FROM c WHERE c.booking_id = @booking_id",
            [{"name": "@booking_id", "value": booking_id}]
        )
        return _sorted_appointments(Appointment.model_validate(item) for item in items)

    def read_appointments_by_group_lesson(self, group_lesson_id: str) -> List[Appointment]:
        items = self._query(
            "read_appointments_by_group_lesson", "appointments",
            "SELECT * FROM c WHERE c.group_lesson_id = @group_lesson_id",
            [{"name": "@group_lesson_id", "value": group_lesson_id}]
        )
        return _sorted_appointments(Appointment.model_validate(item) for item in items)

    def read_enrollments_by_booking(self, booking_id: str) -> List[Enrollment]:
        items = self._query(
            "read_enrollments_by_booking", "enrollments",
            "SELECT * FROM c WHERE c.booking_id = @booking_id",
            [{"name": "@booking_id", "value": booking_id}]
        )
        return [Enrollment.model_validate(item) for item in items]

    def read_enrollments_by_appointment(self, appointment_id: str) -> List[Enrollment]:
        items = self._query(
            "read_enrollments_by_appointment", "enrollments",
            "SELECT * FROM c WHERE c.appointment_id = @appointment_id",
            [{"name": "@appointment_id", "value": appointment_id}]
        )
        return [Enrollment.model_validate(item) for item in items]

    def appointments_for_series(self, series_ref: SeriesRef) -> List[Appointment]:
        """
        Every appointment of a series, whichever way it is owned:
        directly by a booking, through a booking's enrollments in a group
        lesson, or by the group lesson itself.
        """
        if series_ref.kind == SeriesKind.GROUP_LESSON:
            return self.read_appointments_by_group_lesson(series_ref.id)

        appointments = {appointment.id: appointment for appointment in self.read_appointments_by_booking(series_ref.id)}
        enrolled_ids = [
            enrollment.appointment_id
            for enrollment in self.read_enrollments_by_booking(series_ref.id)
            if enrollment.appointment_id not in appointments
        ]
        for appointment in self.read_appointments_by_ids(enrolled_ids):
            appointments[appointment.id] = appointment
        return _sorted_appointments(appointments.values())

    def find_appointments(
        self,
        date: date,
        hour: int,
        room_id: Optional[str] = None,
        trainer_id: Optional[str] = None,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        exclude_id: Optional[str] = None
    ) -> List[Appointment]:
        """Appointments holding a room or a trainer at (date, hour)"""
        if (room_id is None) == (trainer_id is None):
            raise ValueError("find_appointments needs exactly one of room_id or trainer_id")

        resource_field = "room_id" if room_id is not None else "trainer_id"
        query = (
            f"SELECT * FROM c WHERE c.{resource_field} = @resource_id "
            "AND c.date = @date AND c.hour = @hour AND c.status = @status"
        )
        parameters = [
            {"name": "@resource_id", "value": room_id if room_id is not None else trainer_id},
            {"name": "@date", "value": date.isoformat()},
            {"name": "@hour", "value": hour},
            {"name": "@status", "value": status.value}
        ]
        if exclude_id is not None:
            query += " AND c.id != @exclude_id"
            parameters.append({"name": "@exclude_id", "value": exclude_id})

        items = self._query("find_appointments", "appointments", query, parameters)
        return [Appointment.model_validate(item) for item in items]

    # ---- writes ----

    def insert_booking(self, booking: Booking) -> Booking:
        self._create("insert_booking", "bookings", booking.model_dump(mode="json"))
        return booking

    def insert_group_lesson(self, group_lesson: GroupLesson) -> GroupLesson:
        self._create("insert_group_lesson", "group_lessons", group_lesson.model_dump(mode="json"))
        return group_lesson

    def insert_appointments(self, appointments: List[Appointment]) -> List[Appointment]:
        self._create_many("insert_appointments", "appointments", appointments)
        return appointments

    def insert_enrollments(self, enrollments: List[Enrollment]) -> List[Enrollment]:
        self._create_many("insert_enrollments", "enrollments", enrollments)
        return enrollments

    def insert_history(self, entries: List[RescheduleHistory]) -> List[RescheduleHistory]:
        self._create_many("insert_history", "reschedule_history", entries)
        return entries

    def update_booking(self, booking_id: str, fields: Dict[str, Any]) -> Booking:
        return self._update_many("update_booking", "bookings", Booking, [(booking_id, fields)])[0]

    def update_appointments(self, updates: List[Tuple[str, Dict[str, Any]]]) -> List[Appointment]:
        """Applies updates in the given order"""
        return self._update_many("update_appointments", "appointments", Appointment, updates)

    def update_enrollments(self, updates: List[Tuple[str, Dict[str, Any]]]) -> List[Enrollment]:
        return self._update_many("update_enrollments", "enrollments", Enrollment, updates)

    def commit_series(
        self,
        appointments: List[Appointment],
        enrollments: List[Enrollment],
        new_booking: Optional[Booking] = None,
        predecessor_id: Optional[str] = None,
        new_group_lesson: Optional[GroupLesson] = None,
        member_bookings: Optional[List[Booking]] = None
    ):
        """
        Writes a new series as one unit: optional group lesson, optional booking,
        the predecessor's successor link, the bookings of trainees joining a
        group lesson, appointments and enrollments.
        When any write fails everything already written is removed again and the
        predecessor link is reset before the error is raised.
        """
        created: List[Tuple[str, str]] = []
        linked = False
        try:
            if new_group_lesson is not None:
                self.insert_group_lesson(new_group_lesson)
                created.append(("group_lessons", new_group_lesson.id))
            if new_booking is not None:
                self.insert_booking(new_booking)
                created.append(("bookings", new_booking.id))
            if predecessor_id is not None and new_booking is not None:
                self.update_booking(predecessor_id, {"successor_id": new_booking.id})
                linked = True
            for booking in member_bookings or []:
                self.insert_booking(booking)
                created.append(("bookings", booking.id))
            self._create_many("insert_appointments", "appointments", appointments, created)
            self._create_many("insert_enrollments", "enrollments", enrollments, created)
        except StoreUnavailableError:
            self._rollback(created, predecessor_id if linked else None)
            raise

        log_event("Series committed", {
            "booking_id": new_booking.id if new_booking else None,
            "group_lesson_id": new_group_lesson.id if new_group_lesson else None,
            "predecessor_id": predecessor_id,
            "appointments": len(appointments),
            "member_bookings": len(member_bookings or []),
            "enrollments": len(enrollments)
        })

    def _rollback(self, created: List[Tuple[str, str]], predecessor_id: Optional[str]):
        for container_key, item_id in reversed(created):
            try:
                self._delete(container_key, item_id)
            except CosmosHttpResponseError as e:
                log_exception(e, {"operation": "rollback_delete", "container": container_key, "id": item_id})
        if predecessor_id is not None:
            try:
                self.update_booking(predecessor_id, {"successor_id": None})
            except StoreUnavailableError as e:
                log_exception(e, {"operation": "rollback_successor", "booking_id": predecessor_id})
        log_event("Series commit rolled back", {"records_removed": len(created), "predecessor_id": predecessor_id})
