from typing import Dict, List
from scheduling.models.mod_booking import Package, PackageType, TimeSlot
from scheduling.schemas.sch_series import AssignmentCreate, JoinGroupLessonRequest
from scheduling.validators.val_errors import SchedulingValidationError

class SeriesValidator:
    @staticmethod
    def validate_time_slots(time_slots: List[TimeSlot]):
        """Validate that a weekly pattern is non-empty and has no repeated slot"""
        if not time_slots:
            raise SchedulingValidationError("At least one time slot is required")
        seen = set()
        for slot in time_slots:
            key = (slot.day, slot.hour)
            if key in seen:
                raise SchedulingValidationError(
                    f"Duplicate time slot {slot.day.value} {slot.hour}:00",
                    day=slot.day.value, hour=slot.hour
                )
            seen.add(key)

    @staticmethod
    def validate_assignment(request: AssignmentCreate, package: Package):
        """Validate all rules for creating a new assignment"""
        SeriesValidator.validate_time_slots(request.time_slots)
        if len(request.time_slots) != package.lessons_per_week:
            raise SchedulingValidationError(
                f"Package {package.name} needs {package.lessons_per_week} time slot(s) per week, "
                f"got {len(request.time_slots)}"
            )
        if not request.room_id or not request.trainer_id:
            raise SchedulingValidationError("Both room_id and trainer_id are required")
        if package.weeks_duration < 1:
            raise SchedulingValidationError(f"Package {package.name} has no duration")

        if package.package_type == PackageType.PRIVATE:
            if not request.trainee_ids:
                raise SchedulingValidationError("Private assignments need at least one trainee")
            SeriesValidator.validate_trainee_count(request.trainee_ids, package)

    @staticmethod
    def validate_trainee_count(trainee_ids: List[str], package: Package):
        if len(set(trainee_ids)) != len(trainee_ids):
            raise SchedulingValidationError("Trainees may only be listed once")
        if len(trainee_ids) > package.max_capacity:
            raise SchedulingValidationError(
                f"Package {package.name} allows at most {package.max_capacity} trainee(s)"
            )

    @staticmethod
    def validate_extendable(package: Package):
        if package.package_type not in (PackageType.PRIVATE, PackageType.GROUP):
            raise SchedulingValidationError(f"Packages of type {package.package_type} cannot be extended")
        if package.weeks_duration < 1:
            raise SchedulingValidationError(f"Package {package.name} has no duration")

    @staticmethod
    def validate_join(request: JoinGroupLessonRequest, package: Package):
        if package.package_type != PackageType.GROUP:
            raise SchedulingValidationError(f"Package {package.name} is not a group package")
        if not request.trainee_ids:
            raise SchedulingValidationError("At least one trainee is required to join a group lesson")
        SeriesValidator.validate_trainee_count(request.trainee_ids, package)

    @staticmethod
    def validate_capacity(enrolled: Dict[str, int], joining: int, max_capacity: int):
        """Validate that every appointment can take `joining` more trainees"""
        full = sorted(
            appointment_id for appointment_id, count in enrolled.items()
            if count + joining > max_capacity
        )
        if full:
            raise SchedulingValidationError(
                f"{len(full)} group appointment(s) are at capacity ({max_capacity})",
                full_appointment_ids=full
            )
