from scheduling.configuration.config import Config
from scheduling.models.mod_appointment import Appointment, AppointmentStatus
from scheduling.schemas.sch_transfer import TransferRequest, TransferScope
from scheduling.validators.val_errors import SchedulingValidationError

class TransferValidator:
    """Input checks for transfers and shifts. All of them run before the store is touched."""

    @staticmethod
    def validate_transfer(request: TransferRequest):
        if not request.room_id and not request.trainer_id:
            raise SchedulingValidationError("A transfer needs a new room, a new trainer, or both")

    @staticmethod
    def validate_shift_weeks(weeks):
        if isinstance(weeks, bool) or not isinstance(weeks, int):
            raise SchedulingValidationError("Week shift must be an integer")
        if weeks == 0:
            raise SchedulingValidationError("Week shift cannot be zero")
        if abs(weeks) > Config.MAX_SHIFT_WEEKS:
            raise SchedulingValidationError(
                f"Week shift must be between -{Config.MAX_SHIFT_WEEKS} and {Config.MAX_SHIFT_WEEKS}",
                weeks=weeks
            )

    @staticmethod
    def validate_slot_shift(slots, scope: TransferScope = TransferScope.FROM_SELECTED):
        if isinstance(slots, bool) or not isinstance(slots, int):
            raise SchedulingValidationError("Slot shift must be an integer")
        if slots < 1 or slots > Config.MAX_SLOT_SHIFT:
            raise SchedulingValidationError(
                f"Slot shift must be between 1 and {Config.MAX_SLOT_SHIFT}",
                slots=slots
            )
        if scope != TransferScope.FROM_SELECTED:
            raise SchedulingValidationError(
                "Slot shifts are only available for the from_selected scope",
                scope=scope.value
            )

    @staticmethod
    def validate_selectable(appointment: Appointment):
        """Only scheduled appointments can anchor a transfer or shift"""
        if appointment.status != AppointmentStatus.SCHEDULED:
            raise SchedulingValidationError(
                f"Appointment {appointment.id} is {appointment.status.value} and cannot be moved",
                appointment_id=appointment.id
            )
