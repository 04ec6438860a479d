from datetime import datetime, time, timedelta
from scheduling.configuration.config import Config
from scheduling.models.mod_appointment import Appointment
from scheduling.models.mod_auth import CallerContext, UserRole
from scheduling.models.mod_booking import Booking
from scheduling.validators.val_errors import SchedulingValidationError

class RescheduleValidator:
    @staticmethod
    def appointment_start(appointment: Appointment) -> datetime:
        """Studio-local start of an appointment"""
        return datetime.combine(appointment.date, time(hour=appointment.hour))

    @staticmethod
    def validate_past_appointment(appointment: Appointment, now: datetime):
        """Validate that an appointment has not started yet"""
        if RescheduleValidator.appointment_start(appointment) <= now:
            raise SchedulingValidationError(
                "Past appointments cannot be rescheduled",
                appointment_id=appointment.id
            )

    @staticmethod
    def validate_reschedules_left(booking: Booking):
        if booking.reschedule_left <= 0:
            raise SchedulingValidationError(
                "No reschedules left for this booking",
                booking_id=booking.id
            )

    @staticmethod
    def validate_lead_time(appointment: Appointment, now: datetime):
        """Coordinators must reschedule a minimum number of hours ahead"""
        min_hours = Config.RESCHEDULE_MIN_LEAD_HOURS
        if now + timedelta(hours=min_hours) > RescheduleValidator.appointment_start(appointment):
            raise SchedulingValidationError(
                f"Appointments can only be rescheduled at least {min_hours} hours in advance",
                appointment_id=appointment.id
            )

    @staticmethod
    def validate_reschedule(context: CallerContext, booking: Booking, appointment: Appointment, now: datetime):
        """Validate all rules for rescheduling one appointment"""
        RescheduleValidator.validate_past_appointment(appointment, now)
        if context.is_admin:
            return
        RescheduleValidator.validate_reschedules_left(booking)
        if context.role == UserRole.COORDINATOR:
            RescheduleValidator.validate_lead_time(appointment, now)
