import uuid
from datetime import datetime, timezone
from typing import List, Tuple
from scheduling.models.mod_appointment import Appointment, RescheduleHistory
from scheduling.models.mod_auth import CallerContext
from scheduling.services.svc_store import ScheduleStore
from scheduling.validators.val_errors import StoreUnavailableError
from scheduling.configuration.monitor import log_event, log_exception

class HistoryService:
    @staticmethod
    def build_entries(operation: str, context: CallerContext,
                      changes: List[Tuple[Appointment, Appointment]]) -> List[RescheduleHistory]:
        """One audit row per (before, after) pair"""
        changed_at = datetime.now(timezone.utc)
        return [
            RescheduleHistory(
                id=str(uuid.uuid4()),
                appointment_id=before.id,
                operation=operation,
                changed_by=context.id,
                changed_at=changed_at,
                previous_room_id=before.room_id,
                previous_trainer_id=before.trainer_id,
                previous_date=before.date,
                previous_hour=before.hour,
                new_room_id=after.room_id,
                new_trainer_id=after.trainer_id,
                new_date=after.date,
                new_hour=after.hour
            )
            for before, after in changes
        ]

    @staticmethod
    def record(store: ScheduleStore, operation: str, context: CallerContext,
               changes: List[Tuple[Appointment, Appointment]]):
        """
        Write audit rows for applied changes. The change itself is already
        committed, so a failed write is logged and not raised.
        """
        if not changes:
            return
        try:
            store.insert_history(HistoryService.build_entries(operation, context, changes))
            log_event("Reschedule history recorded", {"operation": operation, "entries": len(changes)})
        except StoreUnavailableError as e:
            log_exception(e, {"operation": "record_history", "history_operation": operation, "entries": len(changes)})
