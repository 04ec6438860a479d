from typing import Dict, List, Tuple
from scheduling.schemas.sch_conflict import ConflictCandidate, ConflictEntry
from scheduling.services.svc_store import ScheduleStore
from scheduling.validators.val_errors import ConflictDetectedError
from scheduling.configuration.monitor import log_event, log_exception, start_span

class ConflictService:
    @staticmethod
    def check_conflicts(store: ScheduleStore, candidates: List[ConflictCandidate]) -> List[ConflictEntry]:
        """
        Report every candidate whose room or trainer is already held by a
        scheduled appointment at the same date and hour, or claimed by an
        earlier candidate of the same batch. Only the resources set on a
        candidate are checked. An empty list means the batch is clear.
        """
        try:
            with start_span("check_conflicts", attributes={"candidates": len(candidates)}):
                conflicts = []
                claimed: Dict[Tuple[str, str, object, int], ConflictCandidate] = {}

                for candidate in candidates:
                    ignored = set(candidate.exclude_ids)
                    if candidate.appointment_id:
                        ignored.add(candidate.appointment_id)

                    entry = ConflictEntry(
                        candidate=candidate,
                        appointment_id=candidate.appointment_id,
                        date=candidate.date,
                        hour=candidate.hour
                    )
                    for dimension, resource_id in (("room", candidate.room_id), ("trainer", candidate.trainer_id)):
                        if resource_id is None:
                            continue
                        held = store.find_appointments(
                            candidate.date, candidate.hour, **{f"{dimension}_id": resource_id}
                        )
                        holders = [appointment.id for appointment in held if appointment.id not in ignored]

                        key = (dimension, resource_id, candidate.date, candidate.hour)
                        earlier = claimed.get(key)
                        if earlier is not None:
                            holders.append(earlier.appointment_id or "pending")
                        else:
                            claimed[key] = candidate

                        if holders:
                            setattr(entry, f"{dimension}_conflict", True)
                            entry.conflicting_ids.extend(
                                holder for holder in holders if holder not in entry.conflicting_ids
                            )

                    if entry.room_conflict or entry.trainer_conflict:
                        conflicts.append(entry)

                log_event("Conflict check completed", {
                    "candidates": len(candidates),
                    "conflicts": len(conflicts)
                })
                return conflicts
        except Exception as e:
            log_exception(e, {"operation": "check_conflicts", "candidates": len(candidates)})
            raise

    @staticmethod
    def ensure_no_conflicts(store: ScheduleStore, candidates: List[ConflictCandidate]):
        """Raise ConflictDetectedError when check_conflicts finds anything"""
        conflicts = ConflictService.check_conflicts(store, candidates)
        if conflicts:
            raise ConflictDetectedError(conflicts)
