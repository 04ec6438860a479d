from datetime import date, timedelta
from itertools import islice
from typing import Iterable, Iterator, List, Optional
from scheduling.models.mod_booking import DayOfWeek, TimeSlot
from scheduling.models.mod_appointment import SlotOccurrence
from scheduling.validators.val_errors import SchedulingValidationError

class SlotService:
    """
    Turns a weekly (day-of-week, hour) pattern into concrete dated occurrences.
    Everything here is pure; the same inputs always give the same sequence.
    """

    @staticmethod
    def canonical_pattern(pattern: Iterable[TimeSlot]) -> List[TimeSlot]:
        """Deduplicate a pattern and order it by (day-of-week, hour)"""
        unique = {(slot.day, slot.hour): slot for slot in pattern}
        return sorted(unique.values(), key=lambda slot: slot.sort_key)

    @staticmethod
    def week_start(value: date) -> date:
        """Monday of the week containing value"""
        return value - timedelta(days=value.weekday())

    @staticmethod
    def next_monday(value: date) -> date:
        """First Monday strictly after value"""
        return value + timedelta(days=7 - value.weekday())

    @staticmethod
    def extension_anchor(last_appointment_date: Optional[date], today: date) -> date:
        """
        Where an extension starts generating:
        - last appointment today or later: the day after it
        - chain already elapsed: next Monday, so the new block starts on a clean week
        - nothing generated yet: today
        """
        if last_appointment_date is None:
            return today
        if last_appointment_date >= today:
            return last_appointment_date + timedelta(days=1)
        return SlotService.next_monday(today)

    @staticmethod
    def iter_occurrences(pattern: Iterable[TimeSlot], anchor_date: date) -> Iterator[SlotOccurrence]:
        """
        Endless (date, hour) stream for a pattern. Week k is the seven-day window
        starting at anchor_date + k weeks; each slot lands on the first matching
        weekday inside its window, so nothing is ever placed before the anchor.
        """
        slots = SlotService.canonical_pattern(pattern)
        if not slots:
            return
        week = 0
        while True:
            window_start = anchor_date + timedelta(weeks=week)
            occurrences = []
            for slot in slots:
                offset = (slot.day.index - window_start.weekday()) % 7
                occurrences.append(SlotOccurrence(
                    date=window_start + timedelta(days=offset),
                    hour=slot.hour
                ))
            occurrences.sort(key=lambda occurrence: occurrence.sort_key)
            yield from occurrences
            week += 1

    @staticmethod
    def generate(
        pattern: Iterable[TimeSlot],
        anchor_date: date,
        weeks: Optional[int] = None,
        count: Optional[int] = None
    ) -> List[SlotOccurrence]:
        """
        Ordered occurrences for a horizon given either as a week span or as an
        occurrence count. An empty pattern gives an empty list.
        """
        if (weeks is None) == (count is None):
            raise SchedulingValidationError("Exactly one of weeks or count must be given")
        if (weeks is not None and weeks < 0) or (count is not None and count < 0):
            raise SchedulingValidationError("Horizon cannot be negative")

        slots = SlotService.canonical_pattern(pattern)
        if not slots:
            return []

        limit = weeks * len(slots) if weeks is not None else count
        return list(islice(SlotService.iter_occurrences(slots, anchor_date), limit))

    @staticmethod
    def derive_pattern(occurrences: Iterable) -> List[TimeSlot]:
        """Rebuild the weekly pattern from anything carrying date and hour"""
        return SlotService.canonical_pattern(
            TimeSlot(day=DayOfWeek.from_date(occurrence.date), hour=occurrence.hour)
            for occurrence in occurrences
        )

    @staticmethod
    def remap_by_slot(occurrences: Iterable, shift: int) -> List[SlotOccurrence]:
        """
        Target slot for each occurrence when the series moves `shift` positions
        along its own weekly pattern. Targets are returned in the (date, hour)
        order of the inputs. A shift of 0 maps a gap-free series onto itself.
        """
        ordered = sorted(occurrences, key=lambda occurrence: (occurrence.date, occurrence.hour))
        if not ordered:
            return []
        if shift < 0:
            raise SchedulingValidationError("Slot shift cannot be negative")

        pattern = SlotService.derive_pattern(ordered)
        first = (ordered[0].date, ordered[0].hour)
        # Same-day slots earlier than the first occurrence are not part of the series
        stream = (
            occurrence for occurrence in SlotService.iter_occurrences(pattern, ordered[0].date)
            if occurrence.sort_key >= first
        )
        slots = list(islice(stream, len(ordered) + shift))
        return [slots[index + shift] for index in range(len(ordered))]
