import pytest
from datetime import date

from scheduling.services.svc_transfer import TransferService
from scheduling.schemas.sch_transfer import (
    ShiftBySlotRequest, ShiftByTimeRequest, TransferRequest, TransferScope
)
from scheduling.models.mod_appointment import AppointmentStatus
from scheduling.models.mod_booking import Booking
from scheduling.validators.val_errors import (
    ConflictDetectedError, NotFoundError, SchedulingValidationError, StoreUnavailableError
)

class TestTransferService:
    @pytest.fixture
    def chain(self, store, appointment_factory, monday_wednesday):
        """Booking A (four sessions) followed by booking B (two sessions), Mondays and Wednesdays at 9"""
        store.add(
            Booking(id="A", package_id="pkg", room_id="room-1", trainer_id="trainer-1",
                    time_slots=monday_wednesday, successor_id="B"),
            Booking(id="B", package_id="pkg", room_id="room-1", trainer_id="trainer-1",
                    time_slots=monday_wednesday),
        )
        dates = {
            "a1": ("A", date(2026, 10, 19)),
            "a2": ("A", date(2026, 10, 21)),
            "a3": ("A", date(2026, 10, 26)),
            "a4": ("A", date(2026, 10, 28)),
            "b1": ("B", date(2026, 11, 2)),
            "b2": ("B", date(2026, 11, 4)),
        }
        for appointment_id, (booking_id, on) in dates.items():
            store.add(appointment_factory(appointment_id, on, booking_id=booking_id))
        return store

    def _snapshot(self, store):
        return {a.id: (a.room_id, a.trainer_id, a.date, a.hour) for a in store.appointments.values()}

    def test_from_selected_transfer_leaves_earlier_untouched(self, chain, coordinator, today):
        result = TransferService.transfer(
            chain, "a3", TransferRequest(scope=TransferScope.FROM_SELECTED, room_id="room-2"), coordinator, today=today
        )

        assert result.appointment_ids == ["a3", "a4", "b1", "b2"]
        assert result.updated_count == 4
        rooms = {a.id: a.room_id for a in chain.appointments.values()}
        assert rooms == {"a1": "room-1", "a2": "room-1", "a3": "room-2", "a4": "room-2", "b1": "room-2", "b2": "room-2"}
        assert chain.appointments["a3"].date == date(2026, 10, 26)
        assert len(chain.history) == 4

    def test_single_scope(self, chain, coordinator, today):
        TransferService.transfer(
            chain, "a3", TransferRequest(scope=TransferScope.SINGLE, trainer_id="trainer-2"), coordinator, today=today
        )

        trainers = {a.id: a.trainer_id for a in chain.appointments.values()}
        assert [i for i, t in trainers.items() if t == "trainer-2"] == ["a3"]

    def test_all_from_now_covers_whole_chain(self, chain, coordinator):
        preview = TransferService.preview(chain, "b1", TransferScope.ALL_FROM_NOW, today=date(2026, 10, 22))

        assert [a.id for a in preview.appointments] == ["a3", "a4", "b1", "b2"]
        assert preview.count == 4

    def test_preview_from_selected(self, chain, today):
        preview = TransferService.preview(chain, "a4", TransferScope.FROM_SELECTED, today=today)

        assert [a.id for a in preview.appointments] == ["a4", "b1", "b2"]

    def test_non_scheduled_appointments_are_skipped(self, chain, coordinator, today):
        chain.appointments["a4"] = chain.appointments["a4"].model_copy(update={"status": AppointmentStatus.COMPLETED})

        preview = TransferService.preview(chain, "a3", TransferScope.FROM_SELECTED, today=today)

        assert [a.id for a in preview.appointments] == ["a3", "b1", "b2"]

    def test_cancelled_selection_rejected(self, chain, coordinator, today):
        chain.appointments["a3"] = chain.appointments["a3"].model_copy(update={"status": AppointmentStatus.CANCELLED})

        with pytest.raises(SchedulingValidationError):
            TransferService.transfer(
                chain, "a3", TransferRequest(scope=TransferScope.SINGLE, room_id="room-2"), coordinator, today=today
            )

    def test_unknown_appointment(self, chain, coordinator, today):
        with pytest.raises(NotFoundError):
            TransferService.preview(chain, "zz", TransferScope.SINGLE, today=today)

    def test_transfer_collision_rejects_whole_batch(self, chain, coordinator, today, appointment_factory):
        chain.add(appointment_factory("other", date(2026, 10, 28), room_id="room-2", trainer_id="trainer-9"))
        before = self._snapshot(chain)

        with pytest.raises(ConflictDetectedError) as exc_info:
            TransferService.transfer(
                chain, "a3", TransferRequest(scope=TransferScope.FROM_SELECTED, room_id="room-2"),
                coordinator, today=today
            )

        assert [c.appointment_id for c in exc_info.value.conflicts] == ["a4"]
        assert self._snapshot(chain) == before
        assert chain.appointment_update_order == []
        assert chain.history == []

    def test_trainer_only_transfer_ignores_room(self, chain, coordinator, today, appointment_factory):
        chain.add(appointment_factory("overlap", date(2026, 10, 26), room_id="room-1", trainer_id="trainer-5"))

        result = TransferService.transfer(
            chain, "a3", TransferRequest(scope=TransferScope.SINGLE, trainer_id="trainer-2"), coordinator, today=today
        )

        assert result.updated_count == 1

    def test_transfer_needs_a_resource(self, chain, coordinator, today):
        with pytest.raises(SchedulingValidationError):
            TransferService.transfer(chain, "a3", TransferRequest(scope=TransferScope.SINGLE), coordinator, today=today)

        assert chain.reads == 0

    @pytest.mark.parametrize("weeks", [-53, 53, 0])
    def test_shift_weeks_out_of_range_rejected_before_store(self, chain, coordinator, today, weeks):
        with pytest.raises(SchedulingValidationError):
            TransferService.shift_by_time(
                chain, "a3", ShiftByTimeRequest(scope=TransferScope.FROM_SELECTED, weeks=weeks), coordinator, today=today
            )

        assert chain.reads == 0

    @pytest.mark.parametrize("weeks", [-52, 52])
    def test_shift_weeks_limits_accepted(self, chain, coordinator, today, weeks):
        result = TransferService.shift_by_time(
            chain, "a1", ShiftByTimeRequest(scope=TransferScope.SINGLE, weeks=weeks), coordinator, today=today
        )

        assert result.updated_count == 1

    def test_shift_forward_writes_latest_first(self, chain, coordinator, today):
        TransferService.shift_by_time(
            chain, "a3", ShiftByTimeRequest(scope=TransferScope.FROM_SELECTED, weeks=1), coordinator, today=today
        )

        assert chain.appointment_update_order == ["b2", "b1", "a4", "a3"]
        dates = {a.id: a.date for a in chain.appointments.values()}
        assert dates["a3"] == date(2026, 11, 2)
        assert dates["b2"] == date(2026, 11, 11)
        assert dates["a2"] == date(2026, 10, 21)

    def test_shift_backward_writes_earliest_first(self, chain, coordinator, today):
        for appointment_id in ("a1", "a2"):
            chain.appointments[appointment_id] = chain.appointments[appointment_id].model_copy(
                update={"status": AppointmentStatus.CANCELLED}
            )

        TransferService.shift_by_time(
            chain, "a3", ShiftByTimeRequest(scope=TransferScope.FROM_SELECTED, weeks=-1), coordinator, today=today
        )

        assert chain.appointment_update_order == ["a3", "a4", "b1", "b2"]
        assert chain.appointments["a3"].date == date(2026, 10, 19)

    def test_shift_by_time_collision(self, chain, coordinator, today, appointment_factory):
        chain.add(appointment_factory("blocker", date(2026, 11, 16), room_id="room-7", trainer_id="trainer-1"))

        with pytest.raises(ConflictDetectedError):
            TransferService.shift_by_time(
                chain, "a3", ShiftByTimeRequest(scope=TransferScope.FROM_SELECTED, weeks=2), coordinator, today=today
            )

        assert chain.appointment_update_order == []

    def test_shift_by_slot_moves_one_position(self, chain, coordinator, today):
        result = TransferService.shift_by_slot(chain, "a3", ShiftBySlotRequest(slots=1), coordinator, today=today)

        assert chain.appointment_update_order == ["b2", "b1", "a4", "a3"]
        dates = {a.id: a.date for a in chain.appointments.values()}
        assert [dates[i] for i in ("a3", "a4", "b1", "b2")] == [
            date(2026, 10, 28), date(2026, 11, 2), date(2026, 11, 4), date(2026, 11, 9)
        ]
        assert dates["a1"] == date(2026, 10, 19)
        assert result.updated_count == 4

    @pytest.mark.parametrize("slots,scope", [
        (0, TransferScope.FROM_SELECTED),
        (21, TransferScope.FROM_SELECTED),
        (1, TransferScope.SINGLE),
        (1, TransferScope.ALL_FROM_NOW),
    ])
    def test_shift_by_slot_validation(self, chain, coordinator, today, slots, scope):
        with pytest.raises(SchedulingValidationError):
            TransferService.shift_by_slot(
                chain, "a3", ShiftBySlotRequest(scope=scope, slots=slots), coordinator, today=today
            )

        assert chain.reads == 0

    def test_history_failure_does_not_fail_transfer(self, chain, coordinator, today):
        chain.fail_operations.add("insert_history")

        result = TransferService.transfer(
            chain, "a3", TransferRequest(scope=TransferScope.SINGLE, room_id="room-2"), coordinator, today=today
        )

        assert result.updated_count == 1
        assert chain.appointments["a3"].room_id == "room-2"

    def test_update_failure_propagates(self, chain, coordinator, today):
        chain.fail_operations.add("update_appointments")

        with pytest.raises(StoreUnavailableError):
            TransferService.transfer(
                chain, "a3", TransferRequest(scope=TransferScope.SINGLE, room_id="room-2"), coordinator, today=today
            )

    def test_history_rows_describe_move(self, chain, coordinator, today):
        TransferService.transfer(
            chain, "a3", TransferRequest(scope=TransferScope.SINGLE, room_id="room-2"), coordinator, today=today
        )

        entry = chain.history[0]
        assert entry.operation == "transfer"
        assert entry.changed_by == "coord-1"
        assert (entry.previous_room_id, entry.new_room_id) == ("room-1", "room-2")
        assert entry.previous_date == entry.new_date == date(2026, 10, 26)
