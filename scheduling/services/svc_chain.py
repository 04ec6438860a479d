from typing import List
from scheduling.models.mod_booking import Booking
from scheduling.services.svc_store import ScheduleStore
from scheduling.validators.val_errors import ChainIntegrityError, NotFoundError
from scheduling.configuration.monitor import log_event, log_exception, start_span

class ChainService:
    @staticmethod
    def resolve_chain(store: ScheduleStore, booking_id: str) -> List[Booking]:
        """
        Follow successor links from booking_id to the chain terminal.
        Returns the bookings in chain order, starting with booking_id itself.
        """
        try:
            with start_span("resolve_chain", attributes={"booking_id": booking_id}):
                booking = store.read_booking(booking_id)
                if booking is None:
                    raise NotFoundError(f"Booking {booking_id} not found", booking_id=booking_id)

                chain = [booking]
                visited = {booking.id}
                while booking.successor_id is not None:
                    successor_id = booking.successor_id
                    if successor_id in visited:
                        raise ChainIntegrityError(
                            f"Successor cycle detected at booking {successor_id}",
                            chain=[item.id for item in chain] + [successor_id]
                        )
                    booking = store.read_booking(successor_id)
                    if booking is None:
                        raise ChainIntegrityError(
                            f"Booking {chain[-1].id} points at missing successor {successor_id}",
                            chain=[item.id for item in chain]
                        )
                    visited.add(booking.id)
                    chain.append(booking)

                log_event("Chain resolved", {"booking_id": booking_id, "length": len(chain)})
                return chain
        except Exception as e:
            log_exception(e, {"operation": "resolve_chain", "booking_id": booking_id})
            raise

    @staticmethod
    def find_terminal(store: ScheduleStore, booking_id: str) -> Booking:
        return ChainService.resolve_chain(store, booking_id)[-1]

    @staticmethod
    def find_head(store: ScheduleStore, booking_id: str) -> Booking:
        """Walk predecessor links back to the first booking of the chain"""
        booking = store.read_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found", booking_id=booking_id)

        visited = {booking.id}
        while True:
            predecessor = store.read_predecessor(booking.id)
            if predecessor is None:
                return booking
            if predecessor.id in visited:
                raise ChainIntegrityError(
                    f"Successor cycle detected at booking {predecessor.id}",
                    chain=sorted(visited)
                )
            visited.add(predecessor.id)
            booking = predecessor
