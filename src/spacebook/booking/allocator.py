#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Seat allocation for cafeteria tables.

Tables have a fixed number of seats and are independent of each other: a table is full
once its seats are committed, for a given slot, by any number of Confirmed
reservations. Requests are granted in full or rejected, never partially.
"""

import datetime
import logging

from pydantic import BaseModel

from spacebook.aliases import ReservationId, SpaceId, TableId
from spacebook.booking.exceptions import ConflictError, NotFoundError, ValidationError
from spacebook.booking.reservations import Reservation, ReservationStatus
from spacebook.booking.spaces import Cafeteria
from spacebook.booking.time_utils import TimeInterval
from spacebook.config import BookingPolicy
from spacebook.store.base import ReservationStore, read_retry

logger = logging.getLogger(__name__)


class SeatOccupancy(BaseModel, frozen=True):
    """Seats already committed at each table of a cafeteria, for a date and slot.

    Derived on demand from Confirmed reservations; never stored.
    """

    cafeteria_id: SpaceId
    interval: TimeInterval
    seats_per_table: int
    committed: dict[TableId, int]

    def committed_seats(self, table_id: TableId) -> int:
        return self.committed.get(table_id, 0)

    def free_seats(self, table_id: TableId) -> int:
        return max(self.seats_per_table - self.committed_seats(table_id), 0)

    def is_full(self, table_id: TableId) -> bool:
        return self.free_seats(table_id) == 0

    def can_grant(self, table_id: TableId, seat_count: int) -> bool:
        return self.committed_seats(table_id) + seat_count <= self.seats_per_table


def compute_occupancy(
    cafeteria: Cafeteria,
    interval: TimeInterval,
    confirmed: list[Reservation],
    seats_per_table: int,
    exclude_reservation_id: ReservationId | None = None,
) -> SeatOccupancy:
    """Sum the seats of the Confirmed reservations overlapping `interval`, per table.

    Parameters
    ----------
    confirmed
        Reservations to count. Anything that is not Confirmed, not at `cafeteria` or
        does not overlap `interval` is ignored, so a superset may be passed.
    exclude_reservation_id
        A reservation to leave out, eg the one being re-validated.
    """
    committed = {table_id: 0 for table_id in cafeteria.table_ids}
    for reservation in confirmed:
        if (
            reservation.status != ReservationStatus.Confirmed
            or reservation.space_id != cafeteria.space_id
            or reservation.table_id is None
            or reservation.reservation_id == exclude_reservation_id
            or not reservation.interval.overlaps(interval)
        ):
            continue
        committed[reservation.table_id] = (
            committed.get(reservation.table_id, 0) + reservation.seat_count
        )
    return SeatOccupancy(
        cafeteria_id=cafeteria.space_id,
        interval=interval,
        seats_per_table=seats_per_table,
        committed=committed,
    )


def assert_seats_available(
    occupancy: SeatOccupancy, table_id: TableId, seat_count: int
) -> None:
    """Raises
    ------
    ConflictError with the exact number of free seats if `seat_count` seats cannot
    all be granted at `table_id`.
    """
    if occupancy.can_grant(table_id, seat_count):
        return
    free = occupancy.free_seats(table_id)
    if free == 0:
        message = (
            f"Table {table_id} is fully booked for {occupancy.interval}: "
            f"all {occupancy.seats_per_table} seats are taken."
        )
    else:
        message = (
            f"Only {free} seat(s) are available at table {table_id} "
            f"for {occupancy.interval}, {seat_count} requested."
        )
    raise ConflictError(message, free_seats=free)


class SeatAllocator:
    """Answers whether seats can be granted at a cafeteria table, reading the current
    Confirmed reservations from the store on every call."""

    def __init__(self, store: ReservationStore, policy: BookingPolicy):
        self._store = store
        self._policy = policy
        self._query_reservations = read_retry(policy.read_retries)(
            store.query_reservations
        )
        self._get_space = read_retry(policy.read_retries)(store.get_space)

    @property
    def seats_per_table(self) -> int:
        return self._policy.seats_per_table

    def get_cafeteria(self, cafeteria_id: SpaceId) -> Cafeteria:
        space = self._get_space(cafeteria_id)
        if not isinstance(space, Cafeteria):
            raise NotFoundError(f"Space '{cafeteria_id}' is not a cafeteria")
        return space

    def occupancy(
        self,
        cafeteria: Cafeteria,
        date: datetime.date,
        start_time: datetime.time,
        end_time: datetime.time,
        exclude_reservation_id: ReservationId | None = None,
    ) -> SeatOccupancy:
        confirmed = self._query_reservations(
            cafeteria.space_id, date=date, status_in=[ReservationStatus.Confirmed]
        )
        return compute_occupancy(
            cafeteria,
            TimeInterval.on(date, start_time, end_time),
            confirmed,
            self.seats_per_table,
            exclude_reservation_id=exclude_reservation_id,
        )

    def check(
        self,
        cafeteria: Cafeteria,
        table_id: TableId,
        date: datetime.date,
        start_time: datetime.time,
        end_time: datetime.time,
        seat_count: int,
        exclude_reservation_id: ReservationId | None = None,
    ) -> SeatOccupancy:
        """Check that `seat_count` more seats fit at `table_id`.

        Raises
        ------
        NotFoundError if the table is not part of the cafeteria layout.
        ValidationError if `seat_count` is not positive.
        ConflictError if the table does not have enough free seats.
        """
        cafeteria.get_table(table_id)
        if seat_count <= 0:
            raise ValidationError("At least one seat must be requested.")
        occupancy = self.occupancy(
            cafeteria, date, start_time, end_time, exclude_reservation_id
        )
        assert_seats_available(occupancy, table_id, seat_count)
        return occupancy

    def suggest_table(
        self,
        cafeteria: Cafeteria,
        date: datetime.date,
        start_time: datetime.time,
        end_time: datetime.time,
        seat_count: int,
    ) -> TableId:
        """Return the first table, in layout order, with `seat_count` free seats.

        Raises
        ------
        ConflictError if no single table can seat the whole party.
        """
        occupancy = self.occupancy(cafeteria, date, start_time, end_time)
        for table_id in cafeteria.table_ids:
            if occupancy.can_grant(table_id, seat_count):
                return table_id
        most_free = max(
            (occupancy.free_seats(t) for t in cafeteria.table_ids), default=0
        )
        raise ConflictError(
            f"No table in {cafeteria.name} has {seat_count} free seat(s) for "
            f"{occupancy.interval}.",
            free_seats=most_free,
        )
