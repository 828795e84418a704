#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Decides whether a time range on a space can be granted.

Only Confirmed reservations count against a space. Checks are pure reads: they never
write, and running one twice with no write in between gives the same verdict. The
guards built here are the same predicates, applied by the store to a fresh read taken
under the allocation lock right before a write.
"""

import datetime
import logging

from pydantic import BaseModel

from spacebook.aliases import ReservationId, SpaceId, TableId
from spacebook.booking.allocator import (
    SeatAllocator,
    assert_seats_available,
    compute_occupancy,
)
from spacebook.booking.exceptions import ConflictError, ValidationError
from spacebook.booking.reservations import Reservation, ReservationStatus
from spacebook.booking.spaces import Cafeteria, MeetingRoom
from spacebook.booking.time_utils import (
    Clock,
    TimeInterval,
    format_slot,
    parse_date,
    parse_wall_clock,
    system_clock,
)
from spacebook.config import BookingPolicy
from spacebook.store.base import Guard, ReservationStore, read_retry

logger = logging.getLogger(__name__)


class Conflict(BaseModel, frozen=True):
    """A Confirmed reservation that collides with a candidate range."""

    reservation_id: ReservationId | None
    interval: TimeInterval
    table_id: TableId | None = None

    @classmethod
    def from_reservation(cls, reservation: Reservation) -> "Conflict":
        return cls(
            reservation_id=reservation.reservation_id,
            interval=reservation.interval,
            table_id=reservation.table_id,
        )

    def __str__(self) -> str:
        return f"reservation {self.reservation_id} ({self.interval})"


class Availability(BaseModel, frozen=True):
    """The verdict of an availability check.

    Parameters
    ----------
    conflicts
        The Confirmed reservations overlapping the requested range. For cafeteria
        tables these are the reservations sharing the table, which only block the
        request once their seats add up to the table size.
    free_seats
        Cafeteria checks only: seats still free at the requested table, or at the
        emptiest table when no table was named.
    """

    space_id: SpaceId
    interval: TimeInterval
    available: bool
    conflicts: list[Conflict] = []
    free_seats: int | None = None
    reason: str = ""

    def raise_for_conflict(self) -> None:
        if not self.available:
            raise ConflictError(
                self.reason, conflicts=self.conflicts, free_seats=self.free_seats
            )


def overlapping_reservations(
    interval: TimeInterval,
    reservations: list[Reservation],
    exclude_reservation_id: ReservationId | None = None,
) -> list[Conflict]:
    """Return the Confirmed reservations in `reservations` overlapping `interval`,
    earliest first."""
    conflicts = [
        Conflict.from_reservation(r)
        for r in reservations
        if r.status == ReservationStatus.Confirmed
        and r.reservation_id != exclude_reservation_id
        and r.interval.overlaps(interval)
    ]
    return sorted(conflicts, key=lambda c: c.interval.start)


def describe_conflicts(interval: TimeInterval, conflicts: list[Conflict]) -> str:
    return f"{interval} conflicts with " + ", ".join(str(c) for c in conflicts)


def assert_can_confirm(
    reservation: Reservation,
    space: Cafeteria | MeetingRoom,
    confirmed: list[Reservation],
    seats_per_table: int,
) -> None:
    """Check that `reservation` can be Confirmed next to the `confirmed` ones.

    Raises
    ------
    ConflictError naming the overlapping reservations (meeting rooms) or reporting the
    free seats left at the table (cafeterias).
    """
    if isinstance(space, Cafeteria):
        occupancy = compute_occupancy(
            space,
            reservation.interval,
            confirmed,
            seats_per_table,
            exclude_reservation_id=reservation.reservation_id,
        )
        assert_seats_available(occupancy, reservation.table_id, reservation.seat_count)
        return
    conflicts = overlapping_reservations(
        reservation.interval,
        [r for r in confirmed if r.space_id == reservation.space_id],
        exclude_reservation_id=reservation.reservation_id,
    )
    if conflicts:
        raise ConflictError(
            describe_conflicts(reservation.interval, conflicts), conflicts=conflicts
        )


def confirmation_guard(
    reservation: Reservation, space: Cafeteria | MeetingRoom, seats_per_table: int
) -> Guard:
    def guard(confirmed: list[Reservation]) -> None:
        assert_can_confirm(reservation, space, confirmed, seats_per_table)

    return guard


class AvailabilityChecker:
    """Checks candidate bookings against the reservations currently in the store.

    Parameters
    ----------
    store
        Where reservations are read from. Reads are retried on `TransientStoreError`
        according to `policy.read_retries`.
    clock
        Source of "now", used to reject past dates.
    """

    def __init__(
        self,
        store: ReservationStore,
        policy: BookingPolicy | None = None,
        clock: Clock = system_clock,
    ):
        self._policy = policy or BookingPolicy()
        self._clock = clock
        self.allocator = SeatAllocator(store, self._policy)
        retrying = read_retry(self._policy.read_retries)
        self._get_space = retrying(store.get_space)
        self._query_reservations = retrying(store.query_reservations)

    @property
    def policy(self) -> BookingPolicy:
        return self._policy

    def today(self) -> datetime.date:
        return self._clock().date()

    def get_space(self, space_id: SpaceId) -> Cafeteria | MeetingRoom:
        return self._get_space(space_id)

    def validate_new_booking(
        self,
        space: Cafeteria | MeetingRoom,
        date: datetime.date,
        start_time: datetime.time,
        end_time: datetime.time,
        seat_count: int | None = None,
    ) -> None:
        """Policy checks for a new booking. Runs before, and independently of, any
        availability read.

        Raises
        ------
        ValidationError
        """
        if start_time >= end_time:
            raise ValidationError(
                f"End time must be after start time, got {format_slot(start_time, end_time)}"
            )
        today = self.today()
        if date < today:
            raise ValidationError(f"Cannot book {date.isoformat()}: date is in the past")
        if isinstance(space, Cafeteria):
            horizon = self._policy.cafeteria_booking_horizon_days
        else:
            horizon = self._policy.meeting_room_booking_horizon_days
        if horizon is not None and (date - today).days > horizon:
            if horizon == 0:
                raise ValidationError(f"{space.name} can only be booked for today")
            raise ValidationError(
                f"{space.name} can only be booked up to {horizon} day(s) ahead"
            )
        if isinstance(space, Cafeteria):
            self._validate_cafeteria_booking(start_time, end_time, seat_count)
        else:
            self._validate_meeting_room_booking(start_time, end_time)

    def _validate_cafeteria_booking(
        self,
        start_time: datetime.time,
        end_time: datetime.time,
        seat_count: int | None,
    ) -> None:
        slots = self._policy.parsed_cafeteria_slots()
        if slots and (start_time, end_time) not in slots:
            raise ValidationError(
                f"{format_slot(start_time, end_time)} is not a bookable slot, choose one "
                f"of {', '.join(self._policy.cafeteria_slots)}"
            )
        if seat_count is None:
            return
        if seat_count <= 0:
            raise ValidationError("At least one seat must be requested.")
        if seat_count > self._policy.max_seats_per_request:
            raise ValidationError(
                f"At most {self._policy.max_seats_per_request} seats can be booked at "
                f"once, {seat_count} requested."
            )

    def _validate_meeting_room_booking(
        self, start_time: datetime.time, end_time: datetime.time
    ) -> None:
        hours = self._policy.meeting_room_hours
        if hours is not None and (start_time < hours.opens or end_time > hours.closes):
            raise ValidationError(
                f"Meeting rooms can only be booked between "
                f"{format_slot(hours.opens, hours.closes)}"
            )
        cap = self._policy.max_meeting_duration
        interval = TimeInterval.on(datetime.date.min, start_time, end_time)
        if cap is not None and interval.duration > cap:
            raise ValidationError(
                f"Meeting room bookings cannot exceed "
                f"{self._policy.max_meeting_duration_hours:g} hours, "
                f"{format_slot(start_time, end_time)} requested"
            )

    def check(
        self,
        space_id: SpaceId,
        date: datetime.date | str,
        start_time: datetime.time | str,
        end_time: datetime.time | str,
        exclude_reservation_id: ReservationId | None = None,
        table_id: TableId | None = None,
        seat_count: int | None = None,
    ) -> Availability:
        """Check a range against the Confirmed reservations of a space.

        Parameters
        ----------
        exclude_reservation_id
            Leave this reservation out, eg when re-checking a request that is already
            stored.
        table_id, seat_count
            Cafeteria only. With a table, the check is whether `seat_count` (default 1)
            more seats fit at it; without one, whether any table has that many free.

        Raises
        ------
        NotFoundError if the space, or the table, is unknown.
        ValidationError if the range is malformed.
        """
        space = self._get_space(space_id)
        date = parse_date(date)
        start_time, end_time = parse_wall_clock(start_time), parse_wall_clock(end_time)
        if start_time >= end_time:
            raise ValidationError(
                f"End time must be after start time, got {format_slot(start_time, end_time)}"
            )
        interval = TimeInterval.on(date, start_time, end_time)
        confirmed = self._query_reservations(
            space_id, date=date, status_in=[ReservationStatus.Confirmed]
        )
        logger.debug(f"{len(confirmed)} Confirmed reservations on {space_id} {date}")
        if isinstance(space, Cafeteria):
            return self._check_cafeteria(
                space,
                interval,
                confirmed,
                table_id,
                seat_count or 1,
                exclude_reservation_id,
            )
        conflicts = overlapping_reservations(interval, confirmed, exclude_reservation_id)
        if conflicts:
            return Availability(
                space_id=space_id,
                interval=interval,
                available=False,
                conflicts=conflicts,
                reason=describe_conflicts(interval, conflicts),
            )
        return Availability(space_id=space_id, interval=interval, available=True)

    def _check_cafeteria(
        self,
        cafeteria: Cafeteria,
        interval: TimeInterval,
        confirmed: list[Reservation],
        table_id: TableId | None,
        seat_count: int,
        exclude_reservation_id: ReservationId | None,
    ) -> Availability:
        occupancy = compute_occupancy(
            cafeteria,
            interval,
            confirmed,
            self._policy.seats_per_table,
            exclude_reservation_id=exclude_reservation_id,
        )
        if table_id is None:
            free = max((occupancy.free_seats(t) for t in cafeteria.table_ids), default=0)
            available = free >= seat_count
            return Availability(
                space_id=cafeteria.space_id,
                interval=interval,
                available=available,
                free_seats=free,
                reason=""
                if available
                else f"No table in {cafeteria.name} has {seat_count} free seat(s) for {interval}",
            )
        cafeteria.get_table(table_id)
        conflicts = overlapping_reservations(
            interval,
            [r for r in confirmed if r.table_id == table_id],
            exclude_reservation_id,
        )
        try:
            assert_seats_available(occupancy, table_id, seat_count)
        except ConflictError as e:
            return Availability(
                space_id=cafeteria.space_id,
                interval=interval,
                available=False,
                conflicts=conflicts,
                free_seats=e.free_seats,
                reason=str(e),
            )
        return Availability(
            space_id=cafeteria.space_id,
            interval=interval,
            available=True,
            conflicts=conflicts,
            free_seats=occupancy.free_seats(table_id),
        )
