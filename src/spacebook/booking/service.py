#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""The single entry point every booking screen, console or assistant goes through.

A booking is validated against the policy, checked against the Confirmed
reservations of the space and then written with a conditional write that repeats the
check under the allocation lock, so that two concurrent requests for the last seats
cannot both be granted.
"""

import datetime
import logging
from typing import Any, Sequence

import pydantic

from spacebook.aliases import ReservationId, SpaceId, TableId, UserId
from spacebook.booking.approval import ApprovalWorkflow
from spacebook.booking.availability import (
    Availability,
    AvailabilityChecker,
    confirmation_guard,
)
from spacebook.booking.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from spacebook.booking.reservations import (
    CafeteriaSeating,
    MeetingDetails,
    Reservation,
    ReservationStatus,
)
from spacebook.booking.spaces import Cafeteria, MeetingRoom, SpaceKind, User
from spacebook.booking.state_machine import assert_transition, initial_status
from spacebook.booking.time_utils import (
    Clock,
    parse_date,
    parse_wall_clock,
    system_clock,
)
from spacebook.config import BookingPolicy
from spacebook.store.base import ReservationStore, read_retry

logger = logging.getLogger(__name__)


class BookingService:
    """Books cafeteria seats and meeting rooms on behalf of users.

    Parameters
    ----------
    store
        The reservation store. Reads are retried on transient failures, writes are not.
    policy
        Business rules, see `spacebook.config.BookingPolicy`.
    clock
        Source of "now", for past-date checks and creation timestamps.
    """

    def __init__(
        self,
        store: ReservationStore,
        policy: BookingPolicy | None = None,
        clock: Clock = system_clock,
    ):
        self._store = store
        self._policy = policy or BookingPolicy()
        self._clock = clock
        self.checker = AvailabilityChecker(store, self._policy, clock)
        self.approvals = ApprovalWorkflow(store, self._policy)
        retrying = read_retry(self._policy.read_retries)
        self._get_reservation = retrying(store.get_reservation)
        self._query_reservations_for_user = retrying(store.query_reservations_for_user)

    @property
    def policy(self) -> BookingPolicy:
        return self._policy

    @property
    def store(self) -> ReservationStore:
        return self._store

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
        return self.checker.check(
            space_id,
            date,
            start_time,
            end_time,
            exclude_reservation_id=exclude_reservation_id,
            table_id=table_id,
            seat_count=seat_count,
        )

    def book_cafeteria(
        self,
        requester: User,
        cafeteria_id: SpaceId,
        date: datetime.date | str,
        start_time: datetime.time | str,
        end_time: datetime.time | str,
        table_id: TableId,
        seat_count: int,
    ) -> Reservation:
        """Book `seat_count` seats at a cafeteria table. Granted bookings are Confirmed
        straight away.

        Raises
        ------
        ValidationError if the request breaks the policy (past or future date,
        unknown slot, too many seats).
        NotFoundError if the cafeteria or the table does not exist for the requester.
        ConflictError reporting the seats still free at the table.
        """
        cafeteria = self._get_space_for(requester, cafeteria_id, Cafeteria)
        date = parse_date(date)
        start_time, end_time = parse_wall_clock(start_time), parse_wall_clock(end_time)
        self.checker.validate_new_booking(
            cafeteria, date, start_time, end_time, seat_count=seat_count
        )
        self.checker.check(
            cafeteria_id,
            date,
            start_time,
            end_time,
            table_id=table_id,
            seat_count=seat_count,
        ).raise_for_conflict()
        reservation = self._new_reservation(
            requester,
            cafeteria,
            date,
            start_time,
            end_time,
            payload={"kind": SpaceKind.Cafeteria, "table_id": table_id, "seat_count": seat_count},
        )
        booked = self._store.create_reservation_if(
            reservation,
            guard=confirmation_guard(reservation, cafeteria, self._policy.seats_per_table),
        )
        logger.info(f"Booked {booked} for {requester.uid}")
        return booked

    def request_meeting_room(
        self,
        requester: User,
        room_id: SpaceId,
        date: datetime.date | str,
        start_time: datetime.time | str,
        end_time: datetime.time | str,
        purpose: str,
        participants: Sequence[str] = (),
    ) -> Reservation:
        """Submit a meeting-room request for admin approval.

        Only Confirmed bookings block a request: several pending requests for the same
        slot may coexist, the approval decides between them.

        Raises
        ------
        ValidationError if the request breaks the policy (duration cap, opening hours,
        missing purpose, more attendees than the room holds).
        NotFoundError if the room does not exist for the requester.
        ConflictError naming the Confirmed booking(s) the range overlaps.
        """
        room = self._get_space_for(requester, room_id, MeetingRoom)
        date = parse_date(date)
        start_time, end_time = parse_wall_clock(start_time), parse_wall_clock(end_time)
        self.checker.validate_new_booking(room, date, start_time, end_time)
        if not purpose or not purpose.strip():
            raise ValidationError("A purpose is required to request a meeting room.")
        participants = [p.strip() for p in participants if p and p.strip()]
        # the requester attends too
        if len(participants) + 1 > room.capacity:
            raise ValidationError(
                f"{room.name} holds {room.capacity} people, "
                f"{len(participants) + 1} attendees requested."
            )
        self.checker.check(room_id, date, start_time, end_time).raise_for_conflict()
        reservation = self._new_reservation(
            requester,
            room,
            date,
            start_time,
            end_time,
            payload={
                "kind": SpaceKind.MeetingRoom,
                "purpose": purpose.strip(),
                "participants": participants,
                "employee_id": requester.employee_id,
                "contact": requester.mobile_number or requester.email,
            },
        )
        requested = self._store.create_reservation_if(
            reservation,
            guard=confirmation_guard(reservation, room, self._policy.seats_per_table),
        )
        logger.info(f"Submitted {requested} for approval on behalf of {requester.uid}")
        return requested

    def approve(self, reservation_id: ReservationId) -> Reservation:
        return self.approvals.approve(reservation_id)

    def reject(self, reservation_id: ReservationId) -> Reservation:
        return self.approvals.reject(reservation_id)

    def cancel(self, reservation_id: ReservationId, requester_id: UserId) -> Reservation:
        """Cancel one of the requester's own Confirmed bookings, freeing its seats or
        time range.

        Raises
        ------
        NotFoundError if the reservation does not exist or belongs to someone else.
        InvalidTransitionError if it is not Confirmed.
        """
        reservation = self._get_reservation(reservation_id)
        if reservation.requester_id != requester_id:
            raise NotFoundError(
                f"Reservation '{reservation_id}' not found for user '{requester_id}'"
            )
        assert_transition(reservation.status, ReservationStatus.Cancelled)
        if reservation.status != ReservationStatus.Confirmed:
            raise InvalidTransitionError(
                f"Only Confirmed bookings can be cancelled, {reservation} is "
                f"{reservation.status}"
            )
        cancelled = self._store.transition_status_if(
            reservation_id,
            expected={ReservationStatus.Confirmed},
            new_status=ReservationStatus.Cancelled,
        )
        logger.info(f"Cancelled {cancelled} at the request of {requester_id}")
        return cancelled

    def my_bookings(
        self, uid: UserId, date: datetime.date | str | None = None
    ) -> list[Reservation]:
        """The user's reservations, of every status, in slot order."""
        reservations = self._query_reservations_for_user(uid)
        if date is not None:
            date = parse_date(date)
            reservations = [r for r in reservations if r.date == date]
        return sorted(reservations, key=lambda r: (r.date, r.start_time, r.space_id))

    def _get_space_for(self, requester: User, space_id: SpaceId, kind: type):
        space = self.checker.get_space(space_id)
        if space.org_id != requester.org_id:
            raise NotFoundError(f"Space '{space_id}' not found")
        if not isinstance(space, kind):
            raise ValidationError(
                f"{space.name} is a {space.kind}, not a {kind.__name__}"
            )
        return space

    def _new_reservation(
        self,
        requester: User,
        space: Cafeteria | MeetingRoom,
        date: datetime.date,
        start_time: datetime.time,
        end_time: datetime.time,
        payload: dict[str, Any],
    ) -> Reservation:
        try:
            return Reservation(
                org_id=space.org_id,
                requester_id=requester.uid,
                space_id=space.space_id,
                space_kind=space.kind,
                date=date,
                start_time=start_time,
                end_time=end_time,
                status=initial_status(space.kind),
                payload=payload,
                created_at=self._clock(),
            )
        except pydantic.ValidationError as e:
            raise ValidationError(str(e)) from e
