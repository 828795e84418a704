#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Reservation lifecycle.

Cafeteria bookings start Confirmed. Meeting-room requests start as Requires Approval
and are either approved (Confirmed) or rejected (Cancelled). A Confirmed booking can
only be cancelled. Cancelled and Rejected are terminal.
"""

from spacebook.booking.exceptions import InvalidTransitionError
from spacebook.booking.reservations import ReservationStatus
from spacebook.booking.spaces import SpaceKind

BOOKING_TRANSITIONS: dict[ReservationStatus, frozenset[ReservationStatus]] = {
    ReservationStatus.RequiresApproval: frozenset(
        {ReservationStatus.Confirmed, ReservationStatus.Cancelled}
    ),
    ReservationStatus.Pending: frozenset(
        {ReservationStatus.Confirmed, ReservationStatus.Cancelled}
    ),
    ReservationStatus.Confirmed: frozenset({ReservationStatus.Cancelled}),
    ReservationStatus.Cancelled: frozenset(),
    ReservationStatus.Rejected: frozenset(),
}

def initial_status(space_kind: SpaceKind) -> ReservationStatus:
    if space_kind == SpaceKind.Cafeteria:
        return ReservationStatus.Confirmed
    return ReservationStatus.RequiresApproval


def can_transition(current: ReservationStatus, new_status: ReservationStatus) -> bool:
    return new_status in BOOKING_TRANSITIONS[current]


def sources_of(new_status: ReservationStatus) -> frozenset[ReservationStatus]:
    """Every status a reservation may be in to move to `new_status`."""
    return frozenset(s for s, targets in BOOKING_TRANSITIONS.items() if new_status in targets)


# requests awaiting an admin decision; legacy Pending records count as Requires Approval
PENDING_STATUSES = sources_of(ReservationStatus.Confirmed)


def assert_transition(current: ReservationStatus, new_status: ReservationStatus) -> None:
    """Raises
    ------
    InvalidTransitionError if the lifecycle does not allow `current` -> `new_status`.
    """
    if not can_transition(current, new_status):
        if current.is_terminal:
            raise InvalidTransitionError(
                f"Reservation is {current}: no further changes are possible"
            )
        raise InvalidTransitionError(f"Cannot move a reservation from {current} to {new_status}")
