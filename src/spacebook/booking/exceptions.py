#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from spacebook.booking.availability import Conflict


class BookingError(Exception):
    pass


class ValidationError(BookingError):
    """Malformed booking input (end before start, past date, missing field, too many
    seats, ...). Never retried."""


class InvalidTransitionError(ValidationError):
    pass


class ConflictError(BookingError):
    """An overlap or capacity violation was detected.

    Attributes
    ----------
    conflicts
        The Confirmed reservations the request collides with, with their time windows.
        Empty for pure seat-capacity failures where no single reservation is to blame.
    free_seats
        For cafeteria requests, the number of seats still free at the requested table.
    """

    def __init__(
        self,
        message: str,
        conflicts: Sequence["Conflict"] = (),
        free_seats: int | None = None,
    ):
        super().__init__(message)
        self.conflicts = list(conflicts)
        self.free_seats = free_seats


class NotFoundError(BookingError):
    pass


class TransientStoreError(BookingError):
    """The underlying store could not complete a read or a write (network, quota)."""
