#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""The repository interface the booking core talks to.

The core never holds on to reservation state: every decision is taken on a fresh read
from a `ReservationStore`. Writes whose validity depends on the current set of
Confirmed reservations go through `create_reservation_if` / `transition_status_if`,
which serialise on an `AllocationKey` and re-run the caller's guard on data read under
that lock. A backend with native transactions should override these two methods with a
single conditional transaction.
"""

import contextlib
import datetime
import logging
from abc import ABC, abstractmethod
from enum import StrEnum, auto
from typing import Callable, Collection, NamedTuple, Self, TypeVar

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from spacebook.aliases import OrgId, ReservationId, SpaceId, TableId, UserId
from spacebook.booking.exceptions import InvalidTransitionError, TransientStoreError
from spacebook.booking.reservations import Reservation, ReservationStatus
from spacebook.booking.spaces import Cafeteria, MeetingRoom, User
from spacebook.config import ReadRetrySettings
from spacebook.store.utils import NOT_GIVEN, NotGiven

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)


class AllocationKey(NamedTuple):
    """The unit of mutual exclusion for capacity-dependent writes.

    Cafeteria tables are independent of each other, so cafeteria keys include the
    table. Meeting-room keys cover the whole day: two different slots of the same room
    may overlap, so the slot cannot be part of the key.
    """

    space_id: SpaceId
    date: datetime.date
    table_id: TableId | None = None

    @classmethod
    def for_reservation(cls, reservation: Reservation) -> Self:
        return cls(reservation.space_id, reservation.date, reservation.table_id)


Guard = Callable[[list[Reservation]], None]
"""Receives the Confirmed reservations under an allocation key and raises to veto a
write."""


class ChangeType(StrEnum):
    ADDED = auto()
    MODIFIED = auto()


class ReservationChange(NamedTuple):
    change_type: ChangeType
    reservation: Reservation


ChangeListener = Callable[[ReservationChange], None]


def read_retry(settings: ReadRetrySettings) -> Callable[[F], F]:
    """Retry a store read on `TransientStoreError` with bounded, randomised
    exponential backoff. Never wrap writes with this: a write that failed
    mid-flight may have been applied."""
    return retry(
        wait=wait_random_exponential(
            multiplier=settings.multiplier, max=settings.max_wait_seconds
        ),
        stop=stop_after_attempt(settings.attempts),
        retry=retry_if_exception_type(TransientStoreError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class ReservationStore(ABC):
    """Access to spaces, users and reservations of every organisation."""

    @abstractmethod
    def add_user(self, user: User) -> None:
        """Provisioning. Used to seed stores, never by booking decisions."""

    @abstractmethod
    def add_space(self, space: Cafeteria | MeetingRoom) -> None:
        """Provisioning. Used to seed stores, never by booking decisions."""

    @abstractmethod
    def get_space(self, space_id: SpaceId) -> Cafeteria | MeetingRoom:
        """Raises
        ------
        NotFoundError if `space_id` is unknown.
        """

    @abstractmethod
    def query_spaces(self, org_id: OrgId) -> list[Cafeteria | MeetingRoom]:
        pass

    @abstractmethod
    def query_users(self, uids: Collection[UserId]) -> list[User]:
        pass

    @abstractmethod
    def get_reservation(self, reservation_id: ReservationId) -> Reservation:
        """Raises
        ------
        NotFoundError if `reservation_id` is unknown.
        """

    @abstractmethod
    def query_reservations(
        self,
        space_id: SpaceId,
        date: datetime.date | NotGiven = NOT_GIVEN,
        status_in: Collection[ReservationStatus] | NotGiven = NOT_GIVEN,
    ) -> list[Reservation]:
        pass

    @abstractmethod
    def query_reservations_for_org(
        self,
        org_id: OrgId,
        status_in: Collection[ReservationStatus] | NotGiven = NOT_GIVEN,
    ) -> list[Reservation]:
        pass

    @abstractmethod
    def query_reservations_for_user(self, uid: UserId) -> list[Reservation]:
        pass

    @abstractmethod
    def create_reservation(self, reservation: Reservation) -> ReservationId:
        """Persist a new reservation and return its id. Unconditional."""

    @abstractmethod
    def update_reservation_status(
        self, reservation_id: ReservationId, new_status: ReservationStatus
    ) -> None:
        """Unconditional status update; the only mutation a reservation supports."""

    @abstractmethod
    def lock(self, key: AllocationKey) -> contextlib.AbstractContextManager[None]:
        """Hold exclusive access to the reservations under `key`."""

    @abstractmethod
    def subscribe(self, space_id: SpaceId, listener: ChangeListener) -> Callable[[], None]:
        """Notify `listener` of every reservation added to or modified on `space_id`.
        Returns a callable that removes the subscription.

        Listeners are called after the change is committed and outside any allocation
        lock. An exception raised by a listener is logged and does not undo or fail
        the write."""

    def confirmed_under(self, key: AllocationKey) -> list[Reservation]:
        reservations = self.query_reservations(
            key.space_id, date=key.date, status_in=[ReservationStatus.Confirmed]
        )
        if key.table_id is not None:
            reservations = [r for r in reservations if r.table_id == key.table_id]
        return reservations

    def create_reservation_if(self, reservation: Reservation, guard: Guard) -> Reservation:
        """Create `reservation` only if `guard` accepts the Confirmed reservations
        read under the reservation's allocation key."""
        key = AllocationKey.for_reservation(reservation)
        with self.lock(key):
            guard(self.confirmed_under(key))
            reservation_id = self.create_reservation(reservation)
        return reservation.model_copy(update={"reservation_id": reservation_id})

    def transition_status_if(
        self,
        reservation_id: ReservationId,
        expected: Collection[ReservationStatus],
        new_status: ReservationStatus,
        guard: Guard | None = None,
    ) -> Reservation:
        """Compare-and-swap the status of a reservation.

        Raises
        ------
        InvalidTransitionError if the status changed from `expected` meanwhile.
        ConflictError (or any error) raised by `guard`; the status is then unchanged.
        """
        key = AllocationKey.for_reservation(self.get_reservation(reservation_id))
        with self.lock(key):
            current = self.get_reservation(reservation_id)
            if current.status not in expected:
                raise InvalidTransitionError(
                    f"Reservation {reservation_id} is {current.status}, "
                    f"expected one of {sorted(str(s) for s in expected)}"
                )
            if guard is not None:
                guard(self.confirmed_under(key))
            self.update_reservation_status(reservation_id, new_status)
        return current.with_status(new_status)
