#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""A live view of the reservations on one space, eg for a calendar screen.

The view loads once and then applies change events as they arrive, without
re-reading the store. Booking decisions never use it: they always read from the
store.
"""

import datetime
import logging
import threading
from typing import Callable

from spacebook.aliases import ReservationId, SpaceId
from spacebook.booking.reservations import Reservation, ReservationStatus
from spacebook.store.base import ChangeType, ReservationChange, ReservationStore

logger = logging.getLogger(__name__)


class LiveSchedule:
    def __init__(self, store: ReservationStore, space_id: SpaceId):
        self._store = store
        self.space_id = space_id
        self._reservations: dict[ReservationId, Reservation] = {}
        self._lock = threading.Lock()
        self._unsubscribe: Callable[[], None] | None = None
        self.applied_changes = 0

    def attach(self) -> "LiveSchedule":
        """Subscribe to the space, then load its current reservations."""
        if self._unsubscribe is not None:
            return self
        self._unsubscribe = self._store.subscribe(self.space_id, self.apply)
        for reservation in self._store.query_reservations(self.space_id):
            with self._lock:
                self._reservations.setdefault(reservation.reservation_id, reservation)
        logger.debug(f"Live schedule of {self.space_id} attached")
        return self

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def __enter__(self) -> "LiveSchedule":
        return self.attach()

    def __exit__(self, *exc_info) -> None:
        self.detach()

    def apply(self, change: ReservationChange) -> None:
        """Upsert the reservation carried by `change`."""
        reservation = change.reservation
        if reservation.space_id != self.space_id:
            return
        with self._lock:
            if (
                change.change_type == ChangeType.ADDED
                and reservation.reservation_id in self._reservations
            ):
                logger.debug(f"Ignoring duplicate {change.change_type} for {reservation}")
                return
            self._reservations[reservation.reservation_id] = reservation
            self.applied_changes += 1

    def reservations(self, date: datetime.date | None = None) -> list[Reservation]:
        with self._lock:
            reservations = list(self._reservations.values())
        if date is not None:
            reservations = [r for r in reservations if r.date == date]
        return sorted(reservations, key=lambda r: (r.date, r.start_time))

    def confirmed_on(self, date: datetime.date) -> list[Reservation]:
        return [
            r for r in self.reservations(date) if r.status == ReservationStatus.Confirmed
        ]
