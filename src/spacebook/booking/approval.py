#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Admin decisions on meeting-room requests.

An approval is only committed after the request is re-checked against the Confirmed
reservations present *at approval time*: other requests for the same room may have
been approved since this one was submitted.
"""

import logging

from spacebook.aliases import OrgId, ReservationId
from spacebook.booking.availability import confirmation_guard
from spacebook.booking.exceptions import ConflictError, InvalidTransitionError
from spacebook.booking.reservations import Reservation, ReservationStatus
from spacebook.booking.state_machine import PENDING_STATUSES, assert_transition
from spacebook.config import BookingPolicy
from spacebook.store.base import ReservationStore, read_retry

logger = logging.getLogger(__name__)


class ApprovalWorkflow:
    def __init__(self, store: ReservationStore, policy: BookingPolicy | None = None):
        self._store = store
        self._policy = policy or BookingPolicy()
        retrying = read_retry(self._policy.read_retries)
        self._get_reservation = retrying(store.get_reservation)
        self._get_space = retrying(store.get_space)
        self._query_reservations_for_org = retrying(store.query_reservations_for_org)

    def approve(self, reservation_id: ReservationId) -> Reservation:
        """Confirm a pending request if it still fits.

        Raises
        ------
        NotFoundError if the reservation does not exist.
        InvalidTransitionError if it is no longer pending.
        ConflictError naming the Confirmed reservation(s) it now overlaps; the request
        is left pending.
        """
        reservation = self._get_reservation(reservation_id)
        assert_transition(reservation.status, ReservationStatus.Confirmed)
        space = self._get_space(reservation.space_id)
        try:
            approved = self._store.transition_status_if(
                reservation_id,
                expected=PENDING_STATUSES,
                new_status=ReservationStatus.Confirmed,
                guard=confirmation_guard(
                    reservation, space, self._policy.seats_per_table
                ),
            )
        except ConflictError as e:
            logger.warning(f"Approval of {reservation} refused: {e}")
            raise
        logger.info(f"Approved {approved}")
        return approved

    def reject(self, reservation_id: ReservationId) -> Reservation:
        """Raises
        ------
        NotFoundError, InvalidTransitionError
        """
        reservation = self._get_reservation(reservation_id)
        assert_transition(reservation.status, ReservationStatus.Cancelled)
        if not reservation.status.is_pending:
            raise InvalidTransitionError(
                f"Only pending requests can be rejected, {reservation} is "
                f"{reservation.status}"
            )
        rejected = self._store.transition_status_if(
            reservation_id,
            expected=PENDING_STATUSES,
            new_status=ReservationStatus.Cancelled,
        )
        logger.info(f"Rejected {rejected}")
        return rejected

    def pending(self, org_id: OrgId) -> list[Reservation]:
        """Requests of an organisation awaiting a decision, oldest slot first."""
        reservations = self._query_reservations_for_org(
            org_id, status_in=PENDING_STATUSES
        )
        return sorted(reservations, key=lambda r: (r.date, r.start_time, r.space_id))
