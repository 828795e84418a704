#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Labels reservations with user and space names for display.

Enrichment is cosmetic: a lookup that fails degrades to a placeholder name and is
logged, it never fails the listing.
"""

import logging
from typing import Collection

from pydantic import BaseModel

from spacebook.aliases import OrgId, SpaceId, UserId
from spacebook.booking.exceptions import BookingError
from spacebook.booking.reservations import Reservation, ReservationStatus
from spacebook.constants import ANONYMOUS_USER, UNKNOWN_SPACE, UNKNOWN_USER
from spacebook.store.base import ReservationStore
from spacebook.store.utils import NOT_GIVEN, NotGiven

logger = logging.getLogger(__name__)

APPROVAL_BOARD_STATUSES = (
    ReservationStatus.RequiresApproval,
    ReservationStatus.Pending,
    ReservationStatus.Confirmed,
)


class EnrichedReservation(BaseModel, frozen=True):
    reservation: Reservation
    requester_name: str
    space_name: str


class ReservationEnricher:
    def __init__(self, store: ReservationStore):
        self._store = store

    def enrich(self, reservations: list[Reservation]) -> list[EnrichedReservation]:
        user_names = self._user_names({r.requester_id for r in reservations})
        space_names = self._space_names({r.org_id for r in reservations})
        return [
            EnrichedReservation(
                reservation=r,
                requester_name=user_names.get(r.requester_id, UNKNOWN_USER),
                space_name=space_names.get(r.space_id, UNKNOWN_SPACE),
            )
            for r in reservations
        ]

    def approval_board(
        self,
        org_id: OrgId,
        status_in: Collection[ReservationStatus] | NotGiven = NOT_GIVEN,
    ) -> list[EnrichedReservation]:
        """Pending and Confirmed reservations of an organisation, in slot order, as
        shown to admins."""
        if isinstance(status_in, NotGiven):
            status_in = APPROVAL_BOARD_STATUSES
        reservations = self._store.query_reservations_for_org(org_id, status_in=status_in)
        reservations.sort(key=lambda r: (r.date, r.start_time, r.space_id))
        return self.enrich(reservations)

    def _user_names(self, uids: set[UserId]) -> dict[UserId, str]:
        try:
            users = self._store.query_users(sorted(uids))
        except BookingError as e:
            logger.warning(f"Could not look up users {sorted(uids)}: {e}")
            return {}
        return {u.uid: u.full_name or ANONYMOUS_USER for u in users}

    def _space_names(self, org_ids: set[OrgId]) -> dict[SpaceId, str]:
        names = {}
        for org_id in org_ids:
            try:
                spaces = self._store.query_spaces(org_id)
            except BookingError as e:
                logger.warning(f"Could not look up spaces of {org_id}: {e}")
                continue
            names.update({s.space_id: s.name for s in spaces})
        return names
