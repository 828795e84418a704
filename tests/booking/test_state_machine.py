#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
import pytest

from spacebook.booking.exceptions import InvalidTransitionError, ValidationError
from spacebook.booking.reservations import ReservationStatus
from spacebook.booking.spaces import SpaceKind
from spacebook.booking.state_machine import (
    BOOKING_TRANSITIONS,
    PENDING_STATUSES,
    assert_transition,
    can_transition,
    initial_status,
    sources_of,
)

S = ReservationStatus

ALLOWED = {
    (S.RequiresApproval, S.Confirmed),
    (S.RequiresApproval, S.Cancelled),
    (S.Pending, S.Confirmed),
    (S.Pending, S.Cancelled),
    (S.Confirmed, S.Cancelled),
}


@pytest.mark.parametrize("current", list(S))
@pytest.mark.parametrize("new_status", list(S))
def test_transitions(current: ReservationStatus, new_status: ReservationStatus):
    expected = (current, new_status) in ALLOWED
    assert can_transition(current, new_status) is expected
    if expected:
        assert_transition(current, new_status)
    else:
        with pytest.raises(InvalidTransitionError):
            assert_transition(current, new_status)


def test_every_status_has_an_entry():
    assert set(BOOKING_TRANSITIONS) == set(S)


def test_terminal_statuses_have_no_way_out():
    for status in S:
        if status.is_terminal:
            assert not BOOKING_TRANSITIONS[status]


def test_invalid_transition_is_a_validation_error():
    with pytest.raises(ValidationError, match="no further changes"):
        assert_transition(S.Cancelled, S.Confirmed)


def test_initial_status():
    assert initial_status(SpaceKind.Cafeteria) == S.Confirmed
    assert initial_status(SpaceKind.MeetingRoom) == S.RequiresApproval


def test_pending_is_treated_as_requires_approval():
    assert PENDING_STATUSES == {S.RequiresApproval, S.Pending}
    assert S.Pending.is_pending and S.RequiresApproval.is_pending
    assert sources_of(S.Confirmed) == {S.RequiresApproval, S.Pending}
    assert sources_of(S.Cancelled) == {S.RequiresApproval, S.Pending, S.Confirmed}
