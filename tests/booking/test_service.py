#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
import datetime
import itertools

import pytest

from spacebook.booking.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from spacebook.booking.reservations import MeetingDetails, ReservationStatus
from spacebook.booking.service import BookingService
from spacebook.booking.time_utils import TimeInterval
from spacebook.simulation.seed import create_booking

NOON, ONE_PM = datetime.time(12), datetime.time(13)


def t(hour: int, minute: int = 0) -> datetime.time:
    return datetime.time(hour, minute)


def assert_store_invariants(store, seats_per_table: int = 4):
    """No two Confirmed reservations overlap on a meeting room, and no cafeteria
    table holds more than its seats in any slot."""
    confirmed = [
        r
        for r in store.query_reservations_for_org("acme", [ReservationStatus.Confirmed])
    ]
    rooms = [r for r in confirmed if r.table_id is None]
    for a, b in itertools.combinations(rooms, 2):
        if a.space_id == b.space_id and a.date == b.date:
            assert not a.interval.overlaps(b.interval), (a, b)
    seats = [r for r in confirmed if r.table_id is not None]
    for r in seats:
        taken = sum(
            o.seat_count
            for o in seats
            if (o.space_id, o.table_id, o.date) == (r.space_id, r.table_id, r.date)
            and o.interval.overlaps(r.interval)
        )
        assert taken <= seats_per_table, r


def test_scenario_seats_beyond_table_capacity_are_refused(service, users, canteen, today):
    first = service.book_cafeteria(
        users["bob"], canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=3
    )
    assert first.status == ReservationStatus.Confirmed
    assert first.reservation_id is not None

    with pytest.raises(ConflictError) as exc_info:
        service.book_cafeteria(
            users["carol"], canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=2
        )

    assert exc_info.value.free_seats == 1
    assert "Only 1 seat(s) are available at table T1" in str(exc_info.value)
    assert len(service.my_bookings(users["carol"].uid)) == 0
    assert_store_invariants(service.store)


def test_scenario_pending_requests_coexist_until_approval(service, users, room_a, today):
    request_1 = service.request_meeting_room(
        users["bob"], room_a.space_id, today, t(9), t(10), purpose="Planning"
    )
    request_2 = service.request_meeting_room(
        users["carol"], room_a.space_id, today, t(9, 30), t(10, 30), purpose="Review"
    )
    assert request_1.status == ReservationStatus.RequiresApproval
    assert request_2.status == ReservationStatus.RequiresApproval

    assert service.approve(request_1.reservation_id).status == ReservationStatus.Confirmed
    with pytest.raises(ConflictError) as exc_info:
        service.approve(request_2.reservation_id)

    assert exc_info.value.conflicts[0].reservation_id == request_1.reservation_id
    assert "09:00-10:00" in str(exc_info.value)
    assert service.store.get_reservation(request_2.reservation_id).status == (
        ReservationStatus.RequiresApproval
    )
    assert_store_invariants(service.store)


def test_scenario_meeting_longer_than_cap_is_a_validation_error(
    service, users, room_a, today, monkeypatch
):
    def fail(*args, **kwargs):
        raise AssertionError("availability must not be checked")

    monkeypatch.setattr(service.checker, "check", fail)
    with pytest.raises(ValidationError, match="3 hours"):
        service.request_meeting_room(
            users["bob"], room_a.space_id, today, t(9), t(13), purpose="Workshop"
        )


def test_scenario_cancelling_frees_the_seats(service, users, canteen, today):
    booking = service.book_cafeteria(
        users["bob"], canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=3
    )
    before = service.check(canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=3)
    assert not before.available

    cancelled = service.cancel(booking.reservation_id, users["bob"].uid)

    assert cancelled.status == ReservationStatus.Cancelled
    after = service.check(canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=3)
    assert after.available
    assert after.free_seats == 4


def test_confirmed_meeting_blocks_new_requests(service, users, room_a, store, today):
    create_booking(store, room_a, "u-alice", TimeInterval.on(today, t(9), t(10)))
    with pytest.raises(ConflictError):
        service.request_meeting_room(
            users["bob"], room_a.space_id, today, t(9, 30), t(10), purpose="Sync"
        )
    adjacent = service.request_meeting_room(
        users["bob"], room_a.space_id, today, t(10), t(11), purpose="Sync"
    )
    assert adjacent.status == ReservationStatus.RequiresApproval


def test_meeting_request_records_requester_details(service, users, room_a, today):
    request = service.request_meeting_room(
        users["bob"],
        room_a.space_id,
        today,
        t(9),
        t(10),
        purpose="  Planning ",
        participants=["carol_marin@acme.example", " "],
    )
    assert isinstance(request.payload, MeetingDetails)
    assert request.payload.purpose == "Planning"
    assert request.payload.participants == ["carol_marin@acme.example"]
    assert request.payload.employee_id == "E-2"
    assert request.payload.contact == users["bob"].mobile_number
    assert request.created_at == datetime.datetime.combine(today, t(8))


@pytest.mark.parametrize("purpose", ["", "   "])
def test_meeting_request_requires_a_purpose(service, users, room_a, today, purpose):
    with pytest.raises(ValidationError, match="purpose"):
        service.request_meeting_room(users["bob"], room_a.space_id, today, t(9), t(10), purpose)


def test_meeting_request_over_room_capacity(service, users, room_b, today):
    with pytest.raises(ValidationError, match="holds 4 people"):
        service.request_meeting_room(
            users["bob"],
            room_b.space_id,
            today,
            t(9),
            t(10),
            purpose="All hands",
            participants=["a", "b", "c", "d"],
        )


def test_spaces_of_other_orgs_are_not_found(service, users, canteen, room_a, today):
    with pytest.raises(NotFoundError):
        service.book_cafeteria(
            users["mallory"], canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=1
        )
    with pytest.raises(NotFoundError):
        service.request_meeting_room(
            users["mallory"], room_a.space_id, today, t(9), t(10), purpose="Sync"
        )


def test_space_kind_must_match(service, users, canteen, room_a, today):
    with pytest.raises(ValidationError):
        service.book_cafeteria(
            users["bob"], room_a.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=1
        )
    with pytest.raises(ValidationError):
        service.request_meeting_room(
            users["bob"], canteen.space_id, today, NOON, ONE_PM, purpose="Lunch"
        )


def test_unknown_table(service, users, canteen, today):
    with pytest.raises(NotFoundError):
        service.book_cafeteria(
            users["bob"], canteen.space_id, today, NOON, ONE_PM, table_id="T42", seat_count=1
        )


def test_string_inputs_are_parsed(service, users, canteen, today):
    booking = service.book_cafeteria(
        users["bob"], canteen.space_id, today.isoformat(), "12:00", "13:00", "T2", 2
    )
    assert booking.interval == TimeInterval.on(today, NOON, ONE_PM)


def test_only_the_owner_can_cancel(service, users, canteen, today):
    booking = service.book_cafeteria(
        users["bob"], canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=1
    )
    with pytest.raises(NotFoundError):
        service.cancel(booking.reservation_id, users["carol"].uid)
    assert service.store.get_reservation(booking.reservation_id).status == (
        ReservationStatus.Confirmed
    )


def test_only_confirmed_bookings_can_be_cancelled(service, users, room_a, canteen, today):
    request = service.request_meeting_room(
        users["bob"], room_a.space_id, today, t(9), t(10), purpose="Sync"
    )
    with pytest.raises(InvalidTransitionError):
        service.cancel(request.reservation_id, users["bob"].uid)

    booking = service.book_cafeteria(
        users["bob"], canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=1
    )
    service.cancel(booking.reservation_id, users["bob"].uid)
    with pytest.raises(InvalidTransitionError):
        service.cancel(booking.reservation_id, users["bob"].uid)


def test_reject_then_slot_is_free_for_others(service, users, room_a, today):
    request = service.request_meeting_room(
        users["bob"], room_a.space_id, today, t(9), t(10), purpose="Sync"
    )
    service.reject(request.reservation_id)
    other = service.request_meeting_room(
        users["carol"], room_a.space_id, today, t(9), t(10), purpose="Sync"
    )
    assert service.approve(other.reservation_id).status == ReservationStatus.Confirmed


def test_my_bookings_sorted_and_filtered(service, users, canteen, room_a, today):
    tomorrow = today + datetime.timedelta(days=1)
    late = service.request_meeting_room(
        users["bob"], room_a.space_id, tomorrow, t(9), t(10), purpose="Sync"
    )
    lunch = service.book_cafeteria(
        users["bob"], canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=1
    )
    early = service.request_meeting_room(
        users["bob"], room_a.space_id, today, t(9), t(10), purpose="Sync"
    )
    service.book_cafeteria(
        users["carol"], canteen.space_id, today, NOON, ONE_PM, table_id="T1", seat_count=1
    )

    assert [r.reservation_id for r in service.my_bookings(users["bob"].uid)] == [
        early.reservation_id,
        lunch.reservation_id,
        late.reservation_id,
    ]
    assert [r.reservation_id for r in service.my_bookings(users["bob"].uid, today)] == [
        early.reservation_id,
        lunch.reservation_id,
    ]


def test_random_booking_sequence_keeps_invariants(store, policy, clock, users, canteen, room_a, today):
    service = BookingService(store, policy, clock=clock)
    requesters = [users["alice"], users["bob"], users["carol"]]
    slots = policy.parsed_cafeteria_slots()
    ids = []
    for i in range(60):
        requester = requesters[i % 3]
        start, end = slots[i % len(slots)]
        try:
            service.book_cafeteria(
                requester, canteen.space_id, today, start, end, f"T{i % 3 + 1}", i % 3 + 1
            )
        except ConflictError:
            pass
        hour = 7 + (i * 5) % 10
        try:
            ids.append(
                service.request_meeting_room(
                    requester, room_a.space_id, today, t(hour), t(hour + 1, 30), purpose="x"
                ).reservation_id
            )
        except ConflictError:
            pass
        if ids and i % 4 == 0:
            try:
                service.approve(ids.pop(0))
            except (ConflictError, InvalidTransitionError):
                pass
    assert_store_invariants(store, policy.seats_per_table)
