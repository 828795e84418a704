#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
import datetime
import gc
import json
import logging

import polars as pl
import pytest

from spacebook.booking.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from spacebook.booking.reservations import ReservationStatus
from spacebook.booking.spaces import Cafeteria, MeetingRoom
from spacebook.booking.time_utils import TimeInterval
from spacebook.simulation.seed import create_booking, create_user
from spacebook.store.base import AllocationKey, ChangeType
from spacebook.store.database_schemas import DatabaseNamespace
from spacebook.store.memory import InMemoryReservationStore
from spacebook.store.utils import (
    NOT_GIVEN,
    equal_to,
    one_of,
    select_rows,
)


def _slot(today, hour, minutes=60):
    start = datetime.datetime.combine(today, datetime.time(hour))
    return TimeInterval(start, start + datetime.timedelta(minutes=minutes))


@pytest.fixture
def populated_store(store, users, canteen, room_a, room_b, today):
    create_booking(store, room_a, "u-bob", _slot(today, 9), purpose="Standup")
    create_booking(
        store,
        room_a,
        "u-carol",
        _slot(today, 10),
        status=ReservationStatus.RequiresApproval,
        purpose="Review",
    )
    create_booking(
        store, room_a, "u-bob", _slot(today + datetime.timedelta(days=1), 9), purpose="Standup"
    )
    create_booking(store, canteen, "u-carol", _slot(today, 12), table_id="T2", seat_count=2)
    return store


def test_get_space_returns_the_right_variant(populated_store, canteen, room_a):
    cafeteria = populated_store.get_space(canteen.space_id)
    room = populated_store.get_space(room_a.space_id)
    assert isinstance(cafeteria, Cafeteria) and cafeteria == canteen
    assert cafeteria.capacity == 12
    assert isinstance(room, MeetingRoom) and room == room_a
    with pytest.raises(NotFoundError):
        populated_store.get_space("nope")


def test_query_spaces_is_per_org(populated_store, canteen, room_a, room_b):
    assert {s.space_id for s in populated_store.query_spaces("acme")} == {
        canteen.space_id,
        room_a.space_id,
        room_b.space_id,
    }
    assert populated_store.query_spaces("globex") == []


def test_query_users(populated_store, users):
    found = populated_store.query_users(["u-bob", "u-carol", "u-ghost"])
    assert sorted(u.uid for u in found) == ["u-bob", "u-carol"]
    assert found[0] in users.values()
    assert populated_store.query_users([]) == []


def test_query_reservations_filters(populated_store, room_a, today):
    assert len(populated_store.query_reservations(room_a.space_id)) == 3
    assert len(populated_store.query_reservations(room_a.space_id, date=today)) == 2
    confirmed = populated_store.query_reservations(
        room_a.space_id, date=today, status_in=[ReservationStatus.Confirmed]
    )
    assert [r.payload.purpose for r in confirmed] == ["Standup"]


def test_query_reservations_for_org_and_user(populated_store):
    assert len(populated_store.query_reservations_for_org("acme")) == 4
    pending = populated_store.query_reservations_for_org(
        "acme", status_in=[ReservationStatus.RequiresApproval]
    )
    assert [r.requester_id for r in pending] == ["u-carol"]
    assert len(populated_store.query_reservations_for_user("u-carol")) == 2


def test_reservation_round_trips_through_the_table(populated_store, canteen):
    [seating] = populated_store.query_reservations(canteen.space_id)
    assert seating.table_id == "T2"
    assert seating.seat_count == 2
    assert populated_store.get_reservation(seating.reservation_id) == seating


def test_status_update_is_the_only_mutation(populated_store, room_a, today):
    [pending] = populated_store.query_reservations(
        room_a.space_id, status_in=[ReservationStatus.RequiresApproval]
    )
    populated_store.update_reservation_status(pending.reservation_id, ReservationStatus.Cancelled)
    assert populated_store.get_reservation(pending.reservation_id) == pending.with_status(
        ReservationStatus.Cancelled
    )
    with pytest.raises(NotFoundError):
        populated_store.update_reservation_status("nope", ReservationStatus.Cancelled)


def test_unknown_columns_and_duplicate_keys_are_rejected(store, users):
    with pytest.raises(KeyError):
        store.add_to_database(DatabaseNamespace.USERS, rows=[{"uid": "x", "nickname": "y"}])
    with pytest.raises(KeyError):
        create_user(store, "acme", "Bob Again", uid="u-bob")


def test_create_reservation_if_vetoed_writes_nothing(store, room_a, today):
    booking = create_booking(store, room_a, "u-bob", _slot(today, 9))
    candidate = booking.model_copy(update={"reservation_id": None})

    def veto(confirmed):
        assert [r.reservation_id for r in confirmed] == [booking.reservation_id]
        raise ConflictError("taken")

    with pytest.raises(ConflictError):
        store.create_reservation_if(candidate, guard=veto)
    assert len(store.query_reservations(room_a.space_id)) == 1

    created = store.create_reservation_if(candidate, guard=lambda confirmed: None)
    assert created.reservation_id not in (None, booking.reservation_id)


def test_confirmed_under_a_table_key(store, canteen, today):
    create_booking(store, canteen, "u-bob", _slot(today, 12), table_id="T1", seat_count=1)
    create_booking(store, canteen, "u-bob", _slot(today, 12), table_id="T2", seat_count=1)
    assert len(store.confirmed_under(AllocationKey(canteen.space_id, today, "T1"))) == 1
    assert len(store.confirmed_under(AllocationKey(canteen.space_id, today))) == 2


def test_transition_status_if_compares_the_current_status(store, room_a, today):
    booking = create_booking(store, room_a, "u-bob", _slot(today, 9))
    with pytest.raises(InvalidTransitionError):
        store.transition_status_if(
            booking.reservation_id,
            expected={ReservationStatus.RequiresApproval},
            new_status=ReservationStatus.Confirmed,
        )
    cancelled = store.transition_status_if(
        booking.reservation_id,
        expected={ReservationStatus.Confirmed},
        new_status=ReservationStatus.Cancelled,
    )
    assert cancelled.status == ReservationStatus.Cancelled


def test_subscribers_are_notified_until_they_unsubscribe(store, room_a, room_b, today):
    changes = []
    unsubscribe = store.subscribe(room_a.space_id, changes.append)

    booking = create_booking(store, room_a, "u-bob", _slot(today, 9))
    create_booking(store, room_b, "u-bob", _slot(today, 9))
    store.update_reservation_status(booking.reservation_id, ReservationStatus.Cancelled)
    unsubscribe()
    create_booking(store, room_a, "u-bob", _slot(today, 11))

    assert [c.change_type for c in changes] == [ChangeType.ADDED, ChangeType.MODIFIED]
    assert changes[1].reservation.status == ReservationStatus.Cancelled


def test_a_failing_listener_does_not_fail_a_committed_booking(
    store, service, users, canteen, today, caplog
):
    def crashing_display(change):
        raise RuntimeError("display crashed")

    store.subscribe(canteen.space_id, crashing_display)
    with caplog.at_level(logging.ERROR):
        booked = service.book_cafeteria(
            users["bob"],
            canteen.space_id,
            today,
            datetime.time(12),
            datetime.time(13),
            table_id="T1",
            seat_count=2,
        )

    assert booked.status == ReservationStatus.Confirmed
    stored = store.query_reservations(canteen.space_id)
    assert [(r.status, r.seat_count) for r in stored] == [(ReservationStatus.Confirmed, 2)]
    assert "display crashed" in caplog.text


def test_listeners_run_after_the_allocation_lock_is_released(store, room_a, today):
    booking = create_booking(
        store,
        room_a,
        "u-bob",
        _slot(today, 9),
        status=ReservationStatus.RequiresApproval,
    )
    key = AllocationKey(room_a.space_id, today)
    lock_held = []

    def observer(change):
        key_lock = store._key_locks.get(key)
        lock_held.append(key_lock is not None and key_lock.locked())

    store.subscribe(room_a.space_id, observer)
    store.transition_status_if(
        booking.reservation_id,
        expected={ReservationStatus.RequiresApproval},
        new_status=ReservationStatus.Confirmed,
        guard=lambda confirmed: None,
    )

    assert lock_held == [False]


def test_allocation_locks_are_released_once_unused(store, room_a, today):
    booking = create_booking(store, room_a, "u-bob", _slot(today, 9))
    for days_ahead in range(1, 6):
        store.create_reservation_if(
            booking.model_copy(
                update={
                    "reservation_id": None,
                    "date": today + datetime.timedelta(days=days_ahead),
                }
            ),
            guard=lambda confirmed: None,
        )
    gc.collect()

    assert len(store._key_locks) == 0


def test_to_dict_from_dict(populated_store):
    serialized = populated_store.to_dict()
    # survives a trip through JSON
    restored = InMemoryReservationStore.from_dict(json.loads(json.dumps(serialized)))
    for namespace in DatabaseNamespace:
        assert restored.get_database(namespace).equals(populated_store.get_database(namespace))
    assert restored.query_reservations_for_org("acme") == (
        populated_store.query_reservations_for_org("acme")
    )


def test_select_rows_requires_a_criterion():
    df = pl.DataFrame({"a": [1, 2], "b": ["x", "y"]})
    with pytest.raises(ValueError):
        select_rows(df, [("a", NOT_GIVEN, equal_to)])
    assert select_rows(df, [("a", 2, equal_to), ("b", NOT_GIVEN, one_of)]).height == 1
    assert select_rows(df, [("b", [], one_of)]).is_empty()
