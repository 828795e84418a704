#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
import datetime
from importlib import resources

from omegaconf import OmegaConf

from spacebook.booking.reservations import ReservationStatus
from spacebook.booking.spaces import Cafeteria, MeetingRoom
from spacebook.booking.time_utils import TimeInterval
from spacebook.simulation.seed import (
    create_cafeteria,
    fake_email_address,
    load_seed,
    simulate_meeting_room,
)
from spacebook.store.memory import InMemoryReservationStore


def test_fake_email_address():
    assert fake_email_address("Bob", "Ionescu", domain="acme.example") == (
        "bob_ionescu@acme.example"
    )
    assert fake_email_address("Bob") == "bob@company.example"


def test_cafeteria_layout(store):
    cafeteria = create_cafeteria(store, "acme", "Canteen", n_tables=6)
    assert cafeteria.table_ids == ["T1", "T2", "T3", "T4", "T5", "T6"]
    assert cafeteria.capacity == 24
    assert (cafeteria.layout[5].x, cafeteria.layout[5].y) == (1.0, 1.0)


def test_simulate_meeting_room(store, today):
    bookings = {
        today: [
            TimeInterval.on(today, datetime.time(9), datetime.time(10)),
            TimeInterval.on(today, datetime.time(13), datetime.time(15)),
        ]
    }
    room = simulate_meeting_room(store, "acme", "Alpha Room", 10, "u-bob", bookings)
    reservations = store.query_reservations(room.space_id, date=today)
    assert len(reservations) == 2
    assert all(r.status == ReservationStatus.Confirmed for r in reservations)


def test_load_packaged_demo_seed(today):
    path = resources.files("spacebook.configs") / "seed" / "demo.yaml"
    cfg = OmegaConf.load(str(path))
    store = InMemoryReservationStore()

    seeded = load_seed(store, cfg, today)

    assert set(seeded["users"]) == {"u-alice", "u-bob", "u-carol"}
    assert isinstance(seeded["spaces"]["cafe-main"], Cafeteria)
    assert isinstance(seeded["spaces"]["room-a"], MeetingRoom)
    statuses = sorted(str(r.status) for r in seeded["reservations"].values())
    assert statuses == ["Confirmed", "Confirmed", "Requires Approval"]
    [interview] = store.query_reservations(
        "room-b", date=today + datetime.timedelta(days=1)
    )
    assert interview.payload.purpose == "Interview"
