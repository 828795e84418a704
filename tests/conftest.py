#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
import datetime

import pytest

from spacebook.booking.service import BookingService
from spacebook.booking.spaces import Cafeteria, MeetingRoom, User
from spacebook.config import BookingPolicy, load_policy
from spacebook.simulation.seed import create_cafeteria, create_meeting_room, create_user
from spacebook.store.memory import InMemoryReservationStore

ORG_ID = "acme"
OTHER_ORG_ID = "globex"


@pytest.fixture
def today() -> datetime.date:
    return datetime.date(2025, 3, 14)


@pytest.fixture
def now(today: datetime.date) -> datetime.datetime:
    return datetime.datetime.combine(today, datetime.time(8, 0))


@pytest.fixture
def clock(now: datetime.datetime):
    return lambda: now


@pytest.fixture
def policy() -> BookingPolicy:
    # no backoff between read retries in tests
    return load_policy({"read_retries": {"max_wait_seconds": 0, "multiplier": 0}})


@pytest.fixture
def store() -> InMemoryReservationStore:
    return InMemoryReservationStore()


@pytest.fixture
def users(store: InMemoryReservationStore) -> dict[str, User]:
    return {
        "alice": create_user(store, ORG_ID, "Alice Popescu", role="admin", uid="u-alice"),
        "bob": create_user(store, ORG_ID, "Bob Ionescu", uid="u-bob", employee_id="E-2"),
        "carol": create_user(store, ORG_ID, "Carol Marin", uid="u-carol"),
        "mallory": create_user(store, OTHER_ORG_ID, "Mallory Stan", uid="u-mallory"),
    }


@pytest.fixture
def canteen(store: InMemoryReservationStore) -> Cafeteria:
    return create_cafeteria(store, ORG_ID, "Main Canteen", n_tables=3, space_id="cafe-main")


@pytest.fixture
def room_a(store: InMemoryReservationStore) -> MeetingRoom:
    return create_meeting_room(
        store, ORG_ID, "Room A", capacity=6, amenities=["projector"], space_id="room-a"
    )


@pytest.fixture
def room_b(store: InMemoryReservationStore) -> MeetingRoom:
    return create_meeting_room(store, ORG_ID, "Room B", capacity=4, space_id="room-b")


@pytest.fixture
def service(
    store: InMemoryReservationStore, policy: BookingPolicy, clock
) -> BookingService:
    return BookingService(store, policy, clock=clock)
