#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Populate a store with users, spaces and reservations, for tests and demos.

Reservations created here bypass the booking service: they are history, written
unconditionally, so the seed data itself must respect the capacity rules.
"""

import datetime
import logging
import random
import uuid
from typing import Any, Iterable

from omegaconf import DictConfig, OmegaConf

from spacebook.aliases import OrgId, SpaceId, TableId, UserId
from spacebook.booking.reservations import (
    CafeteriaSeating,
    MeetingDetails,
    Reservation,
    ReservationStatus,
)
from spacebook.booking.spaces import Cafeteria, MeetingRoom, Table, User
from spacebook.booking.state_machine import initial_status
from spacebook.booking.time_utils import TimeInterval, parse_slot
from spacebook.store.base import ReservationStore

logger = logging.getLogger(__name__)

TABLES_PER_ROW = 4


def fake_phone_number(prefix: str = "+40", n_digits: int = 8) -> str:
    """Generates a fake phone number."""

    fake_digits = [str(random.randint(0, 9)) for _ in range(n_digits)]
    return f"{prefix}{random.choice(['6', '7', '8', '9'])}{''.join(fake_digits)}"


def fake_email_address(
    name: str, surname: str | None = None, domain: str = "company.example"
) -> str:
    """Generates a fake email address."""
    if surname:
        return f"{name}_{surname}@{domain}".lower()
    return f"{name}@{domain}".lower()


def create_user(
    store: ReservationStore,
    org_id: OrgId,
    full_name: str,
    role: str = "user",
    uid: UserId | None = None,
    employee_id: str | None = None,
) -> User:
    """Add a member to an organisation. Contact details are made up."""
    name, _, surname = full_name.partition(" ")
    user = User(
        uid=uid or str(uuid.uuid4()),
        org_id=org_id,
        email=fake_email_address(name, surname or None, domain=f"{org_id}.example"),
        full_name=full_name,
        role=role,
        mobile_number=fake_phone_number(),
        employee_id=employee_id,
    )
    store.add_user(user)
    return user


def create_cafeteria(
    store: ReservationStore,
    org_id: OrgId,
    name: str,
    n_tables: int,
    space_id: SpaceId | None = None,
) -> Cafeteria:
    """Add a cafeteria with tables `T1` ... `Tn` laid out on a grid."""
    layout = [
        Table(table_id=f"T{i + 1}", x=float(i % TABLES_PER_ROW), y=float(i // TABLES_PER_ROW))
        for i in range(n_tables)
    ]
    cafeteria = Cafeteria(
        space_id=space_id or str(uuid.uuid4()), org_id=org_id, name=name, layout=layout
    )
    store.add_space(cafeteria)
    return cafeteria


def create_meeting_room(
    store: ReservationStore,
    org_id: OrgId,
    name: str,
    capacity: int,
    amenities: Iterable[str] = (),
    space_id: SpaceId | None = None,
    floor: int | None = None,
    location: str | None = None,
) -> MeetingRoom:
    room = MeetingRoom(
        space_id=space_id or str(uuid.uuid4()),
        org_id=org_id,
        name=name,
        capacity=capacity,
        amenities=frozenset(amenities),
        floor=floor,
        location=location,
    )
    store.add_space(room)
    return room


def create_booking(
    store: ReservationStore,
    space: Cafeteria | MeetingRoom,
    requester_id: UserId,
    interval: TimeInterval,
    status: ReservationStatus = ReservationStatus.Confirmed,
    table_id: TableId | None = None,
    seat_count: int = 1,
    purpose: str = "",
) -> Reservation:
    """Write a reservation as is, without any availability check.

    Parameters
    ----------
    interval
        Start and end of the booking, on the same day.
    table_id, seat_count
        Required for cafeteria bookings, ignored for meeting rooms.
    """
    if isinstance(space, Cafeteria):
        payload = CafeteriaSeating(table_id=table_id, seat_count=seat_count)
    else:
        payload = MeetingDetails(purpose=purpose)
    reservation = Reservation(
        org_id=space.org_id,
        requester_id=requester_id,
        space_id=space.space_id,
        space_kind=space.kind,
        date=interval.start.date(),
        start_time=interval.start.time(),
        end_time=interval.end.time(),
        status=status,
        payload=payload,
        created_at=interval.start - datetime.timedelta(days=1),
    )
    reservation_id = store.create_reservation(reservation)
    return reservation.model_copy(update={"reservation_id": reservation_id})


def simulate_meeting_room(
    store: ReservationStore,
    org_id: OrgId,
    name: str,
    capacity: int,
    requester_id: UserId,
    bookings: dict[datetime.date, list[TimeInterval]] | None = None,
) -> MeetingRoom:
    """Add a meeting room to the store, along with its Confirmed bookings.

    Parameters
    ----------
    bookings
        Time intervals when the room is booked. Set to `None` if there is no booking
        for this room.
    """

    room = create_meeting_room(store, org_id, name, capacity)
    if bookings is not None:
        for times_booked in bookings.values():
            for interval in times_booked:
                create_booking(store, room, requester_id, interval, purpose="Busy")
    return room


def load_seed(
    store: ReservationStore,
    cfg: DictConfig | dict[str, Any],
    today: datetime.date,
) -> dict[str, Any]:
    """Load a seed config (see `configs/seed/demo.yaml`) into `store`.

    Booking dates are given as `day_offset`s relative to `today`.

    Returns
    -------
    The created `users`, `spaces` and `reservations`, each keyed by id.
    """
    if isinstance(cfg, DictConfig):
        cfg = OmegaConf.to_container(cfg, resolve=True)
    org_id = cfg["org_id"]
    users = {
        u["uid"]: create_user(
            store,
            org_id,
            u["full_name"],
            role=u.get("role", "user"),
            uid=u["uid"],
            employee_id=u.get("employee_id"),
        )
        for u in cfg.get("users", [])
    }
    spaces: dict[SpaceId, Cafeteria | MeetingRoom] = {}
    for c in cfg.get("cafeterias", []):
        spaces[c["space_id"]] = create_cafeteria(
            store, org_id, c["name"], c["tables"], space_id=c["space_id"]
        )
    for r in cfg.get("meeting_rooms", []):
        spaces[r["space_id"]] = create_meeting_room(
            store,
            org_id,
            r["name"],
            r["capacity"],
            amenities=r.get("amenities", []),
            space_id=r["space_id"],
            floor=r.get("floor"),
            location=r.get("location"),
        )
    reservations = {}
    for b in cfg.get("bookings", []):
        space = spaces[b["space_id"]]
        date = today + datetime.timedelta(days=b.get("day_offset", 0))
        start, end = parse_slot(b["slot"])
        reservation = create_booking(
            store,
            space,
            b["requester"],
            TimeInterval.on(date, start, end),
            status=ReservationStatus(b.get("status", initial_status(space.kind))),
            table_id=b.get("table_id"),
            seat_count=b.get("seat_count", 1),
            purpose=b.get("purpose", ""),
        )
        reservations[reservation.reservation_id] = reservation
    logger.info(
        f"Seeded {org_id}: {len(users)} users, {len(spaces)} spaces, "
        f"{len(reservations)} reservations"
    )
    return {"users": users, "spaces": spaces, "reservations": reservations}
