#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
from enum import StrEnum, auto

import polars as pl

from spacebook.booking.reservations import ReservationStatus
from spacebook.booking.spaces import SpaceKind


class DatabaseNamespace(StrEnum):
    """Namespace for each database"""

    USERS = auto()
    CAFETERIAS = auto()
    MEETING_ROOMS = auto()
    RESERVATIONS = auto()


DATABASE_SCHEMAS = {
    DatabaseNamespace.USERS: {
        "uid": pl.String,
        "org_id": pl.String,
        "email": pl.String,
        "full_name": pl.String,
        "role": pl.Enum(["admin", "user"]),
        "mobile_number": pl.String,
        "employee_id": pl.String,
    },
    DatabaseNamespace.CAFETERIAS: {
        "space_id": pl.String,
        "org_id": pl.String,
        "name": pl.String,
        "layout": pl.List(
            pl.Struct({"table_id": pl.String, "x": pl.Float64, "y": pl.Float64})
        ),
    },
    DatabaseNamespace.MEETING_ROOMS: {
        "space_id": pl.String,
        "org_id": pl.String,
        "name": pl.String,
        "capacity": pl.UInt16,
        "amenities": pl.List(pl.String),
        "floor": pl.Int32,
        "location": pl.String,
        "image_url": pl.String,
    },
    DatabaseNamespace.RESERVATIONS: {
        "reservation_id": pl.String,
        "org_id": pl.String,
        "requester_id": pl.String,
        "space_id": pl.String,
        "space_kind": pl.Enum([str(x) for x in SpaceKind]),
        "date": pl.Date,
        "start_time": pl.Time,
        "end_time": pl.Time,
        "status": pl.Enum([str(x) for x in ReservationStatus]),
        "created_at": pl.Datetime,
        "table_id": pl.String,
        "seat_count": pl.UInt8,
        "purpose": pl.String,
        "participants": pl.List(pl.String),
        "employee_id": pl.String,
        "contact": pl.String,
    },
}

PRIMARY_KEYS = {
    DatabaseNamespace.USERS: "uid",
    DatabaseNamespace.CAFETERIAS: "space_id",
    DatabaseNamespace.MEETING_ROOMS: "space_id",
    DatabaseNamespace.RESERVATIONS: "reservation_id",
}
