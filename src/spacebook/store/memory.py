#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
import contextlib
import datetime
import logging
import threading
import uuid
import weakref
from collections import defaultdict
from typing import Any, Callable, Collection, Iterator, Self

import polars as pl
from polars.exceptions import NoDataError

from spacebook.aliases import OrgId, ReservationId, SpaceId, UserId
from spacebook.booking.exceptions import NotFoundError
from spacebook.booking.reservations import Reservation, ReservationStatus
from spacebook.booking.spaces import Cafeteria, MeetingRoom, Table, User
from spacebook.store.base import (
    AllocationKey,
    ChangeListener,
    ChangeType,
    ReservationChange,
    ReservationStore,
)
from spacebook.store.database_schemas import (
    DATABASE_SCHEMAS,
    PRIMARY_KEYS,
    DatabaseNamespace,
)
from spacebook.store.utils import NOT_GIVEN, NotGiven, equal_to, one_of, select_rows

logger = logging.getLogger(__name__)

_TEMPORAL_PARSERS = [
    (pl.Datetime, datetime.datetime.fromisoformat),
    (pl.Date, datetime.date.fromisoformat),
    (pl.Time, datetime.time.fromisoformat),
]


class InMemoryReservationStore(ReservationStore):
    """A reservation store holding one polars dataframe per namespace.

    Every namespace has a fixed schema (see `database_schemas`). Dataframes are
    replaced, never mutated in place, under an internal lock, so readers always see a
    consistent snapshot. Allocation locks are per `AllocationKey` and independent of
    the internal lock.
    """

    dbs_schemas: dict[DatabaseNamespace, dict[str, Any]] = DATABASE_SCHEMAS

    def __init__(self):
        self._dbs: dict[DatabaseNamespace, pl.DataFrame] = {
            namespace: pl.DataFrame(schema=schema)
            for namespace, schema in self.dbs_schemas.items()
        }
        self._db_lock = threading.RLock()
        # a key lock lives as long as some thread holds or waits on it
        self._key_locks: weakref.WeakValueDictionary[AllocationKey, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._key_locks_guard = threading.Lock()
        self._listeners: dict[SpaceId, list[ChangeListener]] = defaultdict(list)
        # changes committed by this thread under an allocation lock, not yet delivered
        self._held = threading.local()

    def to_dict(self) -> dict[str, Any]:
        """Dump every table as a list of JSON-compatible rows.

        Dates, times and timestamps become ISO strings; `from_dict` parses them back
        using the table schemas.
        """
        with self._db_lock:
            tables = dict(self._dbs)
        return {
            "tables": {
                str(namespace): [
                    {column: _to_json_value(value) for column, value in row.items()}
                    for row in table.to_dicts()
                ]
                for namespace, table in tables.items()
            }
        }

    @classmethod
    def from_dict(cls, serialized_dict: dict[str, Any]) -> Self:
        """Rebuild a store from the output of `to_dict`. Namespaces missing from
        `serialized_dict` start empty."""
        store = cls()
        for name, rows in serialized_dict["tables"].items():
            namespace = DatabaseNamespace(name)
            schema = cls.dbs_schemas[namespace]
            parsed = [
                {column: _from_json_value(value, schema[column]) for column, value in row.items()}
                for row in rows
            ]
            store._dbs[namespace] = pl.DataFrame(parsed, schema=schema)
        return store

    def get_database(self, namespace: DatabaseNamespace) -> pl.DataFrame:
        """The current table of `namespace`. Writes replace the table, so the frame
        returned is a stable snapshot; do not modify it."""
        with self._db_lock:
            return self._dbs[namespace]

    def add_to_database(
        self,
        namespace: DatabaseNamespace,
        rows: list[dict[str, Any]],
    ) -> None:
        """Append rows to the table of `namespace`.

        Raises
        ------
        KeyError
            If a row has a column outside the table schema, or reuses a primary key
            already in the table.
        """
        schema = self.dbs_schemas[namespace]
        unknown = {column for row in rows for column in row} - set(schema)
        if unknown:
            raise KeyError(f"Unknown column(s) {sorted(unknown)} for table {namespace}")
        primary_key = PRIMARY_KEYS[namespace]
        new_frame = pl.DataFrame(rows, schema=schema)
        with self._db_lock:
            table = self._dbs[namespace]
            taken = set(table.get_column(primary_key).to_list()) & set(
                new_frame.get_column(primary_key).to_list()
            )
            if taken:
                raise KeyError(f"Duplicate {primary_key} in {namespace}: {sorted(taken)}")
            self._dbs[namespace] = table.vstack(new_frame)

    def update_database(
        self,
        namespace: DatabaseNamespace,
        predicate: pl.Expr,
        values: dict[str, Any],
    ) -> None:
        """Overwrite columns of the rows matching `predicate`.

        Raises
        ------
        NoDataError
            If no row matches.
        """
        schema = self.dbs_schemas[namespace]
        with self._db_lock:
            table = self._dbs[namespace]
            if table.filter(predicate).is_empty():
                raise NoDataError(f"Nothing in {namespace} matches {predicate}")
            self._dbs[namespace] = table.with_columns(
                [
                    pl.when(predicate)
                    .then(pl.lit(value).cast(schema[column]))
                    .otherwise(pl.col(column))
                    .alias(column)
                    for column, value in values.items()
                ]
            )

    def add_user(self, user: User) -> None:
        self.add_to_database(DatabaseNamespace.USERS, rows=[user.model_dump()])

    def add_space(self, space: Cafeteria | MeetingRoom) -> None:
        record = space.model_dump(exclude={"kind"})
        if isinstance(space, Cafeteria):
            self.add_to_database(DatabaseNamespace.CAFETERIAS, rows=[record])
        else:
            record["amenities"] = sorted(space.amenities)
            self.add_to_database(DatabaseNamespace.MEETING_ROOMS, rows=[record])

    def get_space(self, space_id: SpaceId) -> Cafeteria | MeetingRoom:
        criteria = [("space_id", space_id, equal_to)]
        cafeterias = select_rows(self.get_database(DatabaseNamespace.CAFETERIAS), criteria)
        if not cafeterias.is_empty():
            return _cafeteria_from_record(cafeterias.row(0, named=True))
        rooms = select_rows(self.get_database(DatabaseNamespace.MEETING_ROOMS), criteria)
        if not rooms.is_empty():
            return _meeting_room_from_record(rooms.row(0, named=True))
        raise NotFoundError(f"Space '{space_id}' not found")

    def query_spaces(self, org_id: OrgId) -> list[Cafeteria | MeetingRoom]:
        criteria = [("org_id", org_id, equal_to)]
        cafeterias = select_rows(self.get_database(DatabaseNamespace.CAFETERIAS), criteria)
        rooms = select_rows(self.get_database(DatabaseNamespace.MEETING_ROOMS), criteria)
        spaces: list[Cafeteria | MeetingRoom] = [
            _cafeteria_from_record(r) for r in cafeterias.to_dicts()
        ]
        spaces.extend(_meeting_room_from_record(r) for r in rooms.to_dicts())
        return spaces

    def query_users(self, uids: Collection[UserId]) -> list[User]:
        users = select_rows(
            self.get_database(DatabaseNamespace.USERS), [("uid", list(uids), one_of)]
        )
        return [User(**r) for r in users.to_dicts()]

    def get_reservation(self, reservation_id: ReservationId) -> Reservation:
        records = self._reservation_records([("reservation_id", reservation_id, equal_to)])
        if not records:
            raise NotFoundError(f"Reservation '{reservation_id}' not found")
        return Reservation.from_record(records[0])

    def query_reservations(
        self,
        space_id: SpaceId,
        date: datetime.date | NotGiven = NOT_GIVEN,
        status_in: Collection[ReservationStatus] | NotGiven = NOT_GIVEN,
    ) -> list[Reservation]:
        records = self._reservation_records(
            [
                ("space_id", space_id, equal_to),
                ("date", date, equal_to),
                ("status", status_in, one_of),
            ]
        )
        return [Reservation.from_record(r) for r in records]

    def query_reservations_for_org(
        self,
        org_id: OrgId,
        status_in: Collection[ReservationStatus] | NotGiven = NOT_GIVEN,
    ) -> list[Reservation]:
        records = self._reservation_records(
            [("org_id", org_id, equal_to), ("status", status_in, one_of)]
        )
        return [Reservation.from_record(r) for r in records]

    def query_reservations_for_user(self, uid: UserId) -> list[Reservation]:
        records = self._reservation_records([("requester_id", uid, equal_to)])
        return [Reservation.from_record(r) for r in records]

    def _reservation_records(self, criteria) -> list[dict[str, Any]]:
        records = select_rows(
            self.get_database(DatabaseNamespace.RESERVATIONS), criteria
        ).to_dicts()
        logger.debug(f"Reservation query {criteria} matched {len(records)} records")
        return records

    def create_reservation(self, reservation: Reservation) -> ReservationId:
        reservation_id = reservation.reservation_id or str(uuid.uuid4())
        stored = reservation.model_copy(update={"reservation_id": reservation_id})
        self.add_to_database(DatabaseNamespace.RESERVATIONS, rows=[stored.to_record()])
        self._notify(ReservationChange(ChangeType.ADDED, stored))
        return reservation_id

    def update_reservation_status(
        self, reservation_id: ReservationId, new_status: ReservationStatus
    ) -> None:
        try:
            self.update_database(
                DatabaseNamespace.RESERVATIONS,
                predicate=pl.col("reservation_id") == reservation_id,
                values={"status": str(new_status)},
            )
        except NoDataError:
            raise NotFoundError(f"Reservation '{reservation_id}' not found")
        self._notify(
            ReservationChange(ChangeType.MODIFIED, self.get_reservation(reservation_id))
        )

    @contextlib.contextmanager
    def lock(self, key: AllocationKey) -> Iterator[None]:
        """Changes committed while the lock is held reach listeners once it is released."""
        with self._key_locks_guard:
            key_lock = self._key_locks.setdefault(key, threading.Lock())
        outermost = getattr(self._held, "changes", None) is None
        if outermost:
            self._held.changes = []
        try:
            with key_lock:
                yield
        finally:
            if outermost:
                changes, self._held.changes = self._held.changes, None
                for change in changes:
                    self._deliver(change)

    def subscribe(self, space_id: SpaceId, listener: ChangeListener) -> Callable[[], None]:
        with self._db_lock:
            self._listeners[space_id].append(listener)

        def unsubscribe():
            with self._db_lock:
                if listener in self._listeners[space_id]:
                    self._listeners[space_id].remove(listener)

        return unsubscribe

    def _notify(self, change: ReservationChange) -> None:
        pending = getattr(self._held, "changes", None)
        if pending is not None:
            pending.append(change)
        else:
            self._deliver(change)

    def _deliver(self, change: ReservationChange) -> None:
        with self._db_lock:
            listeners = list(self._listeners.get(change.reservation.space_id, []))
        for listener in listeners:
            # the change is committed whatever the listener does with it
            try:
                listener(change)
            except Exception:
                logger.exception(
                    f"Listener {listener!r} failed on {change.change_type} of "
                    f"{change.reservation.reservation_id}"
                )


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    return value


def _from_json_value(value: Any, dtype: Any) -> Any:
    if value is None:
        return None
    for temporal, parse in _TEMPORAL_PARSERS:
        if dtype == temporal:
            return parse(value)
    return value


def _cafeteria_from_record(record: dict[str, Any]) -> Cafeteria:
    layout = [Table(**t) for t in record.pop("layout") or []]
    return Cafeteria(**record, layout=layout)


def _meeting_room_from_record(record: dict[str, Any]) -> MeetingRoom:
    record["amenities"] = frozenset(record["amenities"] or [])
    return MeetingRoom(**record)
