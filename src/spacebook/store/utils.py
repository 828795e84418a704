#
# For licensing see accompanying LICENSE file.
# Copyright © 2025 Apple Inc. All Rights Reserved.
#
"""Row selection over the polars tables of `InMemoryReservationStore`.

A query is a list of `(column, value, row_filter)` criteria. Criteria whose value is
`NOT_GIVEN` are skipped, which lets store methods expose optional filters as keyword
arguments:

```py
store.query_reservations("room-a")  # every reservation of room-a
store.query_reservations("room-a", date=d)  # only those on date d
```
"""

from typing import Any, Collection, Literal, Protocol, Sequence, runtime_checkable

import polars as pl


class NotGiven:
    """Marks an omitted keyword argument, as opposed to an explicit `None`."""

    def __bool__(self) -> Literal[False]:
        return False

    def __repr__(self) -> str:
        return "NOT_GIVEN"


NOT_GIVEN = NotGiven()


@runtime_checkable
class RowFilter(Protocol):
    def __call__(self, table: pl.DataFrame, column: str, value: Any) -> pl.DataFrame: ...


Criterion = tuple[str, Any, RowFilter]


def equal_to(table: pl.DataFrame, column: str, value: Any) -> pl.DataFrame:
    """Rows whose `column` equals `value`. `None` selects the rows where it is null."""
    if value is None:
        return table.filter(pl.col(column).is_null())
    return table.filter(pl.col(column) == value)


def one_of(table: pl.DataFrame, column: str, value: Collection[Any]) -> pl.DataFrame:
    """Rows whose `column`, compared as text, is any of the values in `value`.

    Enum columns (reservation status, space kind) are matched on their labels, so
    `value` may hold `StrEnum` members or plain strings.
    """
    labels = [str(v) for v in value]
    if not labels:
        return table.clear()
    return table.filter(pl.col(column).cast(pl.String).is_in(labels))


def select_rows(table: pl.DataFrame, criteria: Sequence[Criterion]) -> pl.DataFrame:
    """Apply every criterion that has a value.

    Parameters
    ----------
    table
        The table to select from. It is not modified.
    criteria
        `(column, value, row_filter)` triples. A `NOT_GIVEN` value disables the
        criterion.

    Raises
    ------
    ValueError if every criterion is `NOT_GIVEN`.
    """
    given = [c for c in criteria if c[1] is not NOT_GIVEN]
    if not given:
        raise ValueError(
            f"A query needs at least one of {tuple(c[0] for c in criteria)}"
        )
    for column, value, row_filter in given:
        table = row_filter(table, column, value)
    return table
