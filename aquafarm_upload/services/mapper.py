from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from ..models.normalized_record import NormalizedRecord
from ..models.reference_set import ReferenceSet
from ..models.row_data import HEADER_ROW_OFFSET, RawRow
from .dates import DateParseError, normalize_date
from .validator import coerce_number, is_blank

"""Row mapper: validated RawRow -> NormalizedRecord.

The mapper does not re-run the validator. It resolves the human-entered
identifiers to foreign keys, coerces numbers, normalizes the date and computes
feed_cost. Anything it cannot resolve raises MappingError with the row number
and the offending value in the message; map_rows() stops at the first one so
nothing from a failing batch is ever inserted.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "MappingError",
    "map_row",
    "map_rows",
]


class MappingError(Exception):
    """Raised when a row cannot be turned into a NormalizedRecord."""

    def __init__(self, row_number: int, message: str) -> None:
        self.row_number = row_number
        super().__init__(f"Row {row_number}: {message}")


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _resolve_cage(row: RawRow, row_number: int, cages: ReferenceSet) -> dict[str, Any]:
    # cage_code が主キー。コード列が空の場合のみ cage_name で照合
    code = row.get("cage_code")
    if not is_blank(code):
        cage = cages.lookup(code, "code")
        if cage is None:
            raise MappingError(
                row_number,
                f'Cage not found: "{_text(code)}". '
                "Please check the cage code matches exactly with an existing cage.",
            )
        return cage
    name = row.get("cage_name")
    cage = cages.lookup(name, "name") if not is_blank(name) else None
    if cage is None:
        raise MappingError(
            row_number,
            f'Cage not found: "{_text(name)}". '
            "Please check the cage name matches exactly with an existing cage.",
        )
    return cage


def _resolve_feed_type(row: RawRow, row_number: int, feed_types: ReferenceSet) -> dict[str, Any]:
    value = row.get("feed_type")
    feed_type = feed_types.lookup(value, "name") if not is_blank(value) else None
    if feed_type is None:
        raise MappingError(
            row_number,
            f'Feed type not found: "{_text(value)}". '
            "Please check the feed type matches exactly with an existing feed type.",
        )
    return feed_type


def _non_negative(row_number: int, label: str, raw: Any, hint: str) -> float:
    number = coerce_number(raw)
    if number is None or number < 0:
        raise MappingError(row_number, f'Invalid {label}: "{_text(raw)}". {hint}')
    return number


def map_row(
    row: RawRow,
    row_number: int,
    cages: ReferenceSet,
    feed_types: ReferenceSet,
    created_at: str | None = None,
) -> NormalizedRecord:
    """Map one validated row to an insert-ready record.

    feed_price falls back to the feed type's catalog price_per_kg when the
    cell is empty; mortality falls back to 0.
    """
    cage = _resolve_cage(row, row_number, cages)
    feed_type = _resolve_feed_type(row, row_number, feed_types)

    feed_amount = _non_negative(row_number, "feed amount", row.get("feed_amount"), "Must be a non-negative number.")

    raw_price = row.get("feed_price")
    if is_blank(raw_price):
        raw_price = feed_type.get("price_per_kg")
    feed_price = _non_negative(row_number, "feed price", raw_price, "Must be a non-negative number.")

    raw_mortality = row.get("mortality")
    mortality = 0
    if not is_blank(raw_mortality):
        mortality = int(_non_negative(row_number, "mortality", raw_mortality, "Must be a non-negative number."))

    raw_date = row.get("date")
    try:
        record_date = normalize_date(raw_date)
    except DateParseError as e:
        raise MappingError(
            row_number, f'Invalid date format: "{_text(raw_date)}". Please use YYYY-MM-DD format.'
        ) from e

    notes = _text(row.get("notes")) or None

    return NormalizedRecord(
        row_number=row_number,
        cage_id=cage.get("id"),
        date=record_date,
        feed_amount=feed_amount,
        feed_type_id=feed_type.get("id"),
        feed_price=feed_price,
        feed_cost=feed_amount * feed_price,
        mortality=mortality,
        notes=notes,
        created_at=created_at,
    )


def map_rows(
    rows: Sequence[RawRow],
    cages: ReferenceSet,
    feed_types: ReferenceSet,
    on_row: Callable[[int], None] | None = None,
) -> list[NormalizedRecord]:
    """Map all rows sequentially in original order.

    The first MappingError propagates and no records are returned, so the
    reported row is always the lowest failing row number.
    """
    created_at = datetime.now(UTC).isoformat().replace("+00:00", "Z")
    records: list[NormalizedRecord] = []
    for index, row in enumerate(rows):
        row_number = index + HEADER_ROW_OFFSET
        records.append(map_row(row, row_number, cages, feed_types, created_at=created_at))
        if on_row is not None:
            on_row(row_number)
    logger.debug(f"mapped rows={len(records)}")
    return records
