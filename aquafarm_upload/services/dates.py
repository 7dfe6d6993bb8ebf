from __future__ import annotations

import math
import re
import warnings
from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

"""Date normalization for uploaded cells.

Cells reach us in several encodings. They are tried in a fixed order and the
first matching predicate wins:

1. native   - date / datetime objects (openpyxl date cells)
2. serial   - numbers or numeric strings: spreadsheet day serial, days since
              1899-12-30 (fractional part = time of day)
3. day_first - "DD/MM/YYYY" or "DD-MM-YYYY"
4. free_text - anything else, parsed by pandas

NOTE: day_first assumes a day-first locale while free_text follows pandas'
month-first default for ambiguous input. Both are kept as-is; an input like
"03/04/2024" is always day-first because branch 3 catches it first.
"""

__all__ = [
    "DateParseError",
    "SPREADSHEET_EPOCH",
    "DATE_PARSERS",
    "normalize_date",
    "detect_date_branch",
    "serial_to_date",
]

SPREADSHEET_EPOCH = datetime(1899, 12, 30)

_DAY_FIRST_SEP = re.compile(r"[/-]")


class DateParseError(ValueError):
    pass


def _is_native(value: Any) -> bool:
    return isinstance(value, (date, datetime))


def _from_native(value: Any) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.isoformat()


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        try:
            return math.isfinite(float(value.strip()))
        except ValueError:
            return False
    return False


def serial_to_date(serial: float) -> date:
    """Convert a spreadsheet day serial (1899-12-30 based) to a calendar date."""
    try:
        return (SPREADSHEET_EPOCH + timedelta(days=serial)).date()
    except OverflowError as e:
        raise DateParseError(f"serial out of range: {serial}") from e


def _from_serial(value: Any) -> str:
    return serial_to_date(float(value.strip() if isinstance(value, str) else value)).isoformat()


def _day_first_parts(value: Any) -> list[str] | None:
    if not isinstance(value, str):
        return None
    parts = [p.strip() for p in _DAY_FIRST_SEP.split(value.strip())]
    if len(parts) != 3 or not all(p.isdigit() for p in parts) or len(parts[2]) != 4:
        return None
    return parts


def _is_day_first(value: Any) -> bool:
    return _day_first_parts(value) is not None


def _from_day_first(value: Any) -> str:
    parts = _day_first_parts(value)
    if parts is None:
        raise DateParseError(f"not a DD/MM/YYYY date: {value!r}")
    day, month, year = (int(p) for p in parts)
    try:
        return date(year, month, day).isoformat()
    except ValueError as e:
        raise DateParseError(str(e)) from e


def _always(value: Any) -> bool:
    return True


def _from_free_text(value: Any) -> str:
    if value is None:
        raise DateParseError("empty date")
    text = str(value).strip()
    if not text:
        raise DateParseError("empty date")
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            ts = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError) as e:
        raise DateParseError(str(e)) from e
    if pd.isna(ts):
        raise DateParseError(f"unparseable date: {text}")
    return ts.date().isoformat()


DATE_PARSERS: tuple[tuple[str, Callable[[Any], bool], Callable[[Any], str]], ...] = (
    ("native", _is_native, _from_native),
    ("serial", _is_numeric, _from_serial),
    ("day_first", _is_day_first, _from_day_first),
    ("free_text", _always, _from_free_text),
)


def detect_date_branch(value: Any) -> str:
    """Name of the parser that normalize_date() would use for value."""
    for name, predicate, _ in DATE_PARSERS:
        if predicate(value):
            return name
    return "free_text"  # pragma: no cover (free_text always matches)


def normalize_date(value: Any) -> str:
    """Normalize a cell value to a YYYY-MM-DD string.

    Raises:
        DateParseError: when the matched branch cannot produce a date
    """
    for _, predicate, parser in DATE_PARSERS:
        if predicate(value):
            return parser(value)
    raise DateParseError(f"unparseable date: {value!r}")  # pragma: no cover
