from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from decimal import Decimal
from itertools import chain
from typing import Any

from ..models.config_models import FieldRule
from ..models.error_record import ValidationError
from ..models.reference_set import ReferenceSet
from ..models.row_data import HEADER_ROW_OFFSET, RawRow
from .dates import DateParseError, normalize_date

"""Row validator.

Pure functions, no I/O. validate_row() checks one decoded row against the
rule table and the reference sets; validate_rows() flat-maps it over a whole
sheet. Error order is row-major, then rule declaration order, then the
reference checks (cage, feed type).
"""

__all__ = [
    "coerce_number",
    "is_blank",
    "validate_row",
    "validate_rows",
]


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def coerce_number(value: Any) -> float | None:
    """Numeric coercion for cell values. Returns None when not a finite number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def _fmt_bound(bound: float) -> str:
    return str(int(bound)) if float(bound).is_integer() else str(bound)


def _display(value: Any) -> str:
    return str(value).strip()


def _check_field(field: str, rule: FieldRule, value: Any, row_number: int) -> list[ValidationError]:
    if is_blank(value):
        if rule.required:
            return [ValidationError(row_number, field, f"{field} is required")]
        return []

    errors: list[ValidationError] = []
    if rule.type == "number":
        number = coerce_number(value)
        if number is None:
            errors.append(ValidationError(row_number, field, f"{field} must be a number"))
        else:
            if rule.min is not None and number < rule.min:
                errors.append(ValidationError(row_number, field, f"{field} must be at least {_fmt_bound(rule.min)}"))
            if rule.max is not None and number > rule.max:
                errors.append(ValidationError(row_number, field, f"{field} must be at most {_fmt_bound(rule.max)}"))
    elif rule.type == "date":
        try:
            normalize_date(value)
        except DateParseError:
            errors.append(ValidationError(row_number, field, f"{field} must be a valid date"))
    return errors


def _check_references(
    row: RawRow,
    row_number: int,
    cages: ReferenceSet | None,
    feed_types: ReferenceSet | None,
) -> list[ValidationError]:
    errors: list[ValidationError] = []
    if cages is not None:
        code = row.get("cage_code")
        if not is_blank(code) and not cages.contains(code, "code"):
            errors.append(ValidationError(
                row_number, "cage_code", f'Cage code "{_display(code)}" does not exist in the system'
            ))
        name = row.get("cage_name")
        if not is_blank(name) and not cages.contains(name, "name"):
            errors.append(ValidationError(
                row_number, "cage_name", f'Cage name "{_display(name)}" does not exist in the system'
            ))
    if feed_types is not None:
        feed_type = row.get("feed_type")
        if not is_blank(feed_type) and not feed_types.contains(feed_type, "name"):
            errors.append(ValidationError(
                row_number, "feed_type", f'Feed type "{_display(feed_type)}" does not exist in the system'
            ))
    return errors


def validate_row(
    row: RawRow,
    row_number: int,
    rules: Mapping[str, FieldRule],
    cages: ReferenceSet | None = None,
    feed_types: ReferenceSet | None = None,
) -> list[ValidationError]:
    """Validate one decoded row.

    Optional rules only apply to fields present in the row. A required field
    that is blank or absent from the row yields exactly one "is required"
    error and no further checks for that field.
    """
    errors: list[ValidationError] = []
    for field, rule in rules.items():
        if field not in row and not rule.required:
            continue
        errors.extend(_check_field(field, rule, row.get(field), row_number))
    errors.extend(_check_references(row, row_number, cages, feed_types))
    return errors


def validate_rows(
    rows: Sequence[RawRow],
    rules: Mapping[str, FieldRule],
    cages: ReferenceSet | None = None,
    feed_types: ReferenceSet | None = None,
) -> list[ValidationError]:
    """Validate all rows; data row index i is reported as row i + 2."""
    return list(chain.from_iterable(
        validate_row(row, index + HEADER_ROW_OFFSET, rules, cages, feed_types)
        for index, row in enumerate(rows)
    ))
