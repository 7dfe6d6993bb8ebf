from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

"""Decoded spreadsheet rows.

A RawRow is a plain dict keyed by the lowercased, trimmed header text. Headers
are only known at runtime, so rows are never modelled as fixed structs.

DecodedSheet keeps the rows in their original order; row_number() converts a
0-based data row index into the 1-based display row used in error reports
(header = row 1, first data row = row 2).
"""

__all__ = [
    "CellValue",
    "RawRow",
    "DecodedSheet",
    "PreviewRow",
    "HEADER_ROW_OFFSET",
]

CellValue = Union[str, int, float, datetime, None]
RawRow = dict[str, CellValue]

# index 0 -> row 2 (1-based + header row)
HEADER_ROW_OFFSET = 2


@dataclass(frozen=True)
class DecodedSheet:
    """First sheet of an uploaded file after header processing."""
    columns: list[str]
    rows: list[RawRow]

    @staticmethod
    def row_number(index: int) -> int:
        return index + HEADER_ROW_OFFSET

    def numbered_rows(self) -> list[tuple[int, RawRow]]:
        return [(self.row_number(i), row) for i, row in enumerate(self.rows)]

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class PreviewRow:
    """One row of the preview window with the fields that carry errors."""
    row_number: int
    values: dict[str, Any]
    error_fields: frozenset[str] = field(default_factory=frozenset)

    @property
    def has_errors(self) -> bool:
        return bool(self.error_fields)
