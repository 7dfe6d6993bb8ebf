from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

"""NormalizedRecord model: one insert-ready daily record.

Every NormalizedRecord corresponds to exactly one RawRow that passed
validation and mapping. Foreign keys are resolved, numbers are coerced, the
date is canonical YYYY-MM-DD and feed_cost is computed (unrounded).
"""

__all__ = [
    "NormalizedRecord",
]


@dataclass(frozen=True)
class NormalizedRecord:
    row_number: int  # source spreadsheet row, not inserted
    cage_id: Any
    date: str  # YYYY-MM-DD
    feed_amount: float
    feed_type_id: Any
    feed_price: float
    feed_cost: float  # feed_amount * feed_price
    mortality: int = 0
    notes: str | None = None
    created_at: str | None = None  # ISO8601 UTC

    def to_dict(self) -> dict[str, Any]:
        """Insert payload (row_number excluded)."""
        data = asdict(self)
        data.pop("row_number")
        return data
