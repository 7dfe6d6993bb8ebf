from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""Row-level error models.

ValidationError is the (row, field, message) triple the validator produces and
the preview screen displays. Row numbers are 1-based and count the header as
row 1, so the first data row is row 2.

ErrorRecord is the JSON Lines shape written to logs/errors-*.log by CLI runs.
"""

__all__ = [
    "ValidationError",
    "ErrorRecord",
]


@dataclass(frozen=True)
class ValidationError:
    """One validation problem for one field of one spreadsheet row."""
    row: int  # 1-based, header = 1
    field: str
    message: str

    def to_dict(self) -> dict[str, object]:
        return {"row": self.row, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: uploaded filename
        row: Row number (1-based, header = 1). Use -1 for file-level errors
        field: column name, "" for file-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: user facing message
    """
    timestamp: str  # ISO8601 UTC
    file: str
    row: int  # 行番号。不明な場合 -1 許容
    field: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, row: int, field: str, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            field=field,
            error_type=error_type,
            message=message,
        )

    @staticmethod
    def from_validation_error(file: str, error: ValidationError) -> ErrorRecord:
        return ErrorRecord.create(
            file=file,
            row=error.row,
            field=error.field,
            error_type="VALIDATION_ERROR",
            message=error.message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (no extra keys)."""
        return json.dumps(asdict(self), ensure_ascii=False)
