from __future__ import annotations

from collections.abc import Sequence

from ..models.error_record import ValidationError
from ..models.upload_result import UploadResult

"""Summary rendering for CLI output and the preview error banner."""

__all__ = [
    "format_number",
    "render_summary_line",
    "summarize_errors",
]


def format_number(value: float) -> str:
    """Render a float without scientific notation or a trailing '.0'."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: UploadResult) -> str:
    """Render a SUMMARY line from an UploadResult.

    Format:
    SUMMARY type={record_type} file={file} status={success|failed} rows={total}
    inserted={inserted} elapsed_sec={elapsed} throughput_rps={throughput}

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = UploadResult(
        ...     success=True, record_type="daily_records", file_name="feed.xlsx",
        ...     total_rows=10, inserted_rows=10, start_time=start, end_time=end,
        ...     elapsed_seconds=2.0,
        ... )
        >>> render_summary_line(result)
        'SUMMARY type=daily_records file=feed.xlsx status=success rows=10 inserted=10 elapsed_sec=2 throughput_rps=5'
    """
    status = "success" if result.success else "failed"
    return (
        f"SUMMARY type={result.record_type} "
        f"file={result.file_name} "
        f"status={status} "
        f"rows={result.total_rows} "
        f"inserted={result.inserted_rows} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )


def summarize_errors(errors: Sequence[ValidationError], limit: int = 10) -> list[str]:
    """Human readable lines for the first `limit` errors plus an overflow line."""
    lines = [f"Row {e.row}: {e.field} - {e.message}" for e in errors[:limit]]
    if len(errors) > limit:
        lines.append(f"... and {len(errors) - limit} more errors")
    return lines
