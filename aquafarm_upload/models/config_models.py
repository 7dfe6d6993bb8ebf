from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the bulk upload pipeline.

These describe an upload type (headers, validation rules, row ceiling) and the
database fallback settings. They are plain in-memory values: the pipeline core
never reads files or environment variables itself, the CLI builds them from
config/upload.yml (see aquafarm_upload.config.loader).
"""

__all__ = [
    "FieldRule",
    "UploadTemplate",
    "DatabaseConfig",
    "UploadConfig",
    "DAILY_RECORDS_TEMPLATE",
    "DEFAULT_MAX_ROWS",
]

DEFAULT_MAX_ROWS = 500


@dataclass(frozen=True)
class FieldRule:
    """Declarative validation rule for one spreadsheet column.

    type is either "number", "date" or None (free text).
    min/max only apply when type == "number".
    """
    required: bool = False
    type: str | None = None
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True)
class UploadTemplate:
    """Configuration for one upload type (e.g. daily records).

    headers: column order used for template download and preview
    required_headers: columns that must exist in the uploaded header row
    rules: field -> FieldRule, checked in declaration (dict insertion) order
    """
    record_type: str
    table_name: str
    headers: tuple[str, ...]
    required_headers: tuple[str, ...]
    rules: dict[str, FieldRule] = field(default_factory=dict)
    max_rows: int = DEFAULT_MAX_ROWS

    @property
    def template_filename(self) -> str:
        return f"{self.record_type}_import_template.xlsx"


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class UploadConfig:
    """Root configuration object for CLI runs."""
    templates: dict[str, UploadTemplate]
    cage_table: str = "cages"
    feed_type_table: str = "feed_types"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    def template_for(self, record_type: str) -> UploadTemplate:
        try:
            return self.templates[record_type]
        except KeyError:
            known = ", ".join(sorted(self.templates)) or "<none>"
            raise KeyError(f"unknown upload type '{record_type}' (known: {known})") from None


DAILY_RECORDS_TEMPLATE = UploadTemplate(
    record_type="daily_records",
    table_name="daily_records",
    headers=("cage_code", "date", "feed_amount", "feed_type", "feed_price", "mortality", "notes"),
    required_headers=("cage_code", "date", "feed_amount", "feed_type"),
    rules={
        "cage_code": FieldRule(required=True),
        "date": FieldRule(required=True, type="date"),
        "feed_amount": FieldRule(required=True, type="number", min=0),
        "feed_type": FieldRule(required=True),
        "feed_price": FieldRule(required=False, type="number", min=0),
        "mortality": FieldRule(required=False, type="number", min=0),
        "notes": FieldRule(required=False),
    },
    max_rows=DEFAULT_MAX_ROWS,
)
