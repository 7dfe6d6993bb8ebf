from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, date, datetime

from ..db.backend import Backend
from ..excel.reader import DecodeError, decode_upload, write_template
from ..models.config_models import DAILY_RECORDS_TEMPLATE, UploadTemplate
from ..models.error_record import ValidationError
from ..models.normalized_record import NormalizedRecord
from ..models.reference_set import ReferenceSet
from ..models.row_data import DecodedSheet, PreviewRow
from ..models.upload_result import UploadResult
from ..models.upload_session import UploadSession, WizardStep
from .mapper import MappingError, map_rows
from .progress import RowProgress
from .validator import validate_rows

"""Upload wizard: Upload -> Preview -> Confirm.

This service coordinates one bulk upload session:

1. load_references(): fetch cages and active feed types once per session
2. select_file(): decode + validate, then move to PREVIEW
3. continue_to_confirm(): only possible when the error list is empty
4. confirm(): map every row, then a single batch insert

Commit is all-or-nothing. A mapping failure aborts before any database call;
a backend insert error aborts with nothing written. User-facing messages go
through the injected report(kind, message) callback.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "Reporter",
    "WizardStateError",
    "ReferenceDataError",
    "UploadWizard",
    "PREVIEW_LIMIT",
]

Reporter = Callable[[str, str], None]

PREVIEW_LIMIT = 100

CAGE_COLUMNS = ("id", "code", "name")
FEED_TYPE_COLUMNS = ("id", "name", "price_per_kg")
FEED_TYPE_FILTERS = {"active": True, "deleted_at": None}


class WizardStateError(Exception):
    """Raised when an action is not allowed in the current wizard step."""


class ReferenceDataError(Exception):
    """Raised when cages / feed types cannot be loaded."""


def log_reporter(kind: str, message: str) -> None:
    """Default reporter: route user-facing messages to the logger."""
    if kind == "error":
        logger.error(message)
    else:
        logger.info(message)


class UploadWizard:
    """State machine for one bulk upload session."""

    def __init__(
        self,
        backend: Backend,
        template: UploadTemplate = DAILY_RECORDS_TEMPLATE,
        report: Reporter | None = None,
        *,
        cage_table: str = "cages",
        feed_type_table: str = "feed_types",
        show_progress: bool = False,
    ) -> None:
        self.backend = backend
        self.template = template
        self.report: Reporter = report or log_reporter
        self.cage_table = cage_table
        self.feed_type_table = feed_type_table
        self.show_progress = show_progress
        self.cages: ReferenceSet | None = None
        self.feed_types: ReferenceSet | None = None
        self.session = UploadSession()

    # ---- reference data -------------------------------------------------

    def load_references(self) -> None:
        """Fetch cages and active feed types (ordered by name)."""
        cage_res = self.backend.fetch_reference_set(self.cage_table, CAGE_COLUMNS)
        if cage_res.ok:
            feed_res = self.backend.fetch_reference_set(
                self.feed_type_table, FEED_TYPE_COLUMNS, FEED_TYPE_FILTERS
            )
        else:
            feed_res = cage_res
        if not feed_res.ok:
            self.report("error", "Failed to load required data")
            raise ReferenceDataError(f"Failed to load required data: {feed_res.error}")

        self.cages = ReferenceSet("cages", cage_res.data or [], key_fields=("code", "name"))
        self.feed_types = ReferenceSet("feed_types", feed_res.data or [], key_fields=("name",))
        logger.info(f"reference data loaded cages={len(self.cages)} feed_types={len(self.feed_types)}")

    @property
    def references_loaded(self) -> bool:
        return self.cages is not None and self.feed_types is not None

    def _references(self) -> tuple[ReferenceSet, ReferenceSet]:
        if self.cages is None or self.feed_types is None:
            raise WizardStateError("reference data not loaded")
        return self.cages, self.feed_types

    # ---- state -------------------------------------------------------------

    @property
    def step(self) -> WizardStep:
        return self.session.step

    @property
    def sheet(self) -> DecodedSheet | None:
        return self.session.sheet

    @property
    def errors(self) -> list[ValidationError]:
        return list(self.session.errors)

    def error_report(self) -> list[dict[str, object]]:
        """Validation errors as {row, field, message} dicts (header = row 1)."""
        return [e.to_dict() for e in self.session.errors]

    @property
    def can_confirm(self) -> bool:
        return (
            self.session.step == WizardStep.PREVIEW
            and self.session.sheet is not None
            and not self.session.errors
        )

    def reset(self) -> None:
        self.session = UploadSession()

    def close(self) -> None:
        """Discard the session; nothing has been written before confirm()."""
        self.reset()
        logger.debug("wizard closed")

    def _require_step(self, step: WizardStep, action: str) -> None:
        if self.session.step != step:
            raise WizardStateError(f"cannot {action} in step {self.session.step.name}")

    # ---- step 1: upload ---------------------------------------------------

    def select_file(self, data: bytes, mime_type: str, file_name: str | None = None) -> bool:
        """Decode and validate one file; move to PREVIEW on success.

        On a decode failure the session is reset, the message is reported
        and False is returned. The user has to select a file again.
        """
        self._require_step(WizardStep.UPLOAD, "select a file")
        cages, feed_types = self._references()

        try:
            sheet = decode_upload(
                data,
                mime_type,
                required_headers=self.template.required_headers,
                max_rows=self.template.max_rows,
            )
        except DecodeError as e:
            self.reset()
            self.report("error", str(e) or "Error parsing file")
            return False

        errors = validate_rows(sheet.rows, self.template.rules, cages, feed_types)
        self.session = UploadSession(
            step=WizardStep.PREVIEW,
            file_name=file_name,
            file_size=len(data),
            sheet=sheet,
            errors=errors,
        )
        logger.info(f"decoded file={file_name} rows={len(sheet)} validation_errors={len(errors)}")
        return True

    # ---- step 2: preview --------------------------------------------------

    def preview(self, limit: int = PREVIEW_LIMIT) -> list[PreviewRow]:
        """First `limit` rows with the fields that carry errors."""
        sheet = self.session.sheet
        if sheet is None:
            return []
        error_fields: dict[int, set[str]] = {}
        for e in self.session.errors:
            error_fields.setdefault(e.row, set()).add(e.field.lower())
        rows: list[PreviewRow] = []
        for row_number, row in sheet.numbered_rows()[:limit]:
            rows.append(PreviewRow(
                row_number=row_number,
                values={h: row.get(h) for h in self.template.headers},
                error_fields=frozenset(error_fields.get(row_number, ())),
            ))
        return rows

    def hidden_rows(self, limit: int = PREVIEW_LIMIT) -> int:
        return max(self.session.total_rows - limit, 0)

    def continue_to_confirm(self) -> None:
        """PREVIEW -> CONFIRM. Blocked while any validation error exists."""
        self._require_step(WizardStep.PREVIEW, "continue to confirmation")
        if self.session.errors:
            self.report("error", "Please fix validation errors before uploading")
            raise WizardStateError(f"{len(self.session.errors)} validation errors must be fixed first")
        self.session.step = WizardStep.CONFIRM

    def back(self) -> None:
        if self.session.step == WizardStep.PREVIEW:
            self.session.step = WizardStep.UPLOAD
        elif self.session.step == WizardStep.CONFIRM:
            self.session.step = WizardStep.PREVIEW
        else:
            raise WizardStateError("already at the first step")

    # ---- step 3: confirm --------------------------------------------------

    def _result(self, success: bool, inserted: int, start: datetime, error: str | None = None) -> UploadResult:
        end = datetime.now(UTC)
        return UploadResult(
            success=success,
            record_type=self.template.record_type,
            file_name=self.session.file_name or "",
            total_rows=self.session.total_rows,
            inserted_rows=inserted,
            start_time=start,
            end_time=end,
            elapsed_seconds=(end - start).total_seconds(),
            error=error,
        )

    def map_session_rows(self) -> list[NormalizedRecord]:
        """Map every decoded row (no insert). Raises MappingError on the first bad row."""
        sheet = self.session.sheet
        if sheet is None:
            raise WizardStateError("no file selected")
        cages, feed_types = self._references()
        with RowProgress(len(sheet), enabled=None if self.show_progress else False) as progress:
            return map_rows(sheet.rows, cages, feed_types, on_row=progress.advance)

    def confirm(self) -> UploadResult:
        """Map all rows and submit them as one batch insert.

        Failures keep the wizard in CONFIRM so the user can retry; success
        reports the inserted count and resets the wizard.
        """
        self._require_step(WizardStep.CONFIRM, "confirm")
        if self.session.errors:  # pragma: no cover (continue_to_confirm already blocks)
            raise WizardStateError("validation errors present")
        start = datetime.now(UTC)

        try:
            records = self.map_session_rows()
        except MappingError as e:
            message = str(e)
            self.report("error", message)
            return self._result(False, 0, start, message)

        res = self.backend.batch_insert(self.template.table_name, [r.to_dict() for r in records])
        if not res.ok:
            message = res.error or "Error uploading data"
            self.report("error", message)
            return self._result(False, 0, start, message)

        result = self._result(True, len(records), start)
        self.report("success", f"Successfully uploaded {len(records)} records")
        self.reset()
        return result

    # ---- template ----------------------------------------------------------

    def download_template(self, today: date | None = None) -> tuple[str, bytes]:
        """Return (filename, xlsx bytes) for the template of this upload type."""
        cages = self.cages.rows if self.cages is not None else ()
        feed_types = self.feed_types.rows if self.feed_types is not None else ()
        return self.template.template_filename, write_template(self.template, cages, feed_types, today=today)
