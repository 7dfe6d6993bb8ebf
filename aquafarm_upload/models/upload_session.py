from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .error_record import ValidationError
from .row_data import DecodedSheet

"""WizardStep enum and UploadSession state for the upload wizard.

The UploadSession represents the in-memory state of one wizard session: the
selected file, its decoded rows and the validation errors found for them.
Nothing here is persisted; closing the wizard discards it.
"""

__all__ = [
    "WizardStep",
    "UploadSession",
]


class WizardStep(Enum):
    """Steps of the upload wizard.

    State transitions: upload -> preview -> confirm, with back navigation
    (preview -> upload, confirm -> preview) and no skip-ahead.

    - UPLOAD: waiting for a file selection
    - PREVIEW: file decoded, rows and validation errors on display
    - CONFIRM: rows error-free, waiting for explicit confirmation
    """
    UPLOAD = 1
    PREVIEW = 2
    CONFIRM = 3


@dataclass
class UploadSession:
    """Mutable state owned by one UploadWizard."""
    step: WizardStep = WizardStep.UPLOAD
    file_name: str | None = None
    file_size: int = 0
    sheet: DecodedSheet | None = None
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.sheet) if self.sheet is not None else 0

    def error_rows(self) -> set[int]:
        return {e.row for e in self.errors}
