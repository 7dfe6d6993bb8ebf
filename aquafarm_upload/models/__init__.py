"""Domain models for the aquaculture bulk upload pipeline.

This package contains the transient, session-scoped models used throughout
the pipeline: decoded rows, validation errors, reference lookups and the
insert-ready records.
"""

from .config_models import DAILY_RECORDS_TEMPLATE, DatabaseConfig, FieldRule, UploadConfig, UploadTemplate
from .error_record import ErrorRecord, ValidationError
from .normalized_record import NormalizedRecord
from .reference_set import ReferenceSet
from .row_data import CellValue, DecodedSheet, PreviewRow, RawRow
from .upload_result import UploadResult
from .upload_session import UploadSession, WizardStep

__all__ = [
    # Configuration models
    "DAILY_RECORDS_TEMPLATE",
    "DatabaseConfig",
    "FieldRule",
    "UploadConfig",
    "UploadTemplate",
    # Pipeline models
    "CellValue",
    "DecodedSheet",
    "ErrorRecord",
    "NormalizedRecord",
    "PreviewRow",
    "RawRow",
    "ReferenceSet",
    "UploadResult",
    "UploadSession",
    "ValidationError",
    "WizardStep",
]
