from __future__ import annotations

import io
import warnings
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from typing import Any

import numpy as np
import pandas as pd

from ..models.config_models import DEFAULT_MAX_ROWS, UploadTemplate
from ..models.row_data import CellValue, DecodedSheet, RawRow

"""Spreadsheet decoder and template writer.

Upload contract:
- Accepts .xlsx / .xls / .csv by declared MIME type, anything else is rejected.
- Only the first sheet is read; further sheets are ignored.
- The first physical row is the header row (trimmed + lowercased).
- Required header check, empty-file check and row ceiling check all fail the
  whole decode; no partial output is ever returned.

pandas does the actual parsing (openpyxl for .xlsx, xlrd for .xls).
"""

__all__ = [
    "ACCEPTED_MIME_TYPES",
    "DecodeError",
    "UnsupportedFileTypeError",
    "UnreadableFileError",
    "NoDataError",
    "TooManyRowsError",
    "MissingColumnsError",
    "read_first_sheet",
    "decode_upload",
    "write_template",
]

XLS_MIME = "application/vnd.ms-excel"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIME = "text/csv"

ACCEPTED_MIME_TYPES = (XLS_MIME, XLSX_MIME, CSV_MIME)


class DecodeError(Exception):
    """Base class for fatal decode failures (wizard resets to upload)."""


class UnsupportedFileTypeError(DecodeError):
    """Raised when the declared MIME type is not an accepted spreadsheet type."""


class UnreadableFileError(DecodeError):
    """Raised when the bytes cannot be parsed as the declared type."""


class NoDataError(DecodeError):
    """Raised when the file has no header row or no data rows."""


class TooManyRowsError(DecodeError):
    """Raised when the number of data rows exceeds the ceiling."""


class MissingColumnsError(DecodeError):
    """Raised when required template columns are missing from the header row."""

    def __init__(self, missing: Sequence[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


def _keep_extra_cells(line: list[str]) -> list[str]:
    # ヘッダより長い行: 余分なセルは pandas が切り捨てる (ParserWarning は抑止)
    return line


def read_first_sheet(data: bytes, mime_type: str, na_values: Sequence[str] = ()) -> pd.DataFrame:
    """Read the first sheet of an uploaded file as a header-less raw DataFrame.

    pandas' default NA strings ("NA", "N/A", "null", ...) are kept as text for
    every format; only blank cells and the strings in na_values become empty.
    Rows longer than the header row are accepted and cut to the header width.
    """
    if mime_type not in ACCEPTED_MIME_TYPES:
        raise UnsupportedFileTypeError("Invalid file type. Please upload an Excel or CSV file.")

    buf = io.BytesIO(data)
    na_list = list(na_values)
    try:
        if mime_type == CSV_MIME:
            # 文字列のまま読む (型変換は validator / mapper 側)
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", pd.errors.ParserWarning)
                return pd.read_csv(
                    buf,
                    header=None,
                    dtype=str,
                    keep_default_na=False,
                    na_values=na_list,
                    skip_blank_lines=False,
                    engine="python",
                    on_bad_lines=_keep_extra_cells,
                )
        engine = "xlrd" if mime_type == XLS_MIME else "openpyxl"
        return pd.read_excel(
            buf,
            sheet_name=0,
            header=None,
            dtype=object,
            engine=engine,
            keep_default_na=False,
            na_values=na_list,
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()
    except Exception as e:
        raise UnreadableFileError(f"Error reading file: {e}") from e


def _clean_cell(val: Any) -> CellValue:
    if val is None:
        return None
    if isinstance(val, str):
        return val if val.strip() != "" else None
    if pd.isna(val):
        return None
    if isinstance(val, pd.Timestamp):
        return val.to_pydatetime()
    if isinstance(val, np.generic):
        return val.item()
    return val


def _header_key(val: Any) -> str:
    if val is None or (not isinstance(val, str) and pd.isna(val)):
        return ""
    return str(val).strip().lower()


def _missing_headers(columns: Iterable[str], required_headers: Iterable[str]) -> list[str]:
    present = set(columns)
    return [h for h in required_headers if h.strip().lower() not in present]


def decode_upload(
    data: bytes,
    mime_type: str,
    required_headers: Sequence[str] = (),
    max_rows: int = DEFAULT_MAX_ROWS,
    na_values: Sequence[str] = (),
) -> DecodedSheet:
    """Decode an uploaded spreadsheet into ordered, header-keyed rows.

    Steps:
    1. Read the first sheet raw (no header inference)
    2. Derive field keys from the first row
    3. Fail on missing required columns (before any data row is looked at)
    4. Fail on zero data rows / more than max_rows data rows
    5. Zip each data row to the header keys; absent cells become None
    """
    df = read_first_sheet(data, mime_type, na_values)
    if df.shape[0] == 0:
        raise NoDataError("File contains no data or only headers")

    raw_header = df.iloc[0].tolist()
    keyed_positions = [(i, _header_key(h)) for i, h in enumerate(raw_header)]
    keyed_positions = [(i, k) for i, k in keyed_positions if k]
    columns = [k for _, k in keyed_positions]

    missing = _missing_headers(columns, required_headers)
    if missing:
        raise MissingColumnsError(missing)

    rows: list[RawRow] = []
    for raw in df.iloc[1:].itertuples(index=False, name=None):
        row: RawRow = {}
        for i, key in keyed_positions:
            row[key] = _clean_cell(raw[i]) if i < len(raw) else None
        rows.append(row)

    # 末尾の空行のみ除去 (途中の空行は行番号維持のため残す)
    while rows and all(v is None for v in rows[-1].values()):
        rows.pop()

    if not rows:
        raise NoDataError("File contains no data or only headers")
    if len(rows) > max_rows:
        raise TooManyRowsError(f"File contains too many rows (maximum {max_rows})")

    return DecodedSheet(columns=columns, rows=rows)


def _example_row(
    template: UploadTemplate,
    cages: Sequence[Mapping[str, Any]],
    feed_types: Sequence[Mapping[str, Any]],
    today: date,
) -> list[Any]:
    cage = cages[0]
    feed_type = feed_types[0]
    price = feed_type.get("price_per_kg")
    example = {
        "cage_code": cage.get("code") or cage.get("name"),
        "cage_name": cage.get("name"),
        "date": today.isoformat(),
        "feed_amount": "1.5",
        "feed_type": feed_type.get("name"),
        "feed_price": str(price) if price is not None else "1.5",
        "mortality": "0",
        "notes": "Sample record",
    }
    return [example.get(h, "") for h in template.headers]


def write_template(
    template: UploadTemplate,
    cages: Sequence[Mapping[str, Any]] = (),
    feed_types: Sequence[Mapping[str, Any]] = (),
    today: date | None = None,
) -> bytes:
    """Build the downloadable .xlsx template for an upload type.

    Header row = template headers. One example row is added when both
    reference lists are available, using the first cage and feed type so the
    example passes validation as-is.
    """
    rows: list[list[Any]] = [list(template.headers)]
    if cages and feed_types:
        rows.append(_example_row(template, cages, feed_types, today or datetime.now().date()))

    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Template", header=False, index=False)
    return buf.getvalue()
