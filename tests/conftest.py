# Shared pytest fixtures
from __future__ import annotations
import io
from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from aquafarm_upload.db.backend import QueryResult
from aquafarm_upload.models.reference_set import ReferenceSet


class FakeBackend:
    """In-memory stand-in for the hosted database."""

    def __init__(
        self,
        tables: Mapping[str, list[dict[str, Any]]] | None = None,
        insert_error: str | None = None,
        fetch_error: str | None = None,
    ) -> None:
        self.tables = {k: list(v) for k, v in (tables or {}).items()}
        self.insert_error = insert_error
        self.fetch_error = fetch_error
        self.fetch_calls: list[tuple[str, Any, Any]] = []
        self.insert_calls: list[tuple[str, list[dict[str, Any]]]] = []

    def fetch_reference_set(self, table, columns=None, filters=None) -> QueryResult:
        self.fetch_calls.append((table, columns, filters))
        if self.fetch_error:
            return QueryResult(error=self.fetch_error)
        return QueryResult(data=list(self.tables.get(table, [])))

    def batch_insert(self, table, records) -> QueryResult:
        self.insert_calls.append((table, [dict(r) for r in records]))
        if self.insert_error:
            return QueryResult(error=self.insert_error)
        self.tables.setdefault(table, []).extend(dict(r) for r in records)
        return QueryResult(data=[{"id": i + 1} for i in range(len(records))])


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "data").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture()
def cage_rows() -> list[dict[str, Any]]:
    return [
        {"id": 11, "code": "C1", "name": "Cage One"},
        {"id": 12, "code": "C2", "name": "Cage Two"},
    ]


@pytest.fixture()
def feed_type_rows() -> list[dict[str, Any]]:
    return [
        {"id": 21, "name": "Grower", "price_per_kg": Decimal("1.80")},
        {"id": 22, "name": "Starter", "price_per_kg": 2.5},
    ]


@pytest.fixture()
def cages(cage_rows) -> ReferenceSet:
    return ReferenceSet("cages", cage_rows, key_fields=("code", "name"))


@pytest.fixture()
def feed_types(feed_type_rows) -> ReferenceSet:
    return ReferenceSet("feed_types", feed_type_rows)


@pytest.fixture()
def backend(cage_rows, feed_type_rows) -> FakeBackend:
    return FakeBackend({"cages": cage_rows, "feed_types": feed_type_rows})


@pytest.fixture()
def make_backend(cage_rows, feed_type_rows) -> Callable[..., FakeBackend]:
    """Factory for backends that fail on fetch or insert."""
    def _make(**kwargs: Any) -> FakeBackend:
        return FakeBackend({"cages": cage_rows, "feed_types": feed_type_rows}, **kwargs)
    return _make


@pytest.fixture()
def make_xlsx() -> Callable[..., bytes]:
    """Build .xlsx bytes; each sheet is a list of physical rows (header first)."""
    def _make(rows: Sequence[Sequence[object]], extra_sheets: Mapping[str, Sequence[Sequence[object]]] | None = None) -> bytes:
        buf = io.BytesIO()
        with pd.ExcelWriter(buf, engine="openpyxl") as writer:
            pd.DataFrame(list(rows)).to_excel(writer, sheet_name="Sheet1", header=False, index=False)
            for name, sheet_rows in (extra_sheets or {}).items():
                pd.DataFrame(list(sheet_rows)).to_excel(writer, sheet_name=name, header=False, index=False)
        return buf.getvalue()
    return _make


@pytest.fixture()
def make_csv() -> Callable[[Sequence[Sequence[object]]], bytes]:
    def _make(rows: Sequence[Sequence[object]]) -> bytes:
        lines = [",".join("" if v is None else str(v) for v in row) for row in rows]
        return ("\n".join(lines) + "\n").encode("utf-8")
    return _make


@pytest.fixture()
def sample_config_yaml() -> str:
    return """templates:
  daily_records:
    table: daily_records
    headers: [cage_code, date, feed_amount, feed_type, feed_price, mortality, notes]
    required_headers: [cage_code, date, feed_amount, feed_type]
    max_rows: 50
    rules:
      cage_code: {required: true}
      date: {required: true, type: date}
      feed_amount: {required: true, type: number, min: 0}
      feed_type: {required: true}
      feed_price: {type: number, min: 0}
      mortality: {type: number, min: 0}
      notes: {}
reference_tables:
  cages: cages
  feed_types: feed_types
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: farmdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "upload.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def daily_header() -> list[str]:
    return ["cage_code", "date", "feed_amount", "feed_type", "feed_price", "mortality", "notes"]
