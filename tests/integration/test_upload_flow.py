from __future__ import annotations

import datetime as dt

import pytest

from aquafarm_upload.excel.reader import CSV_MIME, XLSX_MIME
from aquafarm_upload.models.upload_session import WizardStep
from aquafarm_upload.services.wizard import UploadWizard, WizardStateError

"""End-to-end: spreadsheet bytes -> wizard -> in-memory backend."""


@pytest.fixture()
def reports():
    return []


def _wizard(backend, reports):
    w = UploadWizard(backend, report=lambda kind, msg: reports.append((kind, msg)))
    w.load_references()
    return w


def test_minimal_columns_upload(backend, reports, make_xlsx):
    # optional 列 (mortality 等) なしのファイル
    data = make_xlsx([["cage_code", "date", "feed_amount", "feed_type"], ["C1", "2024-01-15", "12.5", "Starter"]])
    w = _wizard(backend, reports)
    assert w.select_file(data, XLSX_MIME, "minimal.xlsx")
    w.continue_to_confirm()
    result = w.confirm()

    assert result.success
    _, records = backend.insert_calls[0]
    assert len(records) == 1
    rec = records[0]
    assert rec["cage_id"] == 11
    assert rec["feed_type_id"] == 22
    assert rec["mortality"] == 0
    assert rec["feed_cost"] == pytest.approx(12.5 * 2.5)
    assert rec["created_at"].endswith("Z")


def test_unknown_cage_never_reaches_backend(backend, reports, make_xlsx):
    data = make_xlsx([["cage_code", "date", "feed_amount", "feed_type"], ["ZZZ", "2024-01-15", "12.5", "Starter"]])
    w = _wizard(backend, reports)
    assert w.select_file(data, XLSX_MIME)
    assert w.errors[0].row == 2
    assert '"ZZZ"' in w.errors[0].message
    with pytest.raises(WizardStateError):
        w.continue_to_confirm()
    assert backend.insert_calls == []


def test_mixed_date_encodings_normalize_alike(backend, reports, make_xlsx, daily_header):
    data = make_xlsx([
        daily_header,
        ["C1", dt.datetime(2023, 3, 15), 1, "Grower", None, None, None],
        ["C1", 45000, 1, "Grower", None, None, None],
        ["C1", "15/03/2023", 1, "Grower", None, None, None],
        ["C1", "2023-03-15", 1, "Grower", None, None, None],
    ])
    w = _wizard(backend, reports)
    assert w.select_file(data, XLSX_MIME)
    assert w.errors == []
    w.continue_to_confirm()
    assert w.confirm().success
    _, records = backend.insert_calls[0]
    assert {r["date"] for r in records} == {"2023-03-15"}


def test_fix_and_reupload(backend, reports, make_csv, daily_header):
    w = _wizard(backend, reports)
    bad = make_csv([daily_header, ["C1", "2024-01-15", "-3", "Starter", "", "", ""]])
    assert w.select_file(bad, CSV_MIME, "daily.csv")
    assert [e.message for e in w.errors] == ["feed_amount must be at least 0"]

    w.back()
    assert w.step is WizardStep.UPLOAD
    good = make_csv([daily_header, ["C1", "2024-01-15", "3", "Starter", "", "2", ""]])
    assert w.select_file(good, CSV_MIME, "daily.csv")
    w.continue_to_confirm()
    result = w.confirm()
    assert result.success
    assert backend.insert_calls[0][1][0]["mortality"] == 2


def test_failed_insert_can_be_retried(make_backend, reports, make_xlsx, daily_header):
    backend = make_backend(insert_error="could not serialize access")
    w = _wizard(backend, reports)
    w.select_file(make_xlsx([daily_header, ["C1", "2024-01-15", "1", "Starter", None, None, None]]), XLSX_MIME)
    w.continue_to_confirm()
    assert not w.confirm().success
    assert w.step is WizardStep.CONFIRM

    backend.insert_error = None
    result = w.confirm()
    assert result.success
    assert result.inserted_rows == 1
    assert len(backend.insert_calls) == 2
    assert w.step is WizardStep.UPLOAD
