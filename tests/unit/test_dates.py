from __future__ import annotations

import datetime as dt

import pytest

from aquafarm_upload.services.dates import DateParseError, detect_date_branch, normalize_date, serial_to_date


@pytest.mark.parametrize(
    "value,branch",
    [
        (dt.date(2024, 1, 15), "native"),
        (dt.datetime(2024, 1, 15, 8, 30), "native"),
        (45000, "serial"),
        (45000.75, "serial"),
        ("45000", "serial"),
        ("15/03/2023", "day_first"),
        ("15-03-2023", "day_first"),
        ("2024-01-15", "free_text"),
        ("March 15, 2023", "free_text"),
    ],
)
def test_branch_selection(value, branch):
    assert detect_date_branch(value) == branch


def test_native_values():
    assert normalize_date(dt.date(2024, 1, 15)) == "2024-01-15"
    assert normalize_date(dt.datetime(2024, 1, 15, 23, 59)) == "2024-01-15"


def test_serial_epoch():
    assert serial_to_date(1) == dt.date(1899, 12, 31)
    assert normalize_date(45000) == "2023-03-15"
    # 小数部は時刻
    assert normalize_date(45000.99) == "2023-03-15"


def test_serial_and_day_first_agree():
    assert normalize_date(45000) == normalize_date("15/03/2023") == normalize_date("2023-03-15")


def test_day_first_is_not_month_first():
    assert normalize_date("03/04/2024") == "2024-04-03"


def test_day_first_invalid_calendar_date():
    with pytest.raises(DateParseError):
        normalize_date("31/02/2024")


def test_free_text_iso_and_words():
    assert normalize_date("2024-01-15") == "2024-01-15"
    assert normalize_date(" March 15, 2023 ") == "2023-03-15"


@pytest.mark.parametrize("value", ["not a date", "", None, "2024-13-45"])
def test_unparseable(value):
    with pytest.raises(DateParseError):
        normalize_date(value)


def test_bool_is_not_a_serial():
    assert detect_date_branch(True) == "free_text"


def test_day_first_converter_rejects_other_shapes():
    from aquafarm_upload.services.dates import _from_day_first

    with pytest.raises(DateParseError):
        _from_day_first("2024-01-15")
