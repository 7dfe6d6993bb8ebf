from __future__ import annotations

import datetime as dt
import re

import pytest

from aquafarm_upload.services.mapper import MappingError, map_row, map_rows


def _row(**overrides):
    row = {"cage_code": "C1", "date": "2024-01-15", "feed_amount": "12.5", "feed_type": "Starter"}
    row.update(overrides)
    return row


def test_minimal_row_defaults(cages, feed_types):
    rec = map_row(_row(), 2, cages, feed_types)
    assert rec.cage_id == 11
    assert rec.feed_type_id == 22
    assert rec.date == "2024-01-15"
    assert rec.feed_amount == 12.5
    assert rec.mortality == 0
    assert rec.notes is None
    # 単価未入力 -> 飼料マスタの price_per_kg
    assert rec.feed_price == 2.5
    assert rec.feed_cost == pytest.approx(12.5 * 2.5)


def test_supplied_price_overrides_catalog(cages, feed_types):
    rec = map_row(_row(feed_price="3.2"), 2, cages, feed_types)
    assert rec.feed_price == 3.2
    assert rec.feed_cost == pytest.approx(12.5 * 3.2)


def test_decimal_catalog_price(cages, feed_types):
    rec = map_row(_row(feed_type="Grower", feed_amount=10), 2, cages, feed_types)
    assert rec.feed_price == pytest.approx(1.8)
    assert rec.feed_cost == pytest.approx(18.0)


def test_mortality_truncated_to_int(cages, feed_types):
    rec = map_row(_row(mortality="3.7"), 2, cages, feed_types)
    assert rec.mortality == 3


def test_notes_trimmed(cages, feed_types):
    assert map_row(_row(notes="  fed twice  "), 2, cages, feed_types).notes == "fed twice"
    assert map_row(_row(notes="   "), 2, cages, feed_types).notes is None


def test_date_encodings(cages, feed_types):
    assert map_row(_row(date=dt.datetime(2023, 3, 15)), 2, cages, feed_types).date == "2023-03-15"
    assert map_row(_row(date=45000), 2, cages, feed_types).date == "2023-03-15"
    assert map_row(_row(date="15/03/2023"), 2, cages, feed_types).date == "2023-03-15"


def test_cage_matched_case_insensitive_by_code(cages, feed_types):
    assert map_row(_row(cage_code=" c2 "), 2, cages, feed_types).cage_id == 12


def test_cage_name_used_when_code_blank(cages, feed_types):
    rec = map_row(_row(cage_code=None, cage_name="cage two"), 2, cages, feed_types)
    assert rec.cage_id == 12


def test_unknown_cage(cages, feed_types):
    with pytest.raises(MappingError) as ei:
        map_row(_row(cage_code="ZZZ"), 2, cages, feed_types)
    assert ei.value.row_number == 2
    assert str(ei.value).startswith('Row 2: Cage not found: "ZZZ".')


def test_unknown_feed_type(cages, feed_types):
    with pytest.raises(MappingError) as ei:
        map_row(_row(feed_type="Pellet X"), 4, cages, feed_types)
    assert str(ei.value).startswith('Row 4: Feed type not found: "Pellet X".')


@pytest.mark.parametrize(
    "overrides,fragment",
    [
        ({"feed_amount": "-1"}, 'Invalid feed amount: "-1"'),
        ({"feed_amount": "abc"}, 'Invalid feed amount: "abc"'),
        ({"feed_price": "-0.5"}, 'Invalid feed price: "-0.5"'),
        ({"mortality": "-2"}, 'Invalid mortality: "-2". Must be a non-negative number.'),
        ({"date": "someday"}, 'Invalid date format: "someday". Please use YYYY-MM-DD format.'),
    ],
)
def test_invalid_values(overrides, fragment, cages, feed_types):
    with pytest.raises(MappingError) as ei:
        map_row(_row(**overrides), 3, cages, feed_types)
    assert str(ei.value).startswith("Row 3: ")
    assert fragment in str(ei.value)


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"feed_amount": "-1"}, 'Row 3: Invalid feed amount: "-1". Must be a non-negative number.'),
        ({"feed_price": "-0.5"}, 'Row 3: Invalid feed price: "-0.5". Must be a non-negative number.'),
    ],
)
def test_negative_amounts_hint_allows_zero(overrides, message, cages, feed_types):
    with pytest.raises(MappingError) as ei:
        map_row(_row(**overrides), 3, cages, feed_types)
    assert str(ei.value) == message
    # 0 自体は有効
    assert map_row(_row(feed_amount="0", feed_price="0"), 3, cages, feed_types).feed_amount == 0


def test_map_rows_preserves_order_and_stamps_created_at(cages, feed_types):
    rows = [_row(cage_code="C2"), _row(), _row(feed_type="Grower")]
    seen: list[int] = []
    records = map_rows(rows, cages, feed_types, on_row=seen.append)
    assert [r.row_number for r in records] == [2, 3, 4]
    assert [r.cage_id for r in records] == [12, 11, 11]
    assert seen == [2, 3, 4]
    stamps = {r.created_at for r in records}
    assert len(stamps) == 1
    assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?Z$", stamps.pop())


def test_map_rows_stops_at_first_failure(cages, feed_types):
    rows = [_row(), _row(cage_code="ZZZ"), _row(feed_type="Nope")]
    seen: list[int] = []
    with pytest.raises(MappingError) as ei:
        map_rows(rows, cages, feed_types, on_row=seen.append)
    assert ei.value.row_number == 3
    assert seen == [2]


def test_to_dict_excludes_row_number(cages, feed_types):
    data = map_row(_row(), 2, cages, feed_types, created_at="2024-01-15T00:00:00Z").to_dict()
    assert set(data) == {
        "cage_id", "date", "feed_amount", "feed_type_id", "feed_price",
        "feed_cost", "mortality", "notes", "created_at",
    }
    assert data["created_at"] == "2024-01-15T00:00:00Z"
