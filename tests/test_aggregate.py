from __future__ import annotations

import pytest

from sheet_tally.aggregate import sum_amounts, summarize_visible
from sheet_tally.filters import FilterModel
from sheet_tally.models import TableRegion

ROWS = [["id", "amt"], ["1", "¥100"], ["2", "$50.5"], ["3", ""]]


def test_unfiltered_total_matches_sum_of_rows() -> None:
    region = TableRegion(rows=ROWS)
    model = FilterModel.from_region(region)

    visibility, result = summarize_visible(region, model, 1, identifier_column=0)

    assert visibility.visible_count == 3
    assert result.visible_row_count == 3
    assert result.total_amount == pytest.approx(150.5)
    assert result.empty_count == 1


def test_filter_by_identifier_narrows_the_total() -> None:
    region = TableRegion(rows=ROWS)
    model = FilterModel.from_region(region)
    model.set_selection(0, ["1"])

    _visibility, result = summarize_visible(region, model, 1, identifier_column=0)

    assert result.visible_row_count == 1
    assert result.total_amount == pytest.approx(100.0)
    assert [e.identifier for e in result.entries] == ["1"]


def test_out_of_range_amount_column_contributes_zero() -> None:
    result = sum_amounts([["a"], ["b"]], 4, [0, 1])

    assert result.visible_row_count == 2
    assert result.total_amount == 0.0
    assert {e.status for e in result.entries} == {"out_of_range"}


def test_invalid_amounts_are_counted() -> None:
    rows = [["x", "n/a"], ["y", "12"], ["z", None]]

    result = sum_amounts(rows, 1, [0, 1, 2], identifier_column=0)

    assert result.total_amount == 12.0
    assert result.invalid_count == 1
    assert result.empty_count == 1
    assert result.to_dict() == {
        "visible_row_count": 3,
        "total_amount": 12.0,
        "empty_count": 1,
        "invalid_count": 1,
    }


def test_empty_selection_sums_to_zero() -> None:
    result = sum_amounts(ROWS[1:], 1, [])

    assert result.visible_row_count == 0
    assert result.total_amount == 0.0
    assert result.entries == []
