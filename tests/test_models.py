from __future__ import annotations

from datetime import date, datetime

import pytest

from sheet_tally.models import (
    CellRange,
    FilterCondition,
    RunManifest,
    TableConfig,
    TableRegion,
    VisibilityResult,
    cell_text,
)


def test_cell_text_stringification_rules() -> None:
    assert cell_text(None) == ""
    assert cell_text(float("nan")) == ""
    assert cell_text(True) == "TRUE"
    assert cell_text(False) == "FALSE"
    assert cell_text(3.0) == "3"
    assert cell_text(2.5) == "2.5"
    assert cell_text(7) == "7"
    assert cell_text(" padded ") == " padded "
    assert cell_text(date(2024, 1, 2)) == "2024-01-02"
    assert cell_text(datetime(2024, 1, 2, 3, 4)) == "2024-01-02T03:04:00"


def test_table_region_normalizes_row_width() -> None:
    region = TableRegion(rows=[["a", "b", "c"], ["1"], ["1", "2", "3", "4"]])

    assert region.width == 3
    assert region.rows[1] == ["1", None, None]
    assert region.rows[2] == ["1", "2", "3"]
    assert region.header == ["a", "b", "c"]
    assert region.data_row_count == 2


def test_table_region_with_explicit_width() -> None:
    region = TableRegion(rows=[["a"]], column_count=2)

    assert region.rows == [["a", None]]


def test_empty_region_has_no_header_or_data() -> None:
    region = TableRegion()

    assert region.header == []
    assert region.data_rows == []
    assert region.data_row_count == 0


def test_cell_range_validation() -> None:
    rng = CellRange(1, 0, 3, 2)
    assert rng.row_span == 3
    assert rng.col_span == 3

    with pytest.raises(ValueError):
        CellRange(3, 0, 1, 0)
    with pytest.raises(ValueError):
        CellRange(-1, 0, 1, 0)
    with pytest.raises(TypeError):
        CellRange(1.5, 0, 2, 0)  # type: ignore[arg-type]


def test_visibility_result_counts_must_add_up() -> None:
    with pytest.raises(ValueError):
        VisibilityResult(visible=[True, False], visible_count=2, hidden_count=1)


def test_table_config_rejects_bad_values() -> None:
    with pytest.raises(ValueError, match="header_row"):
        TableConfig(header_row=0)
    with pytest.raises(ValueError, match="amount_column"):
        TableConfig(amount_column=-1)


def test_filter_condition_from_dict_requires_object() -> None:
    with pytest.raises(TypeError):
        FilterCondition.from_dict(["not", "a", "dict"])  # type: ignore[arg-type]


def test_filter_condition_from_dict_defaults() -> None:
    condition = FilterCondition.from_dict(
        {"id": "f1", "settings": [{"column_index": 2, "filter_values": ["x"]}]}
    )

    assert condition.settings[0].column_index == 2
    assert condition.settings[0].is_filtered
    assert condition.config.header_row == 1


def test_run_manifest_to_dict_copies_warnings() -> None:
    manifest = RunManifest(command="report", warnings=["w1"])

    payload = manifest.to_dict()
    payload["warnings"].append("w2")

    assert manifest.warnings == ["w1"]
    assert payload["tool"] == "sheet-tally"


def test_run_manifest_rejects_unknown_status() -> None:
    with pytest.raises(ValueError, match="status"):
        RunManifest(status="partial")
