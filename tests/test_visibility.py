from __future__ import annotations

import pytest

from sheet_tally.filters import FilterModel
from sheet_tally.models import FilterField, TableRegion, VisibilityRun
from sheet_tally.visibility import (
    compress_runs,
    evaluate_visibility,
    expand_runs,
    hidden_runs,
    row_matches,
)


def _region() -> TableRegion:
    return TableRegion(
        rows=[
            ["id", "color", "size"],
            ["1", "red", "S"],
            ["2", "blue", "M"],
            ["3", "red", "M"],
            ["4", None, "S"],
        ]
    )


def test_no_active_filter_shows_every_row() -> None:
    region = _region()

    result = evaluate_visibility(region, FilterModel.from_region(region).fields)

    assert result.visible == [True, True, True, True]
    assert result.visible_count == 4
    assert result.hidden_count == 0


def test_active_fields_are_anded() -> None:
    region = _region()
    model = FilterModel.from_region(region)
    model.set_selection(1, ["red"])
    model.set_selection(2, ["M"])

    result = evaluate_visibility(region, model.fields)

    assert result.visible == [False, False, True, False]
    assert result.visible_indices == [2]


def test_empty_selection_hides_everything() -> None:
    region = _region()
    model = FilterModel.from_region(region)
    model.select_none(2)

    result = evaluate_visibility(region, model.fields)

    assert result.visible_count == 0
    assert result.hidden_count == 4


def test_blank_cells_never_match_an_active_field() -> None:
    region = _region()
    model = FilterModel.from_region(region)
    model.toggle(1, "blue")

    result = evaluate_visibility(region, model.fields)

    assert result.visible == [True, False, True, False]


def test_row_matches_treats_missing_cells_as_blank() -> None:
    field = FilterField(5, "far", ("x",), {"x"})

    assert row_matches(["a"], [field]) is False
    assert row_matches(["a"], []) is True


def test_compress_runs_builds_maximal_runs() -> None:
    runs = compress_runs([True, True, False, False, False, True])

    assert runs == [
        VisibilityRun(1, 2, True),
        VisibilityRun(3, 5, False),
        VisibilityRun(6, 6, True),
    ]
    assert sum(r.length for r in runs) == 6


@pytest.mark.parametrize(
    "flags",
    [[], [True], [False, False], [True, False, True, False], [False, True, True, True, False]],
)
def test_expand_inverts_compress(flags: list[bool]) -> None:
    runs = compress_runs(flags)

    assert expand_runs(runs) == flags
    for left, right in zip(runs, runs[1:]):
        assert left.visible != right.visible


def test_expand_runs_rejects_gaps() -> None:
    with pytest.raises(ValueError, match="contiguous"):
        expand_runs([VisibilityRun(1, 1, True), VisibilityRun(3, 3, False)])


def test_hidden_runs_only_returns_hidden_ranges() -> None:
    assert hidden_runs([True, False, False, True, False]) == [
        VisibilityRun(2, 3, False),
        VisibilityRun(5, 5, False),
    ]


def test_visibility_run_validates_bounds() -> None:
    with pytest.raises(ValueError):
        VisibilityRun(0, 1, True)
    with pytest.raises(ValueError):
        VisibilityRun(3, 2, True)
