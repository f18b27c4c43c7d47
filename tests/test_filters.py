from __future__ import annotations

import pytest

from sheet_tally.filters import (
    NO_FILTER_TEXT,
    FilterModel,
    build_condition,
    describe_filters,
    filter_lines,
    matching_values,
)
from sheet_tally.models import (
    ColumnFilterSetting,
    FilterField,
    FilterStatistics,
    TableConfig,
    TableRegion,
)


def _model() -> FilterModel:
    return FilterModel(
        [
            FilterField(0, "Fruit", ("apple", "Banana", "cherry"), {"apple", "Banana", "cherry"}),
            FilterField(1, "Size", ("L", "M"), {"L", "M"}),
        ]
    )


def test_filter_field_rejects_selection_outside_values() -> None:
    with pytest.raises(ValueError, match="subset"):
        FilterField(0, "x", ("a",), {"a", "b"})


def test_unknown_column_raises_key_error() -> None:
    model = _model()

    with pytest.raises(KeyError):
        model.toggle(9, "a")


def test_toggle_twice_restores_selection() -> None:
    model = _model()

    model.toggle(0, "apple")
    assert model.is_active(0)
    assert model.field(0).selected_values == {"Banana", "cherry"}

    model.toggle(0, "apple")
    assert not model.is_active(0)
    assert model.field(0).selected_values == {"apple", "Banana", "cherry"}


def test_toggle_ignores_values_the_column_never_had() -> None:
    model = _model()

    model.toggle(0, "durian")

    assert model.field(0).selected_values == {"apple", "Banana", "cherry"}


def test_select_none_then_all() -> None:
    model = _model()

    model.select_none(1)
    assert model.field(1).selected_values == set()
    assert model.is_active(1)

    model.select_all(1)
    assert not model.is_active(1)


def test_invert_twice_is_identity() -> None:
    model = _model()
    model.toggle(0, "cherry")
    before = set(model.field(0).selected_values)

    model.invert(0)
    assert model.field(0).selected_values == {"cherry"}
    model.invert(0)

    assert model.field(0).selected_values == before


def test_matching_values_is_case_insensitive() -> None:
    f = FilterField(0, "Fruit", ("apple", "Banana", "cherry"), set())

    assert matching_values(f, "AN") == ["Banana"]
    assert matching_values(f, "  ") == ["apple", "Banana", "cherry"]


def test_search_scoped_mutations_only_touch_matches() -> None:
    model = _model()

    model.select_none_visible(0, "an")
    assert model.field(0).selected_values == {"apple", "cherry"}

    model.invert_visible(0, "e")
    assert model.field(0).selected_values == set()

    model.select_all_visible(0, "err")
    assert model.field(0).selected_values == {"cherry"}


def test_set_selection_drops_unknown_values() -> None:
    model = _model()

    model.set_selection(1, ["M", "XL"])

    assert model.field(1).selected_values == {"M"}


def test_reset_selects_everything() -> None:
    model = _model()
    model.select_none(0)
    model.toggle(1, "L")

    model.reset()

    assert model.active_fields() == []


def test_from_region_profiles_every_column() -> None:
    region = TableRegion(rows=[["a", "b"], ["1", "x"], ["2", "y"]])

    model = FilterModel.from_region(region)

    assert len(model) == 2
    assert 1 in model
    assert model.field(1).all_values == ("x", "y")


def test_duplicate_fields_are_rejected() -> None:
    with pytest.raises(ValueError, match="Duplicate"):
        FilterModel([FilterField(0, "a"), FilterField(0, "b")])


def test_apply_settings_keeps_only_present_values_and_warns() -> None:
    model = _model()
    model.select_none(1)
    settings = [
        ColumnFilterSetting(0, "A", "Fruit", ["apple", "kiwi"]),
        ColumnFilterSetting(5, "F", "Gone", ["x"]),
    ]

    warnings = model.apply_settings(settings)

    assert model.field(0).selected_values == {"apple"}
    assert not model.is_active(1)
    assert len(warnings) == 1
    assert "Gone" in warnings[0]


def test_build_condition_snapshots_active_fields() -> None:
    model = _model()
    model.set_selection(0, ["cherry", "apple"])

    condition = build_condition(
        model,
        condition_id="filter_1",
        name="Fruits",
        created_at="2024-05-01T00:00:00",
        config=TableConfig(sheet_name="Data", id_column=0, amount_column=1),
    )

    assert condition.sheet_name == "Data"
    assert [s.column_index for s in condition.settings] == [0]
    assert condition.settings[0].filter_values == ["apple", "cherry"]
    assert condition.settings[0].column_name == "A"
    assert condition.config.amount_column == 1


def test_build_condition_refuses_when_nothing_filters() -> None:
    with pytest.raises(ValueError, match="No filter conditions"):
        build_condition(_model(), condition_id="x", name="x", created_at="now")


def test_describe_filters_lists_active_fields() -> None:
    model = FilterModel([FilterField(0, "Code", tuple("abcdefg"), set("abcdef"))])

    assert filter_lines(model.fields) == [("Code", "a; b; c; d; e... (6 items)")]
    text = describe_filters(
        model.fields, FilterStatistics(filtered_row_count=6, total_amount=12.5, is_valid=True)
    )
    assert text.splitlines() == [
        "Filtered rows: 6",
        "Total amount: 12.50",
        "",
        "【Code】：a; b; c; d; e... (6 items)",
    ]


def test_describe_filters_without_conditions() -> None:
    assert describe_filters(_model().fields) == NO_FILTER_TEXT
