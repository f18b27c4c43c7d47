from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sheet_tally.models import FilterCondition, TableConfig, TableRegion
from sheet_tally.session import FilterSession, unique_sheet_name

NOW = datetime(2024, 5, 1, 9, 30, 0, tzinfo=timezone.utc)


def _session() -> FilterSession:
    region = TableRegion(
        rows=[
            ["id", "team", "amt"],
            ["1", "red", "¥100"],
            ["2", "blue", "$50.5"],
            ["3", "red", ""],
        ],
        sheet_name="Data",
    )
    return FilterSession(region, TableConfig(sheet_name="Data", id_column=0, amount_column=2))


def test_apply_updates_statistics() -> None:
    session = _session()
    session.model.set_selection(1, ["red"])

    visibility, aggregate = session.apply()

    assert visibility.visible == [True, False, True]
    assert aggregate.total_amount == pytest.approx(100.0)
    assert session.statistics.is_valid
    assert session.statistics.filtered_row_count == 2
    assert "【team】：red" in session.describe()


def test_clear_resets_model_and_statistics() -> None:
    session = _session()
    session.model.select_none(1)
    session.apply()

    session.clear()

    assert session.model.active_fields() == []
    assert not session.statistics.is_valid
    assert session.visibility is None


def test_load_replaces_model_wholesale() -> None:
    session = _session()
    session.model.set_selection(1, ["red"])

    session.load(TableRegion(rows=[["code"], ["x"]], sheet_name="Other"))

    assert len(session.model) == 1
    assert session.model.field(0).all_values == ("x",)
    assert session.config.sheet_name == "Other"


def test_saved_condition_round_trips_through_json_dict() -> None:
    session = _session()
    session.model.set_selection(1, ["blue"])
    saved = session.save_condition("Blue team", now=NOW)

    restored = FilterCondition.from_dict(saved.to_dict())
    fresh = _session()
    warnings = fresh.apply_condition(restored)

    assert warnings == []
    assert fresh.model.field(1).selected_values == {"blue"}
    assert fresh.statistics.filtered_row_count == 1
    assert session.conditions[0].name == "Blue team"


def test_rename_and_delete_condition() -> None:
    session = _session()
    session.model.set_selection(1, ["red"])
    condition = session.save_condition(now=NOW)

    assert session.rename_condition(condition.id, "  Reds ")
    assert session.conditions[0].name == "Reds"
    assert not session.rename_condition(condition.id, "")
    assert session.delete_condition(condition.id)
    assert not session.delete_condition(condition.id)


def test_build_report_collects_visible_rows() -> None:
    session = _session()
    session.model.set_selection(1, ["red"])

    report = session.build_report(existing_sheets={"Report_2024-05-01T09-30-00"}, now=NOW)

    assert report.sheet_name == "Report_2024-05-01T09-30-00_1"
    assert report.row_count == 2
    assert report.total_amount == pytest.approx(100.0)
    assert report.header == ["id", "team", "amt"]
    assert [r[0] for r in report.rows] == ["1", "3"]
    assert report.filters == [("team", "red")]
    assert session.reports[0].sheet_name == report.sheet_name


def test_build_report_refuses_when_nothing_is_visible() -> None:
    session = _session()
    session.model.select_none(0)

    with pytest.raises(ValueError, match="No data rows"):
        session.build_report(now=NOW)


def test_rename_and_remove_report() -> None:
    session = _session()
    first = session.build_report(now=NOW)

    assert session.rename_report(first.sheet_name, "Q2 totals")
    assert session.reports[0].sheet_name == "Q2 totals"
    assert not session.rename_report("Q2 totals", "Q2 totals")
    assert session.remove_report("Q2 totals")
    assert session.reports == []


def test_unique_sheet_name_respects_excel_limit() -> None:
    base = "R" * 40
    first = unique_sheet_name(base, set())
    second = unique_sheet_name(base, {first})

    assert len(first) == 31
    assert second.endswith("_1")
    assert len(second) == 31


def test_rename_report_checks_the_truncated_name() -> None:
    session = _session()
    first = session.build_report(now=NOW)
    second = session.build_report(existing_sheets={first.sheet_name}, now=NOW)
    prefix = "Quarterly totals for region A1"

    assert session.rename_report(first.sheet_name, prefix + "X first")
    assert not session.rename_report(second.sheet_name, prefix + "X second")
    assert session.reports[1].sheet_name == prefix + "X"
    assert session.reports[0].sheet_name == second.sheet_name
