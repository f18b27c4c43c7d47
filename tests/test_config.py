from __future__ import annotations

from pathlib import Path

import pytest

from sheet_tally.config import (
    build_config,
    load_profile,
    parse_header_row,
    parse_range,
    resolve_column,
)

HEADER = ["Order ID", "Customer", "Amount"]


def test_load_profile_reads_key_values(tmp_path: Path) -> None:
    profile = tmp_path / "table.profile"
    profile.write_text(
        "# invoice table\nsheet = Orders\n\nheader_row=2\nID_COL=Order ID\namount_col=C\n",
        encoding="utf-8",
    )

    values = load_profile(profile)

    assert values == {
        "sheet": "Orders",
        "header_row": "2",
        "id_col": "Order ID",
        "amount_col": "C",
    }


def test_load_profile_rejects_unknown_keys(tmp_path: Path) -> None:
    profile = tmp_path / "bad.profile"
    profile.write_text("currency=USD\n", encoding="utf-8")

    with pytest.raises(ValueError, match="unknown key"):
        load_profile(profile)


def test_load_profile_rejects_malformed_lines(tmp_path: Path) -> None:
    profile = tmp_path / "bad.profile"
    profile.write_text("sheet Orders\n", encoding="utf-8")

    with pytest.raises(ValueError, match="key=value"):
        load_profile(profile)


def test_load_profile_missing_or_directory(tmp_path: Path) -> None:
    assert load_profile(None) == {}
    with pytest.raises(ValueError, match="not found"):
        load_profile(tmp_path / "missing.profile")
    with pytest.raises(ValueError, match="directory"):
        load_profile(tmp_path)


def test_parse_header_row() -> None:
    assert parse_header_row(None) == 1
    assert parse_header_row("3") == 3
    with pytest.raises(ValueError):
        parse_header_row("0")
    with pytest.raises(ValueError):
        parse_header_row("two")


def test_parse_range_variants() -> None:
    assert parse_range("B2:D10") == (2, 2, 10, 4)
    assert parse_range("Sheet1!$A$1:$C$5") == (1, 1, 5, 3)
    assert parse_range("A:C") == (1, 1, None, 3)
    with pytest.raises(ValueError):
        parse_range("not a range")


def test_resolve_column_accepts_header_letter_and_index() -> None:
    assert resolve_column("order id", HEADER) == 0
    assert resolve_column("C", HEADER) == 2
    assert resolve_column("1", HEADER) == 1
    assert resolve_column(2, HEADER) == 2


def test_resolve_column_rejects_out_of_range() -> None:
    with pytest.raises(ValueError, match="outside"):
        resolve_column("Z", HEADER)
    with pytest.raises(ValueError, match="Unknown column"):
        resolve_column("Total (net)", HEADER)


def test_build_config_options_override_profile() -> None:
    config = build_config(
        {"sheet": "Orders", "header_row": "2", "range": "A2:C9"}, sheet="Other"
    )

    assert config.sheet_name == "Other"
    assert config.header_row == 2
    assert config.data_range == "A2:C9"
