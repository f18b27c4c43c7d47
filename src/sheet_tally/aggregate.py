"""Aggregation — total the amount column over a chosen set of rows."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from sheet_tally.amounts import classify_amount
from sheet_tally.filters import FilterModel
from sheet_tally.models import AggregateResult, AmountEntry, TableRegion, VisibilityResult
from sheet_tally.visibility import evaluate_visibility


def _cell(row: Sequence[Any], column_index: int | None) -> tuple[Any, bool]:
    if column_index is None or column_index < 0 or column_index >= len(row):
        return None, False
    return row[column_index], True


def sum_amounts(
    rows: Sequence[Sequence[Any]],
    amount_column: int | None,
    row_indices: Iterable[int],
    identifier_column: int | None = None,
) -> AggregateResult:
    """Sum normalised amounts of ``rows[i]`` for every ``i`` in *row_indices*.

    A missing amount column contributes ``0`` with status ``"out_of_range"``.
    Each entry also carries the identifier cell so totals can be audited row
    by row; identifiers never influence the sum.
    """
    entries: list[AmountEntry] = []
    total = 0.0
    for idx in row_indices:
        row = rows[idx]
        raw, present = _cell(row, amount_column)
        identifier, _ = _cell(row, identifier_column)
        if present:
            amount, status = classify_amount(raw)
        else:
            amount, status = 0.0, "out_of_range"
        total += amount
        entries.append(
            AmountEntry(row_index=idx, identifier=identifier, raw=raw, amount=amount, status=status)
        )
    return AggregateResult(visible_row_count=len(entries), total_amount=total, entries=entries)


def summarize_visible(
    region: TableRegion,
    model: FilterModel,
    amount_column: int | None,
    identifier_column: int | None = None,
) -> tuple[VisibilityResult, AggregateResult]:
    """Evaluate the filters of *model* and total the visible rows.

    Entry ``row_index`` values are data-row indices (0 is the first row under
    the header).
    """
    visibility = evaluate_visibility(region, model.fields)
    result = sum_amounts(
        region.data_rows,
        amount_column,
        visibility.visible_indices,
        identifier_column=identifier_column,
    )
    return visibility, result
