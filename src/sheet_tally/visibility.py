"""Row visibility — which data rows pass every active filter field."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from sheet_tally.models import (
    FilterField,
    TableRegion,
    VisibilityResult,
    VisibilityRun,
    cell_text,
)


def row_matches(row: Sequence[Any], fields: Iterable[FilterField]) -> bool:
    """AND over *fields*; stops at the first column that rejects the row."""
    for f in fields:
        value = row[f.column_index] if f.column_index < len(row) else None
        if cell_text(value) not in f.selected_values:
            return False
    return True


def evaluate_visibility(
    region: TableRegion, fields: Iterable[FilterField]
) -> VisibilityResult:
    """Compute one visibility flag per data row (the header is never included)."""
    active = [f for f in fields if f.is_active]
    if not active:
        count = region.data_row_count
        return VisibilityResult(visible=[True] * count, visible_count=count, hidden_count=0)

    visible = [row_matches(row, active) for row in region.data_rows]
    shown = sum(visible)
    return VisibilityResult(
        visible=visible, visible_count=shown, hidden_count=len(visible) - shown
    )


def compress_runs(visible: Sequence[bool]) -> list[VisibilityRun]:
    """Run-length encode *visible* into maximal runs numbered from 1."""
    runs: list[VisibilityRun] = []
    start = 0
    for idx in range(1, len(visible) + 1):
        if idx == len(visible) or visible[idx] != visible[start]:
            runs.append(
                VisibilityRun(start_row=start + 1, end_row=idx, visible=bool(visible[start]))
            )
            start = idx
    return runs


def expand_runs(runs: Iterable[VisibilityRun]) -> list[bool]:
    out: list[bool] = []
    for run in runs:
        if run.start_row != len(out) + 1:
            raise ValueError(
                f"Runs must be contiguous: expected start_row {len(out) + 1}, got {run.start_row}"
            )
        out.extend([run.visible] * run.length)
    return out


def hidden_runs(visible: Sequence[bool]) -> list[VisibilityRun]:
    """Only the hidden runs, i.e. what a host hides after unhiding every row."""
    return [run for run in compress_runs(visible) if not run.visible]
