"""Merged-cell consolidation for the identifier column.

A spreadsheet often records one logical item across several rows by merging
the identifier cell vertically. Detection tries an ordered list of
strategies; the first one that finds anything wins for the whole column:

1. :class:`ExplicitMergeDetector` reads merge metadata from the workbook.
2. :class:`PatternMergeDetector` infers merges from blank continuation cells,
   which is how merged cells read once the metadata has been stripped.

Consolidation then folds every group into its first row and marks the
remaining rows for deletion. Everything here is pure; applying the plan to a
worksheet lives in :mod:`sheet_tally.report`.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from sheet_tally.models import CellRange, MergeGroup, TableRegion, cell_text, is_empty_cell


class MergeDetector(Protocol):
    name: str

    def detect(self, column_index: int, rows: Sequence[Sequence[Any]]) -> list[MergeGroup]:
        ...


def _column_values(column_index: int, rows: Sequence[Sequence[Any]]) -> list[Any]:
    return [row[column_index] if column_index < len(row) else None for row in rows]


class ExplicitMergeDetector:
    """Use merge ranges reported by the host (0-based, relative to *rows*)."""

    name = "explicit"

    def __init__(self, merged_ranges: Sequence[CellRange]) -> None:
        self.merged_ranges = list(merged_ranges)

    def detect(self, column_index: int, rows: Sequence[Sequence[Any]]) -> list[MergeGroup]:
        last_row = len(rows) - 1
        groups: list[MergeGroup] = []
        for rng in self.merged_ranges:
            if rng.min_col != column_index or rng.row_span < 2:
                continue
            end_row = min(rng.max_row, last_row)
            if rng.min_row >= end_row:
                continue
            groups.append(
                MergeGroup(column_index=column_index, start_row=rng.min_row, end_row=end_row)
            )
        return sorted(groups, key=lambda g: g.start_row)


class PatternMergeDetector:
    """A non-empty anchor followed by blank cells forms one group.

    Blanks with no anchor above them are missing data and stay untouched.
    """

    name = "pattern"

    def detect(self, column_index: int, rows: Sequence[Sequence[Any]]) -> list[MergeGroup]:
        values = _column_values(column_index, rows)
        groups: list[MergeGroup] = []
        i = 0
        while i < len(values):
            if is_empty_cell(values[i]):
                i += 1
                continue
            end = i
            while end + 1 < len(values) and is_empty_cell(values[end + 1]):
                end += 1
            if end > i:
                groups.append(MergeGroup(column_index=column_index, start_row=i, end_row=end))
            i = end + 1
        return groups


def default_detectors(merged_ranges: Sequence[CellRange] | None = None) -> list[MergeDetector]:
    detectors: list[MergeDetector] = []
    if merged_ranges:
        detectors.append(ExplicitMergeDetector(merged_ranges))
    detectors.append(PatternMergeDetector())
    return detectors


def detect_merge_groups(
    column_index: int,
    rows: Sequence[Sequence[Any]],
    detectors: Sequence[MergeDetector] | None = None,
) -> tuple[list[MergeGroup], str | None]:
    """Return ``(groups, detector_name)`` from the first detector that finds any."""
    for detector in detectors if detectors is not None else default_detectors():
        groups = detector.detect(column_index, rows)
        if groups:
            return groups, detector.name
    return [], None


def merge_group_values(rows: Sequence[Sequence[Any]], group: MergeGroup) -> list[Any]:
    """Fold the rows of *group* into one row.

    The first row is the base. A later non-empty value that differs from the
    base's current text is appended on a new line, or replaces the base value
    outright when the base is blank.
    """
    merged = list(rows[group.start_row])
    for row_idx in range(group.start_row + 1, min(group.end_row, len(rows) - 1) + 1):
        row = rows[row_idx]
        for col in range(len(merged)):
            current = cell_text(row[col] if col < len(row) else None).strip()
            if not current:
                continue
            base = cell_text(merged[col]).strip()
            if current == base:
                continue
            merged[col] = f"{base}\n{current}" if base else current
    return merged


@dataclass
class ConsolidationPlan:
    """What a host has to do: rewrite base rows, then delete the rest."""

    column_index: int
    groups: list[MergeGroup] = field(default_factory=list)
    merged_rows: dict[int, list[Any]] = field(default_factory=dict)
    detector: str | None = None

    @property
    def has_groups(self) -> bool:
        return bool(self.groups)

    @property
    def rows_to_delete(self) -> list[int]:
        """Row indices to remove, highest first."""
        doomed = [
            idx for g in self.groups for idx in range(g.start_row + 1, g.end_row + 1)
        ]
        return sorted(doomed, reverse=True)

    @property
    def deleted_row_count(self) -> int:
        return sum(g.end_row - g.start_row for g in self.groups)

    def merged_row(self, group: MergeGroup) -> list[Any]:
        return self.merged_rows[group.start_row]

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_index": self.column_index,
            "detector": self.detector,
            "groups": [g.to_dict() for g in self.groups],
            "deleted_row_count": self.deleted_row_count,
        }


def consolidate(
    column_index: int,
    rows: Sequence[Sequence[Any]],
    detectors: Sequence[MergeDetector] | None = None,
) -> ConsolidationPlan:
    """Detect merge groups in one column and compute their folded rows.

    Groups come back in descending ``start_row`` order so that deleting rows
    for one group never shifts the rows of a group still to be processed.
    """
    groups, detector = detect_merge_groups(column_index, rows, detectors)
    ordered = sorted(groups, key=lambda g: g.start_row, reverse=True)
    return ConsolidationPlan(
        column_index=column_index,
        groups=ordered,
        merged_rows={g.start_row: merge_group_values(rows, g) for g in ordered},
        detector=detector,
    )


def apply_consolidation(
    rows: Sequence[Sequence[Any]], plan: ConsolidationPlan
) -> list[list[Any]]:
    """Return a new row list with every group folded into its base row."""
    out = [list(row) for row in rows]
    for group in plan.groups:
        out[group.start_row] = list(plan.merged_row(group))
        del out[group.start_row + 1 : group.end_row + 1]
    return out


def _data_row_ranges(region: TableRegion) -> list[CellRange]:
    """Region merge ranges re-based onto data rows; ranges touching the header drop out."""
    shifted: list[CellRange] = []
    for rng in region.merged_ranges:
        if rng.min_row < 1:
            continue
        shifted.append(
            CellRange(
                min_row=rng.min_row - 1,
                min_col=rng.min_col,
                max_row=rng.max_row - 1,
                max_col=rng.max_col,
            )
        )
    return shifted


def consolidate_region(region: TableRegion, column_index: int) -> ConsolidationPlan:
    """Consolidate the data rows of *region*; group rows are data-row indices."""
    detectors = default_detectors(_data_row_ranges(region))
    return consolidate(column_index, region.data_rows, detectors)


def apply_to_region(region: TableRegion, plan: ConsolidationPlan) -> TableRegion:
    """Return a copy of *region* with *plan* applied to its data rows."""
    body = apply_consolidation(region.data_rows, plan)
    return TableRegion(
        rows=[list(region.header), *body] if region.rows else [],
        column_count=region.column_count,
        sheet_name=region.sheet_name,
        origin_row=region.origin_row,
        origin_column=region.origin_column,
    )
