"""Filter session — the state one table's filtering workflow carries around.

A session owns the loaded :class:`TableRegion`, its :class:`FilterModel`,
the statistics of the last evaluation, saved filter conditions and the list
of summary reports generated so far. Loading another table replaces the
model wholesale instead of patching it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sheet_tally.aggregate import summarize_visible
from sheet_tally.filters import FilterModel, build_condition, describe_filters, filter_lines
from sheet_tally.models import (
    AggregateResult,
    FilterCondition,
    FilterStatistics,
    ReportInfo,
    TableConfig,
    TableRegion,
    VisibilityResult,
)
from sheet_tally.utils import sheet_timestamp, utcnow

REPORT_PREFIX = "Report_"
_MAX_SHEET_TITLE = 31


def unique_sheet_name(base: str, existing: set[str]) -> str:
    """*base* (or ``base_1``, ``base_2`` …) trimmed to Excel's 31 characters."""
    base = base[:_MAX_SHEET_TITLE]
    if base not in existing:
        return base
    suffix = 1
    while True:
        suffix_str = f"_{suffix}"
        candidate = f"{base[: _MAX_SHEET_TITLE - len(suffix_str)]}{suffix_str}"
        if candidate not in existing:
            return candidate
        suffix += 1


@dataclass
class SummaryReport:
    """Everything a host needs to write one generated summary sheet."""

    sheet_name: str
    source_sheet: str
    created_at: datetime
    row_count: int
    total_amount: float
    filters: list[tuple[str, str]]
    header: list[Any]
    rows: list[list[Any]]
    source_header_row: int = 1
    aggregate: AggregateResult = field(default_factory=AggregateResult)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheet_name": self.sheet_name,
            "source_sheet": self.source_sheet,
            "created_at": self.created_at.isoformat(),
            "row_count": self.row_count,
            "total_amount": round(self.total_amount, 2),
            "filters": [{"field": name, "values": values} for name, values in self.filters],
        }


class FilterSession:
    """Explicit replacement for add-in globals; one per loaded table."""

    def __init__(self, region: TableRegion, config: TableConfig | None = None) -> None:
        self.config = config or TableConfig(sheet_name=region.sheet_name)
        self.region = region
        self.model = FilterModel.from_region(region)
        self.statistics = FilterStatistics()
        self.visibility: VisibilityResult | None = None
        self.aggregate: AggregateResult | None = None
        self.conditions: list[FilterCondition] = []
        self.reports: list[ReportInfo] = []

    def load(self, region: TableRegion) -> None:
        """Swap in a new table; selections from the old one are discarded."""
        self.region = region
        self.model = FilterModel.from_region(region)
        self.config.sheet_name = region.sheet_name
        self.clear()

    # ── Evaluation ───────────────────────────────────────────────

    def apply(self) -> tuple[VisibilityResult, AggregateResult]:
        visibility, aggregate = summarize_visible(
            self.region,
            self.model,
            self.config.amount_column,
            identifier_column=self.config.id_column,
        )
        self.visibility = visibility
        self.aggregate = aggregate
        self.statistics = FilterStatistics(
            filtered_row_count=aggregate.visible_row_count,
            total_amount=aggregate.total_amount,
            is_valid=True,
        )
        return visibility, aggregate

    def clear(self) -> None:
        self.model.reset()
        self.statistics = FilterStatistics()
        self.visibility = None
        self.aggregate = None

    def describe(self) -> str:
        return describe_filters(self.model.fields, self.statistics)

    # ── Saved conditions ─────────────────────────────────────────

    def save_condition(self, name: str | None = None, *, now: datetime | None = None) -> FilterCondition:
        moment = now or utcnow()
        condition = build_condition(
            self.model,
            condition_id=f"filter_{int(moment.timestamp() * 1000)}",
            name=name or f"Filter_{moment.strftime('%m-%d %H:%M')}",
            created_at=moment.isoformat(),
            config=self.config,
        )
        self.conditions.insert(0, condition)
        return condition

    def apply_condition(self, condition: FilterCondition) -> list[str]:
        """Load *condition* into the model and re-evaluate; returns warnings."""
        warnings = self.model.apply_settings(condition.settings)
        if condition.config.id_column is not None and self.config.id_column is None:
            self.config.id_column = condition.config.id_column
        if condition.config.amount_column is not None and self.config.amount_column is None:
            self.config.amount_column = condition.config.amount_column
        self.apply()
        return warnings

    def rename_condition(self, condition_id: str, new_name: str) -> bool:
        new_name = new_name.strip()
        for condition in self.conditions:
            if condition.id == condition_id:
                if not new_name or new_name == condition.name:
                    return False
                condition.name = new_name
                return True
        return False

    def delete_condition(self, condition_id: str) -> bool:
        before = len(self.conditions)
        self.conditions = [c for c in self.conditions if c.id != condition_id]
        return len(self.conditions) != before

    # ── Report generation ────────────────────────────────────────

    def build_report(
        self, *, existing_sheets: set[str] | None = None, now: datetime | None = None
    ) -> SummaryReport:
        """Collect the visible rows and totals into a :class:`SummaryReport`.

        Raises ``ValueError`` when the filters leave no data row visible.
        """
        moment = now or utcnow()
        visibility, aggregate = self.apply()
        if visibility.visible_count == 0:
            raise ValueError("No data rows match the current filters; adjust them and retry")

        data_rows = self.region.data_rows
        name = unique_sheet_name(
            f"{REPORT_PREFIX}{sheet_timestamp(moment)}", existing_sheets or set()
        )
        report = SummaryReport(
            sheet_name=name,
            source_sheet=self.region.sheet_name,
            created_at=moment,
            row_count=visibility.visible_count,
            total_amount=aggregate.total_amount,
            filters=filter_lines(self.model.fields),
            header=list(self.region.header),
            rows=[list(data_rows[idx]) for idx in visibility.visible_indices],
            source_header_row=self.region.origin_row,
            aggregate=aggregate,
        )
        self.reports.insert(
            0,
            ReportInfo(
                sheet_name=name,
                created_at=moment.isoformat(),
                row_count=report.row_count,
                total_amount=report.total_amount,
            ),
        )
        return report

    def rename_report(self, old_name: str, new_name: str) -> bool:
        new_name = new_name.strip()[:_MAX_SHEET_TITLE]
        taken = {r.sheet_name for r in self.reports}
        if not new_name or new_name in taken:
            return False
        for info in self.reports:
            if info.sheet_name == old_name:
                info.sheet_name = new_name
                return True
        return False

    def remove_report(self, sheet_name: str) -> bool:
        before = len(self.reports)
        self.reports = [r for r in self.reports if r.sheet_name != sheet_name]
        return len(self.reports) != before
