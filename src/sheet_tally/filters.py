"""Filter model — per-column value selections and saved filter conditions."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from sheet_tally.models import (
    ColumnFilterSetting,
    FilterCondition,
    FilterField,
    FilterStatistics,
    TableConfig,
    TableRegion,
)
from sheet_tally.profiler import column_label, profile_region

NO_FILTER_TEXT = "No filter conditions"
_DESCRIBE_MAX_VALUES = 5


def matching_values(field: FilterField, search_text: str) -> list[str]:
    """Values of *field* containing *search_text* (case-insensitive).

    Blank search text matches every value.
    """
    needle = search_text.strip().lower()
    if not needle:
        return list(field.all_values)
    return [value for value in field.all_values if needle in value.lower()]


class FilterModel:
    """Selection state for one filter session.

    Every operation is keyed by the column index the field was profiled
    from; asking for a column that was never profiled raises ``KeyError``.
    """

    def __init__(self, fields: Iterable[FilterField] = ()) -> None:
        self._fields: dict[int, FilterField] = {}
        for f in fields:
            if f.column_index in self._fields:
                raise ValueError(f"Duplicate filter field for column {f.column_index}")
            self._fields[f.column_index] = f

    @classmethod
    def from_region(cls, region: TableRegion) -> FilterModel:
        return cls(profile_region(region))

    # ── Lookup ───────────────────────────────────────────────────

    @property
    def fields(self) -> list[FilterField]:
        return [self._fields[idx] for idx in sorted(self._fields)]

    def field(self, column_index: int) -> FilterField:
        try:
            return self._fields[column_index]
        except KeyError:
            raise KeyError(f"No filter field for column {column_index}") from None

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, column_index: object) -> bool:
        return column_index in self._fields

    def is_active(self, column_index: int) -> bool:
        return self.field(column_index).is_active

    def active_fields(self) -> list[FilterField]:
        return [f for f in self.fields if f.is_active]

    # ── Single-value + bulk mutations ────────────────────────────

    def toggle(self, column_index: int, value: str) -> None:
        f = self.field(column_index)
        if value not in f.all_values:
            return
        if value in f.selected_values:
            f.selected_values.discard(value)
        else:
            f.selected_values.add(value)

    def select_all(self, column_index: int) -> None:
        f = self.field(column_index)
        f.selected_values = set(f.all_values)

    def select_none(self, column_index: int) -> None:
        self.field(column_index).selected_values = set()

    def invert(self, column_index: int) -> None:
        f = self.field(column_index)
        f.selected_values = {v for v in f.all_values if v not in f.selected_values}

    def set_selection(self, column_index: int, values: Iterable[str]) -> None:
        """Replace the selection; values the column never had are dropped."""
        f = self.field(column_index)
        wanted = set(values)
        f.selected_values = {v for v in f.all_values if v in wanted}

    def reset(self) -> None:
        for f in self._fields.values():
            f.selected_values = set(f.all_values)

    # ── Search-scoped mutations ──────────────────────────────────

    def select_all_visible(self, column_index: int, search_text: str) -> None:
        f = self.field(column_index)
        f.selected_values.update(matching_values(f, search_text))

    def select_none_visible(self, column_index: int, search_text: str) -> None:
        f = self.field(column_index)
        f.selected_values.difference_update(matching_values(f, search_text))

    def invert_visible(self, column_index: int, search_text: str) -> None:
        f = self.field(column_index)
        f.selected_values.symmetric_difference_update(matching_values(f, search_text))

    # ── Saved conditions ─────────────────────────────────────────

    def active_settings(self) -> list[ColumnFilterSetting]:
        return [
            ColumnFilterSetting(
                column_index=f.column_index,
                column_name=column_label(f.column_index),
                header_text=f.header_text,
                filter_values=f.selected_in_order,
            )
            for f in self.active_fields()
        ]

    def apply_settings(self, settings: Sequence[ColumnFilterSetting]) -> list[str]:
        """Load saved settings; unmentioned columns go back to select-all.

        Returns warnings for settings that point at columns this table lacks.
        """
        self.reset()
        warnings: list[str] = []
        for setting in settings:
            if not setting.is_filtered:
                continue
            if setting.column_index not in self._fields:
                warnings.append(
                    f"Saved filter on column {setting.column_name or setting.column_index} "
                    f"({setting.header_text}) has no matching column; ignored"
                )
                continue
            self.set_selection(setting.column_index, setting.filter_values)
        return warnings


def build_condition(
    model: FilterModel,
    *,
    condition_id: str,
    name: str,
    created_at: str,
    config: TableConfig | None = None,
) -> FilterCondition:
    """Snapshot the active fields of *model*; refuse when nothing filters."""
    settings = model.active_settings()
    if not settings:
        raise ValueError("No filter conditions to save (every field selects all values)")
    cfg = config or TableConfig()
    return FilterCondition(
        id=condition_id,
        name=name,
        created_at=created_at,
        sheet_name=cfg.sheet_name,
        settings=settings,
        config=TableConfig.from_dict(cfg.to_dict()),
    )


def _format_values(values: Sequence[str]) -> str:
    if len(values) <= _DESCRIBE_MAX_VALUES:
        return "; ".join(values)
    shown = "; ".join(values[:_DESCRIBE_MAX_VALUES])
    return f"{shown}... ({len(values)} items)"


def filter_lines(fields: Iterable[FilterField]) -> list[tuple[str, str]]:
    """``(header, values)`` pairs for every active field."""
    return [
        (f.header_text, _format_values(f.selected_in_order))
        for f in fields
        if f.is_active
    ]


def describe_filters(
    fields: Iterable[FilterField], statistics: FilterStatistics | None = None
) -> str:
    """Plain-text summary of the statistics and active filters."""
    lines: list[str] = []
    if statistics is not None and statistics.is_valid:
        lines.append(f"Filtered rows: {statistics.filtered_row_count}")
        lines.append(f"Total amount: {statistics.total_amount:.2f}")
        lines.append("")

    pairs = filter_lines(fields)
    for header, values in pairs:
        lines.append(f"【{header}】：{values}")

    if not pairs and not (statistics is not None and statistics.is_valid):
        return NO_FILTER_TEXT
    return "\n".join(lines).rstrip("\n")
