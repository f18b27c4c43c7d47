"""Data models / typed records used across the package."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from numbers import Integral, Real
from typing import Any, Literal

AmountStatus = Literal["ok", "empty", "invalid", "out_of_range"]


def _to_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise TypeError(f"{field_name} must be an integer")
    result = int(value)
    if result < 0:
        raise ValueError(f"{field_name} must be >= 0")
    return result


def _to_string_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    normalized: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        normalized.append(item)
    return normalized


# ── Cell values ──────────────────────────────────────────────────


def cell_text(value: Any) -> str:
    """Return the filter/display text of a raw cell value.

    ``None`` and NaN become ``""``; booleans render as ``TRUE``/``FALSE``;
    integral floats drop their ``.0``; dates use ISO format. Strings are
    returned unchanged (no trimming).
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, Integral):
        return str(int(value))
    if isinstance(value, Real):
        number = float(value)
        if math.isnan(number):
            return ""
        if number.is_integer() and abs(number) < 1e16:
            return str(int(number))
        return str(number)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def is_empty_cell(value: Any) -> bool:
    return cell_text(value) == ""


# ── Table region ─────────────────────────────────────────────────


@dataclass(frozen=True)
class CellRange:
    """Rectangular cell range, 0-based and inclusive on both ends."""

    min_row: int
    min_col: int
    max_row: int
    max_col: int

    def __post_init__(self) -> None:
        for name in ("min_row", "min_col", "max_row", "max_col"):
            _to_non_negative_int(getattr(self, name), name)
        if self.max_row < self.min_row:
            raise ValueError("max_row must be >= min_row")
        if self.max_col < self.min_col:
            raise ValueError("max_col must be >= min_col")

    @property
    def row_span(self) -> int:
        return self.max_row - self.min_row + 1

    @property
    def col_span(self) -> int:
        return self.max_col - self.min_col + 1


@dataclass
class TableRegion:
    """A header row plus data rows, normalized to a uniform width.

    ``origin_row`` / ``origin_column`` are the 1-based sheet coordinates of the
    header's first cell; ``merged_ranges`` are relative to the region.
    """

    rows: list[list[Any]] = field(default_factory=list)
    column_count: int | None = None
    sheet_name: str = ""
    origin_row: int = 1
    origin_column: int = 1
    merged_ranges: list[CellRange] = field(default_factory=list)
    header_row_index: int = 0

    def __post_init__(self) -> None:
        raw_rows = [list(row) if row is not None else [] for row in self.rows]
        if self.column_count is None:
            width = len(raw_rows[0]) if raw_rows else 0
        else:
            width = _to_non_negative_int(self.column_count, "column_count")
        self.column_count = width
        self.rows = [_fit_row(row, width) for row in raw_rows]
        self.origin_row = _to_non_negative_int(self.origin_row, "origin_row")
        self.origin_column = _to_non_negative_int(self.origin_column, "origin_column")
        if self.header_row_index != 0:
            raise ValueError("header_row_index must be 0")
        self.merged_ranges = list(self.merged_ranges)

    @property
    def width(self) -> int:
        return self.column_count or 0

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def header(self) -> list[Any]:
        return self.rows[0] if self.rows else []

    @property
    def data_rows(self) -> list[list[Any]]:
        return self.rows[1:]

    @property
    def data_row_count(self) -> int:
        return max(len(self.rows) - 1, 0)


def _fit_row(row: list[Any], width: int) -> list[Any]:
    if len(row) < width:
        return row + [None] * (width - len(row))
    return row[:width]


@dataclass(frozen=True)
class ColumnDescriptor:
    column_index: int
    header_text: str


# ── Filtering ────────────────────────────────────────────────────


@dataclass
class FilterField:
    """Distinct values of one column and the user's selected subset.

    Contract invariant: ``selected_values`` is a subset of ``all_values``.
    """

    column_index: int
    header_text: str
    all_values: tuple[str, ...] = ()
    selected_values: set[str] = field(default_factory=set)

    def __post_init__(self) -> None:
        self.column_index = _to_non_negative_int(self.column_index, "column_index")
        self.all_values = tuple(_to_string_list(list(self.all_values), "all_values"))
        self.selected_values = set(_to_string_list(list(self.selected_values), "selected_values"))
        unknown = self.selected_values - set(self.all_values)
        if unknown:
            raise ValueError(
                f"selected_values must be a subset of all_values (unknown: {sorted(unknown)!r})"
            )

    @property
    def is_active(self) -> bool:
        return len(self.selected_values) < len(self.all_values)

    @property
    def selected_in_order(self) -> list[str]:
        """Selected values in ``all_values`` order."""
        return [v for v in self.all_values if v in self.selected_values]

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_index": self.column_index,
            "header_text": self.header_text,
            "all_values": list(self.all_values),
            "selected_values": self.selected_in_order,
            "is_active": self.is_active,
        }


@dataclass
class VisibilityResult:
    visible: list[bool] = field(default_factory=list)
    visible_count: int = 0
    hidden_count: int = 0

    def __post_init__(self) -> None:
        self.visible_count = _to_non_negative_int(self.visible_count, "visible_count")
        self.hidden_count = _to_non_negative_int(self.hidden_count, "hidden_count")
        if self.visible_count + self.hidden_count != len(self.visible):
            raise ValueError("visible_count + hidden_count must equal len(visible)")

    @property
    def visible_indices(self) -> list[int]:
        """0-based data-row indices (row 1 of the region is index 0)."""
        return [idx for idx, shown in enumerate(self.visible) if shown]


@dataclass(frozen=True)
class VisibilityRun:
    """Contiguous data rows sharing one visibility (1-based, inclusive)."""

    start_row: int
    end_row: int
    visible: bool

    def __post_init__(self) -> None:
        if _to_non_negative_int(self.start_row, "start_row") < 1:
            raise ValueError("start_row must be >= 1")
        if _to_non_negative_int(self.end_row, "end_row") < self.start_row:
            raise ValueError("end_row must be >= start_row")

    @property
    def length(self) -> int:
        return self.end_row - self.start_row + 1

    def to_dict(self) -> dict[str, Any]:
        return {"start_row": self.start_row, "end_row": self.end_row, "visible": self.visible}


# ── Merge consolidation ──────────────────────────────────────────


@dataclass(frozen=True)
class MergeGroup:
    """Rows ``start_row..end_row`` (0-based, inclusive) forming one record."""

    column_index: int
    start_row: int
    end_row: int

    def __post_init__(self) -> None:
        _to_non_negative_int(self.column_index, "column_index")
        _to_non_negative_int(self.start_row, "start_row")
        _to_non_negative_int(self.end_row, "end_row")
        if self.end_row <= self.start_row:
            raise ValueError("end_row must be > start_row")

    @property
    def row_span(self) -> int:
        return self.end_row - self.start_row + 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_index": self.column_index,
            "start_row": self.start_row,
            "end_row": self.end_row,
        }


# ── Aggregation ──────────────────────────────────────────────────


@dataclass(frozen=True)
class AmountEntry:
    """Audit record for one row's contribution to a total."""

    row_index: int
    identifier: Any
    raw: Any
    amount: float
    status: AmountStatus

    def to_dict(self) -> dict[str, Any]:
        return {
            "row_index": self.row_index,
            "identifier": cell_text(self.identifier),
            "raw": cell_text(self.raw),
            "amount": self.amount,
            "status": self.status,
        }


@dataclass
class AggregateResult:
    visible_row_count: int = 0
    total_amount: float = 0.0
    entries: list[AmountEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.visible_row_count = _to_non_negative_int(self.visible_row_count, "visible_row_count")

    @property
    def empty_count(self) -> int:
        return sum(1 for entry in self.entries if entry.status == "empty")

    @property
    def invalid_count(self) -> int:
        return sum(1 for entry in self.entries if entry.status == "invalid")

    def to_dict(self) -> dict[str, Any]:
        return {
            "visible_row_count": self.visible_row_count,
            "total_amount": self.total_amount,
            "empty_count": self.empty_count,
            "invalid_count": self.invalid_count,
        }


@dataclass
class FilterStatistics:
    filtered_row_count: int = 0
    total_amount: float = 0.0
    is_valid: bool = False

    def __post_init__(self) -> None:
        self.filtered_row_count = _to_non_negative_int(self.filtered_row_count, "filtered_row_count")


# ── Configuration + saved conditions ─────────────────────────────


@dataclass
class TableConfig:
    """Which sheet/range is the source table and which columns carry roles."""

    sheet_name: str = ""
    header_row: int = 1
    data_range: str = ""
    id_column: int | None = None
    amount_column: int | None = None

    def __post_init__(self) -> None:
        if _to_non_negative_int(self.header_row, "header_row") < 1:
            raise ValueError("header_row must be >= 1")
        if self.id_column is not None:
            self.id_column = _to_non_negative_int(self.id_column, "id_column")
        if self.amount_column is not None:
            self.amount_column = _to_non_negative_int(self.amount_column, "amount_column")

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheet_name": self.sheet_name,
            "header_row": self.header_row,
            "data_range": self.data_range,
            "id_column": self.id_column,
            "amount_column": self.amount_column,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TableConfig:
        return cls(
            sheet_name=str(data.get("sheet_name", "")),
            header_row=data.get("header_row", 1),
            data_range=str(data.get("data_range", "")),
            id_column=data.get("id_column"),
            amount_column=data.get("amount_column"),
        )


@dataclass
class ColumnFilterSetting:
    column_index: int
    column_name: str
    header_text: str
    filter_values: list[str] = field(default_factory=list)
    filter_type: str = "values"
    is_filtered: bool = True

    def __post_init__(self) -> None:
        self.column_index = _to_non_negative_int(self.column_index, "column_index")
        self.filter_values = _to_string_list(self.filter_values, "filter_values")

    def to_dict(self) -> dict[str, Any]:
        return {
            "column_index": self.column_index,
            "column_name": self.column_name,
            "header_text": self.header_text,
            "filter_type": self.filter_type,
            "filter_values": list(self.filter_values),
            "is_filtered": self.is_filtered,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ColumnFilterSetting:
        return cls(
            column_index=data["column_index"],
            column_name=str(data.get("column_name", "")),
            header_text=str(data.get("header_text", "")),
            filter_values=data.get("filter_values") or [],
            filter_type=str(data.get("filter_type", "values")),
            is_filtered=bool(data.get("is_filtered", True)),
        )


@dataclass
class FilterCondition:
    """A named snapshot of the active filter fields, re-appliable later."""

    id: str
    name: str
    created_at: str
    sheet_name: str = ""
    settings: list[ColumnFilterSetting] = field(default_factory=list)
    config: TableConfig = field(default_factory=TableConfig)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "sheet_name": self.sheet_name,
            "settings": [s.to_dict() for s in self.settings],
            "config": self.config.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FilterCondition:
        if not isinstance(data, dict):
            raise TypeError("filter condition must be a JSON object")
        settings: Iterable[Any] = data.get("settings") or []
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", "")),
            created_at=str(data.get("created_at", "")),
            sheet_name=str(data.get("sheet_name", "")),
            settings=[ColumnFilterSetting.from_dict(s) for s in settings],
            config=TableConfig.from_dict(data.get("config") or {}),
        )


@dataclass
class ReportInfo:
    sheet_name: str
    created_at: str
    row_count: int = 0
    total_amount: float = 0.0

    def __post_init__(self) -> None:
        self.row_count = _to_non_negative_int(self.row_count, "row_count")

    def to_dict(self) -> dict[str, Any]:
        return {
            "sheet_name": self.sheet_name,
            "created_at": self.created_at,
            "row_count": self.row_count,
            "total_amount": self.total_amount,
        }


@dataclass
class RunManifest:
    """Audit-trail manifest for a single CLI run."""

    tool: str = "sheet-tally"
    command: str = ""
    version: str = ""
    input_path: str = ""
    output_dir: str = ""
    created_at_utc: str = ""
    rows_in: int = 0
    rows_out: int = 0
    sha256: str = ""
    status: str = "success"
    error_code: int | None = None
    error_message: str = ""
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.rows_in = _to_non_negative_int(self.rows_in, "rows_in")
        self.rows_out = _to_non_negative_int(self.rows_out, "rows_out")
        self.warnings = _to_string_list(self.warnings, "warnings")
        if self.status not in {"success", "failed"}:
            raise ValueError("status must be 'success' or 'failed'")

    def to_dict(self) -> dict[str, Any]:
        return {
            "tool": self.tool,
            "command": self.command,
            "version": self.version,
            "input_path": self.input_path,
            "output_dir": self.output_dir,
            "created_at_utc": self.created_at_utc,
            "rows_in": self.rows_in,
            "rows_out": self.rows_out,
            "sha256": self.sha256,
            "status": self.status,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "warnings": list(self.warnings),
        }
