"""Workbook writers — summary sheets, row visibility and merge consolidation."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.cell.cell import Cell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.hyperlink import Hyperlink
from openpyxl.worksheet.worksheet import Worksheet

from sheet_tally.merge import ConsolidationPlan
from sheet_tally.models import MergeGroup, TableRegion, VisibilityRun, cell_text
from sheet_tally.session import SummaryReport
from sheet_tally.visibility import hidden_runs

# ── Style constants ──────────────────────────────────────────────

ACCENT = "0078D4"

TITLE_FONT = Font(name="Arial", bold=True, size=14, color=ACCENT)
LABEL_FONT = Font(name="Arial", bold=True, size=11, color="323130")
VALUE_FONT = Font(name="Arial", size=11, color="323130")
STAT_FONT = Font(name="Arial", bold=True, size=11, color=ACCENT)
FIELD_FONT = Font(name="Arial", bold=True, size=11, color="0D47A1")
MUTED_FONT = Font(name="Arial", italic=True, size=11, color="A19F9D")
LINK_FONT = Font(name="Arial", size=11, color=ACCENT, underline="single")
HEADER_FONT = Font(name="Arial", bold=True, size=11, color="FFFFFF")

DASHBOARD_FILL = PatternFill(start_color="F5F5F5", end_color="F5F5F5", fill_type="solid")
HEADER_FILL = PatternFill(start_color=ACCENT, end_color=ACCENT, fill_type="solid")
BAND_FILL = PatternFill(start_color="FAFAFA", end_color="FAFAFA", fill_type="solid")
PLAIN_FILL = PatternFill(start_color="FFFFFF", end_color="FFFFFF", fill_type="solid")
MERGED_ROW_FILL = PatternFill(start_color="F5F5F5", end_color="F5F5F5", fill_type="solid")
HIGHLIGHT_FILL = PatternFill(start_color="FFFF00", end_color="FFFF00", fill_type="solid")

DASHBOARD_BORDER = Border(
    left=Side(style="thin", color="D1D1D1"),
    right=Side(style="thin", color="D1D1D1"),
    top=Side(style="thin", color="E1E1E1"),
    bottom=Side(style="thin", color="E1E1E1"),
)
HEADER_BORDER = Border(
    left=Side(style="thin", color="005A9E"),
    right=Side(style="thin", color="005A9E"),
    top=Side(style="thin", color="005A9E"),
    bottom=Side(style="thin", color="005A9E"),
)
DATA_BORDER = Border(
    left=Side(style="thin", color="F0F0F0"),
    right=Side(style="thin", color="F0F0F0"),
    top=Side(style="thin", color="F0F0F0"),
    bottom=Side(style="thin", color="F0F0F0"),
)

CURRENCY_FMT = '#,##0.00'
INT_FMT = '#,##0'
DASHBOARD_WIDTH = 5
NO_FILTER_LABEL = "No filter conditions"

_AUTO_WIDTH_SAMPLE_ROWS = 300


# ── Helpers ──────────────────────────────────────────────────────


def _excel_value(val: Any) -> Any:
    if isinstance(val, datetime) and val.tzinfo:
        return val.replace(tzinfo=None)
    return val


def _put(ws: Worksheet, row: int, column: int, value: Any) -> Cell:
    """Write *value* as data; text starting with ``=`` stays text."""
    cell = ws.cell(row=row, column=column, value=_excel_value(value))
    if isinstance(value, str) and value.startswith("="):
        cell.data_type = "s"
    return cell


def _auto_width(ws: Worksheet, *, first_row: int = 1, max_width: int = 50) -> None:
    last_row = min(ws.max_row, first_row + _AUTO_WIDTH_SAMPLE_ROWS)
    for c_idx in range(1, ws.max_column + 1):
        width = 0
        for row in ws.iter_rows(min_row=first_row, max_row=last_row, min_col=c_idx, max_col=c_idx):
            text = cell_text(row[0].value)
            longest = max((len(line) for line in text.split("\n")), default=0)
            width = max(width, longest)
        ws.column_dimensions[get_column_letter(c_idx)].width = min(width + 4, max_width)


def _sheet_row(region: TableRegion, data_index: int) -> int:
    """Sheet row number (1-based) of data row *data_index* (0-based)."""
    return region.origin_row + 1 + data_index


# ── Summary sheet ────────────────────────────────────────────────


def _write_dashboard(ws: Worksheet, report: SummaryReport) -> int:
    """Write the dashboard block; returns its last row."""
    filter_rows = max(len(report.filters), 1)
    last_row = 3 + filter_rows + 1

    for r in range(1, last_row + 1):
        for c in range(1, DASHBOARD_WIDTH + 1):
            cell = ws.cell(row=r, column=c)
            cell.fill = DASHBOARD_FILL
            cell.border = DASHBOARD_BORDER
            cell.alignment = Alignment(vertical="center", horizontal="left")

    title = ws.cell(row=1, column=1, value=report.sheet_name)
    title.font = TITLE_FONT
    title.alignment = Alignment(horizontal="center", vertical="center")
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=DASHBOARD_WIDTH)

    ws.cell(row=2, column=1, value="Total rows").font = LABEL_FONT
    count_cell = ws.cell(row=2, column=2, value=report.row_count)
    count_cell.font = STAT_FONT
    count_cell.number_format = INT_FMT
    ws.cell(row=2, column=4, value="Source sheet").font = LABEL_FONT
    link = ws.cell(row=2, column=5, value=report.source_sheet)
    link.font = LINK_FONT
    link.hyperlink = Hyperlink(
        ref=link.coordinate,
        location=f"'{report.source_sheet}'!A{report.source_header_row}",
        tooltip=f"Back to {report.source_sheet}",
        display=report.source_sheet,
    )

    ws.cell(row=3, column=1, value="Total amount").font = LABEL_FONT
    total_cell = ws.cell(row=3, column=2, value=round(report.total_amount, 2))
    total_cell.font = STAT_FONT
    total_cell.number_format = CURRENCY_FMT
    ws.cell(row=3, column=4, value="Generated").font = LABEL_FONT
    ws.cell(row=3, column=5, value=report.created_at.strftime("%Y-%m-%d %H:%M:%S")).font = VALUE_FONT

    if report.filters:
        for offset, (header, values) in enumerate(report.filters):
            row = 4 + offset
            if offset == 0:
                ws.cell(row=row, column=1, value="Filters").font = LABEL_FONT
            _put(ws, row, 2, f"【{header}】").font = FIELD_FONT
            value_cell = _put(ws, row, 3, values)
            value_cell.font = VALUE_FONT
            value_cell.alignment = Alignment(wrap_text=True, vertical="center")
    else:
        ws.cell(row=4, column=1, value="Filters").font = LABEL_FONT
        ws.cell(row=4, column=2, value=NO_FILTER_LABEL).font = MUTED_FONT

    for r in range(1, last_row + 1):
        ws.row_dimensions[r].height = 22
    return last_row


def _write_data_table(ws: Worksheet, report: SummaryReport, start_row: int) -> None:
    ncols = len(report.header)
    if ncols == 0:
        return
    for c_idx, value in enumerate(report.header, 1):
        cell = _put(ws, start_row, c_idx, value)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.border = HEADER_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)

    for offset, row_vals in enumerate(report.rows):
        r_idx = start_row + 1 + offset
        fill = BAND_FILL if offset % 2 == 0 else PLAIN_FILL
        for c_idx in range(1, ncols + 1):
            value = row_vals[c_idx - 1] if c_idx - 1 < len(row_vals) else None
            cell = _put(ws, r_idx, c_idx, value)
            cell.font = VALUE_FONT
            cell.fill = fill
            cell.border = DATA_BORDER
            cell.alignment = Alignment(vertical="center", horizontal="left", wrap_text=True)
        ws.row_dimensions[r_idx].height = 20
    ws.row_dimensions[start_row].height = 20


def write_summary_sheet(wb: Workbook, report: SummaryReport) -> Worksheet:
    """Add the generated summary sheet (dashboard + visible rows) to *wb*."""
    ws = wb.create_sheet(title=report.sheet_name)
    dashboard_end = _write_dashboard(ws, report)
    data_start = dashboard_end + 1
    _write_data_table(ws, report, data_start)
    ws.freeze_panes = ws.cell(row=data_start + 1, column=1)
    _auto_width(ws, first_row=2)
    return ws


# ── Row visibility ───────────────────────────────────────────────


def apply_visibility(ws: Worksheet, region: TableRegion, visible: Sequence[bool]) -> list[VisibilityRun]:
    """Unhide every data row of *region*, then hide the filtered-out runs."""
    for idx in range(len(visible)):
        ws.row_dimensions[_sheet_row(region, idx)].hidden = False
    runs = hidden_runs(visible)
    for run in runs:
        for data_row in range(run.start_row, run.end_row + 1):
            ws.row_dimensions[_sheet_row(region, data_row - 1)].hidden = True
    return runs


# ── Merge consolidation ──────────────────────────────────────────


def highlight_groups(ws: Worksheet, region: TableRegion, groups: Sequence[MergeGroup]) -> None:
    for group in groups:
        column = region.origin_column + group.column_index
        for idx in range(group.start_row, group.end_row + 1):
            ws.cell(row=_sheet_row(region, idx), column=column).fill = HIGHLIGHT_FILL


def _shifted_bounds(
    min_row: int, max_row: int, deleted: Sequence[int]
) -> tuple[int, int]:
    new_min = min_row - sum(1 for d in deleted if d < min_row)
    new_max = max_row - sum(1 for d in deleted if d <= max_row)
    return new_min, new_max


def apply_consolidation_to_sheet(
    ws: Worksheet, region: TableRegion, plan: ConsolidationPlan
) -> int:
    """Rewrite each group's base row on *ws* and delete the folded rows.

    Merged ranges are unmerged first and re-created afterwards at their
    shifted position, since openpyxl does not move merges on row deletion.
    Returns the number of deleted sheet rows.
    """
    if not plan.has_groups:
        return 0

    first_col = region.origin_column
    deleted = sorted(_sheet_row(region, idx) for idx in plan.rows_to_delete)
    group_rows = {
        _sheet_row(region, idx)
        for g in plan.groups
        for idx in range(g.start_row, g.end_row + 1)
    }
    id_column = first_col + plan.column_index

    kept_merges: list[tuple[int, int, int, int]] = []
    for cr in list(ws.merged_cells.ranges):
        bounds = (cr.min_row, cr.min_col, cr.max_row, cr.max_col)
        ws.unmerge_cells(str(cr))
        touches_group = any(cr.min_row <= r <= cr.max_row for r in group_rows)
        if touches_group and cr.min_col <= id_column <= cr.max_col:
            continue
        kept_merges.append(bounds)

    for group in plan.groups:
        base_row = _sheet_row(region, group.start_row)
        for offset, value in enumerate(plan.merged_row(group)):
            cell = _put(ws, base_row, first_col + offset, value)
            cell.alignment = Alignment(wrap_text=True, vertical="center")
            cell.fill = MERGED_ROW_FILL
        ws.delete_rows(base_row + 1, amount=group.end_row - group.start_row)

    for min_row, min_col, max_row, max_col in kept_merges:
        new_min, new_max = _shifted_bounds(min_row, max_row, deleted)
        if new_max < new_min or (new_max == new_min and min_col == max_col):
            continue
        ws.merge_cells(
            start_row=new_min, start_column=min_col, end_row=new_max, end_column=max_col
        )
    return len(deleted)


# ── Public API ───────────────────────────────────────────────────


def copy_region_to_sheet(wb: Workbook, region: TableRegion, title: str) -> Worksheet:
    """Write *region* into a new sheet (used when the input was a CSV)."""
    ws = wb.create_sheet(title=title[:31] or "Source")
    for r_idx, row in enumerate(region.rows, 1):
        for c_idx, value in enumerate(row, 1):
            _put(ws, r_idx, c_idx, value)
    if region.rows:
        for c_idx in range(1, region.width + 1):
            cell = ws.cell(row=1, column=c_idx)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
    ws.freeze_panes = "A2"
    _auto_width(ws)
    return ws


def save_workbook(wb: Workbook, path: Path) -> Path:
    """Save *wb* to *path* through a temporary file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.stem}.tmp{path.suffix}")
    wb.save(tmp_path)
    tmp_path.replace(path)
    return path
