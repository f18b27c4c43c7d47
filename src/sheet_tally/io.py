"""I/O helpers — load table regions from CSV/XLSX, write JSON artifacts."""

from __future__ import annotations

import json
from datetime import date, datetime
from pathlib import Path
from typing import Any, Literal, cast

import pandas as pd
from openpyxl import load_workbook
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from sheet_tally.config import parse_range
from sheet_tally.models import CellRange, TableConfig, TableRegion, is_empty_cell

EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xltx", ".xltm")

# ── Loading ──────────────────────────────────────────────────────


def _read_csv_rows(path: Path, delimiter: str | None = None) -> list[list[Any]]:
    last_exc: Exception | None = None
    sep = delimiter if delimiter else None
    engine: Literal["c", "python"] = "c" if delimiter else "python"
    for encoding in ("utf-8-sig", "utf-8", "latin-1"):
        try:
            df = pd.read_csv(
                path,
                header=None,
                dtype="string",
                sep=sep,
                engine=engine,
                encoding=encoding,
                encoding_errors="strict",
                keep_default_na=False,
                na_values=[""],
                skip_blank_lines=False,
            )
        except pd.errors.EmptyDataError:
            return []
        except (UnicodeDecodeError, pd.errors.ParserError) as exc:
            last_exc = exc
            continue
        return [
            [None if pd.isna(cast(Any, v)) else str(v) for v in row]
            for row in df.itertuples(index=False, name=None)
        ]
    raise ValueError(f"Could not read CSV {path} (decode or parse failed)") from last_exc


def open_workbook(path: Path) -> Workbook:
    """Open an Excel workbook with cached values (formulas are not evaluated)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")
    if path.suffix.lower() not in EXCEL_SUFFIXES:
        raise ValueError(f"Unsupported workbook type: {path.suffix!r}. Use .xlsx")
    return load_workbook(path, data_only=True)


def select_worksheet(wb: Workbook, sheet_name: str = "") -> Worksheet:
    if sheet_name:
        if sheet_name not in wb.sheetnames:
            raise ValueError(
                f"Sheet {sheet_name!r} not found (available: {', '.join(wb.sheetnames)})"
            )
        return wb[sheet_name]
    ws = wb.active
    if not isinstance(ws, Worksheet):
        ws = wb.worksheets[0]
    return ws


def _bounds(
    config: TableConfig, max_row: int, max_col: int
) -> tuple[int, int, int, int]:
    """1-based inclusive ``(min_row, min_col, max_row, max_col)`` of the table."""
    if config.data_range:
        min_row, min_col, end_row, end_col = parse_range(config.data_range)
        if config.header_row > min_row:
            min_row = config.header_row
        return min_row, min_col, min(end_row or max_row, max_row), min(end_col or max_col, max_col)
    return config.header_row, 1, max_row, max_col


def _trim_trailing_empty(rows: list[list[Any]]) -> list[list[Any]]:
    end = len(rows)
    while end > 1 and all(is_empty_cell(v) for v in rows[end - 1]):
        end -= 1
    return rows[:end]


def _clip_merges(
    ws: Worksheet, min_row: int, min_col: int, max_row: int, max_col: int
) -> list[CellRange]:
    merges: list[CellRange] = []
    for cr in list(ws.merged_cells.ranges):
        top, left = max(cr.min_row, min_row), max(cr.min_col, min_col)
        bottom, right = min(cr.max_row, max_row), min(cr.max_col, max_col)
        if top > bottom or left > right:
            continue
        merges.append(
            CellRange(
                min_row=top - min_row,
                min_col=left - min_col,
                max_row=bottom - min_row,
                max_col=right - min_col,
            )
        )
    return merges


def region_from_worksheet(ws: Worksheet, config: TableConfig) -> TableRegion:
    """Read the configured table out of *ws*, merge metadata included."""
    max_row = int(ws.max_row or 0)
    max_col = int(ws.max_column or 0)
    min_row, min_col, end_row, end_col = _bounds(config, max_row, max_col)
    if end_row < min_row or end_col < min_col:
        return TableRegion(rows=[], sheet_name=ws.title, origin_row=min_row, origin_column=min_col)

    rows = [
        list(values)
        for values in ws.iter_rows(
            min_row=min_row, max_row=end_row, min_col=min_col, max_col=end_col, values_only=True
        )
    ]
    rows = _trim_trailing_empty(rows)
    return TableRegion(
        rows=rows,
        column_count=end_col - min_col + 1,
        sheet_name=ws.title,
        origin_row=min_row,
        origin_column=min_col,
        merged_ranges=_clip_merges(ws, min_row, min_col, min_row + len(rows) - 1, end_col),
    )


def _region_from_rows(rows: list[list[Any]], config: TableConfig, sheet_name: str) -> TableRegion:
    max_row = len(rows)
    max_col = max((len(r) for r in rows), default=0)
    min_row, min_col, end_row, end_col = _bounds(config, max_row, max_col)
    selected = [r[min_col - 1 : end_col] for r in rows[min_row - 1 : end_row]]
    return TableRegion(
        rows=_trim_trailing_empty(selected) if selected else [],
        column_count=max(end_col - min_col + 1, 0),
        sheet_name=sheet_name,
        origin_row=min_row,
        origin_column=min_col,
    )


def load_region(path: Path, config: TableConfig | None = None) -> TableRegion:
    """Load the table described by *config* from a CSV or Excel file.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    ValueError
        If the extension is not supported, the sheet is unknown, or CSV
        decoding/parsing fails.
    """
    cfg = config or TableConfig()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".csv":
        return _region_from_rows(_read_csv_rows(path), cfg, path.stem)
    if suffix in EXCEL_SUFFIXES:
        wb = open_workbook(path)
        return region_from_worksheet(select_worksheet(wb, cfg.sheet_name), cfg)
    raise ValueError(f"Unsupported file type: {suffix!r}. Use .csv or .xlsx")


# ── Writing ──────────────────────────────────────────────────────


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    item = getattr(obj, "item", None)
    if callable(item):
        converted = item()
        if isinstance(converted, (str, int, float, bool)) or converted is None:
            return converted
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def write_json(path: Path, data: Any) -> Path:
    """Write *data* as pretty-printed JSON to *path* (atomic + deterministic)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = json.dumps(
        data,
        indent=2,
        sort_keys=True,
        ensure_ascii=False,
        default=_json_default,
    ) + "\n"
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(payload, encoding="utf-8")
    tmp_path.replace(path)
    return path


def read_json(path: Path) -> Any:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in {path}: {exc}") from exc


def write_text(path: Path, text: str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(text, encoding="utf-8")
    tmp_path.replace(path)
    return path
