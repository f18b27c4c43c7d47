"""CLI entry point for sheet-tally."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from typing import Any

import typer
from openpyxl import Workbook, load_workbook
from rich.console import Console
from rich.panel import Panel
from rich.table import Table as RichTable

from sheet_tally import __version__
from sheet_tally.config import build_config, load_profile, resolve_column
from sheet_tally.io import (
    EXCEL_SUFFIXES,
    load_region,
    open_workbook,
    read_json,
    region_from_worksheet,
    select_worksheet,
    write_json,
    write_text,
)
from sheet_tally.merge import consolidate_region
from sheet_tally.models import FilterCondition, RunManifest, TableConfig, TableRegion, cell_text
from sheet_tally.profiler import column_label, profile_region
from sheet_tally.report import (
    apply_consolidation_to_sheet,
    apply_visibility,
    copy_region_to_sheet,
    highlight_groups,
    save_workbook,
    write_summary_sheet,
)
from sheet_tally.session import FilterSession
from sheet_tally.utils import sha256_file, utcnow, utcnow_iso
from sheet_tally.visibility import hidden_runs

app = typer.Typer(
    name="stally",
    help="sheet-tally — Filter spreadsheet rows, fold merged records and total amounts.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

REPORT_FILENAME = "Summary_Report.xlsx"


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sheet-tally v{__version__}")
        raise typer.Exit()


def _load_config(
    profile: Path | None,
    *,
    sheet: str | None,
    header_row: int | None,
    data_range: str | None,
) -> tuple[TableConfig, dict[str, str]]:
    values = load_profile(profile)
    return build_config(values, sheet=sheet, header_row=header_row, data_range=data_range), values


def _require_table(region: TableRegion) -> None:
    if not region.rows or all(cell_text(v) == "" for v in region.header):
        raise ValueError("Input table has no header row (check --sheet / --header-row / --range)")


def _resolve_role(
    option: str | None, profile_values: dict[str, str], key: str, flag: str, region: TableRegion
) -> int:
    ref = option if option is not None else profile_values.get(key)
    if not ref:
        raise ValueError(f"Missing {flag} (pass it or set {key}=... in the profile)")
    return resolve_column(ref, region.header)


def _parse_where(raw: list[str] | None) -> list[tuple[str, str]]:
    """Parse ``--where COL=VALUE`` pairs (repeat a column to allow several values)."""
    pairs: list[tuple[str, str]] = []
    for item in raw or []:
        if "=" not in item:
            raise ValueError(f"Invalid --where value: {item!r}  (expected COL=VALUE)")
        column, value = item.split("=", 1)
        if not column.strip():
            raise ValueError(f"Invalid --where value: {item!r}  (column must not be empty)")
        pairs.append((column.strip(), value))
    return pairs


def _apply_where(session: FilterSession, pairs: list[tuple[str, str]]) -> list[str]:
    """Restrict the session's filter model to the requested values."""
    wanted: dict[int, list[str]] = {}
    for column, value in pairs:
        idx = resolve_column(column, session.region.header)
        wanted.setdefault(idx, []).append(value)

    warnings: list[str] = []
    for idx, values in wanted.items():
        field = session.model.field(idx)
        missing = [v for v in values if v not in field.all_values]
        if missing:
            warnings.append(
                f"--where {field.header_text}: value(s) not present in column: "
                + ", ".join(repr(v) for v in missing)
            )
        session.model.set_selection(idx, values)
    return warnings


def _write_manifest(
    out_dir: Path,
    input_file: Path,
    command: str,
    created_at: str,
    *,
    rows_in: int = 0,
    rows_out: int = 0,
    status: str = "success",
    error_code: int | None = None,
    error_message: str = "",
    warnings: list[str] | None = None,
) -> Path:
    sha256 = ""
    try:
        sha256 = sha256_file(input_file)
    except OSError:
        pass

    manifest = RunManifest(
        command=command,
        version=__version__,
        input_path=str(input_file.resolve()),
        output_dir=str(out_dir.resolve()),
        created_at_utc=created_at,
        rows_in=rows_in,
        rows_out=rows_out,
        sha256=sha256,
        status=status,
        error_code=error_code,
        error_message=error_message,
        warnings=warnings or [],
    )
    return write_json(out_dir / "run_manifest.json", manifest.to_dict())


def _write_failure_artifacts(
    out_dir: Path,
    input_file: Path,
    command: str,
    created_at: str,
    *,
    message: str,
    rows_in: int = 0,
    error_code: int = 2,
) -> tuple[Path, Path]:
    summary_path = write_json(
        out_dir / "summary.json",
        {
            "status": "failed",
            "input_file": input_file.name,
            "error_code": error_code,
            "error_message": message,
        },
    )
    manifest_path = _write_manifest(
        out_dir,
        input_file,
        command,
        created_at,
        rows_in=rows_in,
        status="failed",
        error_code=error_code,
        error_message=message,
    )
    return summary_path, manifest_path


def _fail(
    out_dir: Path,
    input_file: Path,
    command: str,
    created_at: str,
    message: str,
    *,
    rows_in: int = 0,
    error_code: int = 2,
) -> typer.Exit:
    summary_path, manifest_path = _write_failure_artifacts(
        out_dir,
        input_file,
        command,
        created_at,
        message=message,
        rows_in=rows_in,
        error_code=error_code,
    )
    _err(message)
    console.print(f"  Summary  -> {summary_path}")
    console.print(f"  Manifest -> {manifest_path}")
    return typer.Exit(code=error_code)


def _audit_table(region: TableRegion, entries: list[Any]) -> RichTable:
    tbl = RichTable(title="Amount Audit", show_lines=False)
    tbl.add_column("Row", justify="right")
    tbl.add_column("Identifier")
    tbl.add_column("Raw")
    tbl.add_column("Amount", justify="right")
    tbl.add_column("Status")
    for entry in entries:
        status = entry.status if entry.status == "ok" else f"[yellow]{entry.status}[/yellow]"
        tbl.add_row(
            str(region.origin_row + 1 + entry.row_index),
            cell_text(entry.identifier),
            cell_text(entry.raw),
            f"{entry.amount:.2f}",
            status,
        )
    return tbl


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """sheet-tally CLI."""


# ── profile command ──────────────────────────────────────────────


@app.command()
def profile(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to CSV or XLSX input file.",
        exists=True, readable=True,
    ),
    sheet: str | None = typer.Option(None, "--sheet", "-s", help="Worksheet name (default: active)."),
    header_row: int | None = typer.Option(
        None, "--header-row", min=1, help="1-based row holding the column headers."
    ),
    data_range: str | None = typer.Option(
        None, "--range", help="Restrict the table to a range such as A1:E100."
    ),
    profile_file: Path | None = typer.Option(
        None, "--profile",
        help="Profile file of key=value lines (sheet, header_row, id_col, amount_col, range).",
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for filter_fields.json.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes filter_fields.json.",
    ),
) -> None:
    """List every column with its distinct values (the filter panel contents)."""
    echo = _printer(quiet)
    try:
        config, _ = _load_config(
            profile_file, sheet=sheet, header_row=header_row, data_range=data_range
        )
        region = load_region(input_file, config)
        _require_table(region)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    fields = profile_region(region)
    out_path = write_json(
        out_dir / "filter_fields.json",
        {
            "input_file": input_file.name,
            "sheet": region.sheet_name,
            "header_row": region.origin_row,
            "data_row_count": region.data_row_count,
            "fields": [f.to_dict() for f in fields],
        },
    )

    if not quiet:
        tbl = RichTable(title=f"Columns in {region.sheet_name}", show_lines=False)
        tbl.add_column("Col", style="bold")
        tbl.add_column("Header")
        tbl.add_column("Distinct", justify="right")
        tbl.add_column("Sample")
        for f in fields:
            sample = ", ".join(v or "(blank)" for v in f.all_values[:5])
            if len(f.all_values) > 5:
                sample += ", …"
            tbl.add_row(
                column_label(region.origin_column - 1 + f.column_index),
                f.header_text,
                str(len(f.all_values)),
                sample,
            )
        console.print(tbl)
    echo(f"  {region.data_row_count} data rows x {region.width} columns")
    echo(f"  Fields -> {out_path}")


# ── consolidate command ──────────────────────────────────────────


@app.command()
def consolidate(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the XLSX workbook.",
        exists=True, readable=True,
    ),
    id_col: str | None = typer.Option(
        None, "--id-col",
        help="Identifier column: header text, letter (B) or 0-based index.",
    ),
    sheet: str | None = typer.Option(None, "--sheet", "-s", help="Worksheet name (default: active)."),
    header_row: int | None = typer.Option(
        None, "--header-row", min=1, help="1-based row holding the column headers."
    ),
    profile_file: Path | None = typer.Option(
        None, "--profile", help="Profile file of key=value lines."
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o",
        help="Where to write the consolidated workbook (default: <input>_consolidated.xlsx).",
    ),
    highlight: bool = typer.Option(
        False, "--highlight", help="Fill detected merge ranges yellow before folding them."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Only report the detected groups; write nothing."
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress informational output."),
) -> None:
    """Fold vertically merged records in the identifier column into single rows."""
    echo = _printer(quiet)
    try:
        config, profile_values = _load_config(
            profile_file, sheet=sheet, header_row=header_row, data_range=None
        )
        if input_file.suffix.lower() not in EXCEL_SUFFIXES:
            raise ValueError(f"Unsupported workbook type: {input_file.suffix!r}. Use .xlsx")
        values_wb = open_workbook(input_file)
        region = region_from_worksheet(select_worksheet(values_wb, config.sheet_name), config)
        _require_table(region)
        id_index = _resolve_role(id_col, profile_values, "id_col", "--id-col", region)
    except (FileNotFoundError, ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    config.id_column = id_index
    plan = consolidate_region(region, id_index)

    if not quiet:
        console.print(Panel(
            f"[bold]sheet-tally[/bold] v{__version__}  [dim]consolidate[/dim]\n"
            f"Input: {input_file}\nSheet: {region.sheet_name}  "
            f"Column: {region.header[id_index]!s}",
            title="Consolidate", border_style="blue",
        ))

    if not plan.has_groups:
        echo("[yellow]![/yellow] No merged groups found in the identifier column.")
        return

    if not quiet:
        tbl = RichTable(title=f"Merge groups ({plan.detector})", show_lines=False)
        tbl.add_column("Sheet rows")
        tbl.add_column("Identifier")
        tbl.add_column("Rows folded", justify="right")
        for group in sorted(plan.groups, key=lambda g: g.start_row):
            first = region.origin_row + 1 + group.start_row
            last = region.origin_row + 1 + group.end_row
            tbl.add_row(
                f"{first}–{last}",
                cell_text(region.data_rows[group.start_row][id_index]),
                str(group.end_row - group.start_row),
            )
        console.print(tbl)

    if dry_run:
        echo(f"  Dry run: {len(plan.groups)} group(s), {plan.deleted_row_count} row(s) would be removed")
        return

    try:
        wb = load_workbook(input_file)
        ws = select_worksheet(wb, region.sheet_name)
        if highlight:
            highlight_groups(ws, region, plan.groups)
        deleted = apply_consolidation_to_sheet(ws, region, plan)
        target = output or input_file.with_name(f"{input_file.stem}_consolidated.xlsx")
        out_path = save_workbook(wb, target)
    except (ValueError, OSError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    if not quiet:
        console.print(Panel(
            f"[green]Done[/green] — {len(plan.groups)} group(s), {deleted} row(s) removed "
            f"-> {out_path}",
            title="Consolidate Complete", border_style="green",
        ))


# ── report command ───────────────────────────────────────────────


@app.command()
def report(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to CSV or XLSX input file.",
        exists=True, readable=True,
    ),
    id_col: str | None = typer.Option(
        None, "--id-col",
        help="Identifier column: header text, letter (B) or 0-based index.",
    ),
    amount_col: str | None = typer.Option(
        None, "--amount-col",
        help="Amount column: header text, letter (D) or 0-based index.",
    ),
    where: list[str] | None = typer.Option(
        None, "--where", "-w",
        help="Keep rows whose COL equals VALUE; repeat for more values or columns.",
    ),
    condition_file: Path | None = typer.Option(
        None, "--condition", help="Apply a saved filter condition (JSON)."
    ),
    save_condition: Path | None = typer.Option(
        None, "--save-condition", help="Save the resulting filter condition as JSON."
    ),
    condition_name: str | None = typer.Option(
        None, "--name", help="Name stored with --save-condition."
    ),
    sheet: str | None = typer.Option(None, "--sheet", "-s", help="Worksheet name (default: active)."),
    header_row: int | None = typer.Option(
        None, "--header-row", min=1, help="1-based row holding the column headers."
    ),
    data_range: str | None = typer.Option(
        None, "--range", help="Restrict the table to a range such as A1:E100."
    ),
    profile_file: Path | None = typer.Option(
        None, "--profile", help="Profile file of key=value lines."
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for the report workbook + summary + manifest.",
    ),
    hide_rows: bool = typer.Option(
        False, "--hide-rows", help="Hide filtered-out rows on the source sheet copy."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print the per-row amount audit."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
) -> None:
    """Filter the table, total the amount column and write a summary report."""
    echo = _printer(quiet)
    command = "report"
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)

    # ── Load ─────────────────────────────────────────────────────
    try:
        config, profile_values = _load_config(
            profile_file, sheet=sheet, header_row=header_row, data_range=data_range
        )
        region = load_region(input_file, config)
        _require_table(region)
        config.id_column = _resolve_role(id_col, profile_values, "id_col", "--id-col", region)
        config.amount_column = _resolve_role(
            amount_col, profile_values, "amount_col", "--amount-col", region
        )
        where_pairs = _parse_where(where)
    except (FileNotFoundError, ValueError, OSError) as exc:
        raise _fail(out_dir, input_file, command, created_at, str(exc))

    rows_in = region.data_row_count
    if not quiet:
        console.print(Panel(
            f"[bold]sheet-tally[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Report Start", border_style="blue",
        ))
    echo(f"  {rows_in} data rows x {region.width} columns on {region.sheet_name!r}")

    try:
        if rows_in == 0:
            raise _fail(out_dir, input_file, command, created_at, "Input table has 0 data rows.")

        is_excel = input_file.suffix.lower() in EXCEL_SUFFIXES
        if not is_excel:
            region = replace(
                region, sheet_name=region.sheet_name[:31] or "Source", origin_row=1, origin_column=1
            )
        config.sheet_name = region.sheet_name
        session = FilterSession(region, config)
        warnings: list[str] = []

        # ── Filters ──────────────────────────────────────────────
        try:
            if condition_file:
                condition = FilterCondition.from_dict(read_json(condition_file))
                warnings.extend(session.apply_condition(condition))
                echo(f"  Using condition: {condition.name or condition_file.name}")
            warnings.extend(_apply_where(session, where_pairs))
        except (FileNotFoundError, ValueError, TypeError, KeyError) as exc:
            raise _fail(out_dir, input_file, command, created_at, str(exc), rows_in=rows_in)

        for w in warnings:
            echo(f"  [yellow]![/yellow] {w}")

        # ── Evaluate + build report ──────────────────────────────
        echo("[blue]>[/blue] Evaluating filters …")
        if is_excel:
            wb = load_workbook(input_file)
            source_ws = select_worksheet(wb, region.sheet_name)
        else:
            wb = Workbook()
            default_ws = wb.active
            source_ws = copy_region_to_sheet(wb, region, region.sheet_name)
            if default_ws is not None:
                wb.remove(default_ws)

        try:
            summary_report = session.build_report(existing_sheets=set(wb.sheetnames), now=utcnow())
        except ValueError as exc:
            raise _fail(out_dir, input_file, command, created_at, str(exc), rows_in=rows_in)

        visibility = session.visibility
        aggregate = session.aggregate
        if visibility is None or aggregate is None:
            raise RuntimeError("filter session produced no evaluation")

        if save_condition:
            try:
                saved = session.save_condition(condition_name)
            except ValueError as exc:
                warnings.append(str(exc))
                echo(f"  [yellow]![/yellow] {exc}")
            else:
                echo(f"  Condition -> {write_json(save_condition, saved.to_dict())}")

        # ── Write workbook ───────────────────────────────────────
        echo(f"[blue]>[/blue] Writing {REPORT_FILENAME} …")
        runs = apply_visibility(source_ws, region, visibility.visible) if hide_rows else []
        write_summary_sheet(wb, summary_report)
        report_path = save_workbook(wb, out_dir / REPORT_FILENAME)
        echo(f"  Report   -> {report_path}")

        filter_text = session.describe()
        filter_path = write_text(out_dir / "filter.txt", filter_text + "\n")
        echo(f"  Filters  -> {filter_path}")

        summary_path = write_json(
            out_dir / "summary.json",
            {
                "status": "success",
                "input_file": input_file.name,
                "report": summary_report.to_dict(),
                "aggregate": aggregate.to_dict(),
                "hidden_row_count": visibility.hidden_count,
                "hidden_runs": runs if hide_rows else hidden_runs(visibility.visible),
                "id_column": config.id_column,
                "amount_column": config.amount_column,
                "warnings": warnings,
            },
        )
        echo(f"  Summary  -> {summary_path}")

        manifest_path = _write_manifest(
            out_dir,
            input_file,
            command,
            created_at,
            rows_in=rows_in,
            rows_out=visibility.visible_count,
            warnings=warnings,
        )
        echo(f"  Manifest -> {manifest_path}")

        if verbose and not quiet:
            console.print(_audit_table(region, aggregate.entries))

        if not quiet:
            tbl = RichTable(title="Report Summary", show_lines=True)
            tbl.add_column("Metric", style="bold")
            tbl.add_column("Value")
            tbl.add_row("Visible rows", str(visibility.visible_count))
            tbl.add_row("Hidden rows", str(visibility.hidden_count))
            tbl.add_row("Total amount", f"{aggregate.total_amount:,.2f}")
            tbl.add_row("Empty amounts", str(aggregate.empty_count))
            tbl.add_row("Invalid amounts", str(aggregate.invalid_count))
            for header, values in summary_report.filters:
                tbl.add_row(f"Filter: {header}", values)
            console.print(tbl)
            console.print(Panel(
                f"[green]Done[/green] — {visibility.visible_count} rows -> "
                f"{report_path} ({summary_report.sheet_name})",
                title="Report Complete", border_style="green",
            ))
    except typer.Exit:
        raise
    except Exception as exc:
        message = f"Unexpected internal error: {exc}"
        raise _fail(
            out_dir, input_file, command, created_at, message, rows_in=rows_in, error_code=1
        )
