"""Table configuration — profile files and column references."""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path

from openpyxl.utils.cell import range_boundaries

from sheet_tally.models import TableConfig, cell_text
from sheet_tally.profiler import column_index_from_label

PROFILE_KEYS: frozenset[str] = frozenset({"sheet", "header_row", "id_col", "amount_col", "range"})

_COLUMN_LETTERS_RE = re.compile(r"^[A-Za-z]{1,3}$")


def _normalize_header(name: object) -> str:
    return re.sub(r"\s+", " ", cell_text(name).strip()).lower()


def load_profile(profile: Path | None) -> dict[str, str]:
    """Read ``key=value`` lines from *profile* (``#`` comments allowed)."""
    if not profile:
        return {}
    if not profile.exists():
        raise ValueError(f"Profile not found: {profile} (expected lines like id_col=A)")
    if profile.is_dir():
        raise ValueError(f"Profile is a directory, not a file: {profile}")
    try:
        text = profile.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValueError(f"Cannot read profile {profile}: {exc}") from exc

    values: dict[str, str] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if "=" not in stripped:
            raise ValueError(f"{profile}:{lineno}: expected key=value, got {stripped!r}")
        key, value = (part.strip() for part in stripped.split("=", 1))
        key = key.lower()
        if key not in PROFILE_KEYS:
            allowed = ", ".join(sorted(PROFILE_KEYS))
            raise ValueError(f"{profile}:{lineno}: unknown key {key!r} (allowed: {allowed})")
        values[key] = value
    return values


def parse_header_row(raw: str | int | None, default: int = 1) -> int:
    if raw is None or raw == "":
        return default
    try:
        row = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid header row: {raw!r}") from exc
    if row < 1:
        raise ValueError(f"Header row must be >= 1, got {row}")
    return row


def parse_range(ref: str) -> tuple[int, int, int | None, int | None]:
    """Return ``(min_row, min_col, max_row, max_col)`` (1-based) for ``A1:E100``.

    Whole-column references such as ``A:E`` leave the row bounds open.
    """
    ref = ref.strip().replace("$", "")
    if "!" in ref:
        ref = ref.rsplit("!", 1)[1]
    try:
        min_col, min_row, max_col, max_row = range_boundaries(ref)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid range: {ref!r} (expected e.g. A1:E100)") from exc
    if min_col is None or max_col is None:
        raise ValueError(f"Invalid range: {ref!r} (columns are required)")
    return (min_row or 1), min_col, max_row, max_col


def resolve_column(ref: str | int, header: Sequence[object]) -> int:
    """Turn a column reference into a 0-based index within *header*.

    Accepts header text (case-insensitive), spreadsheet letters (``B``) or a
    0-based integer index, tried in that order.
    """
    if isinstance(ref, int) and not isinstance(ref, bool):
        index = ref
    else:
        text = str(ref).strip()
        if not text:
            raise ValueError("Column reference must not be empty")
        wanted = _normalize_header(text)
        for idx, name in enumerate(header):
            if _normalize_header(name) == wanted:
                return idx
        if _COLUMN_LETTERS_RE.match(text):
            index = column_index_from_label(text)
        elif text.isdigit():
            index = int(text)
        else:
            raise ValueError(
                f"Unknown column {text!r} (use header text, a letter like B, or a 0-based index)"
            )
    if index < 0 or index >= len(header):
        raise ValueError(f"Column {ref!r} is outside the table (width {len(header)})")
    return index


def build_config(
    profile_values: dict[str, str],
    *,
    sheet: str | None = None,
    header_row: int | None = None,
    data_range: str | None = None,
) -> TableConfig:
    """Merge profile values with explicit options (options win).

    Column roles are resolved later, once the header row has been read.
    """
    return TableConfig(
        sheet_name=sheet if sheet is not None else profile_values.get("sheet", ""),
        header_row=header_row
        if header_row is not None
        else parse_header_row(profile_values.get("header_row")),
        data_range=data_range if data_range is not None else profile_values.get("range", ""),
    )
