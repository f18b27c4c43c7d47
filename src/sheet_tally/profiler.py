"""Column profiling — distinct values per column, ready for filtering."""

from __future__ import annotations

import unicodedata

from openpyxl.utils import column_index_from_string, get_column_letter

from sheet_tally.models import ColumnDescriptor, FilterField, TableRegion, cell_text


def column_label(column_index: int) -> str:
    """Return the spreadsheet letters for a 0-based column (0 -> A, 26 -> AA)."""
    if column_index < 0:
        raise ValueError("column_index must be >= 0")
    return get_column_letter(column_index + 1)


def column_index_from_label(label: str) -> int:
    """Inverse of :func:`column_label` (``"A"`` -> 0, ``"AA"`` -> 26)."""
    return column_index_from_string(label.strip().upper()) - 1


def collation_key(text: str) -> tuple[str, str]:
    """Human-expected sort key: case and width insensitive, raw text breaks ties."""
    folded = unicodedata.normalize("NFKC", text).casefold()
    return folded, text


def header_text(region: TableRegion, column_index: int) -> str:
    header = region.header
    raw = header[column_index] if column_index < len(header) else None
    text = cell_text(raw).strip()
    return text or column_label(column_index)


def describe_columns(region: TableRegion) -> list[ColumnDescriptor]:
    return [
        ColumnDescriptor(column_index=idx, header_text=header_text(region, idx))
        for idx in range(region.width)
    ]


def distinct_values(region: TableRegion, column_index: int) -> list[str]:
    """Sorted distinct non-empty texts found in the data rows of one column."""
    seen: set[str] = set()
    for row in region.data_rows:
        text = cell_text(row[column_index]) if column_index < len(row) else ""
        if text:
            seen.add(text)
    return sorted(seen, key=collation_key)


def profile_region(region: TableRegion) -> list[FilterField]:
    """Build one :class:`FilterField` per column with everything selected."""
    fields: list[FilterField] = []
    for column in describe_columns(region):
        values = distinct_values(region, column.column_index)
        fields.append(
            FilterField(
                column_index=column.column_index,
                header_text=column.header_text,
                all_values=tuple(values),
                selected_values=set(values),
            )
        )
    return fields
