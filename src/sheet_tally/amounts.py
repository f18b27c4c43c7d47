"""Amount normalisation — turn human-entered money cells into floats."""

from __future__ import annotations

import math
import re
from numbers import Real
from typing import Any, cast

import pandas as pd

from sheet_tally.models import AmountStatus, cell_text

CURRENCY_CODES: tuple[str, ...] = ("RMB", "CNY", "USD", "EUR", "GBP", "JPY", "HKD")
CURRENCY_SYMBOLS = "¥$€£￥＄￡"

_CURRENCY_CODE_RE = re.compile("|".join(CURRENCY_CODES), re.IGNORECASE)
_CURRENCY_SYMBOL_RE = re.compile(f"[{re.escape(CURRENCY_SYMBOLS)}]")
_THOUSANDS_RE = re.compile(r"[,，]")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_NUMERIC_RE = re.compile(r"[^0-9.]")
_NEGATIVE_SIGNS = ("-", "－")
_FLOAT_LITERAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(cast(Any, value)))
    except (TypeError, ValueError):
        return False


def _normalize_amount_token(token: str) -> tuple[str, bool]:
    """Return ``(digits_and_single_dot, is_negative)`` for a raw token."""
    token = token.strip()
    token = _CURRENCY_CODE_RE.sub("", token)
    token = _CURRENCY_SYMBOL_RE.sub("", token)
    token = _THOUSANDS_RE.sub("", token)
    token = _WHITESPACE_RE.sub("", token)

    negative = token.startswith(_NEGATIVE_SIGNS)
    if negative:
        token = token[1:]

    token = _NON_NUMERIC_RE.sub("", token)
    dot = token.find(".")
    if dot != -1:
        token = token[: dot + 1] + token[dot + 1 :].replace(".", "")
    return token, negative


def _parse_token(token: str, negative: bool) -> float | None:
    try:
        number = float(token)
    except ValueError:
        return None
    return -number if negative else number


def normalize_amount(raw: Any) -> float:
    """Convert a raw cell value to a float amount.

    Never raises: empty, missing and unparseable values all become ``0.0``.
    Numbers pass through unchanged; strings lose currency codes/symbols,
    thousands separators and stray characters, and keep only their first
    decimal point. Text that already is a plain float literal (``1e-05``)
    is read as-is, so feeding a result back in returns the same amount.
    """
    amount, _status = classify_amount(raw)
    return amount


def classify_amount(raw: Any) -> tuple[float, AmountStatus]:
    """Like :func:`normalize_amount` but also report why a value became 0.

    ``"empty"`` means there was nothing in the cell; ``"invalid"`` means the
    cell held text without any digits.
    """
    if _is_missing(raw):
        return 0.0, "empty"
    if isinstance(raw, Real) and not isinstance(raw, bool):
        return float(raw), "ok"

    text = cell_text(raw).strip()
    if not text:
        return 0.0, "empty"

    if _FLOAT_LITERAL_RE.match(text):
        number = float(text)
        if math.isfinite(number):
            return number, "ok"

    token, negative = _normalize_amount_token(text)
    parsed = _parse_token(token, negative)
    if parsed is None:
        return 0.0, "invalid"
    return parsed, "ok"
