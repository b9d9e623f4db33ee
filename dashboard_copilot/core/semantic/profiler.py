from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .models import ColumnStats
from .vocabulary import (
    contains_currency_symbol,
    is_blank,
    is_boolean_like,
    looks_like_date,
    numeric_text,
)

log = logging.getLogger("copilot.semantic")

KEY_SCAN_ROWS = 20
TOP_VALUES = 10
SAMPLE_VALUES = 10
_DIGITS_ONLY = set("0123456789")


@dataclass
class NormalizedSample:
    """Rows reshaped into uniform ``{column: value}`` records."""

    columns: List[str]
    rows: List[Dict[str, Any]]
    extraction_method: str = "normalized"
    warnings: List[str] = field(default_factory=list)


def _decode_json_row(row: Any) -> Any:
    if not isinstance(row, str):
        return row
    try:
        return json.loads(row)
    except (TypeError, ValueError):
        return row


def _looks_like_header(row: Sequence[Any]) -> bool:
    if not row:
        return False
    for v in row:
        if not isinstance(v, str) or not v.strip():
            return False
        if set(v.strip()) <= _DIGITS_ONLY:
            return False
    return True


def derive_column_names(rows: Sequence[Any]) -> List[str]:
    if not rows:
        return []

    first = _decode_json_row(rows[0])
    if isinstance(first, str):
        return ["col_0"]

    if isinstance(first, (list, tuple)):
        if _looks_like_header(first):
            return [str(v).strip() for v in first]
        return [f"col_{i}" for i in range(len(first))]

    if isinstance(first, dict):
        names: Dict[str, None] = {}
        for raw in rows[:KEY_SCAN_ROWS]:
            row = _decode_json_row(raw)
            if isinstance(row, dict):
                for k in row.keys():
                    names.setdefault(str(k), None)
        return list(names)

    return ["value"]


def _row_to_record(row: Any, columns: List[str]) -> Dict[str, Any]:
    row = _decode_json_row(row)
    if isinstance(row, dict):
        return {str(k): v for k, v in row.items()}
    if isinstance(row, (list, tuple)):
        return {(columns[i] if i < len(columns) else f"col_{i}"): v for i, v in enumerate(row)}
    return {(columns[0] if columns else "value"): row}


def normalize_rows(rows: Sequence[Any], *, sample_limit: Optional[int] = None) -> NormalizedSample:
    """
    Accepts uniform mappings, header-less arrays or JSON-encoded strings and
    returns dict records plus the derived column list.

    A non-empty sample always yields at least one column.
    """
    sample = list(rows or [])
    if sample_limit is not None and sample_limit > 0:
        sample = sample[:sample_limit]
    if not sample:
        return NormalizedSample(columns=[], rows=[], extraction_method="empty")

    columns = derive_column_names(sample)
    warnings: List[str] = []
    method = "normalized"

    first = _decode_json_row(sample[0])
    header_row = isinstance(first, (list, tuple)) and _looks_like_header(first) and len(sample) > 1
    if header_row:
        sample = sample[1:]
        method = "header_row"

    if not columns:
        method = "emergency_fallback"
        warnings.append("No columns derived from the first rows; scanning every row for keys")
        scanned: Dict[str, None] = {}
        for raw in sample:
            row = _decode_json_row(raw)
            if isinstance(row, dict):
                for k in row.keys():
                    scanned.setdefault(str(k), None)
        columns = list(scanned) or ["data"]
        if not scanned:
            warnings.append("No keys found in sample; using synthetic column 'data'")

    records = [_row_to_record(r, columns) for r in sample]
    log.debug("normalized sample rows=%d columns=%d method=%s", len(records), len(columns), method)
    return NormalizedSample(columns=columns, rows=records, extraction_method=method, warnings=warnings)


def _json_safe(value: Any) -> Any:
    if isinstance(value, float) and not math.isfinite(value):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    try:
        return json.loads(json.dumps(value, allow_nan=False))
    except (TypeError, ValueError):
        return str(value)


def _distinct_key(value: Any) -> str:
    try:
        return json.dumps(_json_safe(value), sort_keys=True)
    except (TypeError, ValueError):
        return repr(value)


def _finite(value: Any) -> Optional[float]:
    f = float(value)
    return f if math.isfinite(f) else None


def _numeric_input(value: Any) -> Any:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        return numeric_text(value)
    return None


def to_numbers(values: pd.Series) -> pd.Series:
    """float64 series with NaN wherever a value is not a finite number."""
    parsed = pd.to_numeric(values.map(_numeric_input), errors="coerce").astype("float64")
    return parsed.mask(parsed.abs() == math.inf)


def _date_candidate(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str) and looks_like_date(value):
        return value.strip()
    return None


def _to_datetime(values: pd.Series, *, dayfirst: bool) -> pd.Series:
    try:
        return pd.to_datetime(values, errors="coerce", dayfirst=dayfirst, format="mixed")
    except (TypeError, ValueError):
        # mixed UTC offsets
        return pd.to_datetime(values, errors="coerce", dayfirst=dayfirst, format="mixed", utc=True)


def parse_dates(values: Sequence[Any]) -> pd.Series:
    """
    Parse date-shaped values; impossible calendar dates come back as NaT.

    Day-first is tried first and month-first is used only when it parses more
    values, so ``02/01/2025`` reads as 2 January.
    """
    candidates = pd.Series(list(values), dtype="object").map(_date_candidate)
    day_first = _to_datetime(candidates, dayfirst=True)
    month_first = _to_datetime(candidates, dayfirst=False)
    if month_first.notna().sum() > day_first.notna().sum():
        return month_first
    return day_first


def compute_column_stats(values: Sequence[Any]) -> ColumnStats:
    s = pd.Series(list(values), dtype="object")
    total = len(s)
    if total == 0:
        return ColumnStats(null_rate=0.0)
    blank = s.isna() | s.map(is_blank).astype(bool)
    non_null = s[~blank].reset_index(drop=True)
    n = len(non_null)
    if n == 0:
        return ColumnStats(null_rate=1.0)

    keys = non_null.map(_distinct_key)
    strings = non_null[non_null.map(lambda v: isinstance(v, str))]
    avg_len = float(strings.str.len().mean()) if len(strings) else 0.0

    numbers = to_numbers(non_null).dropna()
    numeric_rate = len(numbers) / n

    monotonicity = 0.0
    if numeric_rate > 0.9 and len(numbers) >= 2:
        steps = numbers.diff().dropna()
        monotonicity = int((steps >= 0).sum()) / len(steps)

    top = non_null.map(str).value_counts().head(TOP_VALUES)

    stats = ColumnStats(
        null_rate=(total - n) / total,
        distinct_count=int(keys.nunique(dropna=True)),
        avg_len=avg_len,
        boolean_like_rate=int(non_null.map(is_boolean_like).sum()) / n,
        numeric_parse_rate=numeric_rate,
        date_parse_rate=int(parse_dates(non_null).notna().sum()) / n,
        monotonicity=monotonicity,
        contains_currency_symbols=int(non_null.map(contains_currency_symbol).sum()) > n * 0.1,
        integer_rate=float((numbers % 1 == 0).mean()) if len(numbers) else 0.0,
        top_values=[{"value": str(value), "count": int(count)} for value, count in top.items()],
        top_value_coverage=int(top.sum()) / n,
        sample_values=[_json_safe(v) for v in non_null[~keys.duplicated()].head(SAMPLE_VALUES)],
    )

    if numeric_rate > 0.8 and len(numbers):
        stats.min = _finite(numbers.min())
        stats.max = _finite(numbers.max())
        # scale before summing so large magnitudes cannot overflow
        stats.avg = _finite((numbers / len(numbers)).sum())
    return stats


def profile_columns(sample: NormalizedSample) -> Dict[str, ColumnStats]:
    return {name: compute_column_stats([row.get(name) for row in sample.rows]) for name in sample.columns}
