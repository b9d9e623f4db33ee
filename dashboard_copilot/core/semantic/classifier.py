from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .models import ColumnStats, FunnelStage, HIDDEN_ROLES, SemanticColumn, SemanticRole
from .profiler import parse_dates
from .vocabulary import (
    COUNT_PATTERNS,
    CURRENCY_PATTERNS,
    DIMENSION_PATTERNS,
    IGNORE_PATTERNS,
    STATUS_PATTERNS,
    count_truthy,
    humanize_label,
    is_primary_id_name,
    is_rate_name,
    is_secondary_id_name,
    is_time_name,
    match_stage,
    name_contains_any,
)

log = logging.getLogger("copilot.semantic")

# Rule order is part of the contract: the first rule that returns a column wins.
CLASSIFICATION_ORDER: Tuple[str, ...] = (
    "ignore",
    "time",
    "identifier",
    "stage_flag",
    "status_enum",
    "numeric",
    "dimension",
    "text_long",
    "text",
)

MIN_ROWS_FOR_CARDINALITY_ID = 5


@dataclass
class ColumnEvidence:
    name: str
    stats: ColumnStats
    values: List[Any]
    rows: int
    declared_type: Optional[str] = None
    declared_label: Optional[str] = None


@dataclass
class ClassificationPass:
    """Accumulated outcome of classifying one sample."""

    columns: List[SemanticColumn] = field(default_factory=list)
    time_column: Optional[str] = None
    id_primary: Optional[str] = None
    id_secondary: List[str] = field(default_factory=list)
    ids_discarded: List[str] = field(default_factory=list)
    time_candidates: List[str] = field(default_factory=list)
    funnel_stages: List[FunnelStage] = field(default_factory=list)
    date_range: Dict[str, Optional[str]] = field(default_factory=lambda: {"min": None, "max": None})
    warnings: List[str] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)


def _infer_db_type(stats: ColumnStats) -> str:
    if stats.numeric_parse_rate > 0.8:
        return "integer" if stats.integer_rate >= 1.0 else "numeric"
    if stats.date_parse_rate > 0.7:
        return "date"
    return "text"


def _new_column(ev: ColumnEvidence, role: SemanticRole, *, label: Optional[str] = None, **kwargs: Any) -> SemanticColumn:
    return SemanticColumn(
        name=ev.name,
        db_type=ev.declared_type or _infer_db_type(ev.stats),
        semantic_role=role,
        display_label=ev.declared_label or label or humanize_label(ev.name),
        stats=ev.stats,
        **kwargs,
    )


def _date_range(values: Sequence[Any]) -> Dict[str, Optional[str]]:
    days = sorted(pd.Timestamp(v).date().isoformat() for v in parse_dates(values).dropna())
    if not days:
        return {"min": None, "max": None}
    return {"min": days[0], "max": days[-1]}


# ----------------------------
# Rules
# ----------------------------
def _rule_ignore(ev: ColumnEvidence, p: ClassificationPass) -> Optional[SemanticColumn]:
    if not name_contains_any(ev.name, IGNORE_PATTERNS):
        return None
    return _new_column(
        ev,
        SemanticRole.IGNORE,
        confidence=1.0,
        ignore_in_ui=True,
        notes=["sensitive or internal column name"],
    )


def _rule_time(ev: ColumnEvidence, p: ClassificationPass) -> Optional[SemanticColumn]:
    by_name = is_time_name(ev.name)
    by_values = ev.stats.date_parse_rate > 0.7

    if by_name and not by_values:
        p.warnings.append(f"Column '{ev.name}' has a temporal name but its values do not parse as dates")
        return None
    if not by_values:
        return None

    confidence = 1.0 if by_name else 0.7
    if not by_name:
        p.assumptions.append(f"Column '{ev.name}' treated as time from its values only")

    p.time_candidates.append(ev.name)
    if p.time_column is None:
        p.time_column = ev.name
        p.date_range = _date_range(ev.values)

    return _new_column(
        ev,
        SemanticRole.TIME,
        format="date",
        confidence=confidence,
        usable_in_chart=True,
    )


def _looks_like_identifier(ev: ColumnEvidence) -> bool:
    s = ev.stats
    if ev.rows < MIN_ROWS_FOR_CARDINALITY_ID or s.distinct_count <= ev.rows * 0.8:
        return False
    if s.date_parse_rate > 0.5 or s.avg_len > 40:
        return False
    if s.numeric_parse_rate > 0.8:
        metric_name = (
            name_contains_any(ev.name, CURRENCY_PATTERNS)
            or name_contains_any(ev.name, COUNT_PATTERNS)
            or is_rate_name(ev.name)
        )
        return s.integer_rate >= 1.0 and not metric_name
    return all(isinstance(v, str) and " " not in v.strip() for v in s.sample_values)


def _rule_identifier(ev: ColumnEvidence, p: ClassificationPass) -> Optional[SemanticColumn]:
    if is_primary_id_name(ev.name) and ev.stats.distinct_count > ev.rows * 0.5:
        if p.id_primary is None:
            p.id_primary = ev.name
            return _new_column(
                ev,
                SemanticRole.ID_PRIMARY,
                aggregator="count_distinct",
                format="integer",
                confidence=0.95,
                usable_in_kpi=True,
                ignore_in_ui=True,
            )
        p.ids_discarded.append(ev.name)
        return _secondary(ev, p, confidence=0.9, note=f"additional primary id; '{p.id_primary}' already chosen")

    if is_secondary_id_name(ev.name):
        return _secondary(ev, p, confidence=0.9, note="identifier name")

    if _looks_like_identifier(ev):
        return _secondary(ev, p, confidence=0.7, note="high-cardinality identifier-like values")
    return None


def _secondary(ev: ColumnEvidence, p: ClassificationPass, *, confidence: float, note: str) -> SemanticColumn:
    p.id_secondary.append(ev.name)
    return _new_column(
        ev,
        SemanticRole.ID_SECONDARY,
        confidence=confidence,
        ignore_in_ui=True,
        notes=[note],
    )


def _rule_stage_flag(ev: ColumnEvidence, p: ClassificationPass) -> Optional[SemanticColumn]:
    rate = ev.stats.boolean_like_rate
    stage = match_stage(ev.name)

    if stage is not None and rate > 0.5:
        order, label = stage
        prevalence = count_truthy(ev.values) / ev.rows if ev.rows else 0.0
        p.funnel_stages.append(FunnelStage(column=ev.name, label=label, order=order, prevalence=prevalence))
        return _new_column(
            ev,
            SemanticRole.STAGE_FLAG,
            label=label,
            aggregator="truthy_count",
            format="integer",
            confidence=0.95 if rate > 0.8 else 0.8,
            usable_as_filter=True,
            usable_in_kpi=True,
            usable_in_chart=True,
            filter_type="toggle",
        )

    if stage is None and rate > 0.8 and ev.stats.distinct_count <= 5:
        p.assumptions.append(f"Column '{ev.name}' treated as a generic yes/no flag")
        return _new_column(
            ev,
            SemanticRole.STAGE_FLAG,
            aggregator="truthy_count",
            format="integer",
            confidence=0.7,
            usable_as_filter=True,
            usable_in_kpi=True,
            usable_in_chart=True,
            filter_type="toggle",
            notes=["boolean-like values, not a funnel stage"],
        )
    return None


def _rule_status_enum(ev: ColumnEvidence, p: ClassificationPass) -> Optional[SemanticColumn]:
    if not name_contains_any(ev.name, STATUS_PATTERNS):
        return None
    if not 2 <= ev.stats.distinct_count <= 20:
        return None
    return _new_column(
        ev,
        SemanticRole.STATUS_ENUM,
        aggregator="count",
        confidence=0.9,
        usable_as_filter=True,
        usable_in_chart=True,
        filter_type="multi_select",
    )


def _rule_numeric(ev: ColumnEvidence, p: ClassificationPass) -> Optional[SemanticColumn]:
    s = ev.stats
    if s.numeric_parse_rate <= 0.8:
        return None

    common = {"usable_in_kpi": True, "usable_in_chart": True}
    if name_contains_any(ev.name, CURRENCY_PATTERNS) or s.contains_currency_symbols:
        return _new_column(ev, SemanticRole.CURRENCY, aggregator="sum", format="currency", confidence=0.9, **common)
    if is_rate_name(ev.name):
        return _new_column(ev, SemanticRole.RATE, aggregator="avg", format="percent", confidence=0.9, **common)
    if name_contains_any(ev.name, COUNT_PATTERNS):
        return _new_column(ev, SemanticRole.METRIC, aggregator="sum", format="integer", confidence=0.85, **common)
    return _new_column(ev, SemanticRole.METRIC, aggregator="sum", format="float", confidence=0.6, **common)


def _rule_dimension(ev: ColumnEvidence, p: ClassificationPass) -> Optional[SemanticColumn]:
    distinct = ev.stats.distinct_count
    by_name = name_contains_any(ev.name, DIMENSION_PATTERNS)
    by_cardinality = 2 <= distinct <= 100 and distinct < ev.rows * 0.3
    if not (by_name or by_cardinality):
        return None

    usable = 2 <= distinct <= 500
    if ev.stats.boolean_like_rate > 0.8:
        filter_type = "toggle"
    elif distinct > 50:
        filter_type = "search_select"
    else:
        filter_type = "multi_select"

    return _new_column(
        ev,
        SemanticRole.DIMENSION,
        aggregator="count",
        confidence=0.85 if by_name else 0.65,
        usable_as_filter=usable,
        usable_in_chart=True,
        filter_type=filter_type if usable else "none",
    )


def _rule_text_long(ev: ColumnEvidence, p: ClassificationPass) -> Optional[SemanticColumn]:
    if ev.stats.avg_len <= 100:
        return None
    return _new_column(ev, SemanticRole.TEXT_LONG, confidence=0.8)


def _rule_text(ev: ColumnEvidence, p: ClassificationPass) -> Optional[SemanticColumn]:
    return _new_column(ev, SemanticRole.TEXT, confidence=0.3)


_RULES: Dict[str, Callable[[ColumnEvidence, ClassificationPass], Optional[SemanticColumn]]] = {
    "ignore": _rule_ignore,
    "time": _rule_time,
    "identifier": _rule_identifier,
    "stage_flag": _rule_stage_flag,
    "status_enum": _rule_status_enum,
    "numeric": _rule_numeric,
    "dimension": _rule_dimension,
    "text_long": _rule_text_long,
    "text": _rule_text,
}


def classify_column(ev: ColumnEvidence, p: ClassificationPass) -> SemanticColumn:
    for rule_name in CLASSIFICATION_ORDER:
        col = _RULES[rule_name](ev, p)
        if col is not None:
            col.notes.append(f"rule={rule_name}")
            if col.semantic_role in HIDDEN_ROLES:
                col.usable_in_kpi = False
                col.usable_in_chart = False
                col.usable_as_filter = False
                col.filter_type = "none"
            return col
    raise AssertionError("text rule always matches")


def classify_columns(
    evidence: Sequence[ColumnEvidence],
    *,
    classification_pass: Optional[ClassificationPass] = None,
) -> ClassificationPass:
    p = classification_pass or ClassificationPass()
    for ev in evidence:
        col = classify_column(ev, p)
        p.columns.append(col)
        log.debug("classified column=%s role=%s confidence=%.2f", col.name, col.semantic_role.value, col.confidence)

    if p.time_column is None:
        p.warnings.append("No time column detected; trend charts will be unavailable")
    return p
