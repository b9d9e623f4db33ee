from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SemanticRole(str, Enum):
    TIME = "time"
    ID_PRIMARY = "id_primary"
    ID_SECONDARY = "id_secondary"
    STAGE_FLAG = "stage_flag"
    METRIC = "metric"
    CURRENCY = "currency"
    RATE = "rate"
    DIMENSION = "dimension"
    STATUS_ENUM = "status_enum"
    TEXT_LONG = "text_long"
    TEXT = "text"
    IGNORE = "ignore"


METRIC_ROLES = frozenset({SemanticRole.METRIC, SemanticRole.CURRENCY, SemanticRole.RATE})
HIDDEN_ROLES = frozenset({SemanticRole.ID_SECONDARY, SemanticRole.IGNORE})

AGGREGATORS = ("sum", "count", "count_distinct", "avg", "truthy_count", "none")
COUNT_AGGREGATORS = frozenset({"count", "count_distinct", "truthy_count"})
FORMATS = ("currency", "percent", "integer", "float", "date", "text")
FILTER_TYPES = ("multi_select", "search_select", "toggle", "none")


@dataclass
class ColumnStats:
    null_rate: float = 0.0
    distinct_count: int = 0
    avg_len: float = 0.0
    boolean_like_rate: float = 0.0
    numeric_parse_rate: float = 0.0
    date_parse_rate: float = 0.0
    monotonicity: float = 0.0
    contains_currency_symbols: bool = False
    integer_rate: float = 0.0
    top_values: List[Dict[str, Any]] = field(default_factory=list)
    top_value_coverage: float = 0.0
    min: Optional[float] = None
    max: Optional[float] = None
    avg: Optional[float] = None
    sample_values: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SemanticColumn:
    name: str
    db_type: str
    semantic_role: SemanticRole
    display_label: str
    aggregator: str = "none"
    format: str = "text"
    stats: ColumnStats = field(default_factory=ColumnStats)
    confidence: float = 0.5
    notes: List[str] = field(default_factory=list)
    usable_as_filter: bool = False
    usable_in_kpi: bool = False
    usable_in_chart: bool = False
    ignore_in_ui: bool = False
    filter_type: str = "none"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "db_type": self.db_type,
            "semantic_role": self.semantic_role.value,
            "display_label": self.display_label,
            "aggregator": self.aggregator,
            "format": self.format,
            "stats": self.stats.to_dict(),
            "confidence": round(self.confidence, 4),
            "notes": list(self.notes),
            "usable_as_filter": self.usable_as_filter,
            "usable_in_kpi": self.usable_in_kpi,
            "usable_in_chart": self.usable_in_chart,
            "ignore_in_ui": self.ignore_in_ui,
            "filter_type": self.filter_type,
        }


@dataclass
class FunnelStage:
    column: str
    label: str
    order: float
    prevalence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Funnel:
    detected: bool = False
    stages: List[FunnelStage] = field(default_factory=list)
    confidence: float = 0.0
    base_stage: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected": self.detected,
            "stages": [s.to_dict() for s in self.stages],
            "confidence": self.confidence,
            "base_stage": self.base_stage,
        }


@dataclass
class FilterPlan:
    id: str
    column: str
    label: str
    type: str  # time_range | multi_select | search_select | toggle
    source: str  # distinct_values | manual
    apply_to: List[str] = field(default_factory=lambda: ["kpis", "charts", "funnel", "table"])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SemanticModel:
    dataset_id: str
    dataset_name: str
    columns: List[SemanticColumn] = field(default_factory=list)
    time_column: Optional[str] = None
    id_primary: Optional[str] = None
    id_secondary: List[str] = field(default_factory=list)
    funnel: Funnel = field(default_factory=Funnel)
    dimensions: List[str] = field(default_factory=list)
    metrics: List[str] = field(default_factory=list)
    filters: List[FilterPlan] = field(default_factory=list)
    date_range: Dict[str, Optional[str]] = field(default_factory=lambda: {"min": None, "max": None})
    overall_confidence: float = 0.0
    warnings: List[str] = field(default_factory=list)
    assumptions: List[str] = field(default_factory=list)
    debug: Dict[str, Any] = field(default_factory=dict)

    def column(self, name: str) -> Optional[SemanticColumn]:
        for c in self.columns:
            if c.name == name:
                return c
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dataset_id": self.dataset_id,
            "dataset_name": self.dataset_name,
            "columns": [c.to_dict() for c in self.columns],
            "time_column": self.time_column,
            "id_primary": self.id_primary,
            "id_secondary": list(self.id_secondary),
            "funnel": self.funnel.to_dict(),
            "dimensions": list(self.dimensions),
            "metrics": list(self.metrics),
            "filters": [f.to_dict() for f in self.filters],
            "date_range": dict(self.date_range),
            "overall_confidence": round(self.overall_confidence, 4),
            "warnings": list(self.warnings),
            "assumptions": list(self.assumptions),
            "debug": dict(self.debug),
        }
