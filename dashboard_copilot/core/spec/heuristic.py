"""
Deterministic dashboard spec builder.

Works from the authoritative column list alone so it can also rebuild a spec
when a candidate is beyond repair.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..semantic.models import SemanticRole
from ..semantic.vocabulary import TERMINAL_STAGE_ORDER, match_stage
from .columns import DatasetColumn, infer_roles, is_count_name
from .schema import DEFAULT_TAB, compute_tabs

log = logging.getLogger("copilot.spec")

DEFAULT_MAX_KPIS = 8
MAX_FUNNEL_STEPS = 6
MAX_SERIES = 4

KPI_ORDER = (
    "custo_total", "spend", "cpl", "cac",
    "leads_total", "leads_new", "entrada_total", "entrada",
    "qualificado", "exp_agendada", "exp_realizada",
    "venda_total", "sales", "venda", "reuniao_realizada_total", "meetings_completed",
)
LOWER_IS_BETTER = ("cpl", "cac", "custo")
RESULT_HINTS = ("leads", "venda", "sales", "entrada", "qualificado")
COST_HINTS = ("custo", "spend", "investimento")

_HIDDEN = {SemanticRole.ID_SECONDARY.value, SemanticRole.IGNORE.value}
_COUNT_AGGS = {"count", "count_distinct", "truthy_count"}


def _goal_direction(name: str) -> str:
    lower = name.lower()
    return "lower_better" if any(k in lower for k in LOWER_IS_BETTER) else "higher_better"


def _column_type(role: str) -> str:
    if role == SemanticRole.CURRENCY.value:
        return "currency"
    if role == SemanticRole.RATE.value:
        return "percent"
    if role == SemanticRole.TIME.value:
        return "date"
    if role in (SemanticRole.METRIC.value, SemanticRole.STAGE_FLAG.value, SemanticRole.ID_PRIMARY.value):
        return "number"
    return "string"


def _stage_rank(col: DatasetColumn) -> Optional[float]:
    base = col.name[: -len("_total")] if col.name.lower().endswith("_total") else col.name
    hit = match_stage(base)
    if hit is None or hit[0] >= TERMINAL_STAGE_ORDER:
        return None
    return hit[0]


class _Plan:
    def __init__(self, columns: Sequence[DatasetColumn]):
        self.columns = list(columns)
        self.roles = infer_roles(self.columns)
        self.by_name = {c.name: c for c in self.columns}

    def role(self, col: DatasetColumn) -> str:
        return self.roles[col.name]

    def visible(self) -> List[DatasetColumn]:
        return [c for c in self.columns if self.role(c) not in _HIDDEN]

    def with_role(self, *roles: str) -> List[DatasetColumn]:
        return [c for c in self.columns if self.role(c) in roles]

    def time_column(self) -> Optional[DatasetColumn]:
        found = self.with_role(SemanticRole.TIME.value)
        return found[0] if found else None

    def id_primary(self) -> Optional[DatasetColumn]:
        found = self.with_role(SemanticRole.ID_PRIMARY.value)
        return found[0] if found else None

    def is_measurable(self, col: DatasetColumn) -> bool:
        return col.is_numeric or self.role(col) == SemanticRole.STAGE_FLAG.value


def _kpi(plan: _Plan, col: DatasetColumn) -> Dict[str, Any]:
    role = plan.role(col)
    if role == SemanticRole.STAGE_FLAG.value and not col.is_numeric:
        agg = "truthy_count"
    elif role == SemanticRole.RATE.value:
        agg = "avg"
    elif role == SemanticRole.ID_PRIMARY.value:
        agg = "count_distinct"
    else:
        agg = "sum"

    if role == SemanticRole.CURRENCY.value:
        fmt = "currency"
    elif role == SemanticRole.RATE.value:
        fmt = "percent"
    elif agg in _COUNT_AGGS or is_count_name(col.name) or "int" in col.db_type.lower():
        fmt = "integer"
    else:
        fmt = "float"

    return {
        "label": col.label,
        "column": col.name,
        "agg": agg,
        "format": fmt,
        "goalDirection": _goal_direction(col.name),
    }


def _funnel_columns(plan: _Plan, preferred: Optional[Sequence[str]]) -> List[DatasetColumn]:
    if preferred:
        chosen = [plan.by_name[n] for n in preferred if n in plan.by_name]
        chosen = [c for c in chosen if plan.role(c) not in _HIDDEN and plan.is_measurable(c)]
        if len(chosen) >= 2:
            return chosen[:MAX_FUNNEL_STEPS]

    ranked = []
    for idx, c in enumerate(plan.visible()):
        if not plan.is_measurable(c):
            continue
        rank = _stage_rank(c)
        if rank is not None:
            ranked.append((rank, idx, c))
    ranked.sort(key=lambda t: (t[0], t[1]))

    out: List[DatasetColumn] = []
    seen_ranks = set()
    for rank, _, c in ranked:
        # one column per stage position
        if rank in seen_ranks:
            continue
        seen_ranks.add(rank)
        out.append(c)
    return out[:MAX_FUNNEL_STEPS]


def _kpis(plan: _Plan, funnel: Sequence[DatasetColumn], max_kpis: int) -> List[Dict[str, Any]]:
    picked: List[DatasetColumn] = []

    def take(col: DatasetColumn) -> None:
        if col not in picked and plan.role(col) not in _HIDDEN:
            picked.append(col)

    lowered = {c.name.lower(): c for c in plan.visible()}
    for name in KPI_ORDER:
        col = lowered.get(name)
        if col is not None and plan.is_measurable(col):
            take(col)

    id_primary = plan.id_primary()
    if id_primary is not None:
        take(id_primary)

    for col in funnel:
        take(col)
    for col in plan.with_role(SemanticRole.CURRENCY.value):
        take(col)
    for col in plan.with_role(SemanticRole.METRIC.value):
        if is_count_name(col.name):
            take(col)
    for col in plan.with_role(SemanticRole.STAGE_FLAG.value):
        take(col)
    for col in plan.with_role(SemanticRole.RATE.value):
        take(col)

    kpis = [_kpi(plan, c) for c in picked[: max(0, int(max_kpis))]]
    if not kpis:
        # nothing measurable: count rows over the first visible columns
        for c in plan.visible()[:4]:
            kpis.append(
                {"label": c.label, "column": c.name, "agg": "count", "format": "integer", "goalDirection": "higher_better"}
            )
    return kpis


def _series(plan: _Plan, cols: Sequence[DatasetColumn]) -> List[Dict[str, Any]]:
    out = []
    for c in cols:
        role = plan.role(c)
        if role == SemanticRole.CURRENCY.value:
            fmt = "currency"
        elif role == SemanticRole.RATE.value:
            fmt = "percent"
        else:
            fmt = "number"
        out.append({"label": c.label, "y": c.name, "format": fmt})
    return out


def _charts(plan: _Plan, time_col: DatasetColumn, funnel: Sequence[DatasetColumn]) -> List[Dict[str, Any]]:
    charts: List[Dict[str, Any]] = []
    currency = plan.with_role(SemanticRole.CURRENCY.value)
    counts = [c for c in plan.with_role(SemanticRole.METRIC.value) if is_count_name(c.name)]
    rates = plan.with_role(SemanticRole.RATE.value)

    cost = [c for c in currency if any(h in c.name.lower() for h in COST_HINTS)][:1] or currency[:1]
    results: List[DatasetColumn] = []
    for c in list(counts) + list(funnel):
        if c not in results and any(h in c.name.lower() for h in RESULT_HINTS):
            results.append(c)
    results = results[:3] or counts[:3]

    if cost or results:
        charts.append(
            {
                "type": "line",
                "title": "Investimento e Resultados",
                "x": time_col.name,
                "series": _series(plan, cost + results),
            }
        )
    if len(funnel) >= 2:
        charts.append(
            {
                "type": "line",
                "title": "Evolução do Funil",
                "x": time_col.name,
                "series": _series(plan, funnel[:MAX_SERIES]),
            }
        )
    if rates:
        charts.append(
            {
                "type": "line",
                "title": "Taxas de Conversão",
                "x": time_col.name,
                "series": _series(plan, rates[:MAX_SERIES]),
            }
        )
    return charts


def _default_filters(plan: _Plan, time_col: Optional[DatasetColumn], max_filters: int) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    if time_col is not None:
        out.append({"id": "f_time", "column": time_col.name, "label": time_col.label, "type": "time_range", "source": "manual"})
    for c in plan.with_role(SemanticRole.DIMENSION.value, SemanticRole.STATUS_ENUM.value):
        out.append(
            {"id": f"f_{c.name.lower()}", "column": c.name, "label": c.label, "type": "multi_select", "source": "distinct_values"}
        )
    for f in out:
        f["apply_to"] = ["kpis", "charts", "funnel", "table"]
    return out[:max_filters]


def build_heuristic_spec(
    columns: Sequence[DatasetColumn],
    *,
    title: Optional[str] = None,
    funnel_columns: Optional[Sequence[str]] = None,
    filters: Optional[Sequence[Dict[str, Any]]] = None,
    max_kpis: int = DEFAULT_MAX_KPIS,
    max_filters: int = 10,
) -> Dict[str, Any]:
    plan = _Plan(columns)
    time_col = plan.time_column()
    funnel = _funnel_columns(plan, funnel_columns)

    spec: Dict[str, Any] = {"version": 1, "title": title or "Dashboard"}
    if time_col is not None:
        spec["time"] = {"column": time_col.name, "type": "date"}

    spec["columns"] = [
        {"name": c.name, "type": _column_type(plan.role(c)), "label": c.label}
        for c in plan.visible()
    ]
    spec["kpis"] = _kpis(plan, funnel, max_kpis)

    if len(funnel) >= 2:
        spec["funnel"] = {"steps": [{"label": c.label, "column": c.name} for c in funnel]}

    spec["charts"] = _charts(plan, time_col, funnel) if time_col is not None else []
    spec["filters"] = [dict(f) for f in filters] if filters is not None else _default_filters(plan, time_col, max_filters)
    spec["ui"] = {
        "tabs": compute_tabs(has_funnel="funnel" in spec, has_charts=bool(spec["charts"])),
        "defaultTab": DEFAULT_TAB,
        "comparePeriods": True,
    }

    log.debug(
        "heuristic spec built kpis=%d funnel_steps=%d charts=%d",
        len(spec["kpis"]),
        len(funnel),
        len(spec["charts"]),
    )
    return spec
