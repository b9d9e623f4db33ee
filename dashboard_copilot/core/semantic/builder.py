"""
Semantic model builder.

Runs profiling, classification, funnel assembly and filter planning over one
bounded sample and returns a SemanticModel. Nothing here is persisted; the
model lives for the duration of a single request.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..errors import NoColumnsError
from ..observability.metrics import SEMANTIC_MODELS_TOTAL
from .classifier import ClassificationPass, ColumnEvidence, classify_columns
from .filters import DEFAULT_MAX_FILTERS, plan_filters
from .funnel import assemble_funnel
from .models import METRIC_ROLES, SemanticModel, SemanticRole
from .profiler import compute_column_stats, normalize_rows

log = logging.getLogger("copilot.semantic")

DEFAULT_SAMPLE_LIMIT = 500


def _declared_metadata(columns: Optional[Sequence[Dict[str, Any]]]) -> Dict[str, Dict[str, Any]]:
    out: Dict[str, Dict[str, Any]] = {}
    for c in columns or []:
        if not isinstance(c, dict):
            continue
        name = str(c.get("name") or "").strip()
        if not name:
            continue
        out[name] = {
            "db_type": c.get("db_type") or c.get("type"),
            "display_label": c.get("display_label") or c.get("label"),
        }
    return out


def _overall_confidence(p: ClassificationPass, stage_count: int) -> float:
    if not p.columns:
        return 0.0
    avg = sum(c.confidence for c in p.columns) / len(p.columns)
    if stage_count >= 3:
        funnel_conf = 0.9
    elif stage_count == 2:
        funnel_conf = 0.7
    else:
        funnel_conf = 0.0
    score = avg * 0.5
    score += 0.2 if p.time_column else 0.0
    score += funnel_conf * 0.2
    score += 0.1 if p.id_primary else 0.0
    return min(1.0, round(score, 4))


def build_semantic_model(
    rows: Sequence[Any],
    *,
    columns: Optional[Sequence[Dict[str, Any]]] = None,
    dataset_id: str = "",
    dataset_name: str = "",
    sample_limit: int = DEFAULT_SAMPLE_LIMIT,
    max_filters: int = DEFAULT_MAX_FILTERS,
) -> SemanticModel:
    if not rows:
        raise NoColumnsError("No rows supplied; cannot derive columns", details={"dataset_id": dataset_id})

    sample = normalize_rows(rows, sample_limit=sample_limit)
    declared = _declared_metadata(columns)

    names: List[str] = list(sample.columns)
    for name in declared:
        if name not in names:
            names.append(name)
    if not names:
        raise NoColumnsError("No columns could be derived from the sample", details={"dataset_id": dataset_id})

    row_count = len(sample.rows)
    evidence: List[ColumnEvidence] = []
    for name in names:
        values = [r.get(name) for r in sample.rows]
        meta = declared.get(name, {})
        evidence.append(
            ColumnEvidence(
                name=name,
                stats=compute_column_stats(values),
                values=values,
                rows=row_count,
                declared_type=meta.get("db_type"),
                declared_label=meta.get("display_label"),
            )
        )

    p = ClassificationPass(warnings=list(sample.warnings))
    classify_columns(evidence, classification_pass=p)

    funnel = assemble_funnel(p.funnel_stages)
    if p.funnel_stages and not funnel.detected:
        p.warnings.append("Only one funnel stage found; funnel disabled")

    filters = plan_filters(p.columns, time_column=p.time_column, max_filters=max_filters)

    model = SemanticModel(
        dataset_id=dataset_id,
        dataset_name=dataset_name or dataset_id,
        columns=p.columns,
        time_column=p.time_column,
        id_primary=p.id_primary,
        id_secondary=list(p.id_secondary),
        funnel=funnel,
        dimensions=[c.name for c in p.columns if c.semantic_role == SemanticRole.DIMENSION],
        metrics=[c.name for c in p.columns if c.semantic_role in METRIC_ROLES],
        filters=filters,
        date_range=dict(p.date_range),
        overall_confidence=_overall_confidence(p, len(funnel.stages)),
        warnings=p.warnings,
        assumptions=p.assumptions,
        debug={
            "ids_detected": ([p.id_primary] if p.id_primary else []) + list(p.id_secondary),
            "ids_discarded": list(p.ids_discarded),
            "time_candidates": list(p.time_candidates),
            "rows_analyzed": row_count,
            "extraction_method": sample.extraction_method,
        },
    )

    SEMANTIC_MODELS_TOTAL.inc()
    log.info(
        "semantic model built dataset=%s columns=%d time=%s funnel_stages=%d confidence=%.2f",
        dataset_id,
        len(model.columns),
        model.time_column,
        len(funnel.stages),
        model.overall_confidence,
    )
    return model
