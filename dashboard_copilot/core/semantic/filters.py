from __future__ import annotations

import re
from typing import List, Optional, Sequence

from .models import FilterPlan, HIDDEN_ROLES, SemanticColumn, SemanticRole

DEFAULT_MAX_FILTERS = 10


def _filter_id(column: str) -> str:
    return "f_" + re.sub(r"[^a-z0-9_]+", "_", column.lower()).strip("_")


def plan_filters(
    columns: Sequence[SemanticColumn],
    *,
    time_column: Optional[str] = None,
    max_filters: int = DEFAULT_MAX_FILTERS,
) -> List[FilterPlan]:
    """
    Order: time range, dimensions, status enums, stage toggles.
    Hidden columns (ids, ignored) never produce a filter.
    """
    plans: List[FilterPlan] = []
    by_name = {c.name: c for c in columns}

    if time_column and time_column in by_name:
        plans.append(
            FilterPlan(
                id="f_time",
                column=time_column,
                label=by_name[time_column].display_label or "Período",
                type="time_range",
                source="manual",
            )
        )

    def usable(c: SemanticColumn) -> bool:
        return c.semantic_role not in HIDDEN_ROLES and c.usable_as_filter and c.filter_type != "none"

    for role in (SemanticRole.DIMENSION, SemanticRole.STATUS_ENUM, SemanticRole.STAGE_FLAG):
        for c in columns:
            if c.semantic_role != role or not usable(c):
                continue
            plans.append(
                FilterPlan(
                    id=_filter_id(c.name),
                    column=c.name,
                    label=c.display_label,
                    type=c.filter_type,
                    source="manual" if c.filter_type == "toggle" else "distinct_values",
                )
            )

    return plans[: max(0, int(max_filters))]
