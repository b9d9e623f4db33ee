from __future__ import annotations

from fastapi import APIRouter, Depends

from dashboard_copilot.api.deps import get_settings
from dashboard_copilot.api.schemas import SemanticModelRequest
from dashboard_copilot.core.config import Settings
from dashboard_copilot.core.semantic.builder import build_semantic_model

router = APIRouter(tags=["semantic"])


@router.post("/semantic-model")
def semantic_model(req: SemanticModelRequest, settings: Settings = Depends(get_settings)):
    model = build_semantic_model(
        req.rows,
        columns=req.columns,
        dataset_id=req.dataset_id,
        dataset_name=req.dataset_name or req.dataset_id,
        sample_limit=req.sample_limit or settings.sample_limit,
        max_filters=settings.max_filters,
    )
    return {
        "ok": True,
        "semantic_model": model.to_dict(),
        "sample_count": model.debug.get("rows_analyzed", 0),
    }
