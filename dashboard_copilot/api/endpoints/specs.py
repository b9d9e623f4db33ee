from __future__ import annotations

from fastapi import APIRouter, Depends

from dashboard_copilot.api.deps import get_settings
from dashboard_copilot.api.schemas import ValidateSpecRequest
from dashboard_copilot.core.config import Settings
from dashboard_copilot.core.errors import SpecValidationError
from dashboard_copilot.core.spec.columns import parse_columns
from dashboard_copilot.core.spec.validator import validate_spec

router = APIRouter(prefix="/specs", tags=["specs"])


@router.post("/validate")
def validate(req: ValidateSpecRequest, settings: Settings = Depends(get_settings)):
    columns = parse_columns(req.columns)
    if not columns:
        raise SpecValidationError("An authoritative column list is required", details={"field": "columns"})

    result = validate_spec(
        req.spec,
        columns,
        regenerate_threshold=settings.regenerate_threshold,
        max_kpis=settings.max_kpis,
    )
    return {"ok": True, **result.to_dict()}
