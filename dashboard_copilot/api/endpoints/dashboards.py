from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from dashboard_copilot.api.deps import get_engine, get_gateway, get_settings, get_store
from dashboard_copilot.api.schemas import CreateDashboardRequest, PatchRequest, RollbackRequest
from dashboard_copilot.core.ai.gateway import AIGatewayService
from dashboard_copilot.core.config import Settings
from dashboard_copilot.core.errors import VersionConflictError
from dashboard_copilot.core.patch.engine import PatchEngine
from dashboard_copilot.core.semantic.builder import build_semantic_model
from dashboard_copilot.core.spec.columns import columns_from_model
from dashboard_copilot.core.spec.synthesizer import (
    ExternalStrategy,
    FallbackStrategy,
    HeuristicStrategy,
    SpecStrategy,
    synthesize_spec,
)
from dashboard_copilot.core.store.versions import SpecVersionStore

log = logging.getLogger("copilot.spec")

router = APIRouter(prefix="/dashboards", tags=["dashboards"])


def _strategy(req: CreateDashboardRequest, settings: Settings, gateway: AIGatewayService) -> SpecStrategy:
    heuristic = HeuristicStrategy(max_kpis=settings.max_kpis, max_filters=settings.max_filters)
    if not (req.use_external and settings.external_enabled):
        return heuristic
    external = ExternalStrategy(
        gateway,
        model_name=settings.ai_model,
        timeout_seconds=settings.external_timeout_seconds,
        user_prompt=req.user_prompt,
    )
    return FallbackStrategy(external, heuristic)


@router.post("")
def create_dashboard(
    req: CreateDashboardRequest,
    settings: Settings = Depends(get_settings),
    store: SpecVersionStore = Depends(get_store),
    gateway: AIGatewayService = Depends(get_gateway),
):
    if store.exists(req.dashboard_id):
        current = store.latest(req.dashboard_id)
        raise VersionConflictError(dashboard_id=req.dashboard_id, expected_version=0, current_version=current.version)

    model = build_semantic_model(
        req.rows,
        columns=req.columns,
        dataset_id=req.dashboard_id,
        dataset_name=req.dataset_name or req.dashboard_id,
        sample_limit=settings.sample_limit,
        max_filters=settings.max_filters,
    )
    columns = columns_from_model(model)
    result = synthesize_spec(
        model,
        _strategy(req, settings, gateway),
        columns=columns,
        regenerate_threshold=settings.regenerate_threshold,
        max_kpis=settings.max_kpis,
    )
    record = store.append(
        req.dashboard_id,
        result.spec,
        expected_version=0,
        author=req.author,
        notes=f"generated ({result.source})",
        columns=columns,
    )
    return {
        "ok": True,
        "dashboard_id": req.dashboard_id,
        "version": record.version,
        "spec": record.spec,
        "source": result.source,
        "warnings": model.warnings + result.warnings,
        "overall_confidence": model.overall_confidence,
    }


@router.get("")
def list_dashboards(store: SpecVersionStore = Depends(get_store)):
    return {"ok": True, "dashboards": store.list_dashboards()}


@router.get("/{dashboard_id}")
def get_dashboard(dashboard_id: str, store: SpecVersionStore = Depends(get_store)):
    live = store.latest(dashboard_id)
    return {
        "ok": True,
        "dashboard_id": dashboard_id,
        "version": live.version,
        "spec": live.spec,
        "author": live.author,
        "created_ts": live.created_ts,
    }


@router.get("/{dashboard_id}/versions")
def list_versions(dashboard_id: str, store: SpecVersionStore = Depends(get_store)):
    versions = store.list_versions(dashboard_id)
    return {
        "ok": True,
        "dashboard_id": dashboard_id,
        "versions": [
            {"version": v.version, "author": v.author, "notes": v.notes, "created_ts": v.created_ts}
            for v in sorted(versions, key=lambda v: v.version, reverse=True)
        ],
    }


@router.get("/{dashboard_id}/versions/{version}")
def get_version(dashboard_id: str, version: int, store: SpecVersionStore = Depends(get_store)):
    return {"ok": True, **store.get(dashboard_id, version).to_dict()}


@router.post("/{dashboard_id}/patch")
def patch_dashboard(dashboard_id: str, req: PatchRequest, engine: PatchEngine = Depends(get_engine)):
    if req.dry_run:
        result = engine.simulate(dashboard_id, req.patch, expected_version=req.expected_version)
    else:
        result = engine.apply(
            dashboard_id,
            req.patch,
            expected_version=req.expected_version,
            author=req.author,
            change_reason=req.change_reason,
        )
    return {"ok": True, **result.to_dict()}


@router.post("/{dashboard_id}/rollback")
def rollback_dashboard(dashboard_id: str, req: RollbackRequest, engine: PatchEngine = Depends(get_engine)):
    result = engine.rollback(
        dashboard_id,
        req.target_version,
        expected_version=req.expected_version,
        author=req.author,
    )
    return {"ok": True, **result.to_dict()}
