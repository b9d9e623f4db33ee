from __future__ import annotations

from pathlib import Path

from fastapi import Depends

from dashboard_copilot.core.ai.gateway import AIGatewayService
from dashboard_copilot.core.config import Settings, load_settings
from dashboard_copilot.core.patch.engine import PatchEngine
from dashboard_copilot.core.store.versions import SpecVersionStore


def get_settings() -> Settings:
    return load_settings()


def get_store(settings: Settings = Depends(get_settings)) -> SpecVersionStore:
    return SpecVersionStore(data_dir=Path(settings.data_dir))


def get_engine(store: SpecVersionStore = Depends(get_store)) -> PatchEngine:
    return PatchEngine(store)


def get_gateway() -> AIGatewayService:
    return AIGatewayService()
