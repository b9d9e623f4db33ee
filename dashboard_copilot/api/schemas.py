from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SemanticModelRequest(BaseModel):
    dataset_id: str = ""
    dataset_name: Optional[str] = None
    rows: List[Any] = Field(default_factory=list)
    columns: Optional[List[Dict[str, Any]]] = None
    sample_limit: Optional[int] = Field(default=None, ge=1)


class ValidateSpecRequest(BaseModel):
    spec: Any = None
    columns: List[Any] = Field(default_factory=list)


class CreateDashboardRequest(BaseModel):
    dashboard_id: str = Field(min_length=1)
    dataset_name: Optional[str] = None
    rows: List[Any] = Field(default_factory=list)
    columns: Optional[List[Dict[str, Any]]] = None
    use_external: bool = False
    user_prompt: Optional[str] = None
    author: Optional[str] = None


class PatchRequest(BaseModel):
    patch: List[Any] = Field(default_factory=list)
    expected_version: Optional[int] = None
    change_reason: str = ""
    author: Optional[str] = None
    dry_run: bool = False


class RollbackRequest(BaseModel):
    target_version: int = Field(ge=1)
    expected_version: Optional[int] = None
    author: Optional[str] = None
