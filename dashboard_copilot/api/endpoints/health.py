from __future__ import annotations

from fastapi import APIRouter

router = APIRouter()


@router.get("/health")
def health_check():
    return {"status": "healthy"}


@router.get("/api/v1/health/live")
def liveness():
    return {"status": "alive"}
