import os
from datetime import date, timedelta
from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from dashboard_copilot.api.deps import get_gateway
from dashboard_copilot.api.main import app
from dashboard_copilot.core.ai.gateway import AIGatewayService


@pytest.fixture(scope="session", autouse=True)
def _force_test_env():
    # Make runtime behave deterministically in tests
    os.environ.setdefault("COPILOT_ENV", "dev")


class StubLLMClient:
    """Replays canned replies; records what it was asked."""

    def __init__(self, responses: List[str]):
        self._responses = list(responses)
        self.calls: List[Dict[str, Any]] = []

    def complete(
        self,
        *,
        task: str,
        model: str,
        system_prompt: str,
        user_content: str,
        json_mode: bool,
    ) -> tuple[str, int, int]:
        self.calls.append({"task": task, "model": model, "user_content": user_content, "json_mode": json_mode})
        content = self._responses.pop(0) if self._responses else "{}"
        return content, 5, 7


@pytest.fixture()
def data_dir(tmp_path, monkeypatch):
    d = tmp_path / "data"
    monkeypatch.setenv("COPILOT_DATA_DIR", str(d))
    monkeypatch.delenv("COPILOT_SETTINGS_FILE", raising=False)
    return d


@pytest.fixture()
def client(data_dir):
    app.dependency_overrides[get_gateway] = lambda: AIGatewayService(
        client=StubLLMClient([]), require_api_key=False
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _days(n: int, start: date = date(2025, 1, 1)) -> List[str]:
    return [(start + timedelta(days=i)).isoformat() for i in range(n)]


@pytest.fixture()
def daily_rows() -> List[Dict[str, Any]]:
    """Ten days of aggregated marketing numbers, no flags."""
    leads = [12, 15, 9, 20, 18, 11, 14, 16, 19, 13]
    cost = [100.5, 120.25, 98.75, 150.0, 140.5, 101.0, 130.25, 125.5, 160.75, 110.0]
    sales = [1, 2, 0, 3, 2, 1, 2, 2, 3, 1]
    return [
        {"dia": d, "leads_total": leads[i], "custo_total": cost[i], "venda_total": sales[i]}
        for i, d in enumerate(_days(10))
    ]


@pytest.fixture()
def lead_rows() -> List[Dict[str, Any]]:
    """Per-lead rows with funnel stage flags."""
    rows = []
    for i, d in enumerate(_days(12)):
        rows.append(
            {
                "lead_id": f"L{1000 + i}",
                "created_at": f"{d}T10:{i:02d}:00",
                "vendedora": ["Ana", "Bia", "Carla"][i % 3],
                "entrada": "1",
                "qualificado": "1" if i % 4 != 3 else "",
                "exp_agendada": "1" if i % 2 == 0 else "",
                "exp_realizada": "1" if i % 3 == 0 else "",
                "venda": "1" if i % 6 == 0 else "",
            }
        )
    return rows


@pytest.fixture()
def canned_spec() -> Dict[str, Any]:
    return {
        "version": 1,
        "title": "Leads",
        "time": {"column": "created_at", "type": "date"},
        "kpis": [
            {"label": "Leads", "column": "lead_id", "agg": "count_distinct", "format": "integer"},
            {"label": "Vendas", "column": "venda", "agg": "truthy_count", "format": "integer"},
        ],
        "funnel": {
            "steps": [
                {"label": "Entrada", "column": "entrada"},
                {"label": "Venda", "column": "venda"},
            ]
        },
        "charts": [
            {
                "type": "line",
                "title": "Entradas",
                "x": "created_at",
                "series": [{"label": "Entrada", "y": "entrada"}],
            }
        ],
    }
