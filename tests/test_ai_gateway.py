from __future__ import annotations

import json

import pytest

from dashboard_copilot.core.ai.gateway import AIGatewayService, strip_code_fences
from dashboard_copilot.core.ai.models import (
    AIGatewayNotConfiguredError,
    AIGatewayRequest,
    AIOutputValidationError,
)

from conftest import StubLLMClient


def _req(json_mode: bool = True) -> AIGatewayRequest:
    return AIGatewayRequest(
        task="dashboard_spec",
        model="gpt-4o-mini",
        system_prompt="return json",
        user_content="columns here",
        json_mode=json_mode,
    )


def test_gateway_json_retry_accumulates_tokens():
    client = StubLLMClient(["not-json", json.dumps({"ok": True})])
    svc = AIGatewayService(client=client, require_api_key=False)

    out = svc.complete(_req())

    assert out.content == json.dumps({"ok": True})
    assert out.prompt_tokens == 10
    assert out.completion_tokens == 14
    assert len(client.calls) == 2
    assert "Return only valid JSON" in client.calls[1]["user_content"]


def test_gateway_gives_up_after_one_retry():
    svc = AIGatewayService(client=StubLLMClient(["nope", "still nope"]), require_api_key=False)
    with pytest.raises(AIOutputValidationError):
        svc.complete(_req())


def test_gateway_text_mode_skips_json_check():
    svc = AIGatewayService(client=StubLLMClient(["plain words"]), require_api_key=False)
    assert svc.complete(_req(json_mode=False)).content == "plain words"


def test_gateway_requires_api_key(monkeypatch):
    monkeypatch.delenv("LLM_API_KEY", raising=False)
    svc = AIGatewayService(client=StubLLMClient(["{}"]))
    with pytest.raises(AIGatewayNotConfiguredError):
        svc.complete(_req())

    monkeypatch.setenv("LLM_API_KEY", "k")
    assert svc.complete(_req()).content == "{}"


def test_default_client_returns_placeholder_json(monkeypatch):
    monkeypatch.setenv("LLM_API_KEY", "k")
    out = AIGatewayService().complete(_req())
    assert json.loads(out.content)["message"] == "gateway_placeholder_response"


def test_strip_code_fences():
    assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fences('Here you go:\n```\n{"a": 1}\n```\nthanks') == '{"a": 1}'
    assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'
    assert strip_code_fences("") == ""
