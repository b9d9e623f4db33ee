"""LLM gateway service: configuration gate, JSON-mode retry and token logging."""

from __future__ import annotations

import json
import logging
import os
import re

from .models import (
    AIGatewayNotConfiguredError,
    AIGatewayRequest,
    AIOutputValidationError,
    LLMClient,
    LLMResponse,
)

log = logging.getLogger("copilot.ai")

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)


def strip_code_fences(content: str) -> str:
    """Return the JSON payload of a reply that may be wrapped in markdown fences."""
    text = content or ""
    m = _FENCE_RE.search(text)
    if m:
        text = m.group(1)
    text = text.strip()
    text = re.sub(r"^```\w*\n?", "", text)
    text = re.sub(r"```$", "", text)
    return text.strip()


class _EnvEchoLLMClient:
    """Deterministic placeholder client.

    This does not call external providers. It is used as the default until a
    concrete provider adapter is wired in; its JSON reply is not a dashboard
    spec, so external generation falls back to the heuristic path.
    """

    def complete(
        self,
        *,
        task: str,
        model: str,
        system_prompt: str,
        user_content: str,
        json_mode: bool,
    ) -> tuple[str, int, int]:
        if json_mode:
            content = json.dumps(
                {
                    "task": task,
                    "model": model,
                    "message": "gateway_placeholder_response",
                },
                sort_keys=True,
            )
        else:
            content = f"[{model}] {user_content.strip()}"

        prompt_tokens = max(1, len(f"{system_prompt}\n{user_content}".split()))
        completion_tokens = max(1, len(content.split()))
        return content, prompt_tokens, completion_tokens


class AIGatewayService:
    def __init__(
        self,
        *,
        client: LLMClient | None = None,
        require_api_key: bool = True,
    ):
        self.client: LLMClient = client or _EnvEchoLLMClient()
        self.require_api_key = bool(require_api_key)

    def _require_config(self) -> None:
        if not self.require_api_key:
            return
        api_key = (os.getenv("LLM_API_KEY") or "").strip()
        if not api_key:
            raise AIGatewayNotConfiguredError()

    @staticmethod
    def _validate_json_output(content: str) -> None:
        try:
            json.loads(strip_code_fences(content))
        except ValueError as exc:
            raise AIOutputValidationError(raw_output=content, validation_error=str(exc)) from exc

    def complete(self, req: AIGatewayRequest) -> LLMResponse:
        self._require_config()

        content, prompt_tokens, completion_tokens = self.client.complete(
            task=req.task,
            model=req.model,
            system_prompt=req.system_prompt,
            user_content=req.user_content,
            json_mode=req.json_mode,
        )

        total_prompt_tokens = int(prompt_tokens)
        total_completion_tokens = int(completion_tokens)

        if req.json_mode:
            try:
                self._validate_json_output(content)
            except AIOutputValidationError:
                log.info("ai reply was not JSON task=%s; retrying once", req.task)
                retry_content, retry_prompt_tokens, retry_completion_tokens = self.client.complete(
                    task=req.task,
                    model=req.model,
                    system_prompt=req.system_prompt,
                    user_content=(
                        f"{req.user_content}\n\n"
                        "Return only valid JSON. Do not include markdown code fences."
                    ),
                    json_mode=True,
                )
                total_prompt_tokens += int(retry_prompt_tokens)
                total_completion_tokens += int(retry_completion_tokens)
                self._validate_json_output(retry_content)
                content = retry_content

        log.info(
            "ai completion task=%s model=%s prompt_tokens=%d completion_tokens=%d",
            req.task,
            req.model,
            total_prompt_tokens,
            total_completion_tokens,
        )
        return LLMResponse(
            content=content,
            model=req.model,
            prompt_tokens=total_prompt_tokens,
            completion_tokens=total_completion_tokens,
            task=req.task,
        )
