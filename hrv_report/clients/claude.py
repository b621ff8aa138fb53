"""Anthropic Claude (Messages API) client, the alternative backend."""

from __future__ import annotations

import logging
from typing import Any

from hrv_report.clients.llm_base import LLMClient, ModelRegistry
from hrv_report.constants import CLAUDE_BASE_URL

logger = logging.getLogger(__name__)

CLAUDE_MODELS: ModelRegistry = {
    "claude-sonnet-4-20250514": {"max_output_tokens": 64000, "context_window": 200000, "tier": "balanced"},
    "claude-opus-4-20250514": {"max_output_tokens": 32000, "context_window": 200000, "tier": "flagship"},
    "claude-3-5-haiku-20241022": {"max_output_tokens": 8192, "context_window": 200000, "tier": "fast"},
}

ANTHROPIC_VERSION = "2023-06-01"


class ClaudeClient(LLMClient):
    """Claude backend.  The key goes in ``x-api-key``, never in the URL."""

    provider_name = "Claude"
    models = CLAUDE_MODELS
    default_model = "claude-sonnet-4-20250514"
    default_base_url = CLAUDE_BASE_URL
    calls_per_second = 0.8

    def _build_request_args(
        self,
        system_instruction: str,
        user_content: str,
        *,
        max_output_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        return {
            "url": f"{self._base_url}/messages",
            "headers": {
                "x-api-key": self._api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
            "json": {
                "model": self._model,
                "max_tokens": max_output_tokens,
                "temperature": temperature,
                "system": system_instruction,
                "messages": [{"role": "user", "content": user_content}],
            },
        }

    def _parse_response(self, data: dict[str, Any]) -> str:
        if data.get("type") == "error":
            logger.error(
                "Claude API error: %s", (data.get("error") or {}).get("message", "unknown error"),
            )
            return ""
        if data.get("stop_reason") == "max_tokens":
            logger.warning("Claude response truncated at max_tokens")
        return "".join(
            block.get("text", "")
            for block in data.get("content") or []
            if block.get("type") == "text"
        )
