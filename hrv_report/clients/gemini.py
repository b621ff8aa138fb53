"""Google Gemini (generateContent) client.

The report contract goes into ``systemInstruction`` and the rendered
report input into the single user turn.  The API key travels as the
``key`` query parameter, which ``sanitise_url`` masks in every log line.
"""

from __future__ import annotations

import logging
from typing import Any

from hrv_report.clients.llm_base import LLMClient, ModelRegistry
from hrv_report.constants import GEMINI_BASE_URL

logger = logging.getLogger(__name__)

GEMINI_MODELS: ModelRegistry = {
    "gemini-2.5-flash": {"max_output_tokens": 65536, "context_window": 1048576, "tier": "balanced"},
    "gemini-2.5-pro": {"max_output_tokens": 65536, "context_window": 1048576, "tier": "flagship"},
    "gemini-2.0-flash": {"max_output_tokens": 8192, "context_window": 1048576, "tier": "stable"},
    "gemini-2.0-flash-lite": {"max_output_tokens": 8192, "context_window": 1048576, "tier": "fast"},
}

# finishReason values that mean the text was withheld.
_BLOCKED_REASONS = ("SAFETY", "RECITATION", "PROHIBITED_CONTENT", "BLOCKLIST")


class GeminiClient(LLMClient):
    """Gemini backend.  Free tier is 15 requests/minute, hence the pacing."""

    provider_name = "Gemini"
    models = GEMINI_MODELS
    default_model = "gemini-2.5-flash"
    default_base_url = GEMINI_BASE_URL
    calls_per_second = 0.25

    def _build_request_args(
        self,
        system_instruction: str,
        user_content: str,
        *,
        max_output_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        return {
            "url": f"{self._base_url}/models/{self._model}:generateContent?key={self._api_key}",
            "json": {
                "systemInstruction": {"parts": [{"text": system_instruction}]},
                "contents": [{"role": "user", "parts": [{"text": user_content}]}],
                "generationConfig": {
                    "temperature": temperature,
                    "maxOutputTokens": max_output_tokens,
                },
            },
        }

    def _parse_response(self, data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            logger.warning("Gemini returned no candidates")
            return ""
        candidate = candidates[0]
        reason = candidate.get("finishReason", "")
        if reason in _BLOCKED_REASONS:
            logger.warning("Gemini withheld the response (finishReason=%s)", reason)
            return ""
        if reason == "MAX_TOKENS":
            logger.warning("Gemini response truncated at the output token limit")
        parts = (candidate.get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)
