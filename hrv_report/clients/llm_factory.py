"""Pick and build the configured generation backend.

Provider: ``provider`` argument, then ``LLM_PROVIDER``, then
``llm_provider`` in ``global_config.yml``, then whichever provider has a
key in the secrets (Gemini first).  Model: ``model`` argument, then
``LLM_MODEL``, then ``llm_model``, then the client's default.  Without
the provider's key no client is built and the pipeline runs on its
rule-based fallbacks.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from hrv_report.clients.claude import ClaudeClient
from hrv_report.clients.gemini import GeminiClient
from hrv_report.clients.llm_base import LLMClient
from hrv_report.config_loader import get_global_config

logger = logging.getLogger(__name__)

# provider -> (secret holding its key, client class), in auto-detect order
_PROVIDERS: dict[str, tuple[str, type[LLMClient]]] = {
    "gemini": ("GEMINI_API_KEY", GeminiClient),
    "claude": ("ANTHROPIC_API_KEY", ClaudeClient),
}


def get_available_models(provider: str) -> list[dict[str, Any]]:
    """Known models of *provider* with their limits; empty if unknown."""
    entry = _PROVIDERS.get(provider.strip().lower())
    if entry is None:
        return []
    return [{"name": name, **info} for name, info in entry[1].models.items()]


def _first_setting(*candidates: Any) -> str:
    for value in candidates:
        text = str(value or "").strip()
        if text:
            return text
    return ""


def create_llm_client(
    secrets: dict[str, str],
    *,
    provider: str | None = None,
    model: str | None = None,
) -> LLMClient | None:
    """Return the configured client, or ``None`` when its key is missing."""
    cfg = get_global_config()

    name = _first_setting(provider, os.environ.get("LLM_PROVIDER"), cfg.get("llm_provider")).lower()
    if name and name not in _PROVIDERS:
        logger.warning(
            "Unknown llm_provider '%s' (supported: %s); choosing by available key",
            name, ", ".join(_PROVIDERS),
        )
        name = ""
    if not name:
        name = next((p for p, (key, _) in _PROVIDERS.items() if secrets.get(key)), "gemini")

    key_name, client_cls = _PROVIDERS[name]
    api_key = secrets.get(key_name, "")
    if not api_key:
        logger.info("No %s set; report generation disabled, using rule-based fallbacks", key_name)
        return None

    chosen = _first_setting(model, os.environ.get("LLM_MODEL"), cfg.get("llm_model"))
    client = client_cls(api_key, model=chosen or None)
    logger.info(
        "Generation backend: %s (model %s, max output %d tokens)",
        client.provider_name, client.model_name, client.max_output_tokens,
    )
    return client
