"""Generation backend interface and the shared HTTP client base.

The pipeline only needs ``generate(system_instruction, user_content) ->
str`` (the ``TextGenerator`` protocol); tests hand in fakes.  ``LLMClient``
is the base for the real providers: it owns model selection against a
per-provider registry and the request loop, leaving request building and
response parsing to subclasses.

Transport retries (429/5xx and connection errors, ``llm_transport_retries``
attempts) happen inside one ``generate`` call.  A timeout is not retried:
it raises ``GenerationError`` straight away so the report controller
counts it as one failed generation attempt.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Protocol, runtime_checkable

import requests

from hrv_report.config_loader import get_global_config
from hrv_report.http_utils import (
    DEFAULT_RETRY_STATUSES,
    host_of,
    rate_limit_sleep,
    retry_wait,
    sanitise_url,
)

logger = logging.getLogger(__name__)

ModelRegistry = dict[str, dict[str, Any]]


class GenerationError(Exception):
    """A generation attempt that produced no usable text."""


@runtime_checkable
class TextGenerator(Protocol):
    def generate(self, system_instruction: str, user_content: str) -> str: ...


# ---------------------------------------------------------------------------
# Model selection
# ---------------------------------------------------------------------------

# A salon report is short, so balanced/stable models come before flagship.
_TIER_ORDER = ("balanced", "stable", "flagship", "fast")


def get_best_model(models: ModelRegistry) -> str:
    """Preferred model of a registry: best tier, then largest output limit."""
    def rank(item: tuple[str, dict[str, Any]]) -> tuple[int, int]:
        tier = item[1].get("tier", "stable")
        position = _TIER_ORDER.index(tier) if tier in _TIER_ORDER else len(_TIER_ORDER)
        return position, -int(item[1].get("max_output_tokens", 0))

    return min(models.items(), key=rank)[0]


def validate_model(model: str, models: ModelRegistry, provider: str) -> str:
    """Return *model* if the registry knows it, else the preferred model."""
    if model in models:
        logger.info(
            "%s model '%s' (max output %d tokens)",
            provider, model, models[model]["max_output_tokens"],
        )
        return model
    best = get_best_model(models)
    logger.warning(
        "%s model '%s' is not a known model; using '%s' (known: %s)",
        provider, model, best, ", ".join(models),
    )
    return best


# ---------------------------------------------------------------------------
# Client base
# ---------------------------------------------------------------------------

class LLMClient(ABC):
    """HTTP generation client for one provider.

    Subclasses set the class attributes and implement
    ``_build_request_args`` / ``_parse_response``.

    Parameters
    ----------
    api_key:
        Provider API key.
    base_url:
        API root; ``default_base_url`` when omitted.
    model:
        Model name, ``"auto"`` for the registry's preferred model, or
        ``None`` for ``default_model``.  Unknown names are replaced by the
        preferred model.
    """

    provider_name: str = ""
    models: ModelRegistry = {}
    default_model: str = ""
    default_base_url: str = ""
    calls_per_second: float = 1.0

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = (base_url or self.default_base_url).rstrip("/")
        wanted = model or self.default_model
        if wanted == "auto":
            wanted = get_best_model(self.models)
            logger.info("%s auto-selected model %s", self.provider_name, wanted)
        self._model = validate_model(wanted, self.models, self.provider_name)

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def max_output_tokens(self) -> int:
        return int(self.models.get(self._model, {}).get("max_output_tokens", 8192))

    @abstractmethod
    def _build_request_args(
        self,
        system_instruction: str,
        user_content: str,
        *,
        max_output_tokens: int,
        temperature: float,
    ) -> dict[str, Any]:
        """``requests.post`` kwargs plus the target ``url``."""

    @abstractmethod
    def _parse_response(self, data: dict[str, Any]) -> str:
        """Text of a successful response; ``""`` when there is none."""

    def generate(self, system_instruction: str, user_content: str) -> str:
        """One generation attempt.

        Raises
        ------
        GenerationError
            On timeout, a non-retryable status, exhausted transport retries,
            a body that is not the provider's JSON shape, or an empty response.
        """
        cfg = get_global_config()
        request = self._build_request_args(
            system_instruction,
            user_content,
            max_output_tokens=min(int(cfg.get("llm_max_output_tokens", 4000)), self.max_output_tokens),
            temperature=float(cfg.get("llm_temperature", 0.7)),
        )
        url = request.pop("url")
        host = host_of(url)
        timeout = float(cfg.get("generation_timeout_s", 60))
        attempts = max(1, int(cfg.get("llm_transport_retries", 2)))
        backoff = float(cfg.get("backoff_factor", 2.0))
        retry_on = set(cfg.get("retry_on_status", DEFAULT_RETRY_STATUSES))

        failure = ""
        for attempt in range(1, attempts + 1):
            rate_limit_sleep(host, self.calls_per_second)
            try:
                resp = requests.post(url, timeout=timeout, **request)
            except requests.Timeout as exc:
                logger.warning("%s request timed out after %gs", self.provider_name, timeout)
                raise GenerationError(
                    f"{self.provider_name}: request timed out after {timeout:g}s"
                ) from exc
            except requests.RequestException as exc:
                failure = str(exc)
                wait = retry_wait(attempt, backoff)
            else:
                if resp.status_code == 200:
                    try:
                        text = self._parse_response(resp.json())
                    except (ValueError, AttributeError, TypeError, KeyError) as exc:
                        logger.error("%s malformed response: %s", self.provider_name, exc)
                        raise GenerationError(
                            f"{self.provider_name}: malformed response"
                        ) from exc
                    if not isinstance(text, str) or not text.strip():
                        raise GenerationError(f"{self.provider_name}: empty response")
                    return text
                detail = resp.text[:500]
                if resp.status_code not in retry_on:
                    logger.error(
                        "%s API error %d: %s", self.provider_name, resp.status_code, detail,
                    )
                    raise GenerationError(
                        f"{self.provider_name} API error {resp.status_code}: {detail}"
                    )
                failure = f"HTTP {resp.status_code}"
                wait = retry_wait(attempt, backoff, resp.headers.get("Retry-After"))

            if attempt < attempts:
                logger.warning(
                    "%s %s on attempt %d/%d for %s; retrying in %.1fs",
                    self.provider_name, failure, attempt, attempts, sanitise_url(url), wait,
                )
                time.sleep(wait)

        raise GenerationError(
            f"{self.provider_name}: gave up after {attempts} attempt(s) ({failure})"
        )
