"""HTTP plumbing shared by the REST store and the generation clients.

``request_json`` is the store's only way onto the network: bounded
retries with exponential backoff on the statuses listed in
``retry_on_status``, per-host pacing, and an in-memory request log that
the CLI flushes to JSON-Lines.  Responses are never cached; visit and
report rows are read fresh on every pipeline run.

The pacing (``rate_limit_sleep``) and backoff (``retry_wait``) helpers are
also used by ``clients.llm_base`` so both transports behave the same way.
"""

from __future__ import annotations

import json
import logging
import re
import time
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import requests

from hrv_report.config_loader import get_global_config

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES: tuple[int, ...] = (429, 500, 502, 503, 504)

# Populated during a pipeline run; see flush_request_log().
_request_log: list[dict[str, Any]] = []

_last_call_by_host: dict[str, float] = {}


class HTTPError(Exception):
    """A store request that failed for good (non-retryable or out of retries)."""

    def __init__(self, url: str, status_code: int, detail: str = "") -> None:
        self.url = url
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code} for {sanitise_url(url)}: {detail}")


# ---------------------------------------------------------------------------
# Pacing and backoff
# ---------------------------------------------------------------------------

def host_of(url: str) -> str:
    return urlparse(url).hostname or "unknown"


def rate_limit_sleep(host: str, calls_per_second: float) -> None:
    """Block until *host* may be called again at *calls_per_second*."""
    if calls_per_second <= 0:
        return
    gap = 1.0 / calls_per_second - (time.time() - _last_call_by_host.get(host, 0.0))
    if gap > 0:
        logger.debug("Pacing %s: sleeping %.2fs", host, gap)
        time.sleep(gap)
    _last_call_by_host[host] = time.time()


def retry_wait(attempt: int, backoff: float, retry_after: str | None = None) -> float:
    """Seconds to wait after failed *attempt*; a numeric ``Retry-After`` wins."""
    if retry_after:
        try:
            return max(0.0, float(retry_after))
        except ValueError:
            logger.debug("Ignoring non-numeric Retry-After %r", retry_after)
    return backoff ** attempt


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

def _record(
    method: str,
    url: str,
    attempt: int,
    started: float,
    *,
    status: int | None = None,
    error: str | None = None,
) -> None:
    entry: dict[str, Any] = {
        "url": sanitise_url(url),
        "method": method,
        "status": status,
        "elapsed_s": round(time.time() - started, 3),
        "attempt": attempt,
    }
    if error is not None:
        entry["error"] = error
    _request_log.append(entry)


def request_json(
    method: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    json_data: dict | list | None = None,
    headers: dict[str, str] | None = None,
    timeout: float | None = None,
) -> Any:
    """Send one JSON request, retrying transient failures.

    Parameters
    ----------
    method:
        HTTP verb, any case.
    url:
        Full request URL.
    params, json_data, headers:
        Passed through to ``requests``.  Header values are never logged.
    timeout:
        Per-attempt timeout in seconds; ``timeout_s`` from the global
        config when omitted.

    Returns
    -------
    The decoded JSON body, or ``None`` when the body is empty.

    Raises
    ------
    HTTPError
        On a status outside ``retry_on_status``, a 2xx body that is not
        JSON, or once ``max_retries`` attempts have failed.
    """
    cfg = get_global_config()
    attempts = max(1, int(cfg.get("max_retries", 3)))
    backoff = float(cfg.get("backoff_factor", 2.0))
    retry_on = set(cfg.get("retry_on_status", DEFAULT_RETRY_STATUSES))
    if timeout is None:
        timeout = float(cfg.get("timeout_s", 15))

    rate_limit_sleep(host_of(url), float(cfg.get("rate_limit_calls_per_second", 5.0)))

    method = method.upper()
    last_status = 0
    failure = ""
    for attempt in range(1, attempts + 1):
        started = time.time()
        try:
            resp = requests.request(
                method, url, params=params, json=json_data,
                headers=headers, timeout=timeout,
            )
        except requests.RequestException as exc:
            _record(method, url, attempt, started, error=str(exc))
            failure = str(exc)
            wait = retry_wait(attempt, backoff)
        else:
            _record(method, url, attempt, started, status=resp.status_code)
            if 200 <= resp.status_code < 300:
                if not resp.content:
                    return None
                try:
                    return resp.json()
                except ValueError as exc:
                    raise HTTPError(url, resp.status_code, "invalid JSON body") from exc
            if resp.status_code not in retry_on:
                raise HTTPError(url, resp.status_code, resp.text[:200])
            last_status = resp.status_code
            failure = f"HTTP {resp.status_code}"
            wait = retry_wait(attempt, backoff, resp.headers.get("Retry-After"))

        if attempt < attempts:
            logger.warning(
                "%s %s failed on attempt %d/%d (%s); retrying in %.1fs",
                method, sanitise_url(url), attempt, attempts, failure, wait,
            )
            time.sleep(wait)

    raise HTTPError(url, last_status, f"gave up after {attempts} attempt(s): {failure}")


# ---------------------------------------------------------------------------
# Request log
# ---------------------------------------------------------------------------

def get_request_log() -> list[dict[str, Any]]:
    return list(_request_log)


def clear_request_log() -> None:
    _request_log.clear()


def flush_request_log(path: str = "logs/request_log.jsonl") -> None:
    """Append the in-memory request log to *path* as JSON-Lines and clear it."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("a", encoding="utf-8") as fh:
        for entry in _request_log:
            fh.write(json.dumps(entry, default=str) + "\n")
    logger.info("Flushed %d request log entries to %s", len(_request_log), out)
    _request_log.clear()


def sanitise_url(url: str) -> str:
    """Mask ``key=`` / ``apikey=`` query values."""
    return re.sub(r"((?:api)?key=)[^&]+", r"\1***", url)
