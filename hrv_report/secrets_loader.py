"""API keys and store credentials from the environment or a ``.env`` file.

Nothing here is mandatory: without a generation key the pipeline runs
on its rule-based fallbacks, and without Supabase credentials the CLI
uses the in-memory store.  Variables already set in the environment win
over the ``.env`` file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# key -> what it enables
_OPTIONAL_KEYS: dict[str, str] = {
    "GEMINI_API_KEY": "report generation (Gemini)",
    "ANTHROPIC_API_KEY": "report generation (Claude)",
    "SUPABASE_URL": "REST visit/report store",
    "SUPABASE_SERVICE_ROLE_KEY": "REST visit/report store",
}


def _load_dotenv() -> None:
    env_path = _PROJECT_ROOT / ".env"
    if env_path.is_file():
        load_dotenv(env_path, override=False)
        logger.info("Loaded environment from %s", env_path)


def load_secrets() -> dict[str, str]:
    """Non-empty values of the known keys, whitespace-stripped."""
    _load_dotenv()

    secrets: dict[str, str] = {}
    for key, purpose in _OPTIONAL_KEYS.items():
        value = (os.environ.get(key) or "").strip()
        if value:
            secrets[key] = value
        else:
            logger.info("%s not set (needed for %s)", key, purpose)
    return secrets
