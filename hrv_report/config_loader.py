"""YAML settings for the report pipeline.

Files live in ``config/`` at the project root; ``HRV_REPORT_CONFIG_DIR``
points elsewhere (a deployment mounting its own settings, or a test).
Each file is parsed once and cached by path.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "HRV_REPORT_CONFIG_DIR"

_DEFAULT_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"

_cache: dict[Path, dict[str, Any]] = {}


def config_dir() -> Path:
    override = os.environ.get(CONFIG_DIR_ENV, "").strip()
    return Path(override) if override else _DEFAULT_CONFIG_DIR


def load_config(name: str, *, reload: bool = False) -> dict[str, Any]:
    """Parsed ``<config dir>/<name>.yml``.

    Parameters
    ----------
    name:
        File stem, e.g. ``"global_config"``.
    reload:
        Re-read the file even if it is cached.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file does not hold a mapping.
    """
    path = config_dir() / f"{name}.yml"
    if reload or path not in _cache:
        if not path.is_file():
            raise FileNotFoundError(f"Config file not found: {path}")
        with path.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping, not {type(data).__name__}")
        _cache[path] = data
        logger.debug("Loaded %s (%d keys)", path, len(data))
    return _cache[path]


def get_global_config() -> dict[str, Any]:
    return load_config("global_config")
