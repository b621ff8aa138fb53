"""Extract ``report`` / ``next_action`` from raw backend output.

Backends do not always answer in the requested format, so four
strategies are tried in priority order, first success wins:

1. ``TAGS``          -- ``<report>...</report>`` and ``<next_action>...</next_action>``
2. ``DIRECT_JSON``   -- the whole response parses as a JSON object
3. ``SCANNED_JSON``  -- a fenced code block or the largest ``{...}`` span parses
4. ``RAW_TEXT``      -- the whole response is the report, no next action

The strategy used travels with the result so validation issues and log
lines can say how the text was obtained.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from hrv_report.report.prompt_contract import NEXT_ACTION_TAG, REPORT_TAG

logger = logging.getLogger(__name__)


class ExtractionStrategy(str, Enum):
    TAGS = "tags"
    DIRECT_JSON = "direct_json"
    SCANNED_JSON = "scanned_json"
    RAW_TEXT = "raw_text"


@dataclass(frozen=True)
class ExtractedOutput:
    """The two logical fields plus the strategy that produced them."""

    report: str
    next_action: str | None
    strategy: ExtractionStrategy


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

def _tag_pattern(tag: str) -> re.Pattern:
    return re.compile(rf"<{tag}>\s*(.*?)\s*</{tag}>", re.DOTALL | re.IGNORECASE)


_REPORT_TAG_RE = _tag_pattern(REPORT_TAG)
_NEXT_ACTION_TAG_RE = _tag_pattern(NEXT_ACTION_TAG)

_FENCED_BLOCK_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?```", re.DOTALL)
_FENCE_SPAN_RE = re.compile(r"```.*?```", re.DOTALL)
_BLANK_RUN_RE = re.compile(r"\n{3,}")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _string_field(obj: dict[str, Any], key: str) -> str | None:
    value = obj.get(key)
    if isinstance(value, str):
        return value.strip()
    return None


def _from_object(obj: Any) -> tuple[str, str | None] | None:
    """Read the two fields from a parsed JSON value, if it is the right shape."""
    if not isinstance(obj, dict):
        return None
    report = _string_field(obj, "report")
    next_action = _string_field(obj, "next_action")
    if report is None and next_action is None:
        return None
    return report or "", next_action or None


def _loads(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def sanitize_report(text: str) -> str:
    """Remove fenced code spans and whole-line JSON objects from report prose.

    A JSON block is a run of lines whose first line starts with ``{`` and
    whose last line ends with ``}``, dropped only when the run parses as a
    JSON object.  Braces inside ordinary sentences are left alone.
    """
    if not text:
        return ""
    text = _FENCE_SPAN_RE.sub("", text)

    lines = text.split("\n")
    kept: list[str] = []
    i = 0
    while i < len(lines):
        end = _json_block_end(lines, i)
        if end is None:
            kept.append(lines[i])
            i += 1
        else:
            logger.debug("Dropped a %d-line JSON block from report text", end - i + 1)
            i = end + 1

    return _BLANK_RUN_RE.sub("\n\n", "\n".join(kept)).strip()


def _json_block_end(lines: list[str], start: int) -> int | None:
    """Index of the last line of a JSON object starting at *start*, if any."""
    if not lines[start].lstrip().startswith("{"):
        return None
    for end in range(start, len(lines)):
        if lines[end].rstrip().endswith("}"):
            if isinstance(_loads("\n".join(lines[start:end + 1])), dict):
                return end
    return None


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def _try_tags(raw: str) -> tuple[str, str | None] | None:
    report_match = _REPORT_TAG_RE.search(raw)
    if not report_match:
        return None
    action_match = _NEXT_ACTION_TAG_RE.search(raw)
    next_action = action_match.group(1).strip() if action_match else None
    return report_match.group(1), next_action or None


def _try_direct_json(raw: str) -> tuple[str, str | None] | None:
    return _from_object(_loads(raw.strip()))


def _try_scanned_json(raw: str) -> tuple[str, str | None] | None:
    for block in _FENCED_BLOCK_RE.findall(raw):
        found = _from_object(_loads(block.strip()))
        if found is not None:
            return found

    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end <= start:
        return None
    return _from_object(_loads(raw[start:end + 1]))


_STRATEGIES = (
    (ExtractionStrategy.TAGS, _try_tags),
    (ExtractionStrategy.DIRECT_JSON, _try_direct_json),
    (ExtractionStrategy.SCANNED_JSON, _try_scanned_json),
)


def extract_output(raw: str | None) -> ExtractedOutput:
    """Extract report and next action from one raw backend response.

    Never raises; an unusable response yields an empty ``RAW_TEXT``
    result that validation will reject.
    """
    raw = raw or ""
    for strategy, attempt in _STRATEGIES:
        found = attempt(raw)
        if found is not None:
            report, next_action = found
            logger.debug("Backend output extracted via %s", strategy.value)
            return ExtractedOutput(
                report=sanitize_report(report),
                next_action=next_action,
                strategy=strategy,
            )

    logger.debug("No structured output found; treating the response as report text")
    return ExtractedOutput(
        report=sanitize_report(raw),
        next_action=None,
        strategy=ExtractionStrategy.RAW_TEXT,
    )
