"""Check extracted backend output against the report contract.

Validation never raises and never short-circuits: the verdict lists every
issue for the report and for the next action separately, so the
controller can tell which half failed and restate exactly those rules in
the strict retry.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from hrv_report.config_loader import get_global_config
from hrv_report.report.extraction import ExtractedOutput, ExtractionStrategy
from hrv_report.report.prompt_contract import (
    NEXT_ACTION_BANNED_TERMS,
    NEXT_ACTION_UNITS,
    REQUIRED_HEADINGS,
    ContractVariant,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Contract constants
# ---------------------------------------------------------------------------

_DEFAULT_MIN_LENGTH: dict[str, int] = {
    ContractVariant.BASE.value: 220,
    ContractVariant.STRICT.value: 320,
}

NEXT_VISIT_HEADING = REQUIRED_HEADINGS[-1]

# Equivalent spellings of the mandatory 3-6 week next-visit range.
NEXT_VISIT_RANGE_PHRASES: tuple[str, ...] = (
    "3〜6週間",
    "3～6週間",
    "3-6週間",
    "3~6週間",
    "３〜６週間",
    "3週間〜6週間",
    "1ヶ月〜1ヶ月半",
    "1か月〜1か月半",
)

# Next-visit suggestions shorter than three weeks.
_SHORT_RANGE_RE = re.compile(r"(?<![0-9０-９])[12１２]\s*週間(?:後|以内|ほど)")

# Clinical / causal claims a relaxation salon must not make.
CLINICAL_CLAIM_TERMS: tuple[str, ...] = (
    "治ります",
    "治りました",
    "完治",
    "治療効果",
    "診断します",
    "診断結果",
    "病気が",
    "効果が証明",
    "確実に改善",
)

MIN_NUMERIC_CITATIONS = 2

# Sections where measurement and score citations belong; self-care
# quantities ("4秒", "5回") do not count.
CITATION_HEADINGS: tuple[str, ...] = REQUIRED_HEADINGS[1:3]

_NUMBER_RE = re.compile(r"[0-9０-９]+(?:[.．][0-9０-９]+)?")
_DIGIT_RE = re.compile(r"[0-9０-９]")
_NEXT_ACTION_BANNED_RE = re.compile("|".join(map(re.escape, NEXT_ACTION_BANNED_TERMS)))


# ---------------------------------------------------------------------------
# Verdict
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ValidationVerdict:
    """Per-half validation result for one generation attempt."""

    report_issues: tuple[str, ...] = ()
    next_action_issues: tuple[str, ...] = ()
    strategy: ExtractionStrategy | None = None

    @property
    def report_ok(self) -> bool:
        return not self.report_issues

    @property
    def next_action_ok(self) -> bool:
        return not self.next_action_issues

    @property
    def ok(self) -> bool:
        return self.report_ok and self.next_action_ok

    @property
    def issues(self) -> list[str]:
        return [*self.report_issues, *self.next_action_issues]


# ---------------------------------------------------------------------------
# Report checks
# ---------------------------------------------------------------------------

def report_min_length(
    variant: ContractVariant,
    config: dict[str, Any] | None = None,
) -> int:
    """Lower length bound for *variant*, from config when set."""
    cfg = config if config is not None else get_global_config()
    bounds = cfg.get("report_min_length") or {}
    return int(bounds.get(variant.value, _DEFAULT_MIN_LENGTH[variant.value]))


def _section_text(report: str, heading: str) -> str:
    """Text after *heading* up to the next required heading, or ``""``."""
    start = report.find(heading)
    if start < 0:
        return ""
    start += len(heading)
    ends = [i for i in (report.find(h, start) for h in REQUIRED_HEADINGS) if i >= 0]
    return report[start:min(ends)] if ends else report[start:]


def count_numeric_citations(report: str) -> int:
    """Distinct numbers cited in the measurement and self-report sections."""
    numbers: set[str] = set()
    for heading in CITATION_HEADINGS:
        numbers.update(_NUMBER_RE.findall(_section_text(report, heading)))
    return len(numbers)


def validate_report(
    report: str | None,
    variant: ContractVariant = ContractVariant.BASE,
    *,
    config: dict[str, Any] | None = None,
) -> list[str]:
    """Return the list of contract issues found in *report*.

    Checks, in order:

    1. Non-empty and at least ``report_min_length[variant]`` characters.
    2. All five required headings present.
    3. The 3-6 week next-visit range stated, and no shorter range.
    4. At least two distinct numbers cited in 【数値の変化】 and
       【主観・生活背景】.
    5. No clinical or causal claim vocabulary.
    """
    text = (report or "").strip()
    if not text:
        return ["report is empty"]

    issues: list[str] = []

    min_length = report_min_length(variant, config)
    if len(text) < min_length:
        issues.append(f"report is {len(text)} characters; at least {min_length} required")

    missing = [h for h in REQUIRED_HEADINGS if h not in text]
    if missing:
        issues.append(f"missing headings: {''.join(missing)}")

    if not any(phrase in text for phrase in NEXT_VISIT_RANGE_PHRASES):
        issues.append("next-visit range 3〜6週間 is not stated")
    next_visit_section = text.split(NEXT_VISIT_HEADING, 1)[-1]
    if _SHORT_RANGE_RE.search(next_visit_section):
        issues.append("next-visit suggestion is shorter than 3 weeks")

    citations = count_numeric_citations(text)
    if citations < MIN_NUMERIC_CITATIONS:
        issues.append(
            f"report cites {citations} distinct number(s); at least {MIN_NUMERIC_CITATIONS} required"
        )

    claims = [term for term in CLINICAL_CLAIM_TERMS if term in text]
    if claims:
        issues.append(f"clinical claim wording: {', '.join(claims)}")

    return issues


# ---------------------------------------------------------------------------
# Next-action checks
# ---------------------------------------------------------------------------

def validate_next_action(
    next_action: str | None,
    *,
    config: dict[str, Any] | None = None,
) -> list[str]:
    """Return the list of contract issues found in *next_action*."""
    if next_action is None or not next_action.strip():
        return ["next_action is empty"]

    cfg = config if config is not None else get_global_config()
    min_len = int(cfg.get("next_action_min_length", 40))
    max_len = int(cfg.get("next_action_max_length", 70))

    text = next_action.strip()
    issues: list[str] = []

    if not min_len <= len(text) <= max_len:
        issues.append(
            f"next_action is {len(text)} characters; must be {min_len}-{max_len}"
        )
    if "\n" in text or "\r" in text:
        issues.append("next_action must be a single line")

    banned = sorted(set(_NEXT_ACTION_BANNED_RE.findall(text)))
    if banned:
        issues.append(f"next_action uses banned terms: {', '.join(banned)}")

    if not _DIGIT_RE.search(text):
        issues.append("next_action has no number")
    if not any(unit in text for unit in NEXT_ACTION_UNITS):
        issues.append(f"next_action has no unit ({'/'.join(NEXT_ACTION_UNITS)})")

    return issues


def is_valid_next_action(next_action: str | None, *, config: dict[str, Any] | None = None) -> bool:
    return not validate_next_action(next_action, config=config)


# ---------------------------------------------------------------------------
# Combined
# ---------------------------------------------------------------------------

def validate_output(
    output: ExtractedOutput,
    variant: ContractVariant = ContractVariant.BASE,
    *,
    config: dict[str, Any] | None = None,
) -> ValidationVerdict:
    """Validate both halves of one extracted backend response."""
    verdict = ValidationVerdict(
        report_issues=tuple(validate_report(output.report, variant, config=config)),
        next_action_issues=tuple(validate_next_action(output.next_action, config=config)),
        strategy=output.strategy,
    )
    if not verdict.ok:
        logger.warning(
            "Output (%s, %s contract) failed validation: %s",
            output.strategy.value, variant.value, "; ".join(verdict.issues[:5]),
        )
    return verdict
