"""Retry / fallback state machine around the generation backend.

States: ``INITIAL -> RETRY -> RESOLVED`` (``INITIAL -> RESOLVED`` when the
first attempt passes).  At most two generation calls are ever made: one
with the base contract and, if anything failed, one with the strict
contract that restates the violated rules.

Resolution policy after the retry:

- next action: the newest valid one, otherwise the rule-based fallback.
  The caller always receives a compliant next action.
- report: the newest valid one, otherwise the best non-empty text even if
  it breaks the contract.  A non-compliant report is a quality issue, not
  a safety issue, so it is surfaced (and logged) instead of blocking the
  client.  Only when both attempts produced no text at all is the
  template report used.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any

from hrv_report.clients.llm_base import GenerationError, TextGenerator
from hrv_report.report.extraction import ExtractedOutput, ExtractionStrategy, extract_output
from hrv_report.report.fallback_action import build_fallback_next_action, build_fallback_report
from hrv_report.report.prompt_contract import (
    CONTRACT_VARIANTS,
    ContractVariant,
    render_system_instruction,
    render_user_content,
)
from hrv_report.report.validation import ValidationVerdict, validate_output
from hrv_report.visits.assembler import ReportInput

logger = logging.getLogger(__name__)


class ControllerState(str, Enum):
    INITIAL = "initial"
    RETRY = "retry"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class AttemptRecord:
    """One generation call: what was asked, what came back, how it scored."""

    variant: ContractVariant
    output: ExtractedOutput | None = None
    verdict: ValidationVerdict | None = None
    error: str | None = None

    @property
    def report_ok(self) -> bool:
        return self.verdict is not None and self.verdict.report_ok

    @property
    def next_action_ok(self) -> bool:
        return self.verdict is not None and self.verdict.next_action_ok

    @property
    def ok(self) -> bool:
        return self.verdict is not None and self.verdict.ok

    def violations(self) -> list[str]:
        if self.error is not None:
            return [f"generation failed: {self.error}"]
        return self.verdict.issues if self.verdict else []


@dataclass(frozen=True)
class ControllerOutcome:
    report: str
    next_action: str
    report_fallback: bool
    next_action_fallback: bool
    attempts: tuple[AttemptRecord, ...]
    state: ControllerState = ControllerState.RESOLVED

    @property
    def used_fallback(self) -> bool:
        return self.report_fallback or self.next_action_fallback

    @property
    def generation_calls(self) -> int:
        return len(self.attempts)

    @property
    def strategy(self) -> ExtractionStrategy | None:
        """Extraction strategy of the attempt whose report was kept."""
        for attempt in reversed(self.attempts):
            if attempt.output is not None and attempt.output.report == self.report:
                return attempt.output.strategy
        return None


class ReportController:
    """Drive at most two generation attempts, then resolve with fallbacks.

    Parameters
    ----------
    generator:
        The text-generation capability, or ``None`` to go straight to the
        rule-based fallbacks without any generation call.
    rng:
        Random source for the canned next-action choice.
    config:
        Contract settings (length bounds); defaults to the global config.
    """

    def __init__(
        self,
        generator: TextGenerator | None,
        *,
        rng: random.Random | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        self._generator = generator
        self._rng = rng or random.Random()
        self._config = config

    def _attempt(
        self,
        variant: ContractVariant,
        user_content: str,
        violations: list[str],
    ) -> AttemptRecord:
        system_instruction = render_system_instruction(variant, violations)
        try:
            raw = self._generator.generate(system_instruction, user_content)
        except GenerationError as exc:
            logger.warning("Generation attempt (%s contract) failed: %s", variant.value, exc)
            return AttemptRecord(variant=variant, error=str(exc))

        output = extract_output(raw)
        verdict = validate_output(output, variant, config=self._config)
        return AttemptRecord(variant=variant, output=output, verdict=verdict)

    def run(self, report_input: ReportInput) -> ControllerOutcome:
        """Generate, validate, retry once if needed, and resolve."""
        attempts: list[AttemptRecord] = []

        if self._generator is None:
            logger.info("No generation backend configured; using rule-based output")
            return self._resolve(report_input, attempts)

        state = ControllerState.INITIAL
        user_content = render_user_content(report_input)
        base, strict = CONTRACT_VARIANTS

        first = self._attempt(base, user_content, [])
        attempts.append(first)

        if not first.ok:
            state = ControllerState.RETRY
            violations = first.violations()
            logger.info(
                "State %s: retrying once with the %s contract (%d violation(s))",
                state.value, strict.value, len(violations),
            )
            attempts.append(self._attempt(strict, user_content, violations))

        return self._resolve(report_input, attempts)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(
        self,
        report_input: ReportInput,
        attempts: list[AttemptRecord],
    ) -> ControllerOutcome:
        newest_first = list(reversed(attempts))

        next_action = next(
            (a.output.next_action for a in newest_first if a.next_action_ok), None,
        )
        next_action_fallback = next_action is None
        if next_action_fallback:
            next_action = build_fallback_next_action(report_input, self._rng)

        report = next((a.output.report for a in newest_first if a.report_ok), None)
        if report is None:
            report = next(
                (a.output.report for a in newest_first if a.output is not None and a.output.report),
                "",
            )
            if report:
                logger.warning(
                    "Accepting a report that does not meet the contract after %d attempt(s)",
                    len(attempts),
                )

        report_fallback = not report
        if report_fallback:
            report = build_fallback_report(report_input, next_action)

        logger.info(
            "State %s: calls=%d report_fallback=%s next_action_fallback=%s",
            ControllerState.RESOLVED.value, len(attempts), report_fallback, next_action_fallback,
        )
        return ControllerOutcome(
            report=report,
            next_action=next_action,
            report_fallback=report_fallback,
            next_action_fallback=next_action_fallback,
            attempts=tuple(attempts),
        )
