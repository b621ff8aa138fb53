"""Report generation pipeline: resolve, assemble, generate, validate, save.

Usage::

    pipeline = ReportPipeline(generator, store, store)
    result = pipeline.generate_report(GenerateReportRequest(customer_id="c-1"))
    print(result.report, result.next_action)

Each call runs strictly in sequence: visit resolution, input assembly,
at most two generation attempts, validation, fallback, persistence.
``generate_report`` always returns a report and a compliant next action;
store failures degrade (resolution) or are reported in the result
(persistence) instead of raising.
"""

from __future__ import annotations

import hashlib
import json
import logging
import random
from dataclasses import asdict, dataclass, field
from datetime import date as date_cls
from typing import Any, Mapping

from hrv_report.clients.llm_base import TextGenerator
from hrv_report.config_loader import get_global_config
from hrv_report.constants import NEXT_ACTION_TRAILER
from hrv_report.numeric import percent_delta
from hrv_report.report.controller import ControllerOutcome, ReportController
from hrv_report.storage.base import ReportStore, VisitStore
from hrv_report.storage.persistence import PersistenceError, ReportPersistenceGateway
from hrv_report.visits.assembler import FallbackData, assemble_report_input
from hrv_report.visits.normalizer import normalize_visit
from hrv_report.visits.resolver import VisitResolver

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GenerateReportRequest:
    """Customer id, visit id or both, plus optional fallback values."""

    customer_id: str | None = None
    visit_id: str | None = None
    fallback: FallbackData = field(default_factory=FallbackData)
    save: bool = True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> GenerateReportRequest:
        fallback = data.get("fallback")
        if fallback is None:
            fallback = data.get("fallbackData")
        return cls(
            customer_id=data.get("customer_id") or data.get("customerId"),
            visit_id=data.get("visit_id") or data.get("visitId"),
            fallback=FallbackData.from_dict(fallback),
            save=bool(data.get("save", True)),
        )

    def fingerprint(self) -> str:
        """SHA-256 over the identifiers and fallback values.

        Equal fingerprints mean equal generation inputs, so a caller can
        drop duplicate submissions.
        """
        payload = {
            "customer_id": self.customer_id,
            "visit_id": self.visit_id,
            "fallback": self.fallback.to_dict(),
        }
        encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
        return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


@dataclass
class ReportResult:
    report: str
    next_action: str
    used_fallback: bool
    report_id: str | None = None
    saved: bool = False
    persistence_error: str | None = None
    model: str | None = None
    extraction_strategy: str | None = None
    generation_calls: int = 0
    input_used: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class ReportPipeline:
    """End-to-end report generation with injected collaborators.

    Parameters
    ----------
    generator:
        Text-generation capability; ``None`` means rule-based output only.
    visit_store:
        Source of visit records.
    report_store:
        Destination for report rows; ``None`` disables saving.
    rng:
        Random source for canned fallback choices.  Defaults to one
        seeded with ``fallback_seed`` from the config.
    config:
        Settings dict; defaults to the global config.
    """

    def __init__(
        self,
        generator: TextGenerator | None,
        visit_store: VisitStore,
        report_store: ReportStore | None,
        *,
        rng: random.Random | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        self._config = config if config is not None else get_global_config()
        self._generator = generator
        self._resolver = VisitResolver(
            visit_store,
            duplicate_policy=self._config.get("duplicate_phase_rows", "first"),
        )
        self._gateway = ReportPersistenceGateway(report_store) if report_store is not None else None
        if rng is None:
            rng = random.Random(self._config.get("fallback_seed"))
        self._controller = ReportController(generator, rng=rng, config=self._config)

    def _model_label(self, outcome: ControllerOutcome) -> str:
        default = self._config.get("model_label", "rule-based")
        if self._generator is None or outcome.report_fallback:
            return default
        return getattr(self._generator, "model_name", None) or default

    def generate_report(
        self,
        request: GenerateReportRequest,
        *,
        today: date_cls | None = None,
    ) -> ReportResult:
        """Run the pipeline for one request."""
        logger.info(
            "Generating report (customer=%s, visit=%s, fingerprint=%s)",
            request.customer_id, request.visit_id, request.fingerprint()[:12],
        )
        resolved = self._resolver.resolve(
            customer_id=request.customer_id, visit_id=request.visit_id,
        )
        report_input = assemble_report_input(resolved, request.fallback, today=today)

        outcome = self._controller.run(report_input)
        model = self._model_label(outcome)

        result = ReportResult(
            report=outcome.report,
            next_action=outcome.next_action,
            used_fallback=outcome.used_fallback,
            model=model,
            extraction_strategy=outcome.strategy.value if outcome.strategy else None,
            generation_calls=outcome.generation_calls,
            input_used=report_input.usage_summary(),
        )

        visit_id = resolved.current.id if resolved.current and resolved.current.id else None
        if not request.save or self._gateway is None:
            logger.info("Saving disabled; report not persisted")
        elif visit_id is None:
            logger.info("No stored visit resolved; report not persisted")
        else:
            try:
                record = self._gateway.save(
                    visit_id, outcome.report, model, next_action=outcome.next_action,
                )
            except PersistenceError as exc:
                result.persistence_error = str(exc)
            else:
                result.report_id = record.id
                result.saved = True

        return result


# ---------------------------------------------------------------------------
# Report view
# ---------------------------------------------------------------------------

def _split_trailer(text: str | None) -> tuple[str | None, str | None]:
    if not text or NEXT_ACTION_TRAILER not in text:
        return text, None
    body, _, tail = text.rpartition(NEXT_ACTION_TRAILER)
    body = body.rstrip()
    if body.endswith("---"):
        body = body[:-3].rstrip()
    return body, tail.strip() or None


def build_report_view(
    visit_store: VisitStore,
    report_store: ReportStore,
    visit_id: str,
    *,
    duplicate_policy: str = "first",
) -> dict[str, Any] | None:
    """Display data for one visit's latest report, or ``None`` if no visit.

    Customer identity is not part of the view.  ``improvement_rate`` is the
    RMSSD percent change and is ``None`` when it cannot be computed.
    """
    visit = normalize_visit(visit_store.get_visit(visit_id), duplicate_policy=duplicate_policy)
    if visit is None:
        return None

    latest = report_store.find_latest_report(visit_id)
    report_text, next_action = _split_trailer(latest.report_text if latest else None)

    before_rmssd = visit.before.rmssd if visit.before else None
    after_rmssd = visit.after.rmssd if visit.after else None
    return {
        "visit_id": visit.id,
        "visit_date": visit.date,
        "menu": visit.menu,
        "before_rmssd": before_rmssd,
        "after_rmssd": after_rmssd,
        "improvement_rate": percent_delta(before_rmssd, after_rmssd),
        "report_text": report_text,
        "next_action": next_action,
    }
