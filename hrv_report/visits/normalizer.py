"""Reshape raw visit records into ``NormalizedVisit``.

A raw record is the dict a visit store returns::

    {
        "id": "...", "customer_id": "...", "visit_date": "2026-05-01",
        "created_at": "2026-05-01T10:12:00+09:00", "menu": "...", "staff": "...",
        "hrv_measurements": [{"phase": "before", "rmssd": 20, ...}, ...],
        "subjective_scores": [{"phase": "after", "stress": 3, ...}, ...],
    }

At most one row per phase is expected.  When a store hands back
duplicates, the ``duplicate_policy`` decides which row is used
(``"first"`` keeps the first row found, ``"last"`` the last one); the
duplicate is logged either way.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from hrv_report.constants import PHASE_AFTER, PHASE_BEFORE
from hrv_report.numeric import to_bool, to_number, to_score
from hrv_report.visits.types import Measurement, NormalizedVisit, SelfReport

logger = logging.getLogger(__name__)

DUPLICATE_POLICIES = ("first", "last")


def _pick_phase_row(
    rows: Sequence[Mapping[str, Any]] | None,
    phase: str,
    *,
    duplicate_policy: str,
    visit_id: Any,
    kind: str,
) -> Mapping[str, Any] | None:
    matches = [r for r in (rows or []) if r and r.get("phase") == phase]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "Visit %s has %d %s rows for phase '%s'; using the %s one",
            visit_id, len(matches), kind, phase, duplicate_policy,
        )
    return matches[-1] if duplicate_policy == "last" else matches[0]


def _to_measurement(row: Mapping[str, Any] | None) -> Measurement | None:
    if row is None:
        return None
    return Measurement(
        rmssd=to_number(row.get("rmssd")),
        sdnn=to_number(row.get("sdnn")),
        heart_rate=to_number(row.get("heart_rate")),
    )


def _to_bedtime(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _to_self_report(row: Mapping[str, Any] | None) -> SelfReport | None:
    if row is None:
        return None
    return SelfReport(
        sleep_quality=to_score(row.get("sleep_quality")),
        stress=to_score(row.get("stress")),
        body_heaviness=to_score(row.get("body_heaviness")),
        bedtime=_to_bedtime(row.get("bedtime")),
        alcohol=to_bool(row.get("alcohol")),
        caffeine=to_bool(row.get("caffeine")),
        exercise=to_bool(row.get("exercise")),
    )


def normalize_visit(
    raw: Mapping[str, Any] | None,
    *,
    duplicate_policy: str = "first",
) -> NormalizedVisit | None:
    """Convert a raw visit record into a ``NormalizedVisit``.

    Returns ``None`` when *raw* is absent.
    """
    if not raw:
        return None
    if duplicate_policy not in DUPLICATE_POLICIES:
        raise ValueError(
            f"duplicate_policy must be one of {DUPLICATE_POLICIES}, "
            f"got {duplicate_policy!r}"
        )

    visit_id = raw.get("id")
    measurements = raw.get("hrv_measurements")
    scores = raw.get("subjective_scores")

    def pick(rows, phase, kind):
        return _pick_phase_row(
            rows, phase,
            duplicate_policy=duplicate_policy, visit_id=visit_id, kind=kind,
        )

    return NormalizedVisit(
        id=str(visit_id) if visit_id is not None else "",
        customer_id=raw.get("customer_id"),
        ordering_key=raw.get("created_at"),
        date=raw.get("visit_date"),
        menu=raw.get("menu"),
        staff=raw.get("staff"),
        before=_to_measurement(pick(measurements, PHASE_BEFORE, "measurement")),
        after=_to_measurement(pick(measurements, PHASE_AFTER, "measurement")),
        subjective_before=_to_self_report(pick(scores, PHASE_BEFORE, "self-report")),
        subjective_after=_to_self_report(pick(scores, PHASE_AFTER, "self-report")),
    )
