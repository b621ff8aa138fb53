"""Assemble the ``ReportInput`` document handed to the generation backend.

Each field is taken from the resolved current visit first, then from the
caller-supplied fallback data (a first-time walk-in has no visit history
at all), and is otherwise left absent.

Deltas are ``after - before`` and exist only when both operands exist.
A phase that has no data at all is absent as a whole; in particular an
absent ``subjective_after`` tells the backend that no after-treatment
self-report comparison can be made.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import date as date_cls
from typing import Any, Mapping

from hrv_report.numeric import delta, percent_delta, to_bool, to_number, to_score
from hrv_report.visits.pii_guard import scrub_free_text
from hrv_report.visits.resolver import ResolvedVisits
from hrv_report.visits.types import Measurement, NormalizedVisit, SelfReport

INTERPRETATION_NOTE: dict[str, str] = {
    "sleep_quality": "higher is better",
    "stress": "lower is better",
    "body_heaviness": "lower is better",
    "delta_rule": "delta = after − before",
}


# ---------------------------------------------------------------------------
# Caller-supplied fallback data
# ---------------------------------------------------------------------------

# snake_case field -> accepted input keys (the front end posts camelCase)
_FALLBACK_ALIASES: dict[str, tuple[str, ...]] = {
    "date": ("date", "visit_date", "visitDate"),
    "menu": ("menu",),
    "staff": ("staff",),
    "before_rmssd": ("before_rmssd", "beforeRMSSD"),
    "before_sdnn": ("before_sdnn", "beforeSDNN"),
    "before_heart_rate": ("before_heart_rate", "beforeHeartRate"),
    "after_rmssd": ("after_rmssd", "afterRMSSD"),
    "after_sdnn": ("after_sdnn", "afterSDNN"),
    "after_heart_rate": ("after_heart_rate", "afterHeartRate"),
    "sleep_quality": ("sleep_quality", "sleepQuality"),
    "stress": ("stress",),
    "body_heaviness": ("body_heaviness", "bodyHeaviness"),
    "bedtime": ("bedtime",),
    "alcohol": ("alcohol",),
    "caffeine": ("caffeine",),
    "exercise": ("exercise",),
    "after_sleep_quality": ("after_sleep_quality", "afterSleepQuality"),
    "after_stress": ("after_stress", "afterStress"),
    "after_body_heaviness": ("after_body_heaviness", "afterBodyHeaviness"),
}


@dataclass(frozen=True)
class FallbackData:
    """Values the caller has on hand when the store has no usable visit."""

    date: str | None = None
    menu: str | None = None
    staff: str | None = None
    before_rmssd: Any = None
    before_sdnn: Any = None
    before_heart_rate: Any = None
    after_rmssd: Any = None
    after_sdnn: Any = None
    after_heart_rate: Any = None
    sleep_quality: Any = None
    stress: Any = None
    body_heaviness: Any = None
    bedtime: str | None = None
    alcohol: Any = None
    caffeine: Any = None
    exercise: Any = None
    after_sleep_quality: Any = None
    after_stress: Any = None
    after_body_heaviness: Any = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> FallbackData:
        """Build from a loosely keyed dict (camelCase or snake_case)."""
        if not data:
            return cls()
        values: dict[str, Any] = {}
        for name, aliases in _FALLBACK_ALIASES.items():
            for key in aliases:
                if data.get(key) is not None:
                    values[name] = data[key]
                    break
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }


# ---------------------------------------------------------------------------
# Report input document
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TodaySnapshot:
    date: str
    menu: str | None
    staff: str | None
    before: Measurement | None
    after: Measurement | None
    subjective_before: SelfReport | None
    subjective_after: SelfReport | None
    computed: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "menu": self.menu,
            "staff": self.staff,
            "before": self.before.to_dict() if self.before else None,
            "after": self.after.to_dict() if self.after else None,
            "subjective_before": (
                self.subjective_before.to_dict() if self.subjective_before else None
            ),
            "subjective_after": (
                self.subjective_after.to_dict() if self.subjective_after else None
            ),
            "computed": dict(self.computed),
        }


@dataclass(frozen=True)
class PreviousSnapshot:
    date: str | None
    after: Measurement | None
    subjective_after: SelfReport | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "after": self.after.to_dict() if self.after else None,
            "subjective_after": (
                self.subjective_after.to_dict() if self.subjective_after else None
            ),
        }


@dataclass(frozen=True)
class ReportInput:
    """The only data surface exposed to the generation backend."""

    today: TodaySnapshot
    previous: PreviousSnapshot | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "today": self.today.to_dict(),
            "previous": self.previous.to_dict() if self.previous else None,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    def usage_summary(self) -> dict[str, Any]:
        """Which optional parts of the input were available."""
        sb = self.today.subjective_before
        return {
            "has_subjective_before": sb is not None and sb.has_scores(),
            "has_subjective_after": self.today.subjective_after is not None,
            "previous_visit_date": self.previous.date if self.previous else None,
        }


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _measurement(
    visit_value: Measurement | None,
    rmssd: Any,
    sdnn: Any,
    heart_rate: Any,
) -> Measurement | None:
    v = visit_value or Measurement()
    merged = Measurement(
        rmssd=_first(v.rmssd, to_number(rmssd)),
        sdnn=_first(v.sdnn, to_number(sdnn)),
        heart_rate=_first(v.heart_rate, to_number(heart_rate)),
    )
    return None if merged.is_empty() else merged


def _subjective_before(
    visit_value: SelfReport | None,
    fb: FallbackData,
) -> SelfReport | None:
    v = visit_value or SelfReport()
    merged = SelfReport(
        sleep_quality=_first(v.sleep_quality, to_score(fb.sleep_quality)),
        stress=_first(v.stress, to_score(fb.stress)),
        body_heaviness=_first(v.body_heaviness, to_score(fb.body_heaviness)),
        bedtime=_first(v.bedtime, fb.bedtime or None),
        alcohol=_first(v.alcohol, to_bool(fb.alcohol)),
        caffeine=_first(v.caffeine, to_bool(fb.caffeine)),
        exercise=_first(v.exercise, to_bool(fb.exercise)),
    )
    return None if merged.is_empty() else merged


def _subjective_after(
    visit_value: SelfReport | None,
    fb: FallbackData,
) -> SelfReport | None:
    # The after-treatment questionnaire only has the three score sliders.
    v = visit_value or SelfReport()
    merged = SelfReport(
        sleep_quality=_first(v.sleep_quality, to_score(fb.after_sleep_quality)),
        stress=_first(v.stress, to_score(fb.after_stress)),
        body_heaviness=_first(v.body_heaviness, to_score(fb.after_body_heaviness)),
    )
    return merged if merged.has_scores() else None


def compute_deltas(
    before: Measurement | None,
    after: Measurement | None,
    subjective_before: SelfReport | None,
    subjective_after: SelfReport | None,
) -> dict[str, Any]:
    """All before/after deltas that can be computed, plus the direction note."""
    b = before or Measurement()
    a = after or Measurement()
    sb = subjective_before or SelfReport()
    sa = subjective_after or SelfReport()

    candidates = {
        "rmssd_diff": delta(b.rmssd, a.rmssd),
        "rmssd_pct": percent_delta(b.rmssd, a.rmssd),
        "sdnn_diff": delta(b.sdnn, a.sdnn),
        "sdnn_pct": percent_delta(b.sdnn, a.sdnn),
        "hr_diff": delta(b.heart_rate, a.heart_rate),
        "hr_pct": percent_delta(b.heart_rate, a.heart_rate),
        "subjective_sleep_diff": delta(sb.sleep_quality, sa.sleep_quality),
        "subjective_stress_diff": delta(sb.stress, sa.stress),
        "subjective_heavy_diff": delta(sb.body_heaviness, sa.body_heaviness),
    }
    computed: dict[str, Any] = {k: v for k, v in candidates.items() if v is not None}
    computed["note"] = dict(INTERPRETATION_NOTE)
    return computed


def _previous_snapshot(previous: NormalizedVisit | None) -> PreviousSnapshot | None:
    if previous is None:
        return None
    subjective_after = previous.subjective_after
    if subjective_after is not None and subjective_after.is_empty():
        subjective_after = None
    return PreviousSnapshot(
        date=previous.date,
        after=previous.after if previous.after and not previous.after.is_empty() else None,
        subjective_after=subjective_after,
    )


def assemble_report_input(
    resolved: ResolvedVisits | None,
    fallback: FallbackData | None = None,
    *,
    today: date_cls | None = None,
) -> ReportInput:
    """Merge resolver output and fallback data into a ``ReportInput``.

    Parameters
    ----------
    resolved:
        Output of ``VisitResolver.resolve``; may be empty or ``None``.
    fallback:
        Caller-supplied values, used per field where the visit has none.
    today:
        Date used when neither the visit nor the fallback carries one.
    """
    resolved = resolved or ResolvedVisits()
    fb = fallback or FallbackData()
    current = resolved.current

    before = _measurement(
        current.before if current else None,
        fb.before_rmssd, fb.before_sdnn, fb.before_heart_rate,
    )
    after = _measurement(
        current.after if current else None,
        fb.after_rmssd, fb.after_sdnn, fb.after_heart_rate,
    )
    subjective_before = _subjective_before(current.subjective_before if current else None, fb)
    subjective_after = _subjective_after(current.subjective_after if current else None, fb)

    visit_date = _first(current.date if current else None, fb.date)
    if visit_date is None:
        visit_date = (today or date_cls.today()).isoformat()

    snapshot = TodaySnapshot(
        date=visit_date,
        menu=scrub_free_text(_first(current.menu if current else None, fb.menu)),
        staff=scrub_free_text(_first(current.staff if current else None, fb.staff)),
        before=before,
        after=after,
        subjective_before=subjective_before,
        subjective_after=subjective_after,
        computed=compute_deltas(before, after, subjective_before, subjective_after),
    )
    return ReportInput(today=snapshot, previous=_previous_snapshot(resolved.previous))
