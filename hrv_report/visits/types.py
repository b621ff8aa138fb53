"""Data model for normalised visits.

``Measurement`` and ``SelfReport`` are optional on a visit (``None`` means
the phase was never recorded).  Inside them every field is optional too,
and ``None`` always means "not measured" -- it is never coerced to zero.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any

from hrv_report.numeric import Number

# Creation instant of a visit: an ISO-8601 timestamp from the store, or
# any other monotonically increasing value.
OrderingKey = str | int | float


def _drop_absent(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class Measurement:
    """HRV reading for one phase: RMSSD / SDNN in ms, heart rate in bpm."""

    rmssd: Number | None = None
    sdnn: Number | None = None
    heart_rate: Number | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> dict[str, Any]:
        return _drop_absent(asdict(self))


@dataclass(frozen=True)
class SelfReport:
    """Self-reported wellbeing for one phase.

    Scores are 0-10.  Higher ``sleep_quality`` is better; lower ``stress``
    and ``body_heaviness`` are better.  Lifestyle fields are only filled
    in on the before-phase questionnaire.
    """

    sleep_quality: Number | None = None
    stress: Number | None = None
    body_heaviness: Number | None = None
    bedtime: str | None = None
    alcohol: bool | None = None
    caffeine: bool | None = None
    exercise: bool | None = None

    def has_scores(self) -> bool:
        return any(
            v is not None
            for v in (self.sleep_quality, self.stress, self.body_heaviness)
        )

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_dict(self) -> dict[str, Any]:
        return _drop_absent(asdict(self))


@dataclass(frozen=True)
class NormalizedVisit:
    """A visit reshaped for report generation.  Never persisted."""

    id: str
    customer_id: str | None
    ordering_key: OrderingKey | None
    date: str | None
    menu: str | None = None
    staff: str | None = None
    before: Measurement | None = None
    after: Measurement | None = None
    subjective_before: SelfReport | None = None
    subjective_after: SelfReport | None = None
