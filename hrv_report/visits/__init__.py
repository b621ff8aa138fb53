"""Visit data: normalisation, previous-visit resolution, report input assembly.

Public API:
    - ``normalize_visit``: raw store record -> ``NormalizedVisit``.
    - ``VisitResolver``: current visit plus the visit immediately before it.
    - ``assemble_report_input``: merged ``ReportInput`` with deltas.
"""

from hrv_report.visits.assembler import (
    FallbackData,
    ReportInput,
    assemble_report_input,
)
from hrv_report.visits.normalizer import normalize_visit
from hrv_report.visits.resolver import ResolvedVisits, VisitResolver
from hrv_report.visits.types import Measurement, NormalizedVisit, SelfReport

__all__ = [
    "FallbackData",
    "Measurement",
    "NormalizedVisit",
    "ReportInput",
    "ResolvedVisits",
    "SelfReport",
    "VisitResolver",
    "assemble_report_input",
    "normalize_visit",
]
