"""Store protocols consumed by the report pipeline.

The visit store and the report store are external collaborators.  Any
backend that satisfies these structural interfaces can be plugged into
the pipeline; ``InMemoryStore`` and the REST stores are the two shipped
here.

Visit records are raw dicts in the shape ``normalize_visit`` expects.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


class StoreError(Exception):
    """Raised by store backends for any read or write failure."""


@dataclass(frozen=True)
class ReportRecord:
    """One persisted report row.  ``id`` is ``None`` until inserted."""

    visit_id: str
    report_text: str
    origin: str | None = None
    id: str | None = None
    created_at: str | None = None


@runtime_checkable
class VisitStore(Protocol):
    """Read access to visit records."""

    def get_visit(self, visit_id: str) -> dict[str, Any] | None:
        """Return the raw visit record, or ``None`` when it does not exist."""
        ...

    def get_latest_visits(self, customer_id: str, limit: int) -> list[dict[str, Any]]:
        """Most recent visits first (ordering key desc, then visit date desc)."""
        ...

    def get_visits_before(
        self, customer_id: str, ordering_key: Any, limit: int,
    ) -> list[dict[str, Any]]:
        """Visits whose ordering key is strictly below *ordering_key*, most recent first."""
        ...


@runtime_checkable
class ReportStore(Protocol):
    """Read/write access to report rows."""

    def find_latest_report(self, visit_id: str) -> ReportRecord | None:
        """Most recently created report for *visit_id*, or ``None``."""
        ...

    def upsert_report(self, record: ReportRecord) -> ReportRecord:
        """Update the row ``record.id`` in place, or insert when ``id`` is ``None``."""
        ...
