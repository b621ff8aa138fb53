"""In-process visit and report store.

Used by the tests and by the CLI when it is seeded from a JSON file of
raw visit records.  Ordering follows the REST backend: ordering key
(``created_at``) descending, ties broken by calendar date descending.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from hrv_report.storage.base import ReportRecord, StoreError

logger = logging.getLogger(__name__)


def _ordering_value(value: Any) -> tuple:
    """Comparable form of an ordering key.

    Numbers are epoch seconds and ISO-8601 strings are converted to them,
    so a customer's rows may mix both.  Anything else sorts after, as text.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, float(value))
    if isinstance(value, str):
        try:
            return (0, datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp())
        except ValueError:
            pass
    return (1, str(value))


def _recency_key(raw: dict[str, Any]) -> tuple:
    created = raw.get("created_at")
    visit_date = raw.get("visit_date") or ""
    if created is None:
        return (False, (0, 0.0), visit_date)
    return (True, _ordering_value(created), visit_date)


class InMemoryStore:
    """Implements both ``VisitStore`` and ``ReportStore``."""

    def __init__(
        self,
        visits: Iterable[dict[str, Any]] = (),
        reports: Iterable[ReportRecord] = (),
    ) -> None:
        self._visits: dict[str, dict[str, Any]] = {}
        self._reports: list[ReportRecord] = []
        for raw in visits:
            self.add_visit(raw)
        for record in reports:
            self.upsert_report(record)

    @classmethod
    def from_json_file(cls, path: str | Path) -> InMemoryStore:
        """Seed from a JSON file holding a list of raw visit records."""
        path = Path(path)
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, list):
            raise StoreError(f"{path}: expected a JSON list of visit records")
        logger.info("Loaded %d visit record(s) from %s", len(data), path)
        return cls(visits=data)

    # ------------------------------------------------------------------
    # Visits
    # ------------------------------------------------------------------

    def add_visit(self, raw: dict[str, Any]) -> None:
        visit_id = raw.get("id")
        if not visit_id:
            raise StoreError("visit record has no id")
        self._visits[str(visit_id)] = raw

    def get_visit(self, visit_id: str) -> dict[str, Any] | None:
        return self._visits.get(str(visit_id))

    def _customer_visits(self, customer_id: str) -> list[dict[str, Any]]:
        rows = [v for v in self._visits.values() if v.get("customer_id") == customer_id]
        return sorted(rows, key=_recency_key, reverse=True)

    def get_latest_visits(self, customer_id: str, limit: int) -> list[dict[str, Any]]:
        return self._customer_visits(customer_id)[:limit]

    def get_visits_before(
        self, customer_id: str, ordering_key: Any, limit: int,
    ) -> list[dict[str, Any]]:
        bound = _ordering_value(ordering_key)
        rows = [
            v for v in self._customer_visits(customer_id)
            if v.get("created_at") is not None and _ordering_value(v["created_at"]) < bound
        ]
        return rows[:limit]

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def reports_for(self, visit_id: str) -> list[ReportRecord]:
        """All report rows of *visit_id*, oldest first."""
        return [r for r in self._reports if r.visit_id == visit_id]

    def find_latest_report(self, visit_id: str) -> ReportRecord | None:
        rows = self.reports_for(visit_id)
        return rows[-1] if rows else None

    def upsert_report(self, record: ReportRecord) -> ReportRecord:
        if record.id is None:
            stored = replace(
                record,
                id=uuid.uuid4().hex,
                created_at=record.created_at or datetime.now(timezone.utc).isoformat(),
            )
            self._reports.append(stored)
            return stored

        for i, existing in enumerate(self._reports):
            if existing.id == record.id:
                stored = replace(record, created_at=record.created_at or existing.created_at)
                self._reports[i] = stored
                return stored
        raise StoreError(f"report {record.id} does not exist")
