"""Upsert-by-visit persistence of the final report text.

Saving twice for the same visit updates the latest report row in place
instead of adding rows.  Two concurrent saves for one visit are not
serialised here; the last writer wins.
"""

from __future__ import annotations

import logging

from hrv_report.constants import NEXT_ACTION_TRAILER
from hrv_report.storage.base import ReportRecord, ReportStore, StoreError

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Saving the report failed; the generated report itself is still valid."""

    def __init__(self, visit_id: str, detail: str) -> None:
        self.visit_id = visit_id
        self.detail = detail
        super().__init__(f"Could not save report for visit {visit_id}: {detail}")


def combine_report_text(report_text: str, next_action: str | None) -> str:
    """Append the next action under the trailer line unless already there."""
    if not next_action or NEXT_ACTION_TRAILER in report_text:
        return report_text
    return f"{report_text}\n\n---\n{NEXT_ACTION_TRAILER}{next_action}\n"


class ReportPersistenceGateway:
    """Save reports through a ``ReportStore``."""

    def __init__(self, store: ReportStore) -> None:
        self._store = store

    def save(
        self,
        visit_id: str,
        report_text: str,
        origin: str | None,
        next_action: str | None = None,
    ) -> ReportRecord:
        """Update the visit's latest report, or insert one.

        Raises
        ------
        PersistenceError
            When the store lookup or write fails.
        """
        text = combine_report_text(report_text, next_action)
        try:
            existing = self._store.find_latest_report(visit_id)
            record = ReportRecord(
                visit_id=visit_id,
                report_text=text,
                origin=origin,
                id=existing.id if existing else None,
                created_at=existing.created_at if existing else None,
            )
            saved = self._store.upsert_report(record)
        except StoreError as exc:
            logger.error("Saving report for visit %s failed: %s", visit_id, exc)
            raise PersistenceError(visit_id, str(exc)) from exc

        logger.info(
            "%s report %s for visit %s",
            "Updated" if existing else "Inserted", saved.id, visit_id,
        )
        return saved
