"""Resolve the current visit and the visit immediately before it.

Two entry modes:

- by customer: the two most recent visits are current and previous;
- by visit id: that visit is current, and previous is the latest visit of
  the same customer whose ordering key is strictly below the current one.
  Regenerating a report for an older visit therefore still compares it
  with the visit right before it, not with the customer's second most
  recent visit overall.

Store failures never abort the pipeline: they are logged and whatever was
resolved up to that point is returned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from hrv_report.storage.base import StoreError, VisitStore
from hrv_report.visits.normalizer import normalize_visit
from hrv_report.visits.types import NormalizedVisit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedVisits:
    current: NormalizedVisit | None = None
    previous: NormalizedVisit | None = None


class VisitResolver:
    """Look up current/previous visits through a ``VisitStore``."""

    def __init__(self, store: VisitStore, *, duplicate_policy: str = "first") -> None:
        self._store = store
        self._duplicate_policy = duplicate_policy

    def _normalize(self, raw) -> NormalizedVisit | None:
        return normalize_visit(raw, duplicate_policy=self._duplicate_policy)

    def resolve(
        self,
        *,
        customer_id: str | None = None,
        visit_id: str | None = None,
    ) -> ResolvedVisits:
        """Resolve by visit id when given, else by customer id."""
        if visit_id:
            return self._resolve_by_visit(visit_id, customer_id)
        if customer_id:
            return self._resolve_by_customer(customer_id)
        logger.info("No customer or visit id given; nothing to resolve")
        return ResolvedVisits()

    def _resolve_by_customer(self, customer_id: str) -> ResolvedVisits:
        try:
            rows = self._store.get_latest_visits(customer_id, 2)
        except StoreError as exc:
            logger.warning("Visit lookup for customer %s failed: %s", customer_id, exc)
            return ResolvedVisits()

        current = self._normalize(rows[0]) if len(rows) > 0 else None
        previous = self._normalize(rows[1]) if len(rows) > 1 else None
        return ResolvedVisits(current=current, previous=previous)

    def _resolve_by_visit(self, visit_id: str, customer_id: str | None) -> ResolvedVisits:
        try:
            current = self._normalize(self._store.get_visit(visit_id))
        except StoreError as exc:
            logger.warning("Visit lookup for %s failed: %s", visit_id, exc)
            return ResolvedVisits()

        if current is None:
            logger.warning("Visit %s not found", visit_id)
            return ResolvedVisits()

        customer_id = customer_id or current.customer_id
        if not customer_id or current.ordering_key is None:
            logger.info(
                "Visit %s has no customer or ordering key; previous visit not resolved",
                visit_id,
            )
            return ResolvedVisits(current=current)

        try:
            rows = self._store.get_visits_before(customer_id, current.ordering_key, 1)
        except StoreError as exc:
            logger.warning("Previous-visit lookup for %s failed: %s", visit_id, exc)
            return ResolvedVisits(current=current)

        previous = self._normalize(rows[0]) if rows else None
        return ResolvedVisits(current=current, previous=previous)
