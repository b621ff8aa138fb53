"""PostgREST (Supabase) visit and report stores.

Every request goes through ``http_utils.request_json`` for retries, rate
limiting and the request log.  ``HTTPError`` is re-raised as
``StoreError`` so the pipeline only has to know about the storage layer's
exception.

Tables:

- ``visits`` with embedded ``hrv_measurements`` and ``subjective_scores``
  rows (one per phase);
- ``ai_reports`` (``id``, ``visit_id``, ``report_text``, ``model``,
  ``created_at``).
"""

from __future__ import annotations

import logging
from typing import Any

from hrv_report.http_utils import HTTPError, request_json
from hrv_report.storage.base import ReportRecord, StoreError

logger = logging.getLogger(__name__)

VISIT_SELECT = (
    "id,customer_id,visit_date,created_at,staff,menu,"
    "hrv_measurements(phase,rmssd,sdnn,heart_rate),"
    "subjective_scores(phase,sleep_quality,stress,body_heaviness,"
    "bedtime,alcohol,caffeine,exercise)"
)
REPORT_SELECT = "id,visit_id,report_text,model,created_at"


class _RestClient:
    """Thin PostgREST wrapper holding the base URL and auth headers."""

    def __init__(self, base_url: str, api_key: str) -> None:
        if not base_url or not api_key:
            raise StoreError("REST store needs SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY")
        self._rest_url = base_url.rstrip("/") + "/rest/v1"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    @classmethod
    def from_secrets(cls, secrets: dict[str, str]):
        return cls(secrets.get("SUPABASE_URL", ""), secrets.get("SUPABASE_SERVICE_ROLE_KEY", ""))

    def _call(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, Any] | None = None,
        json_data: dict | list | None = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        headers = dict(self._headers)
        if prefer:
            headers["Prefer"] = prefer
        try:
            data = request_json(
                method, f"{self._rest_url}/{table}",
                params=params, json_data=json_data, headers=headers,
            )
        except HTTPError as exc:
            raise StoreError(f"{method} {table} failed: HTTP {exc.status_code} {exc.detail}") from exc
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list) or not all(isinstance(row, dict) for row in data):
            raise StoreError(f"{method} {table} returned an unexpected payload")
        return data


class RestVisitStore(_RestClient):
    """``VisitStore`` over the ``visits`` table."""

    def get_visit(self, visit_id: str) -> dict[str, Any] | None:
        rows = self._call("GET", "visits", params={
            "select": VISIT_SELECT,
            "id": f"eq.{visit_id}",
            "limit": 1,
        })
        return rows[0] if rows else None

    def get_latest_visits(self, customer_id: str, limit: int) -> list[dict[str, Any]]:
        return self._call("GET", "visits", params={
            "select": VISIT_SELECT,
            "customer_id": f"eq.{customer_id}",
            "order": "created_at.desc,visit_date.desc",
            "limit": limit,
        })

    def get_visits_before(
        self, customer_id: str, ordering_key: Any, limit: int,
    ) -> list[dict[str, Any]]:
        return self._call("GET", "visits", params={
            "select": VISIT_SELECT,
            "customer_id": f"eq.{customer_id}",
            "created_at": f"lt.{ordering_key}",
            "order": "created_at.desc,visit_date.desc",
            "limit": limit,
        })


def _to_record(row: dict[str, Any]) -> ReportRecord:
    return ReportRecord(
        visit_id=str(row.get("visit_id")),
        report_text=row.get("report_text") or "",
        origin=row.get("model"),
        id=str(row["id"]) if row.get("id") is not None else None,
        created_at=row.get("created_at"),
    )


class RestReportStore(_RestClient):
    """``ReportStore`` over the ``ai_reports`` table."""

    def find_latest_report(self, visit_id: str) -> ReportRecord | None:
        rows = self._call("GET", "ai_reports", params={
            "select": REPORT_SELECT,
            "visit_id": f"eq.{visit_id}",
            "order": "created_at.desc",
            "limit": 1,
        })
        return _to_record(rows[0]) if rows else None

    def upsert_report(self, record: ReportRecord) -> ReportRecord:
        body = {"report_text": record.report_text, "model": record.origin}
        if record.id is not None:
            rows = self._call(
                "PATCH", "ai_reports",
                params={"id": f"eq.{record.id}"},
                json_data=body,
                prefer="return=representation",
            )
        else:
            rows = self._call(
                "POST", "ai_reports",
                json_data={"visit_id": record.visit_id, **body},
                prefer="return=representation",
            )
        if not rows:
            raise StoreError(f"ai_reports write for visit {record.visit_id} returned no row")
        logger.debug("Wrote ai_reports row %s", rows[0].get("id"))
        return _to_record(rows[0])
