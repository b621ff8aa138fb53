"""Tests for hrv_report.storage.rest_store (no network access)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests


def _visit_store():
    from hrv_report.storage.rest_store import RestVisitStore
    return RestVisitStore("https://example.supabase.co/", "service-key")


def _report_store():
    from hrv_report.storage.rest_store import RestReportStore
    return RestReportStore("https://example.supabase.co", "service-key")


class TestConstruction:
    def test_requires_credentials(self):
        from hrv_report.storage.base import StoreError
        from hrv_report.storage.rest_store import RestVisitStore
        with pytest.raises(StoreError):
            RestVisitStore.from_secrets({})

    def test_from_secrets(self):
        from hrv_report.storage.rest_store import RestReportStore
        store = RestReportStore.from_secrets({
            "SUPABASE_URL": "https://example.supabase.co",
            "SUPABASE_SERVICE_ROLE_KEY": "k",
        })
        assert store._rest_url == "https://example.supabase.co/rest/v1"


class TestRestVisitStore:
    @patch("hrv_report.storage.rest_store.request_json")
    def test_get_visit(self, mock_request):
        mock_request.return_value = [{"id": "v-1", "hrv_measurements": []}]
        visit = _visit_store().get_visit("v-1")

        assert visit["id"] == "v-1"
        method, url = mock_request.call_args.args
        params = mock_request.call_args.kwargs["params"]
        assert method == "GET"
        assert url == "https://example.supabase.co/rest/v1/visits"
        assert params["id"] == "eq.v-1"
        assert "hrv_measurements(" in params["select"]
        headers = mock_request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer service-key"

    @patch("hrv_report.storage.rest_store.request_json")
    def test_get_visit_missing(self, mock_request):
        mock_request.return_value = []
        assert _visit_store().get_visit("v-x") is None

    @patch("hrv_report.storage.rest_store.request_json")
    def test_latest_visits_ordering(self, mock_request):
        mock_request.return_value = []
        _visit_store().get_latest_visits("c-1", 2)
        params = mock_request.call_args.kwargs["params"]
        assert params["customer_id"] == "eq.c-1"
        assert params["order"] == "created_at.desc,visit_date.desc"
        assert params["limit"] == 2

    @patch("hrv_report.storage.rest_store.request_json")
    def test_visits_before_filter(self, mock_request):
        mock_request.return_value = []
        _visit_store().get_visits_before("c-1", "2026-05-01T10:00:00+09:00", 1)
        params = mock_request.call_args.kwargs["params"]
        assert params["created_at"] == "lt.2026-05-01T10:00:00+09:00"
        assert params["limit"] == 1

    @patch("hrv_report.storage.rest_store.request_json")
    def test_http_error_becomes_store_error(self, mock_request):
        from hrv_report.http_utils import HTTPError
        from hrv_report.storage.base import StoreError

        mock_request.side_effect = HTTPError("https://x/rest/v1/visits", 503, "down")
        with pytest.raises(StoreError, match="503"):
            _visit_store().get_latest_visits("c-1", 2)


class TestRestReportStore:
    @patch("hrv_report.storage.rest_store.request_json")
    def test_find_latest_report(self, mock_request):
        mock_request.return_value = [{
            "id": 7, "visit_id": "v-1", "report_text": "本文",
            "model": "gemini-2.5-flash", "created_at": "2026-05-01T10:00:00Z",
        }]
        record = _report_store().find_latest_report("v-1")

        assert record.id == "7"
        assert record.origin == "gemini-2.5-flash"
        params = mock_request.call_args.kwargs["params"]
        assert params["order"] == "created_at.desc"
        assert params["limit"] == 1

    @patch("hrv_report.storage.rest_store.request_json")
    def test_insert(self, mock_request):
        from hrv_report.storage.base import ReportRecord

        mock_request.return_value = [{"id": "r-1", "visit_id": "v-1", "report_text": "t"}]
        saved = _report_store().upsert_report(ReportRecord(visit_id="v-1", report_text="t"))

        assert saved.id == "r-1"
        assert mock_request.call_args.args[0] == "POST"
        assert mock_request.call_args.kwargs["json_data"]["visit_id"] == "v-1"
        assert mock_request.call_args.kwargs["headers"]["Prefer"] == "return=representation"

    @patch("hrv_report.storage.rest_store.request_json")
    def test_update(self, mock_request):
        from hrv_report.storage.base import ReportRecord

        mock_request.return_value = [{"id": "r-1", "visit_id": "v-1", "report_text": "new"}]
        saved = _report_store().upsert_report(
            ReportRecord(visit_id="v-1", report_text="new", id="r-1"),
        )

        assert saved.report_text == "new"
        assert mock_request.call_args.args[0] == "PATCH"
        assert mock_request.call_args.kwargs["params"] == {"id": "eq.r-1"}

    @patch("hrv_report.storage.rest_store.request_json")
    def test_write_without_row_is_error(self, mock_request):
        from hrv_report.storage.base import ReportRecord, StoreError

        mock_request.return_value = None
        with pytest.raises(StoreError):
            _report_store().upsert_report(ReportRecord(visit_id="v-1", report_text="t"))


class TestMalformedPayloads:
    @patch("hrv_report.http_utils.time.sleep")
    @patch("hrv_report.http_utils.requests.request")
    def test_non_json_body_is_store_error(self, mock_request, _sleep):
        from hrv_report.storage.base import StoreError

        resp = MagicMock()
        resp.status_code = 200
        resp.content = b"<html>proxy</html>"
        resp.json.side_effect = requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)
        mock_request.return_value = resp
        with pytest.raises(StoreError, match="invalid JSON body"):
            _visit_store().get_latest_visits("c-1", 2)

    @patch("hrv_report.storage.rest_store.request_json")
    def test_scalar_payload_is_store_error(self, mock_request):
        from hrv_report.storage.base import StoreError

        mock_request.return_value = "ok"
        with pytest.raises(StoreError, match="unexpected payload"):
            _visit_store().get_latest_visits("c-1", 2)

    @patch("hrv_report.storage.rest_store.request_json")
    def test_list_of_non_rows_is_store_error(self, mock_request):
        from hrv_report.storage.base import StoreError

        mock_request.return_value = [1, 2]
        with pytest.raises(StoreError):
            _report_store().find_latest_report("v-1")
