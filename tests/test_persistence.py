"""Tests for hrv_report.storage.persistence and the in-memory report store."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest


class TestUpsertByVisit:
    def test_two_saves_leave_one_row_with_latest_text(self):
        from hrv_report.storage.memory import InMemoryStore
        from hrv_report.storage.persistence import ReportPersistenceGateway

        store = InMemoryStore()
        gateway = ReportPersistenceGateway(store)
        first = gateway.save("v-1", "first text", "gemini-2.5-flash")
        second = gateway.save("v-1", "second text", "claude-sonnet-4-20250514")

        rows = store.reports_for("v-1")
        assert len(rows) == 1
        assert rows[0].report_text == "second text"
        assert rows[0].origin == "claude-sonnet-4-20250514"
        assert first.id == second.id
        assert first.created_at == second.created_at

    def test_other_visits_untouched(self):
        from hrv_report.storage.memory import InMemoryStore
        from hrv_report.storage.persistence import ReportPersistenceGateway

        store = InMemoryStore()
        gateway = ReportPersistenceGateway(store)
        gateway.save("v-1", "a", None)
        gateway.save("v-2", "b", None)
        assert store.find_latest_report("v-1").report_text == "a"
        assert store.find_latest_report("v-2").report_text == "b"

    def test_updates_latest_of_historical_rows(self):
        from hrv_report.storage.base import ReportRecord
        from hrv_report.storage.memory import InMemoryStore
        from hrv_report.storage.persistence import ReportPersistenceGateway

        store = InMemoryStore(reports=[
            ReportRecord(visit_id="v-1", report_text="old", created_at="2026-01-01"),
            ReportRecord(visit_id="v-1", report_text="newer", created_at="2026-02-01"),
        ])
        latest_id = store.find_latest_report("v-1").id
        saved = ReportPersistenceGateway(store).save("v-1", "regenerated", None)

        assert saved.id == latest_id
        assert [r.report_text for r in store.reports_for("v-1")] == ["old", "regenerated"]


class TestCombinedText:
    def test_trailer_appended(self):
        from hrv_report.storage.persistence import combine_report_text
        text = combine_report_text("本文", "深呼吸を5回")
        assert text == "本文\n\n---\n次回までの1アクション：深呼吸を5回\n"

    def test_trailer_not_duplicated(self):
        from hrv_report.storage.persistence import combine_report_text
        existing = "本文\n\n---\n次回までの1アクション：深呼吸を5回\n"
        assert combine_report_text(existing, "別のアクション") == existing

    def test_no_next_action(self):
        from hrv_report.storage.persistence import combine_report_text
        assert combine_report_text("本文", None) == "本文"


class TestFailures:
    def test_store_error_wrapped(self):
        from hrv_report.storage.base import StoreError
        from hrv_report.storage.persistence import PersistenceError, ReportPersistenceGateway

        store = MagicMock()
        store.find_latest_report.side_effect = StoreError("timeout")
        with pytest.raises(PersistenceError) as exc_info:
            ReportPersistenceGateway(store).save("v-9", "text", None)
        assert exc_info.value.visit_id == "v-9"
        assert "timeout" in str(exc_info.value)

    def test_memory_update_of_unknown_id(self):
        from hrv_report.storage.base import ReportRecord, StoreError
        from hrv_report.storage.memory import InMemoryStore

        with pytest.raises(StoreError):
            InMemoryStore().upsert_report(ReportRecord(visit_id="v", report_text="x", id="nope"))


class TestInMemoryVisits:
    def test_from_json_file(self, tmp_path):
        import json
        from hrv_report.storage.memory import InMemoryStore

        path = tmp_path / "visits.json"
        path.write_text(json.dumps([{"id": "v-1", "customer_id": "c-1", "created_at": 1}]))
        store = InMemoryStore.from_json_file(path)
        assert store.get_visit("v-1")["customer_id"] == "c-1"

    def test_from_json_file_rejects_non_list(self, tmp_path):
        from hrv_report.storage.base import StoreError
        from hrv_report.storage.memory import InMemoryStore

        path = tmp_path / "visits.json"
        path.write_text('{"id": "v-1"}')
        with pytest.raises(StoreError):
            InMemoryStore.from_json_file(path)

    def test_visit_without_id_rejected(self):
        from hrv_report.storage.base import StoreError
        from hrv_report.storage.memory import InMemoryStore
        with pytest.raises(StoreError):
            InMemoryStore(visits=[{"customer_id": "c-1"}])

    def test_protocols_satisfied(self):
        from hrv_report.storage.base import ReportStore, VisitStore
        from hrv_report.storage.memory import InMemoryStore
        store = InMemoryStore()
        assert isinstance(store, VisitStore)
        assert isinstance(store, ReportStore)
