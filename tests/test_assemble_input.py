"""Tests for hrv_report.visits.assembler."""

from __future__ import annotations

import json
from datetime import date


def _resolved(current_raw=None, previous_raw=None):
    from hrv_report.visits.normalizer import normalize_visit
    from hrv_report.visits.resolver import ResolvedVisits
    return ResolvedVisits(
        current=normalize_visit(current_raw),
        previous=normalize_visit(previous_raw),
    )


SCENARIO_A = {
    "id": "v-a",
    "customer_id": "c-1",
    "visit_date": "2026-05-01",
    "created_at": 200,
    "hrv_measurements": [
        {"phase": "before", "rmssd": 20},
        {"phase": "after", "rmssd": 35},
    ],
    "subjective_scores": [
        {"phase": "before", "stress": 8},
        {"phase": "after", "stress": 3},
    ],
}


class TestDeltas:
    def test_scenario_a_deltas(self):
        from hrv_report.visits.assembler import assemble_report_input
        computed = assemble_report_input(_resolved(SCENARIO_A)).today.computed
        assert computed["rmssd_diff"] == 15
        assert computed["rmssd_pct"] == 75
        assert computed["subjective_stress_diff"] == -5

    def test_missing_operands_produce_no_keys(self):
        from hrv_report.visits.assembler import assemble_report_input
        computed = assemble_report_input(_resolved(SCENARIO_A)).today.computed
        for key in ("sdnn_diff", "sdnn_pct", "hr_diff", "hr_pct",
                    "subjective_sleep_diff", "subjective_heavy_diff"):
            assert key not in computed

    def test_interpretation_note_always_present(self):
        from hrv_report.visits.assembler import INTERPRETATION_NOTE, assemble_report_input
        computed = assemble_report_input(None, today=date(2026, 5, 1)).today.computed
        assert computed == {"note": INTERPRETATION_NOTE}
        assert INTERPRETATION_NOTE["stress"] == "lower is better"
        assert INTERPRETATION_NOTE["sleep_quality"] == "higher is better"


class TestSubjectiveAfterAbsence:
    def test_scenario_b_subjective_after_absent(self):
        from hrv_report.visits.assembler import assemble_report_input
        raw = dict(SCENARIO_A, subjective_scores=[{"phase": "before", "stress": 8}])
        report_input = assemble_report_input(_resolved(raw))

        assert report_input.today.subjective_after is None
        assert report_input.to_dict()["today"]["subjective_after"] is None
        computed = report_input.today.computed
        assert not any(k.startswith("subjective_") for k in computed)

    def test_after_row_without_scores_is_absent(self):
        from hrv_report.visits.assembler import assemble_report_input
        raw = dict(SCENARIO_A, subjective_scores=[
            {"phase": "before", "stress": 8},
            {"phase": "after", "bedtime": "23:00"},
        ])
        assert assemble_report_input(_resolved(raw)).today.subjective_after is None


class TestFallbackMerge:
    def test_walk_in_uses_fallback_only(self):
        from hrv_report.visits.assembler import FallbackData, assemble_report_input
        fallback = FallbackData.from_dict({
            "visitDate": "2026-05-02",
            "menu": "ボディケア",
            "beforeRMSSD": "18",
            "afterRMSSD": 27,
            "stress": 7,
            "caffeine": True,
            "afterStress": 4,
        })
        today = assemble_report_input(None, fallback).today

        assert today.date == "2026-05-02"
        assert today.menu == "ボディケア"
        assert today.before.rmssd == 18
        assert today.after.rmssd == 27
        assert today.computed["rmssd_diff"] == 9
        assert today.subjective_before.caffeine is True
        assert today.subjective_after.stress == 4
        assert today.computed["subjective_stress_diff"] == -3

    def test_visit_value_wins_over_fallback(self):
        from hrv_report.visits.assembler import FallbackData, assemble_report_input
        fallback = FallbackData(before_rmssd=99, before_sdnn=44, menu="fallback menu")
        today = assemble_report_input(_resolved(SCENARIO_A), fallback).today
        assert today.before.rmssd == 20
        assert today.before.sdnn == 44
        assert today.menu == "fallback menu"

    def test_date_defaults_to_today(self):
        from hrv_report.visits.assembler import assemble_report_input
        report_input = assemble_report_input(None, today=date(2026, 6, 1))
        assert report_input.today.date == "2026-06-01"
        assert report_input.today.before is None
        assert report_input.today.subjective_before is None

    def test_invalid_fallback_values_are_absent(self):
        from hrv_report.visits.assembler import FallbackData, assemble_report_input
        fallback = FallbackData(before_rmssd="n/a", stress=15, alcohol="yes")
        today = assemble_report_input(None, fallback, today=date(2026, 6, 1)).today
        assert today.before is None
        assert today.subjective_before is None


class TestPreviousAndSerialisation:
    def test_previous_snapshot(self):
        from hrv_report.visits.assembler import assemble_report_input
        previous_raw = {
            "id": "v-prev",
            "customer_id": "c-1",
            "visit_date": "2026-04-01",
            "created_at": 100,
            "hrv_measurements": [{"phase": "after", "rmssd": 30}],
            "subjective_scores": [{"phase": "after", "sleep_quality": 6}],
        }
        report_input = assemble_report_input(_resolved(SCENARIO_A, previous_raw))
        previous = report_input.to_dict()["previous"]
        assert previous == {
            "date": "2026-04-01",
            "after": {"rmssd": 30},
            "subjective_after": {"sleep_quality": 6},
        }
        assert report_input.usage_summary()["previous_visit_date"] == "2026-04-01"

    def test_pii_scrubbed_from_free_text(self):
        from hrv_report.visits.assembler import assemble_report_input
        from hrv_report.visits.pii_guard import REDACTED
        raw = dict(SCENARIO_A, staff="田中 (tanaka@example.com)")
        report_input = assemble_report_input(_resolved(raw))
        assert "example.com" not in report_input.to_json()
        assert REDACTED in report_input.today.staff

    def test_json_keeps_japanese(self):
        from hrv_report.visits.assembler import assemble_report_input
        raw = dict(SCENARIO_A, menu="ヘッドスパ")
        text = assemble_report_input(_resolved(raw)).to_json()
        assert "ヘッドスパ" in text
        assert json.loads(text)["today"]["before"] == {"rmssd": 20}

    def test_usage_summary(self):
        from hrv_report.visits.assembler import assemble_report_input
        summary = assemble_report_input(_resolved(SCENARIO_A)).usage_summary()
        assert summary == {
            "has_subjective_before": True,
            "has_subjective_after": True,
            "previous_visit_date": None,
        }
