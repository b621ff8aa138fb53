"""Tests for hrv_report.numeric."""

from __future__ import annotations

import math

import pytest


class TestToNumber:
    def test_passes_finite_numbers(self):
        from hrv_report.numeric import to_number
        assert to_number(20) == 20
        assert to_number(35.5) == 35.5
        assert to_number(0) == 0

    def test_parses_numeric_strings(self):
        from hrv_report.numeric import to_number
        assert to_number("20") == 20
        assert isinstance(to_number("20"), int)
        assert to_number(" 35.5 ") == 35.5

    @pytest.mark.parametrize("value", [
        None, True, False, "", "abc", math.nan, math.inf, -math.inf, "nan", "inf", [], {},
    ])
    def test_rejects_non_numbers(self, value):
        from hrv_report.numeric import to_number
        assert to_number(value) is None


class TestToScoreAndBool:
    def test_score_in_range(self):
        from hrv_report.numeric import to_score
        assert to_score(0) == 0
        assert to_score("10") == 10

    def test_score_out_of_range_is_absent(self):
        from hrv_report.numeric import to_score
        assert to_score(11) is None
        assert to_score(-1) is None

    def test_strict_bool(self):
        from hrv_report.numeric import to_bool
        assert to_bool(True) is True
        assert to_bool(False) is False
        assert to_bool(1) is None
        assert to_bool("true") is None
        assert to_bool(None) is None


class TestDeltas:
    def test_delta(self):
        from hrv_report.numeric import delta
        assert delta(20, 35) == 15
        assert delta(8, 3) == -5

    @pytest.mark.parametrize("before,after", [(None, 35), (20, None), (None, None), ("x", 3)])
    def test_missing_operand_gives_no_delta(self, before, after):
        from hrv_report.numeric import delta, percent_delta
        assert delta(before, after) is None
        assert percent_delta(before, after) is None

    def test_percent_delta(self):
        from hrv_report.numeric import percent_delta
        assert percent_delta(20, 35) == 75
        assert percent_delta(70, 63) == -10

    def test_percent_delta_zero_before(self):
        from hrv_report.numeric import percent_delta
        assert percent_delta(0, 10) is None

    def test_percent_delta_rounds_half_up(self):
        from hrv_report.numeric import percent_delta
        assert percent_delta(8, 9) == 13      # 12.5
        assert percent_delta(8, 7) == -12     # -12.5


class TestFormatDelta:
    def test_full_string(self):
        from hrv_report.numeric import format_delta
        assert format_delta(20, 35) == "20 → 35（+15 / +75%）"

    def test_negative(self):
        from hrv_report.numeric import format_delta
        assert format_delta(72, 64) == "72 → 64（-8 / -11%）"

    def test_zero_before_omits_percent(self):
        from hrv_report.numeric import format_delta
        assert format_delta(0, 3) == "0 → 3（+3）"

    def test_missing_operand(self):
        from hrv_report.constants import INSUFFICIENT_DATA
        from hrv_report.numeric import format_delta
        assert format_delta(None, 3) == INSUFFICIENT_DATA
        assert format_delta(20, None) == INSUFFICIENT_DATA
