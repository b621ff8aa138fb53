"""Tests for hrv_report.report.prompt_contract."""

from __future__ import annotations

import json
from datetime import date


def _report_input(**fallback):
    from hrv_report.visits.assembler import FallbackData, assemble_report_input
    return assemble_report_input(None, FallbackData.from_dict(fallback), today=date(2026, 5, 1))


class TestSystemInstruction:
    def test_base_contract_names_every_heading_and_tag(self):
        from hrv_report.report.prompt_contract import (
            NEXT_VISIT_RANGE_TEXT,
            REQUIRED_HEADINGS,
            ContractVariant,
            render_system_instruction,
        )
        text = render_system_instruction(ContractVariant.BASE)
        for heading in REQUIRED_HEADINGS:
            assert heading in text
        assert "<report>" in text and "<next_action>" in text
        assert NEXT_VISIT_RANGE_TEXT in text
        assert "追加ルール" not in text

    def test_strict_adds_restatement(self):
        from hrv_report.report.prompt_contract import ContractVariant, render_system_instruction
        base = render_system_instruction(ContractVariant.BASE)
        strict = render_system_instruction(ContractVariant.STRICT)
        assert strict.startswith(base)
        assert "追加ルール" in strict
        assert "320" in strict

    def test_strict_lists_violations(self):
        from hrv_report.report.prompt_contract import ContractVariant, render_system_instruction
        text = render_system_instruction(
            ContractVariant.STRICT, ["next_action has no number", "report is empty"],
        )
        assert "- next_action has no number\n- report is empty" in text

    def test_base_ignores_violations(self):
        from hrv_report.report.prompt_contract import ContractVariant, render_system_instruction
        text = render_system_instruction(ContractVariant.BASE, ["report is empty"])
        assert "report is empty" not in text


class TestUserContent:
    def test_data_block_is_the_report_input(self):
        from hrv_report.report.prompt_contract import render_user_content

        report_input = _report_input(beforeRMSSD=20, afterRMSSD=35, menu="ヘッドスパ")
        user = render_user_content(report_input)
        data = json.loads(user.split("DATA:\n", 1)[1].split("\n\n補助", 1)[0])
        assert data == report_input.to_dict()
        assert "RMSSD（副交感神経指標）: 20 → 35（+15 / +75%）" in user

    def test_no_subjective_hints_without_after_scores(self):
        from hrv_report.report.prompt_contract import render_user_content
        user = render_user_content(_report_input(stress=8))
        assert "主観(ストレス)" not in user

    def test_subjective_hints_with_after_scores(self):
        from hrv_report.report.prompt_contract import render_user_content
        user = render_user_content(_report_input(stress=8, afterStress=3))
        assert "主観(ストレス): 8 → 3" in user

    def test_render_prompt(self):
        from hrv_report.report.prompt_contract import ContractVariant, render_prompt
        prompt = render_prompt(_report_input(), ContractVariant.STRICT, ["x"])
        assert prompt.variant is ContractVariant.STRICT
        assert "- x" in prompt.system_instruction
        assert "DATA:" in prompt.user_content
