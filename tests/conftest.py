"""Shared fixtures: contract-compliant sample output and fake collaborators."""

from __future__ import annotations

import pytest

GOOD_REPORT = (
    "【本日のまとめ】\n"
    "本日はヘッドスパの前後で心拍変動を測定しました。施術後はリラックスモードへ移行した傾向がうかがえます。"
    "日々の疲れが少しずつほどけていくような、穏やかな変化だったと考えられます。\n\n"
    "【数値の変化】\n"
    "RMSSDは20 → 35（+15 / +75%）と上昇し、副交感神経が働きやすい状態になったと考えられます。"
    "心拍数も72 → 64へと下がり、からだが落ち着いた様子がうかがえます。\n\n"
    "【主観・生活背景】\n"
    "ストレスは8 → 3へと下がり、気持ちの面でも軽さを感じていただけたようです。"
    "最近は就寝が遅めとのことなので、夜の過ごし方を少し整えるとよいかもしれません。\n\n"
    "【セルフケア（次回まで）】\n"
    "寝る前に4秒吸って8秒吐く深呼吸を5回行いましょう。お風呂上がりに首を10回ゆっくり回すのもおすすめです。\n\n"
    "【次回来店の目安】\n"
    "3〜6週間後（約1ヶ月〜1ヶ月半）を目安にお越しいただくと、よい状態を保ちやすいと考えられます。"
)

GOOD_ACTION = "1日3回、目を閉じて鼻から4秒吸い、口から6秒吐く呼吸を1分間続けて心を落ち着けましょう"


def tagged(report: str, next_action: str | None = None) -> str:
    """Backend response in the tag convention."""
    text = f"<report>\n{report}\n</report>"
    if next_action is not None:
        text += f"\n<next_action>{next_action}</next_action>"
    return text


class FakeGenerator:
    """Scripted ``TextGenerator``: returns (or raises) queued responses in order.

    The last response repeats once the queue is exhausted.
    """

    model_name = "fake-model"

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls: list[tuple[str, str]] = []

    def generate(self, system_instruction: str, user_content: str) -> str:
        self.calls.append((system_instruction, user_content))
        index = min(len(self.calls), len(self._responses)) - 1
        response = self._responses[index]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def good_report() -> str:
    return GOOD_REPORT


@pytest.fixture
def good_action() -> str:
    return GOOD_ACTION


@pytest.fixture
def good_output() -> str:
    return tagged(GOOD_REPORT, GOOD_ACTION)


@pytest.fixture
def fake_generator():
    """Factory fixture: ``fake_generator(resp1, resp2, ...)``."""
    return FakeGenerator


@pytest.fixture
def tag():
    return tagged


@pytest.fixture
def contract_config() -> dict:
    return {
        "report_min_length": {"base": 220, "strict": 320},
        "next_action_min_length": 40,
        "next_action_max_length": 70,
        "duplicate_phase_rows": "first",
        "fallback_seed": None,
        "model_label": "rule-based",
    }
