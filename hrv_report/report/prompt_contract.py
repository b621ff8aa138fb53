"""Prompt contract for the post-treatment report.

The contract is the fixed rule set (structure, length, content safety,
formatting) the generation backend is asked to follow and that
``report.validation`` enforces afterwards.  It comes in two variants,
selected by the report controller:

- ``BASE``: the rule set as written;
- ``STRICT``: the same rule set followed by a restatement of the rules
  the previous attempt broke.

The backend is asked to answer with two tagged spans,
``<report>...</report>`` and ``<next_action>...</next_action>``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from hrv_report.numeric import format_delta
from hrv_report.visits.assembler import ReportInput
from hrv_report.visits.types import Measurement, SelfReport


class ContractVariant(str, Enum):
    BASE = "base"
    STRICT = "strict"


# Ordered: the controller uses the first for the initial attempt and the
# second for the single retry.
CONTRACT_VARIANTS: tuple[ContractVariant, ContractVariant] = (
    ContractVariant.BASE,
    ContractVariant.STRICT,
)

REPORT_TAG = "report"
NEXT_ACTION_TAG = "next_action"

REQUIRED_HEADINGS: tuple[str, ...] = (
    "【本日のまとめ】",
    "【数値の変化】",
    "【主観・生活背景】",
    "【セルフケア（次回まで）】",
    "【次回来店の目安】",
)

NEXT_VISIT_RANGE_TEXT = "3〜6週間後（約1ヶ月〜1ヶ月半）"

# Terms that imply an in-person visit or booking; the next action must be
# something the client does alone at home.
NEXT_ACTION_BANNED_TERMS: tuple[str, ...] = (
    "来店", "予約", "施術", "サロン", "クリニック", "病院", "受診", "通院", "次回予約",
)

# Duration / repetition units, one of which the next action must contain.
NEXT_ACTION_UNITS: tuple[str, ...] = ("分", "回", "秒")


_KNOWLEDGE = """\
【参考ナレッジ：自律神経とHRV】
- RMSSD（心拍変動）は副交感神経（リラックスモード）の活動を反映する指標です
- 副交感神経が優位になると、心身がリラックスし、睡眠の質や疲労回復によい傾向があります
- RMSSDの上昇は、リラックスモードへ移行したサインと考えられます
- 施術直後のRMSSD低下は、身体が調整中である場合があり、必ずしも悪い兆候ではありません
- SDNNは自律神経全体（交感神経＋副交感神経）の活動量を示します
- 心拍数の低下もリラックス状態を示唆します
"""

_RULES = f"""\
あなたはリラクゼーションサロンのスタッフとして、お客様にお渡しする「施術後レポート」を作成します（日本語・丁寧語）。
医療的な診断や治療効果の断定は禁止です。「傾向」「〜と考えられます」「〜かもしれません」を用いてください。

【レポート作成の必須ルール】
- reportは必ず複数行（改行あり）で、目安400〜800文字
- 自律神経・副交感神経の観点からRMSSDの変化をわかりやすく解説する
- 数値を2つ以上引用する（RMSSD/SDNN/心拍/主観スコアから2つ以上）
- DATAにsubjective_afterがある場合のみ、施術前→施術後の主観（sleep_quality/stress/body_heaviness）の差分に触れる
  ※sleep_qualityは高いほど良い / stress・body_heavinessは低いほど良い
  ※subjective_afterが無い場合、施術前後の主観比較を作らない
- bedtime/alcohol/caffeine/exercise は入力があるものだけ触れる（無いなら書かない）
- DATAに無い数値を作らない
- セルフケアは最大2つ。必ず「時間 or 回数」を入れる（抽象的な表現は禁止）

【次回来店の目安（重要）】
- 「【次回来店の目安】」は必ず「{NEXT_VISIT_RANGE_TEXT}」の範囲で提案する
- 1週間後・2週間後など3週間未満の提案は禁止

【next_action（最重要）】
- next_action は自宅で完結するセルフケアを1つだけ（深呼吸/瞑想/ストレッチ/頭皮マッサージ/首肩ほぐし等）
- {"/".join(NEXT_ACTION_BANNED_TERMS)} の語は使わない
- 40〜70文字の1行で、時間または回数（{"/".join(NEXT_ACTION_UNITS)}）を数字つきで必ず入れる

【reportフォーマット（この見出しをこの順で使う）】
{chr(10).join(REQUIRED_HEADINGS)}

【出力形式】
<{REPORT_TAG}>
（レポート本文）
</{REPORT_TAG}>
<{NEXT_ACTION_TAG}>（1行のセルフケア）</{NEXT_ACTION_TAG}>
タグの外には何も書かないでください。DATAのJSONをそのまま書き写さないでください。
"""

_STRICT_ADDENDUM = f"""\

【追加ルール（前回の出力はルール違反でした。必ず守ってください）】
- reportは見出し5つ（{"".join(REQUIRED_HEADINGS)}）をすべて含む
- 【次回来店の目安】は必ず「{NEXT_VISIT_RANGE_TEXT}」にする
- reportは320文字以上
- next_action は必ず40〜70文字の1行、禁止語なし、数字と単位（{"/".join(NEXT_ACTION_UNITS)}）あり
"""


@dataclass(frozen=True)
class RenderedPrompt:
    variant: ContractVariant
    system_instruction: str
    user_content: str


def render_system_instruction(
    variant: ContractVariant = ContractVariant.BASE,
    violations: Sequence[str] = (),
) -> str:
    """System instruction for *variant*.

    ``STRICT`` appends the fixed restatement plus the concrete
    *violations* reported by the validator for the previous attempt.
    """
    text = f"{_KNOWLEDGE}\n---\n\n{_RULES}"
    if variant is ContractVariant.STRICT:
        text += _STRICT_ADDENDUM
        if violations:
            text += "\n【前回の出力で守られていなかった項目】\n"
            text += "\n".join(f"- {v}" for v in violations) + "\n"
    return text


def _delta_lines(report_input: ReportInput) -> list[str]:
    today = report_input.today
    b = today.before or Measurement()
    a = today.after or Measurement()
    sb = today.subjective_before or SelfReport()
    sa = today.subjective_after or SelfReport()

    lines = [
        f"- RMSSD（副交感神経指標）: {format_delta(b.rmssd, a.rmssd)}",
        f"- SDNN（自律神経全体の活動量）: {format_delta(b.sdnn, a.sdnn)}",
        f"- 心拍数: {format_delta(b.heart_rate, a.heart_rate)}",
    ]
    if today.subjective_after is not None:
        lines += [
            f"- 主観(睡眠の質): {format_delta(sb.sleep_quality, sa.sleep_quality)}",
            f"- 主観(ストレス): {format_delta(sb.stress, sa.stress)}",
            f"- 主観(重だるさ): {format_delta(sb.body_heaviness, sa.body_heaviness)}",
        ]
    return lines


def render_user_content(report_input: ReportInput) -> str:
    """User turn: the serialised report input plus display hints."""
    return (
        "次のDATAだけを根拠に、上のルールに従って出力してください。\n\n"
        f"DATA:\n{report_input.to_json()}\n\n"
        "補助：数値の見せ方例\n"
        + "\n".join(_delta_lines(report_input))
        + "\n"
    )


def render_prompt(
    report_input: ReportInput,
    variant: ContractVariant = ContractVariant.BASE,
    violations: Sequence[str] = (),
) -> RenderedPrompt:
    """Render both halves of the prompt for one generation attempt."""
    return RenderedPrompt(
        variant=variant,
        system_instruction=render_system_instruction(variant, violations),
        user_content=render_user_content(report_input),
    )
