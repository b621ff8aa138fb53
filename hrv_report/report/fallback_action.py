"""Deterministic, rule-based fallbacks.

``build_fallback_next_action`` is total: for any ``ReportInput`` (even a
completely empty one) it returns a canned self-care recommendation that
satisfies the next-action contract by construction.  The choice among
variants of one category goes through an injected ``random.Random`` so
tests can seed it.

``build_fallback_report`` produces a template report from the numbers
alone, used only when no backend text is available at all.
"""

from __future__ import annotations

import logging
import random
from enum import Enum

from hrv_report.constants import (
    HIGH_HEAVINESS_THRESHOLD,
    HIGH_STRESS_THRESHOLD,
    POOR_SLEEP_THRESHOLD,
)
from hrv_report.numeric import delta, format_delta, format_number
from hrv_report.report.prompt_contract import NEXT_VISIT_RANGE_TEXT, REQUIRED_HEADINGS
from hrv_report.visits.assembler import ReportInput
from hrv_report.visits.types import Measurement, SelfReport

logger = logging.getLogger(__name__)


class FallbackCategory(str, Enum):
    HIGH_STRESS = "high_stress"
    POOR_SLEEP = "poor_sleep"
    BODY_HEAVINESS = "body_heaviness"
    CAFFEINE = "caffeine"
    ALCOHOL = "alcohol"
    GENERAL = "general"


# Every entry is 40-70 characters, single line, contains a digit and one of
# 分/回/秒, and none of the banned next-action terms.
SELFCARE_EXAMPLES: dict[FallbackCategory, tuple[str, ...]] = {
    FallbackCategory.HIGH_STRESS: (
        "寝る前に4秒吸って8秒かけて吐く深呼吸を5回、肩の力を抜きながらゆっくり繰り返しましょう",
        "1日3回、目を閉じて鼻から4秒吸い、口から6秒吐く呼吸を1分間続けて心を落ち着けましょう",
        "お風呂上がりに首と肩をゆっくり10回まわし、最後に深呼吸を3回して体の緊張をほどきましょう",
    ),
    FallbackCategory.POOR_SLEEP: (
        "就寝30分前にスマホを置き、照明を落として4秒吸って8秒吐く呼吸を5回行ってから布団に入りましょう",
        "寝る前に38〜40度のぬるめのお湯に15分つかり、上がったら首をやさしく伸ばして休みましょう",
        "布団に入ったら足首を10回ずつ回し、続けて1分間ゆっくり腹式呼吸をしてから眠りにつきましょう",
    ),
    FallbackCategory.BODY_HEAVINESS: (
        "朝と夜に1回ずつ、太ももとふくらはぎを各30秒伸ばすストレッチで巡りを整えましょう",
        "1日2回、肩甲骨を寄せて5秒キープする動きを10回繰り返し、背中のこわばりをほぐしましょう",
        "夕方に10分ほど軽く散歩し、帰宅後にふくらはぎを下から上へ1分間さすって巡りを促しましょう",
    ),
    FallbackCategory.CAFFEINE: (
        "カフェインは15時までにして、午後は白湯を1杯ゆっくり飲みながら深呼吸を5回してみましょう",
        "午後のコーヒーをハーブティーに替え、飲みながら1分間目を閉じてゆっくり呼吸してみましょう",
    ),
    FallbackCategory.ALCOHOL: (
        "お酒を飲んだ日はコップ1杯の水を飲み、寝る前に5分間ゆっくり首と肩を伸ばしてから休みましょう",
        "飲酒は寝る3時間前までにし、就寝前に1分間の腹式呼吸を3回行って体をリラックスさせましょう",
    ),
    FallbackCategory.GENERAL: (
        "寝る前に5分間、両手で頭皮を指の腹で円を描くようにやさしくもみほぐしてリラックスしましょう",
        "1日1回、椅子に座ったまま首を左右に10秒ずつ倒し、ゆっくり深呼吸を3回してから休みましょう",
        "毎晩寝る前に3分間、目を閉じて呼吸の数を静かに数える瞑想をして、頭と体を休ませましょう",
    ),
}


def _at_least(value, threshold) -> bool:
    return value is not None and value >= threshold


def _at_most(value, threshold) -> bool:
    return value is not None and value <= threshold


def select_fallback_category(report_input: ReportInput | None) -> FallbackCategory:
    """First matching category, in fixed priority order.

    after stress, before stress, sleep quality (either phase), body
    heaviness (either phase), caffeine, alcohol, then general.
    """
    if report_input is None:
        return FallbackCategory.GENERAL
    sb = report_input.today.subjective_before or SelfReport()
    sa = report_input.today.subjective_after or SelfReport()

    if _at_least(sa.stress, HIGH_STRESS_THRESHOLD):
        return FallbackCategory.HIGH_STRESS
    if _at_least(sb.stress, HIGH_STRESS_THRESHOLD):
        return FallbackCategory.HIGH_STRESS
    if _at_most(sb.sleep_quality, POOR_SLEEP_THRESHOLD) or _at_most(sa.sleep_quality, POOR_SLEEP_THRESHOLD):
        return FallbackCategory.POOR_SLEEP
    if (_at_least(sa.body_heaviness, HIGH_HEAVINESS_THRESHOLD)
            or _at_least(sb.body_heaviness, HIGH_HEAVINESS_THRESHOLD)):
        return FallbackCategory.BODY_HEAVINESS
    if sb.caffeine is True:
        return FallbackCategory.CAFFEINE
    if sb.alcohol is True:
        return FallbackCategory.ALCOHOL
    return FallbackCategory.GENERAL


def build_fallback_next_action(
    report_input: ReportInput | None,
    rng: random.Random | None = None,
) -> str:
    """Pick a canned next action for the first matching category."""
    category = select_fallback_category(report_input)
    choice = (rng or random.Random()).choice(SELFCARE_EXAMPLES[category])
    logger.info("Using rule-based next action (category=%s)", category.value)
    return choice


# ---------------------------------------------------------------------------
# Template report
# ---------------------------------------------------------------------------

def _rmssd_comment(before: Measurement, after: Measurement) -> str:
    diff = delta(before.rmssd, after.rmssd)
    if diff is None:
        return "RMSSDは施術前後の両方がそろっていないため、今回は変化の比較を控えます。"
    if diff > 0:
        return "RMSSDが上昇しており、副交感神経が働きリラックスモードへ移行した傾向がうかがえます。"
    if diff < 0:
        return (
            "施術直後のRMSSDの低下は、からだが調整中であるサインの場合もあり、"
            "必ずしも悪い兆候ではないと考えられます。"
        )
    return "RMSSDは施術前後で大きな変化はなく、落ち着いた状態を保てていると考えられます。"


def _subjective_lines(sb: SelfReport | None, sa: SelfReport | None) -> list[str]:
    lines: list[str] = []
    if sa is not None:
        b = sb or SelfReport()
        lines += [
            f"・睡眠の質（高いほど良い）：{format_delta(b.sleep_quality, sa.sleep_quality)}",
            f"・ストレス（低いほど良い）：{format_delta(b.stress, sa.stress)}",
            f"・重だるさ（低いほど良い）：{format_delta(b.body_heaviness, sa.body_heaviness)}",
        ]
    elif sb is not None and sb.has_scores():
        scores = [
            (label, value)
            for label, value in (
                ("睡眠の質", sb.sleep_quality),
                ("ストレス", sb.stress),
                ("重だるさ", sb.body_heaviness),
            )
            if value is not None
        ]
        lines.append(
            "・施術前の自己評価（0〜10）："
            + " / ".join(f"{label} {format_number(value)}" for label, value in scores)
        )

    if sb is not None:
        if sb.bedtime:
            lines.append(f"・就寝時刻：{sb.bedtime}")
        habits = [
            label
            for label, flag in (("飲酒", sb.alcohol), ("カフェイン", sb.caffeine), ("運動", sb.exercise))
            if flag is True
        ]
        if habits:
            lines.append(f"・最近の習慣：{'・'.join(habits)}あり")

    if not lines:
        lines.append("・今回は主観スコアや生活習慣の記録がありませんでした。")
    return lines


def build_fallback_report(report_input: ReportInput, next_action: str) -> str:
    """Template report built from ``ReportInput`` alone.

    Contains the five required headings in order, the available deltas
    (or the insufficient-data marker) and the fixed next-visit range.
    """
    today = report_input.today
    before = today.before or Measurement()
    after = today.after or Measurement()
    summary, numbers, subjective, selfcare, next_visit = REQUIRED_HEADINGS

    menu = f"「{today.menu}」" if today.menu else "本日の施術"
    sections = [
        summary,
        f"本日は{menu}の前後で心拍変動（HRV）を測定しました。"
        "測定結果をもとに、からだのリラックス状態の変化をまとめています。"
        "数値はその日の体調や環境でも変わるため、傾向としてご覧ください。",
        "",
        numbers,
        f"・RMSSD（副交感神経の指標）：{format_delta(before.rmssd, after.rmssd)}",
        f"・SDNN（自律神経全体の活動量）：{format_delta(before.sdnn, after.sdnn)}",
        f"・心拍数：{format_delta(before.heart_rate, after.heart_rate)}",
        _rmssd_comment(before, after),
        "",
        subjective,
        *_subjective_lines(today.subjective_before, today.subjective_after),
        "",
        selfcare,
        f"・{next_action}",
        "無理のない範囲で、続けやすいタイミングに取り入れてみてください。",
        "",
        next_visit,
        f"{NEXT_VISIT_RANGE_TEXT}を目安にお越しいただくと、変化を続けて確認しやすくなります。",
    ]
    logger.info("Using template report")
    return "\n".join(sections)
