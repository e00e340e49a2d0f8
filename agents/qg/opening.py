"""Opening script: identity, travel mode, travel duration, activity intro."""
from __future__ import annotations

import re
from typing import List, Tuple

from .common import QGContext, make_question

OPENING_SCRIPT: Tuple[str, ...] = (
    "それでは面接を始めます。受検番号と名前を教えてもらえますか？",
    "こちらまでは、どのような交通手段で来ましたか？",
    "どのくらい時間がかかりましたか？",
)

ACTIVITY_INTRO = "それでは本題に入ります。あなたが取り組んでいる探究活動について、1分ほどで説明してもらえますか？"

OPENING_CHAIN: Tuple[str, ...] = OPENING_SCRIPT + (ACTIVITY_INTRO,)

_ACKNOWLEDGEMENTS: Tuple[Tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"電車"), "電車で来たのですね。"),
    (re.compile(r"バス"), "バスで来たのですね。"),
    (re.compile(r"自転車"), "自転車で来たのですね。"),
    (re.compile(r"車|送って"), "車で送ってもらったのですね。"),
    (re.compile(r"歩"), "歩いて来たのですね。"),
    (re.compile(r"\d+\s*分|時間"), "分かりました。"),
)


def acknowledgement(last_answer: str) -> str:
    for pattern, line in _ACKNOWLEDGEMENTS:
        if pattern.search(last_answer or ""):
            return line
    return "ありがとうございます。"


def step_question(step: int) -> str:
    """Return the canned line for opening ``step`` (1-based, 4 is the intro)."""

    index = min(max(step, 1), len(OPENING_CHAIN)) - 1
    return OPENING_CHAIN[index]


def run(ctx: QGContext) -> List[str]:
    core = step_question(ctx.depth)
    if ctx.depth <= 1 or not ctx.last_answer:
        return [make_question(core, ctx)]
    acknowledged = make_question(core, ctx, purpose="acknowledge", ack=acknowledgement(ctx.last_answer))
    return [acknowledged, make_question(core, ctx)]


__all__ = ["OPENING_SCRIPT", "ACTIVITY_INTRO", "OPENING_CHAIN", "acknowledgement", "step_question", "run"]
