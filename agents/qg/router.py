"""Fallback chain: ordered deterministic questions per stage and depth."""
from __future__ import annotations

from typing import Callable, Dict, List

from agents.strategy import mentions_motivation

from . import closing, opening, probing
from .common import SAFETY_NET, QGContext

OPENING_STEPS = len(opening.OPENING_SCRIPT)

ROUTER: Dict[str, Callable[[QGContext], List[str]]] = {
    "opening": opening.run,
    "exploration": probing.run,
    "deepening": probing.run,
    "closing": closing.run,
}


def is_scripted(stage: str, depth: int) -> bool:
    """Opening, the activity intro and closing never go to the generator."""

    return stage in ("opening", "closing") or (stage == "exploration" and depth <= 1)


def fallback_chain(ctx: QGContext) -> List[str]:
    if ctx.stage == "exploration" and ctx.depth <= 1:
        candidates = opening.run(ctx.model_copy(update={"depth": OPENING_STEPS + 1}))
    else:
        candidates = ROUTER.get(ctx.stage, probing.run)(ctx)
    return candidates + [SAFETY_NET]


def _usable(text: str, ctx: QGContext) -> bool:
    if not text or not text.endswith("？"):
        return False
    if not is_scripted(ctx.stage, ctx.depth) and text == ctx.last_question.strip():
        return False
    return ctx.allow_motivation or not mentions_motivation(text, school_name=ctx.school_name)


def fallback_question(ctx: QGContext) -> str:
    """First usable candidate; the safety net always qualifies."""

    for text in fallback_chain(ctx):
        if _usable(text, ctx):
            return text
    return SAFETY_NET


__all__ = ["ROUTER", "is_scripted", "fallback_chain", "fallback_question"]
