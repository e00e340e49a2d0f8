"""Deterministic redirect, clarification and continuation lines."""
from __future__ import annotations

from typing import Dict, Optional, Sequence

from agents.persona_manager import Persona, Purpose, apply_persona

from .common import SAFETY_NET

# Seriousness reasons that read as silence or nerves rather than a joke.
GENTLE_REASONS = frozenset({"degenerate", "nonsense_symbols"})

TOPIC_LABELS: Dict[str, str] = {
    "asks_duration": "かかった時間",
    "asks_method": "どのような方法で行ったか",
    "asks_reason": "その理由",
    "asks_difficulty": "困ったことや大変だったこと",
    "asks_example": "具体的な例",
    "asks_person": "誰と取り組んだか",
    "asks_quantity": "人数や回数",
    "asks_feeling": "そのときの気持ち",
    "asks_effort": "工夫したこと",
    "asks_measurement": "どのように測ったり調べたりしたか",
    "too_short": "もう少し詳しい内容",
    "unprompted_motivation": "今の質問の内容",
    "leisure_for_method": "活動で行った方法",
}


def seriousness_redirect(
    last_question: Optional[str],
    reason: Optional[str],
    *,
    variant: int = 0,
    persona: Persona = "Gentle Examiner",
) -> str:
    core = (last_question or "").strip() or SAFETY_NET
    purpose: Purpose = "remind" if reason in GENTLE_REASONS else "redirect"
    return apply_persona(core, persona=persona, purpose=purpose, variant=variant)


def clarification(
    last_question: Optional[str],
    reasons: Sequence[str],
    *,
    variant: int = 0,
    persona: Persona = "Gentle Examiner",
) -> str:
    core = (last_question or "").strip() or SAFETY_NET
    topic = next((TOPIC_LABELS[r] for r in reasons if r in TOPIC_LABELS), "今の質問の内容")
    return apply_persona(core, persona=persona, purpose="clarify", variant=variant, topic=topic)


def continuation(*, variant: int = 0, persona: Persona = "Gentle Examiner") -> str:
    return apply_persona("", persona=persona, purpose="continue", variant=variant)


__all__ = ["GENTLE_REASONS", "TOPIC_LABELS", "seriousness_redirect", "clarification", "continuation"]
