"""Shared context and helpers for the deterministic question generators."""
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from agents.persona_manager import Persona, Purpose, apply_persona
from agents.toolkit import finalize_question
from agents.types import Pattern, Stage


class QGContext(BaseModel):
    """Context passed into stage-specific question generators."""

    stage: Stage
    depth: int = 1
    tier: int = 1
    pattern: Pattern = "generic"
    keywords: List[str] = Field(default_factory=list)
    last_question: str = ""
    last_answer: str = ""
    allow_motivation: bool = False
    variant: int = 0
    persona: Persona = "Gentle Examiner"
    school_name: str = "明和中学校"


SAFETY_NET = "もう少し詳しく教えてもらえますか？"


def make_question(
    text: str,
    ctx: Optional[QGContext] = None,
    *,
    purpose: Purpose = "ask_question",
    ack: str = "",
) -> str:
    """Style a canned question for the context persona and normalize it."""

    persona: Persona = ctx.persona if ctx is not None else "Gentle Examiner"
    return finalize_question(apply_persona(text, persona=persona, purpose=purpose, ack=ack))


def rotate(candidates: List[str], offset: int) -> List[str]:
    """Start the list at ``offset`` so consecutive turns vary."""

    if not candidates:
        return []
    index = offset % len(candidates)
    return candidates[index:] + candidates[:index]


__all__ = ["QGContext", "SAFETY_NET", "make_question", "rotate"]
