from __future__ import annotations  # Per-turn pipeline state and dependencies

import operator
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Optional, TypedDict

from agents.generation import GenerationGateway
from agents.types import (
    ActivityProfile,
    ConversationState,
    ConversationTurn,
    Pattern,
    StrategyDescriptor,
)
from config.settings import Settings, settings
from services.question_cache import CacheKey, QuestionCache


@dataclass
class TurnDeps:  # Collaborators injected for one next_question call
    gateway: GenerationGateway
    cache: Optional[QuestionCache] = None
    pattern: Optional[Pattern] = None
    cfg: Settings = field(default_factory=lambda: settings)
    session_id: str = "anonymous"


class TurnState(TypedDict, total=False):  # Plain state value passed between pipeline nodes
    deps: TurnDeps
    turns: List[ConversationTurn]
    profile: ActivityProfile
    pattern: Pattern
    conversation: ConversationState
    last_question: str
    last_answer: Optional[str]
    verdict: Optional[str]
    reasons: Annotated[List[str], operator.add]
    keywords: List[str]
    strategy: StrategyDescriptor
    cache_key: CacheKey
    question: str
    source: str
    events: Annotated[List[Dict[str, Any]], operator.add]


def flags_for(state: TurnState) -> Dict[str, bool]:  # Map verdict and source to caller-facing flags
    verdict = state.get("verdict")
    return {
        "misaligned": verdict == "misaligned",
        "joking": verdict == "joking",
        "incomplete": verdict == "incomplete",
        "served_from_cache": state.get("source") in ("cache", "similar"),
    }


__all__ = ["TurnDeps", "TurnState", "flags_for"]
