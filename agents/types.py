"""Shared type definitions for agents."""
from typing import Dict, FrozenSet, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

Stage = Literal["opening", "exploration", "deepening", "closing"]
STAGE_ORDER: Tuple[Stage, ...] = ("opening", "exploration", "deepening", "closing")

Role = Literal["interviewer", "examinee"]

Pattern = Literal[
    "competitive_sport",
    "team_performance",
    "technical_creation",
    "scientific_inquiry",
    "community_service",
    "leadership",
    "generic",
]

KeywordSet = FrozenSet[str]

Source = Literal["scripted", "redirect", "cache", "similar", "generated", "fallback", "emergency"]


def stage_index(stage: Stage) -> int:
    return STAGE_ORDER.index(stage)


class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    text: str


class ActivityProfile(BaseModel):
    """Narrative fields from the examinee's written application."""

    inquiry_learning: str = ""
    motivation: str = ""
    research: str = ""
    school_life: str = ""
    future: str = ""

    def activity_text(self) -> str:
        return self.inquiry_learning.strip() or self.research.strip()


class ConversationState(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: Stage
    depth: int
    examinee_turns_in_stage: int
    valid_answers: int = 0
    total_turns: int = 0
    pending_question: str = ""


class StrategyDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    tier: int
    focus_label: str
    question_shapes: Tuple[str, ...]
    example_templates: Tuple[str, ...]
    allow_motivation: bool = False


class QualityReport(BaseModel):
    specificity: int
    vocabulary: int
    depth_markers: int
    well_formed: int
    total: int


class TurnFlags(BaseModel):
    misaligned: bool = False
    joking: bool = False
    incomplete: bool = False
    served_from_cache: bool = False


class NextQuestion(BaseModel):
    question: str
    stage: Stage
    depth: int
    flags: TurnFlags = Field(default_factory=TurnFlags)
    pattern: Pattern = "generic"
    source: Source = "fallback"
    keywords: List[str] = Field(default_factory=list)
    reasons: List[str] = Field(default_factory=list)
    events: List[Dict[str, object]] = Field(default_factory=list)
    tier: Optional[int] = None


__all__ = [
    "Stage",
    "STAGE_ORDER",
    "Role",
    "Pattern",
    "KeywordSet",
    "Source",
    "stage_index",
    "ConversationTurn",
    "ActivityProfile",
    "ConversationState",
    "StrategyDescriptor",
    "QualityReport",
    "TurnFlags",
    "NextQuestion",
]
