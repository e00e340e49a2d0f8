"""Parse and repair raw generator output into a servable question."""
from __future__ import annotations

import json
import re
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from agents.strategy import violates_topic_policy
from agents.toolkit import finalize_question
from agents.types import StrategyDescriptor
from config.settings import Settings, settings
from llm_gateway import MalformedGenerationOutput

_FIELD_PATTERN = re.compile(r'"question"\s*:\s*"((?:[^"\\\n]|\\.){1,300})"')
_FILLER = re.compile(r"ありがとう|そうですね|なるほど|お疲れさまでした|お疲れ様でした|よくわかりました|よく分かりました")
_SURFACE_DIFFICULTY = re.compile(r"困ったことは|大変だったことは|難しかったことは")


class QuestionEnvelope(BaseModel):
    question: str = Field(min_length=1)


def strip_wrapping(content: str) -> str:
    """Remove markdown fences and surrounding whitespace."""

    text = (content or "").strip()
    if text.startswith("```"):
        lines = text.splitlines()
        if lines:
            lines = lines[1:]
            while lines and lines[0].strip() == "":
                lines = lines[1:]
            while lines and lines[-1].strip() == "":
                lines = lines[:-1]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()
    return text


def parse_question(raw: str) -> str:
    """Strict envelope parse, then a bounded extraction of the field."""

    cleaned = strip_wrapping(raw)
    try:
        value = QuestionEnvelope.model_validate_json(cleaned).question
    except ValidationError:
        match = _FIELD_PATTERN.search(cleaned)
        if match is None:
            raise MalformedGenerationOutput("no question field in generator output") from None
        try:
            value = json.loads(f'"{match.group(1)}"')
        except json.JSONDecodeError:
            value = match.group(1)
    value = value.strip()
    if not value:
        raise MalformedGenerationOutput("empty question field")
    return value


def validate_question(
    raw: str,
    strategy: StrategyDescriptor,
    *,
    depth: int = 1,
    cfg: Optional[Settings] = None,
) -> str:
    """Return the repaired question or raise ``MalformedGenerationOutput``."""

    cfg = cfg or settings
    question = finalize_question(
        parse_question(raw),
        max_sentences=cfg.MAX_QUESTION_SENTENCES,
        max_chars=cfg.OPTIMIZE_MAX_CHARS,
    )
    if len(question) < cfg.MIN_QUESTION_CHARS:
        raise MalformedGenerationOutput("question too short")
    if _FILLER.search(question):
        raise MalformedGenerationOutput("question contains filler or thanks")
    if violates_topic_policy(question, strategy, cfg):
        raise MalformedGenerationOutput("motivational topic while suppressed")
    if depth >= 7 and _SURFACE_DIFFICULTY.search(question):
        raise MalformedGenerationOutput("surface difficulty question at reflection depth")
    return question


__all__ = ["QuestionEnvelope", "strip_wrapping", "parse_question", "validate_question"]
