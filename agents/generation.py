"""Generation request assembly and the timed call into the generator."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Dict, List, Optional, Sequence

from langchain_core.prompts import ChatPromptTemplate
from langchain_core.runnables import RunnableLambda
from pydantic import BaseModel, Field

from agents.toolkit import bullet_list, clamp_text, transcript_messages
from agents.types import (
    ActivityProfile,
    ConversationState,
    ConversationTurn,
    KeywordSet,
    Pattern,
    StrategyDescriptor,
)
from config.registry import GENERATOR_KEY, get_model
from config.settings import Settings, settings
from llm_gateway import (
    GenerationError,
    GenerationUnavailable,
    Generator,
    MalformedGenerationOutput,
    message_dict,
)

logger = logging.getLogger(__name__)

_EXECUTOR = ThreadPoolExecutor(max_workers=8, thread_name_prefix="question-gen")

SYSTEM_PROMPT = """あなたは中学校入試の面接官です。小学6年生の受検者に、やさしく丁寧な日本語で質問します。
次の条件を必ず守ってください。
- 質問は1つだけ、{max_sentences}文以内で、最後は「？」で終える
- 相づちやお礼（ありがとう、なるほど等）は書かない
- 直前の回答の言葉を使い、話の流れをつなげる
- 扱ってはいけない話題: {forbidden_topics}
- 出力は次のJSONだけ: {{"question": "質問文"}}"""

HUMAN_PROMPT = """面接の段階: {stage}（深さ {depth}、焦点: {focus}）
活動のタイプ: {pattern}
質問の形:
{shapes}
参考になる質問例:
{examples}
直前の回答に出てきた言葉: {keywords}
活動の概要: {activity}
直近のやり取り:
{transcript}
直前の回答: {last_answer}
次の質問を1つ作ってください。"""

PROMPT = ChatPromptTemplate.from_messages([("system", SYSTEM_PROMPT), ("human", HUMAN_PROMPT)])
RENDER = PROMPT | RunnableLambda(lambda value: [message_dict(m) for m in value.to_messages()])


class GenerationRequest(BaseModel):
    stage: str
    depth: int
    tier: int
    focus: str
    pattern: Pattern
    keywords: List[str] = Field(default_factory=list)
    question_shapes: List[str] = Field(default_factory=list)
    example_templates: List[str] = Field(default_factory=list)
    last_answer_excerpt: str = ""
    activity_excerpt: str = ""
    transcript: List[Dict[str, str]] = Field(default_factory=list)
    must_end_with_question_mark: bool = True
    max_sentences: int = 2
    forbidden_topics: List[str] = Field(default_factory=list)


class PromptSpec(BaseModel):
    """What the generator receives: the structured request plus chat messages."""

    request: GenerationRequest
    messages: List[Dict[str, str]]


def build_request(
    *,
    state: ConversationState,
    strategy: StrategyDescriptor,
    pattern: Pattern,
    keywords: KeywordSet,
    last_answer: Optional[str],
    profile: Optional[ActivityProfile] = None,
    history: Sequence[ConversationTurn] = (),
    cfg: Optional[Settings] = None,
) -> GenerationRequest:
    cfg = cfg or settings
    forbidden: List[str] = []
    if not strategy.allow_motivation:
        forbidden.append(f"志望理由・{cfg.SCHOOL_NAME}に入学してからのこと")
    activity = profile.activity_text() if profile else ""
    return GenerationRequest(
        stage=state.stage,
        depth=state.depth,
        tier=strategy.tier,
        focus=strategy.focus_label,
        pattern=pattern,
        keywords=sorted(keywords),
        question_shapes=list(strategy.question_shapes),
        example_templates=list(strategy.example_templates),
        last_answer_excerpt=clamp_text(last_answer or "", cfg.ANSWER_EXCERPT_CHARS),
        activity_excerpt=clamp_text(activity, cfg.ANSWER_EXCERPT_CHARS * 2),
        transcript=transcript_messages(history),
        max_sentences=cfg.MAX_QUESTION_SENTENCES,
        forbidden_topics=forbidden,
    )


def render_prompt(request: GenerationRequest) -> PromptSpec:
    transcript = [
        f"{'面接官' if item['role'] == 'assistant' else '受検者'}: {item['content']}" for item in request.transcript
    ]
    messages = RENDER.invoke(
        {
            "max_sentences": request.max_sentences,
            "forbidden_topics": "、".join(request.forbidden_topics) or "なし",
            "stage": request.stage,
            "depth": request.depth,
            "focus": request.focus,
            "pattern": request.pattern,
            "shapes": bullet_list(request.question_shapes),
            "examples": bullet_list(request.example_templates),
            "keywords": "、".join(request.keywords) or "なし",
            "activity": request.activity_excerpt or "なし",
            "transcript": bullet_list(transcript),
            "last_answer": request.last_answer_excerpt or "なし",
        }
    )
    return PromptSpec(request=request, messages=messages)


def resolve_generator(explicit: Optional[Generator] = None) -> Optional[Generator]:
    """Explicit generator first, then the registry binding."""

    if explicit is not None:
        return explicit
    try:
        return get_model(GENERATOR_KEY)
    except KeyError:
        return None


class GenerationGateway:
    """Calls the generator under an enforced timeout.

    Every failure surfaces as a ``GenerationError`` subclass; nothing is
    retried here.
    """

    def __init__(self, generator: Optional[Generator], *, timeout_s: Optional[float] = None):
        self._generator = generator
        self._timeout_s = timeout_s if timeout_s is not None else settings.GENERATION_TIMEOUT_S

    @property
    def available(self) -> bool:
        return self._generator is not None

    def generate(self, spec: PromptSpec) -> str:
        if self._generator is None:
            raise GenerationUnavailable("no question generator bound")
        future = _EXECUTOR.submit(self._generator, spec)
        try:
            raw = future.result(timeout=self._timeout_s)
        except FuturesTimeout as exc:
            future.cancel()
            logger.warning("generation timed out after %.2fs", self._timeout_s)
            raise GenerationUnavailable(f"generation timed out after {self._timeout_s}s") from exc
        except GenerationError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("generator raised %s", exc.__class__.__name__)
            raise GenerationUnavailable(str(exc) or exc.__class__.__name__) from exc
        if not isinstance(raw, str):
            raise MalformedGenerationOutput(f"generator returned {type(raw).__name__}")
        return raw


__all__ = [
    "GenerationRequest",
    "PromptSpec",
    "GenerationGateway",
    "build_request",
    "render_prompt",
    "resolve_generator",
]
