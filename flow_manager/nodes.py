"""Pipeline nodes for one interview turn.

Each node takes the plain turn state and returns the keys it produced, so any
node can be exercised on a hand-built state without the graph.
"""
from __future__ import annotations

import logging
from typing import Any, Dict

from agents.answer_quality import analyze_alignment, analyze_seriousness, is_incomplete_answer
from agents.continuity import extract_keywords as extract_keyword_set
from agents.generation import build_request, render_prompt
from agents.pattern_classifier import classify_profile
from agents.qg.common import QGContext
from agents.qg.redirects import clarification, continuation, seriousness_redirect
from agents.qg.router import fallback_question, is_scripted
from agents.response_validator import validate_question
from agents.stage_controller import derive_state, last_exchange
from agents.strategy import depth_tier, select_strategy, violates_topic_policy
from llm_gateway import GenerationError
from services.question_cache import make_key

from .models import TurnState

logger = logging.getLogger(__name__)


def _context(state: TurnState) -> QGContext:
    deps = state["deps"]
    conversation = state["conversation"]
    strategy = state.get("strategy")
    return QGContext(
        stage=conversation.stage,
        depth=conversation.depth,
        tier=strategy.tier if strategy else depth_tier(conversation.depth),
        pattern=state.get("pattern", "generic"),
        keywords=list(state.get("keywords", [])),
        last_question=state.get("last_question") or "",
        last_answer=state.get("last_answer") or "",
        allow_motivation=bool(strategy and strategy.allow_motivation),
        variant=sum(1 for turn in state.get("turns", []) if turn.role == "examinee"),
        persona=deps.cfg.INTERVIEWER_PERSONA,
        school_name=deps.cfg.SCHOOL_NAME,
    )


def classify_pattern(state: TurnState) -> Dict[str, Any]:
    deps = state["deps"]
    return {"pattern": deps.pattern or classify_profile(state.get("profile"))}


def derive_stage(state: TurnState) -> Dict[str, Any]:
    deps = state["deps"]
    turns = state.get("turns", [])
    question, answer = last_exchange(turns)
    return {
        "conversation": derive_state(turns, state["pattern"], deps.cfg),
        "last_question": question or "",
        "last_answer": answer,
    }


def check_seriousness(state: TurnState) -> Dict[str, Any]:
    answer = state.get("last_answer")
    if answer is None or state["conversation"].stage == "closing":
        return {}
    finding = analyze_seriousness(state.get("last_question"), answer)
    if finding.flagged:
        return {"verdict": "joking", "reasons": [finding.reason or "joking"]}
    return {}


def check_alignment(state: TurnState) -> Dict[str, Any]:
    answer = state.get("last_answer")
    if answer is None or state["conversation"].stage == "closing":
        return {}
    finding = analyze_alignment(state.get("last_question"), answer, state["deps"].cfg)
    if finding.flagged:
        return {"verdict": "misaligned", "reasons": finding.reasons}
    if is_incomplete_answer(answer):
        return {"verdict": "incomplete", "reasons": ["incomplete"]}
    return {}


def redirect(state: TurnState) -> Dict[str, Any]:
    """Re-ask the pending question in a frame matching the failure type.

    The pending question is the one the examinee still owes an answer to, so a
    second flagged answer re-asks it instead of wrapping the previous redirect.
    """

    ctx = _context(state)
    deps = state["deps"]
    conversation = state["conversation"]
    pending = conversation.pending_question or ctx.last_question
    strategy = select_strategy(ctx.stage, ctx.depth, ctx.pattern, conversation.total_turns, deps.cfg)
    if not pending or violates_topic_policy(pending, strategy, deps.cfg):
        pending = fallback_question(ctx)

    verdict = state.get("verdict")
    reasons = state.get("reasons", [])
    if verdict == "joking":
        question = seriousness_redirect(
            pending, reasons[0] if reasons else None, variant=ctx.variant, persona=ctx.persona
        )
    elif verdict == "misaligned":
        question = clarification(pending, reasons, variant=ctx.variant, persona=ctx.persona)
    else:
        question = continuation(variant=ctx.variant, persona=ctx.persona)
    return {"question": question, "source": "redirect"}


def scripted(state: TurnState) -> Dict[str, Any]:
    return {"question": fallback_question(_context(state)), "source": "scripted"}


def extract_keywords(state: TurnState) -> Dict[str, Any]:
    return {"keywords": sorted(extract_keyword_set(state.get("last_answer")))}


def choose_strategy(state: TurnState) -> Dict[str, Any]:
    conversation = state["conversation"]
    strategy = select_strategy(
        conversation.stage,
        conversation.depth,
        state["pattern"],
        conversation.total_turns,
        state["deps"].cfg,
    )
    return {"strategy": strategy}


def probe_cache(state: TurnState) -> Dict[str, Any]:
    deps = state["deps"]
    conversation = state["conversation"]
    key = make_key(conversation.stage, state["pattern"], conversation.depth, state.get("keywords", []))
    if deps.cache is None:
        return {"cache_key": key}

    strategy = state["strategy"]
    last_question = state.get("last_question") or ""
    try:
        for source, hit in (
            ("cache", lambda: deps.cache.get(key)),
            ("similar", lambda: deps.cache.find_similar(key.stage, key.pattern, key.keywords)),
        ):
            question = hit()
            if not question or question == last_question:
                continue
            if violates_topic_policy(question, strategy, deps.cfg):
                continue
            return {"cache_key": key, "question": question, "source": source}
    except Exception:  # noqa: BLE001
        logger.warning("cache_unavailable during lookup; treating as miss", exc_info=True)
        return {"cache_key": key, "reasons": ["cache_unavailable"]}
    return {"cache_key": key}


def generate(state: TurnState) -> Dict[str, Any]:
    deps = state["deps"]
    conversation = state["conversation"]
    strategy = state["strategy"]
    try:
        request = build_request(
            state=conversation,
            strategy=strategy,
            pattern=state["pattern"],
            keywords=frozenset(state.get("keywords", [])),
            last_answer=state.get("last_answer"),
            profile=state.get("profile"),
            history=state.get("turns", []),
            cfg=deps.cfg,
        )
        raw = deps.gateway.generate(render_prompt(request))
        question = validate_question(raw, strategy, depth=conversation.depth, cfg=deps.cfg)
        return {"question": question, "source": "generated"}
    except GenerationError as exc:
        logger.info("generation fallback: %s: %s", exc.__class__.__name__, exc)
        return {
            "question": fallback_question(_context(state)),
            "source": "fallback",
            "reasons": [exc.__class__.__name__],
        }


def update_cache(state: TurnState) -> Dict[str, Any]:
    deps = state["deps"]
    if deps.cache is None or state.get("source") != "generated":
        return {}
    try:
        deps.cache.set(state["cache_key"], state["question"])
    except Exception:  # noqa: BLE001
        logger.warning("cache_unavailable during store; skipping", exc_info=True)
    return {}


def route_after_seriousness(state: TurnState) -> str:
    return "redirect" if state.get("verdict") else "check_alignment"


def route_after_alignment(state: TurnState) -> str:
    if state.get("verdict"):
        return "redirect"
    conversation = state["conversation"]
    if is_scripted(conversation.stage, conversation.depth):
        return "scripted"
    return "extract_keywords"


def route_after_cache(state: TurnState) -> str:
    return "end" if state.get("question") else "generate"


__all__ = [
    "classify_pattern",
    "derive_stage",
    "check_seriousness",
    "check_alignment",
    "redirect",
    "scripted",
    "extract_keywords",
    "choose_strategy",
    "probe_cache",
    "generate",
    "update_cache",
    "route_after_seriousness",
    "route_after_alignment",
    "route_after_cache",
]
