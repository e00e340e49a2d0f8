from __future__ import annotations  # Turn orchestration using LangGraph

import logging
import time
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from langgraph.graph import END, StateGraph

from agents.generation import GenerationGateway, resolve_generator
from agents.qg.common import SAFETY_NET
from agents.stage_controller import TurnLike, coerce_history, derive_state
from agents.types import ActivityProfile, NextQuestion, Pattern, TurnFlags
from config.routes import load_config, resolve_route
from config.settings import Settings, settings
from llm_gateway import Generator, HttpClient, text_generator
from observability.logger import log_event
from observability.tracing import span
from services.question_cache import QuestionCache

from . import nodes
from .models import TurnDeps, TurnState, flags_for

logger = logging.getLogger(__name__)

NodeFn = Callable[[TurnState], Dict[str, Any]]


def _traced(name: str, fn: NodeFn) -> NodeFn:  # Time a node and emit its telemetry
    def _run(state: TurnState) -> Dict[str, Any]:
        events: list[Dict[str, Any]] = []
        with span(events, name):
            update = fn(state)
        log_event(
            "node.end",
            state["deps"].session_id,
            node=name,
            outcome=update.get("verdict") or update.get("source"),
            ms=events[-1]["ms"],
        )
        return {**update, "events": events}

    return _run


@lru_cache(maxsize=1)
def build_turn_graph():  # Compile the per-turn pipeline once; dependencies travel in the state
    graph = StateGraph(TurnState)
    for name, fn in (
        ("classify_pattern", nodes.classify_pattern),
        ("derive_stage", nodes.derive_stage),
        ("check_seriousness", nodes.check_seriousness),
        ("check_alignment", nodes.check_alignment),
        ("redirect", nodes.redirect),
        ("scripted", nodes.scripted),
        ("extract_keywords", nodes.extract_keywords),
        ("choose_strategy", nodes.choose_strategy),
        ("probe_cache", nodes.probe_cache),
        ("generate", nodes.generate),
        ("update_cache", nodes.update_cache),
    ):
        graph.add_node(name, _traced(name, fn))

    graph.set_entry_point("classify_pattern")
    graph.add_edge("classify_pattern", "derive_stage")
    graph.add_edge("derive_stage", "check_seriousness")
    graph.add_conditional_edges(
        "check_seriousness",
        nodes.route_after_seriousness,
        {"redirect": "redirect", "check_alignment": "check_alignment"},
    )
    graph.add_conditional_edges(
        "check_alignment",
        nodes.route_after_alignment,
        {"redirect": "redirect", "scripted": "scripted", "extract_keywords": "extract_keywords"},
    )
    graph.add_edge("extract_keywords", "choose_strategy")
    graph.add_edge("choose_strategy", "probe_cache")
    graph.add_conditional_edges(
        "probe_cache",
        nodes.route_after_cache,
        {"end": END, "generate": "generate"},
    )
    graph.add_edge("generate", "update_cache")
    graph.add_edge("update_cache", END)
    graph.add_edge("redirect", END)
    graph.add_edge("scripted", END)
    return graph.compile()


def _coerce_profile(profile: Union[ActivityProfile, Mapping[str, Any], None]) -> ActivityProfile:
    if profile is None:
        return ActivityProfile()
    if isinstance(profile, ActivityProfile):
        return profile
    return ActivityProfile.model_validate(dict(profile))


def _emergency(turns, pattern: Optional[Pattern], cfg: Settings) -> NextQuestion:  # Last-resort polite re-prompt
    try:
        conversation = derive_state(turns, pattern or "generic", cfg)
        stage, depth = conversation.stage, conversation.depth
    except Exception:  # noqa: BLE001
        stage, depth = "opening", 1
    return NextQuestion(question=SAFETY_NET, stage=stage, depth=depth, pattern=pattern or "generic", source="emergency")


def next_question(
    history: Optional[Iterable[TurnLike]],
    profile: Union[ActivityProfile, Mapping[str, Any], None] = None,
    *,
    cache: Optional[QuestionCache] = None,
    generator: Optional[Generator] = None,
    pattern: Optional[Pattern] = None,
    session_id: str = "anonymous",
    cfg: Optional[Settings] = None,
) -> NextQuestion:
    """Decide the interviewer's next line from the full turn history.

    Malformed ``history`` or ``profile`` items raise pydantic's
    ``ValidationError``; everything past input validation degrades to a
    deterministic question instead of raising.
    """

    cfg = cfg or settings
    turns = coerce_history(history)
    activity = _coerce_profile(profile)
    deps = TurnDeps(
        gateway=GenerationGateway(resolve_generator(generator), timeout_s=cfg.GENERATION_TIMEOUT_S),
        cache=cache,
        pattern=pattern,
        cfg=cfg,
        session_id=session_id,
    )

    started = time.perf_counter()
    log_event("turn.start", session_id, turns=len(turns))
    try:
        final: TurnState = build_turn_graph().invoke(
            {"deps": deps, "turns": turns, "profile": activity, "reasons": [], "events": []}
        )
    except Exception:  # noqa: BLE001
        logger.exception("turn pipeline failed; serving emergency question")
        result = _emergency(turns, pattern, cfg)
        log_event("turn.end", session_id, stage=result.stage, depth=result.depth, source=result.source)
        return result

    conversation = final["conversation"]
    strategy = final.get("strategy")
    result = NextQuestion(
        question=final.get("question") or SAFETY_NET,
        stage=conversation.stage,
        depth=conversation.depth,
        flags=TurnFlags(**flags_for(final)),
        pattern=final.get("pattern", "generic"),
        source=final.get("source", "fallback"),
        keywords=list(final.get("keywords", [])),
        reasons=list(final.get("reasons", [])),
        events=list(final.get("events", [])),
        tier=strategy.tier if strategy else None,
    )
    log_event(
        "turn.end",
        session_id,
        stage=result.stage,
        depth=result.depth,
        pattern=result.pattern,
        source=result.source,
        flags=result.flags.model_dump(),
        reason=",".join(result.reasons) or None,
        ms=int((time.perf_counter() - started) * 1000),
    )
    return result


def next_question_with_config(
    history: Optional[Iterable[TurnLike]],
    profile: Union[ActivityProfile, Mapping[str, Any], None] = None,
    *,
    config_path: Path,
    client: Optional[HttpClient] = None,
    **kwargs: Any,
) -> NextQuestion:  # Convenience helper wiring the generator from a route config file
    route = resolve_route(load_config(config_path))
    return next_question(history, profile, generator=text_generator(route, client=client), **kwargs)


__all__ = ["build_turn_graph", "next_question", "next_question_with_config"]
