"""Stage and depth derivation from the raw turn history.

Nothing here is persisted: every call replays the history from the first turn,
so retried requests with the same history always land on the same state.
"""
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from agents.answer_quality import classify_answer
from agents.pattern_classifier import has_depth_cue
from agents.types import ConversationState, ConversationTurn, Pattern, Stage
from config.settings import Settings, settings

OPENING_STEPS = 3

TurnLike = Union[ConversationTurn, Mapping[str, Any]]


def coerce_history(history: Optional[Iterable[TurnLike]]) -> List[ConversationTurn]:
    """Accept model instances or plain ``{"role", "text"}`` mappings."""

    turns: List[ConversationTurn] = []
    for item in history or []:
        if isinstance(item, ConversationTurn):
            turns.append(item)
        else:
            turns.append(ConversationTurn.model_validate(dict(item)))
    return turns


def question_answer_pairs(turns: Sequence[ConversationTurn]) -> List[Tuple[str, str]]:
    """Pair each examinee answer with the interviewer turn that preceded it."""

    pairs: List[Tuple[str, str]] = []
    last_question = ""
    for turn in turns:
        if turn.role == "interviewer":
            last_question = turn.text
        else:
            pairs.append((last_question, turn.text))
    return pairs


def last_exchange(turns: Sequence[ConversationTurn]) -> Tuple[Optional[str], Optional[str]]:
    """Return (question, answer) when the history ends on an examinee turn."""

    if not turns or turns[-1].role != "examinee":
        return None, None
    pairs = question_answer_pairs(turns)
    return pairs[-1]


def derive_state(
    history: Optional[Iterable[TurnLike]],
    pattern: Pattern = "generic",
    cfg: Optional[Settings] = None,
) -> ConversationState:
    """Replay the history and return the state for the next question."""

    cfg = cfg or settings
    turns = coerce_history(history)

    stage: Stage = "opening"
    in_stage = 0
    valid = 0
    examinee_total = 0
    # Interviewer line the latest answer was owed to; redirect frames keep the one they re-ask.
    pending = ""
    previous_flagged = False

    for question, answer in question_answer_pairs(turns):
        examinee_total += 1
        if not previous_flagged or not pending:
            pending = question
        previous_flagged = False
        if stage == "closing":
            in_stage += 1
            continue
        if classify_answer(question, answer, cfg) is None:
            valid += 1
            in_stage += 1
            if stage == "opening" and in_stage >= OPENING_STEPS:
                stage, in_stage = "exploration", 0
            elif stage == "exploration" and (
                in_stage >= cfg.EXPLORATION_TURN_THRESHOLD
                or (in_stage >= cfg.DEPTH_CUE_MIN_TURNS and has_depth_cue(pattern, answer))
            ):
                stage, in_stage = "deepening", 0
        else:
            previous_flagged = True
        if examinee_total >= cfg.MAX_EXAMINEE_TURNS:
            stage, in_stage = "closing", 0

    if stage == "opening":
        depth = in_stage + 1
    elif stage == "closing":
        depth = in_stage + 1
    else:
        depth = valid - OPENING_STEPS + 1

    return ConversationState(
        stage=stage,
        depth=depth,
        examinee_turns_in_stage=in_stage,
        valid_answers=valid,
        total_turns=len(turns),
        pending_question=pending,
    )


__all__ = [
    "OPENING_STEPS",
    "coerce_history",
    "question_answer_pairs",
    "last_exchange",
    "derive_state",
]
