from __future__ import annotations  # Text helpers shared by question builders and the validator

import re
from typing import Iterable, List, Sequence

from agents.types import ConversationTurn

_SENTENCE_SPLIT = re.compile(r"(?<=[。！？!?])")
_HONORIFIC_REWRITES = (
    ("いただけませんでしょうか", "いただけますか"),
    ("させていただきます", "します"),
    ("でしょうか？でしょうか", "でしょうか"),
)


def transcript_messages(history: Sequence[ConversationTurn], limit: int = 6) -> List[dict]:  # Recent turns as role/content dicts
    messages: List[dict] = []
    for turn in list(history)[-limit:]:
        content = turn.text.strip()
        if not content:
            continue
        role = "assistant" if turn.role == "interviewer" else "user"
        messages.append({"role": role, "content": content})
    return messages


def clamp_text(text: str, limit: int = 120) -> str:  # Compact whitespace and clip length
    compact = " ".join((text or "").split())
    if len(compact) <= limit:
        return compact
    return compact[: limit - 1].rstrip() + "…"


def bullet_list(entries: Iterable[str]) -> str:  # Render entries as markdown bullets
    lines = [item.strip() for item in entries if item and item.strip()]
    if not lines:
        return "なし"
    return "\n".join(f"- {line}" for line in lines)


def split_sentences(text: str) -> List[str]:  # Split on Japanese and ASCII terminal punctuation
    return [part.strip() for part in _SENTENCE_SPLIT.split(text or "") if part.strip()]


def ensure_question_mark(text: str) -> str:  # Terminate with a full-width question mark
    stripped = (text or "").strip().rstrip("。．.!！ ")
    if not stripped:
        return ""
    if stripped.endswith("?"):
        stripped = stripped[:-1]
    if not stripped.endswith("？"):
        stripped += "？"
    return stripped


def optimize_question(text: str, *, max_sentences: int = 2, max_chars: int = 100) -> str:  # Compact honorifics and long questions
    result = (text or "").strip()
    for verbose, compact in _HONORIFIC_REWRITES:
        result = result.replace(verbose, compact)
    sentences = split_sentences(result)
    if len(result) > max_chars and len(sentences) > max_sentences:
        result = "".join(sentences[-max_sentences:])
    return result


def finalize_question(text: str, *, max_sentences: int = 2, max_chars: int = 100) -> str:  # Optimize then force a question ending
    return ensure_question_mark(optimize_question(text, max_sentences=max_sentences, max_chars=max_chars))


__all__ = [
    "bullet_list",
    "clamp_text",
    "transcript_messages",
    "split_sentences",
    "ensure_question_mark",
    "optimize_question",
    "finalize_question",
]
