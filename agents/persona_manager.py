"""Persona manager utilities for styling interviewer lines."""
from __future__ import annotations

from typing import Literal

from agents.toolkit import ensure_question_mark

Persona = Literal["Gentle Examiner", "Formal Examiner"]
Purpose = Literal[
    "ask_question",
    "acknowledge",
    "redirect",
    "remind",
    "clarify",
    "continue",
    "closing",
]

TEMPLATES_GENTLE: dict[Purpose, tuple[str, ...]] = {
    "ask_question": ("{core}",),
    "acknowledge": ("{ack}{core}",),
    "redirect": (
        "すみません、今は面接の場ですので、真剣に答えてもらえますか？もう一度お聞きしますね。{core}",
        "面接ですので、本当のことを教えてください。もう一度お聞きします。{core}",
    ),
    "remind": (
        "緊張しなくて大丈夫ですよ。ゆっくりで構いませんので、もう一度お聞きしますね。{core}",
        "落ち着いて、思ったことをそのまま話してください。{core}",
    ),
    "clarify": (
        "今お聞きしたかったのは、{topic}についてです。{core}",
        "ありがとうございます。{topic}について、もう一度お聞きしますね。{core}",
    ),
    "continue": (
        "はい、続けてください。それから、どうなりましたか？",
        "なるほど。その続きを聞かせてもらえますか？",
    ),
    "closing": ("{core}",),
}

TEMPLATES_FORMAL: dict[Purpose, tuple[str, ...]] = {
    purpose: tuple(
        template.replace("緊張しなくて大丈夫ですよ。", "").replace("ありがとうございます。", "")
        for template in templates
    )
    for purpose, templates in TEMPLATES_GENTLE.items()
}
# The formal examiner moves on without echoing the previous answer.
TEMPLATES_FORMAL["acknowledge"] = ("{core}",)


def _choose_templates(persona: Persona) -> dict[Purpose, tuple[str, ...]]:
    if persona == "Gentle Examiner":
        return TEMPLATES_GENTLE
    return TEMPLATES_FORMAL


def apply_persona(
    text: str,
    *,
    persona: Persona = "Gentle Examiner",
    purpose: Purpose = "ask_question",
    variant: int = 0,
    topic: str = "",
    ack: str = "",
) -> str:
    """Wrap a core question in the persona template for ``purpose``.

    ``variant`` picks among alternatives deterministically (modulo the number
    of templates).
    """

    templates = _choose_templates(persona).get(purpose, ("{core}",))
    template = templates[variant % len(templates)]

    core = (text or "").strip()
    formatted = template.replace("{core}", core).replace("{topic}", topic).replace("{ack}", ack)
    return ensure_question_mark(formatted)


__all__ = ["apply_persona", "Persona", "Purpose"]
