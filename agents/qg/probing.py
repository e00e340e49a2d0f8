"""Exploration and deepening fallbacks, keyed by depth tier."""
from __future__ import annotations

from typing import Dict, List, Tuple

from agents.continuity import primary_keyword

from .common import QGContext, make_question, rotate

KEYWORD_PROBES: Dict[int, Tuple[str, ...]] = {
    1: ("{kw}について、もう少し詳しく教えてもらえますか？", "{kw}を始めたきっかけは何でしたか？"),
    2: ("{kw}で、うまくいかなかったことはありましたか？", "{kw}の中で、どのような工夫をしましたか？"),
    3: ("{kw}には、誰と一緒に取り組みましたか？", "{kw}で、周りの人に助けてもらったことはありますか？"),
    4: ("{kw}の経験を通して、どんなことを学びましたか？", "{kw}の経験を、これからどのように活かしたいですか？"),
}

GENERIC_PROBES: Dict[int, Tuple[str, ...]] = {
    1: ("その活動を始めたきっかけは何でしたか？", "その活動では、具体的にどんなことをしていましたか？"),
    2: (
        "その活動の中で、困ったことや課題に感じたことはありましたか？",
        "その課題を解決するために、どのような工夫をしましたか？",
    ),
    3: ("他の人と協力したことで、印象に残っていることはありますか？", "その活動で、誰かに相談したことはありますか？"),
    4: (
        "その経験を通して、新しく学んだことはありますか？",
        "その取り組みを通して、自分が成長したと思うところはありますか？",
        "活動を通じて発見したことがあれば教えてもらえますか？",
    ),
}


def motivation_probe(ctx: QGContext) -> str:
    return f"{ctx.school_name}に入学したら、その経験をどのように活かしていきたいですか？"


def run(ctx: QGContext) -> List[str]:
    tier = min(max(ctx.tier, 1), 4)
    candidates: List[str] = []
    keyword = primary_keyword(ctx.keywords, group="activity")
    if keyword:
        candidates.extend(template.format(kw=keyword) for template in KEYWORD_PROBES[tier])
    candidates.extend(GENERIC_PROBES[tier])
    if ctx.allow_motivation and tier == 4:
        candidates.append(motivation_probe(ctx))

    ordered = rotate(candidates, ctx.variant)
    return [make_question(text, ctx) for text in ordered]


__all__ = ["KEYWORD_PROBES", "GENERIC_PROBES", "motivation_probe", "run"]
