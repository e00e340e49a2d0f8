"""Depth-tier strategy lookup and the motivational-topic policy."""
from __future__ import annotations

import re
from typing import Dict, Literal, Optional, Tuple

from agents.types import Pattern, Stage, StrategyDescriptor, stage_index
from config.settings import Settings, settings

MotivationPolicy = Literal["avoid", "allowed"]

# tier -> (focus label, question shapes, example templates)
TIERS: Dict[int, Tuple[str, Tuple[str, ...], Tuple[str, ...]]] = {
    1: (
        "basic_facts_timeline",
        ("いつ・どこで・何をしたか", "始めたきっかけ", "活動の具体的な内容"),
        ("その活動はいつ頃から始めたのですか？", "最初に始めようと思ったきっかけは何でしたか？"),
    ),
    2: (
        "obstacles_difficulties",
        ("困ったことやうまくいかなかったこと", "その原因", "乗り越えるための工夫"),
        ("その活動の中で、うまくいかなかったことはありましたか？", "その問題をどのように解決しようとしましたか？"),
    ),
    3: (
        "collaboration_support",
        ("一緒に取り組んだ人", "意見が分かれたときの対応", "周りからの支え"),
        ("その活動は誰と一緒に取り組みましたか？", "仲間と意見が分かれたとき、どのようにまとめましたか？"),
    ),
    4: (
        "reflection_growth_future",
        ("活動を通した成長", "考え方の変化", "これからの活かし方"),
        ("その経験を通して、自分が変わったと思うところはありますか？", "この活動で学んだことを、これからどのように活かしたいですか？"),
    ),
}

PATTERN_FLAVOR: Dict[Pattern, Tuple[str, str, str, str]] = {
    "scientific_inquiry": (
        "観察や記録は、どのくらいの間隔で行っていましたか？",
        "予想と違う結果が出たとき、どのように原因を考えましたか？",
        "観察の結果について、誰かと話し合ったことはありますか？",
        "調べて分かったことから、新しく知りたくなったことはありますか？",
    ),
    "team_performance": (
        "練習はどのくらいの頻度で行っていましたか？",
        "全員の動きがそろわなかったとき、どのように練習しましたか？",
        "メンバーの中で、あなたはどんな役割をしていましたか？",
        "発表を終えて、自分の中で変わったことはありますか？",
    ),
    "competitive_sport": (
        "その競技はいつ頃から続けているのですか？",
        "試合でうまくいかなかったとき、どのように練習を変えましたか？",
        "チームの仲間とは、どのように声をかけ合っていましたか？",
        "勝ち負けの経験から、どんなことを学びましたか？",
    ),
    "technical_creation": (
        "最初に作ったものは、どんなものでしたか？",
        "思った通りに動かなかったとき、どのように直しましたか？",
        "作る途中で、誰かに相談したことはありますか？",
        "ものづくりを通して、考え方が変わったことはありますか？",
    ),
    "community_service": (
        "その活動には、どのくらいの期間参加しましたか？",
        "活動の中で、大変だと感じたことはありましたか？",
        "地域の人とは、どのように関わりましたか？",
        "活動を通して、地域について気づいたことはありますか？",
    ),
    "leadership": (
        "その役割は、どのようにして任されたのですか？",
        "みんなの意見がまとまらなかったとき、どうしましたか？",
        "周りの人に助けてもらったことはありますか？",
        "まとめ役をしてみて、自分が成長したと思うところはありますか？",
    ),
    "generic": (
        "その活動について、もう少し詳しく教えてもらえますか？",
        "その活動で、難しいと感じたことはありましたか？",
        "その活動で、一緒に取り組んだ人はいますか？",
        "その経験から、どんなことを学びましたか？",
    ),
}

_MOTIVATION_WORDS = re.compile(r"志望|この学校|本校|御校|貴校|入学したら|入学後|中学校に入")
_SCHOOL_SUFFIX = re.compile(r"(附属)?(中学校|高等学校|高校|中等教育学校)$")


def depth_tier(depth: int) -> int:
    """Bucket depth into tiers 1-2, 3-4, 5-6 and 7+."""

    if depth <= 2:
        return 1
    if depth <= 4:
        return 2
    if depth <= 6:
        return 3
    return 4


def motivation_policy(stage: Stage, total_turns: int, cfg: Optional[Settings] = None) -> MotivationPolicy:
    cfg = cfg or settings
    if total_turns >= cfg.MOTIVATION_MIN_TOTAL_TURNS and stage_index(stage) >= stage_index("deepening"):
        return "allowed"
    return "avoid"


def mentions_motivation(
    text: Optional[str],
    cfg: Optional[Settings] = None,
    *,
    school_name: Optional[str] = None,
) -> bool:
    """True when ``text`` raises the "why this school" topic.

    The school is matched by its full name and by its short form without the
    school-type suffix (明和中学校 and 明和).
    """

    name = school_name if school_name is not None else (cfg or settings).SCHOOL_NAME
    if not text:
        return False
    short = _SCHOOL_SUFFIX.sub("", name or "")
    if any(candidate and candidate in text for candidate in (name, short)):
        return True
    return _MOTIVATION_WORDS.search(text) is not None


def motivation_question(cfg: Optional[Settings] = None) -> str:
    cfg = cfg or settings
    return f"{cfg.SCHOOL_NAME}に入学したら、その経験をどのように活かしていきたいですか？"


def select_strategy(
    stage: Stage,
    depth: int,
    pattern: Pattern = "generic",
    total_turns: int = 0,
    cfg: Optional[Settings] = None,
) -> StrategyDescriptor:
    """Look up the descriptor for a probing turn.

    Pattern only adds a flavored example; the focus comes from the tier.
    The motivational topic is only ever added when the policy allows it, and
    examples that mention it are filtered out otherwise.
    """

    cfg = cfg or settings
    tier = depth_tier(depth)
    focus, shapes, examples = TIERS[tier]
    flavored = PATTERN_FLAVOR.get(pattern, PATTERN_FLAVOR["generic"])[tier - 1]
    allowed = motivation_policy(stage, total_turns, cfg) == "allowed"

    templates = (flavored,) + examples
    if allowed and tier == 4:
        shapes = shapes + ("志望校での活かし方",)
        templates = templates + (motivation_question(cfg),)
    if not allowed:
        templates = tuple(t for t in templates if not mentions_motivation(t, cfg))
        shapes = tuple(s for s in shapes if not mentions_motivation(s, cfg))

    return StrategyDescriptor(
        tier=tier,
        focus_label=focus,
        question_shapes=shapes,
        example_templates=templates,
        allow_motivation=allowed,
    )


def violates_topic_policy(text: Optional[str], strategy: StrategyDescriptor, cfg: Optional[Settings] = None) -> bool:
    return not strategy.allow_motivation and mentions_motivation(text, cfg)


__all__ = [
    "TIERS",
    "PATTERN_FLAVOR",
    "MotivationPolicy",
    "depth_tier",
    "motivation_policy",
    "mentions_motivation",
    "motivation_question",
    "select_strategy",
    "violates_topic_policy",
]
