"""Seriousness, alignment and completeness checks for examinee answers.

Each check is an ordered table of rules evaluated against a (question, answer)
pair. Seriousness rules are first-match-wins and report a single reason tag;
alignment collects every category that fires so the clarification can name
what was actually asked.

Checks never raise: input they cannot judge is reported as not flagged, so a
nervous examinee keeps going instead of being accused of joking.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from agents.continuity import LEXICON_GROUPS
from agents.strategy import mentions_motivation
from config.settings import Settings, settings

logger = logging.getLogger(__name__)

Predicate = Callable[[str, str], bool]


@dataclass
class SeriousnessFinding:
    """Outcome of the seriousness rules."""

    flagged: bool
    reason: Optional[str] = None
    excerpt: Optional[str] = None


@dataclass
class AlignmentFinding:
    """Outcome of the alignment rules."""

    flagged: bool
    categories: List[str] = field(default_factory=list)
    reasons: List[str] = field(default_factory=list)


def _answer_has(pattern: str) -> Predicate:
    compiled = re.compile(pattern)
    return lambda _question, answer: compiled.search(answer) is not None


def _in_context(question_pattern: str, answer_pattern: str, *, unless: Optional[re.Pattern[str]] = None) -> Predicate:
    question_re = re.compile(question_pattern)
    answer_re = re.compile(answer_pattern)

    def _check(question: str, answer: str) -> bool:
        if not question_re.search(question) or not answer_re.search(answer):
            return False
        return unless is None or unless.search(answer) is None

    return _check


def _is_degenerate(_question: str, answer: str) -> bool:
    return re.fullmatch(r"[\s。、．，・.,!?！？…‥ー〜~]*", answer) is not None


def _has_no_words(_question: str, answer: str) -> bool:
    return re.search(r"\w", answer) is None


_ACTIVITY_WORDS = dict(LEXICON_GROUPS)["activity"]

SUSTAINED_TOPIC = r"探究|活動|取り組|研究|練習|困った|大変|難しかった|うまくいかな|工夫|学んだ|学び"
ENTERTAINMENT = r"ゲーム|アニメ|漫画|マンガ|YouTube|ユーチューブ|TikTok|スマホ|動画|昼寝|寝ること|テレビ|映画|ドラマ"
TRAVEL_TOPIC = r"交通手段|来ましたか|どのくらい|どれくらい|何分|時間がかかり|かかりましたか"

# Katakana names only count as whole words (not マリオネット, ドラゴンフルーツ).
_KANA_EDGE = r"(?<![ァ-ヺー])(?:{})(?![ァ-ヺー])"

SERIOUSNESS_RULES: Tuple[Tuple[str, Predicate], ...] = (
    ("degenerate", _is_degenerate),
    ("nonsense_symbols", _has_no_words),
    ("keyboard_mash", _answer_has(r"(\w)\1{4,}")),
    (
        "fictional_transport",
        _answer_has(r"どこでもドア|タイムマシン|タケコプター|ワープ|テレポート|瞬間移動|魔法|忍術|超能力|ほうきに乗って|空飛ぶじゅうたん"),
    ),
    (
        "fictional_character",
        _answer_has(_KANA_EDGE.format(r"ドラえもん|ポケモン|ピカチュウ|マリオ|ナルト|ルフィ|アンパンマン|ゴジラ") + r"|悟空"),
    ),
    (
        "impossible_physics",
        _answer_has(
            r"空を飛んで(来|き)|(UFO|ＵＦＯ|宇宙船)(で|に乗)|"
            + _KANA_EDGE.format(r"ドラゴン|ペガサス|ユニコーン")
            + r"(で|に乗)|宇宙から来|異世界から|未来から来|(光の速さ|光速|音速|マッハ[\d０-９]*)で"
        ),
    ),
    (
        "extreme_claim",
        _in_context(
            TRAVEL_TOPIC,
            r"(?<![\d０-９])[0０]秒|一瞬で(着|来)|100億(年|時間|分)|永遠に(かか|歩)|1000年(かか|以上かか)|走って1分",
        ),
    ),
    (
        "talking_animal",
        _answer_has(r"(メダカ|魚|犬|猫|ねこ|鳥|動物|ペット)が(しゃべ|喋|話しかけ|宿題を|連れてき|運んで)"),
    ),
    (
        "absurd_ride",
        _answer_has(r"(恐竜|ライオン|ゾウ|象|クジラ|イルカ|ペンギン|犬|猫|お菓子|ケーキ|ラーメン)に乗って"),
    ),
    ("playful_noise", _answer_has(r"えへへ|あはは|うふふ|ふふふ|にゃーん|わんわん|ぴえん|やばたん|ｗｗ|ww|[（(]笑[）)]|草生え")),
    ("dismissive", _answer_has(r"めんどくさい|面倒くさい|うざい|だるい|どうでもいい|知らねー")),
    ("entertainment_substitution", _in_context(SUSTAINED_TOPIC, ENTERTAINMENT, unless=_ACTIVITY_WORDS)),
)


@dataclass(frozen=True)
class AlignmentRule:
    """Expected-marker rule for one question category."""

    category: str
    trigger: re.Pattern[str]
    marker: re.Pattern[str]
    length_key: Optional[str] = "ALIGNMENT_MIN_ANSWER_CHARS"
    requires: Optional[re.Pattern[str]] = None


GENERIC_OPINION = re.compile(r"重要|大切|思います|と思う|良いと")
POSITIVE_ONLY = re.compile(r"楽しかった|嬉しかった|うれしかった|面白かった")
FEELING_MARKER = re.compile(
    r"思っ|思い|思う|感じ|嬉し|うれし|楽し|悲し|驚|びっくり|可愛|かわい|癒|不安|緊張|わくわく|ワクワク|"
    r"悔し|残念|好き|面白|すごい|感動|達成感|安心"
)

ALIGNMENT_RULES: Tuple[AlignmentRule, ...] = (
    AlignmentRule(
        "asks_duration",
        re.compile(r"どれくらい|どのくらい|何分|何時間|時間がかかり|かかりましたか"),
        re.compile(r"\d+\s*(分|時間|秒)|[一二三四五六七八九十半]+(分|時間)|分|時間|かかり|すぐ|近く|遠く"),
    ),
    AlignmentRule(
        "asks_method",
        re.compile(r"どのように|どうやって|どんな方法|どういう風に|どのような方法|方法で|やり方"),
        re.compile(r"使って|使い|して|すると|ように|やり方|手順|試験紙|道具|器具|測定|で(調べ|測|作|練習)"),
        requires=GENERIC_OPINION,
    ),
    AlignmentRule(
        "asks_reason",
        re.compile(r"なぜ|どうして|理由|きっかけ"),
        re.compile(r"から|ため|ので|理由|きっかけ|見て|聞いて|知って"),
    ),
    AlignmentRule(
        "asks_difficulty",
        re.compile(r"困った|大変|難しかった|難しい|うまくいかな|失敗|苦労"),
        re.compile(r"困|大変|難し|うまくいかな|失敗|問題|課題|苦労|死んで|だめ|ダメ|悪く|なかなか"),
        length_key=None,
        requires=POSITIVE_ONLY,
    ),
    AlignmentRule(
        "asks_example",
        re.compile(r"例えば|具体的に|具体例"),
        re.compile(r"例えば|具体的に|ような|など|とき|時|\d"),
        requires=GENERIC_OPINION,
    ),
    AlignmentRule(
        "asks_person",
        re.compile(r"誰|だれ|どなた|一緒に"),
        re.compile(
            r"先生|友達|友人|仲間|みんな|皆|一緒|母|父|兄|姉|弟|妹|家族|祖|一人|ひとり|自分|クラス|チーム|"
            r"メンバー|先輩|後輩|さん|くん|ちゃん"
        ),
        length_key="SHORT_ANSWER_CHARS",
    ),
    AlignmentRule(
        "asks_quantity",
        re.compile(r"何人|何回|何個|何匹|何種類|いくつ|何日"),
        re.compile(r"\d|[０-９]|[一二三四五六七八九十百千]+(人|回|個|匹|種類|つ|日)|いくつ|たくさん|少し|何回も|毎日|毎週"),
        length_key="SHORT_ANSWER_CHARS",
    ),
    AlignmentRule("asks_feeling", re.compile(r"どう思|どう感じ|気持ち|どんな思い"), FEELING_MARKER),
    AlignmentRule(
        "asks_effort",
        re.compile(r"工夫|取り組み|努力|頑張った|心がけ|注意した"),
        re.compile(r"工夫|取り組|努力|頑張|心がけ|注意|気をつけ|改善|試み|対策|ように|して|使って"),
        requires=FEELING_MARKER,
    ),
    AlignmentRule(
        "asks_measurement",
        re.compile(r"測定|計測|どうやって調べ|記録|データ|実験"),
        re.compile(r"測定|計測|調べ|記録|データ|実験|pH|数値|値|試験紙|はか|測|量"),
        requires=FEELING_MARKER,
    ),
)

ELABORATION_REQUEST = re.compile(r"詳しく|くわしく|説明|具体的に")
YES_NO = frozenset({"はい", "いいえ", "うん", "ううん", "いや", "そうです", "ちがいます"})

_LEISURE = re.compile(r"映画|アニメ|ゲーム|友達と遊|買い物")
_METHOD_QUESTION = re.compile(r"測定|pH|方法|実験|記録")


def _unprompted_motivation(question: str, answer: str, cfg: Settings) -> bool:
    if re.search(r"学校|入学", question) or mentions_motivation(question, cfg):
        return False
    return mentions_motivation(answer, cfg)


def _leisure_for_method(question: str, answer: str, _cfg: Settings) -> bool:
    return _METHOD_QUESTION.search(question) is not None and _LEISURE.search(answer) is not None


UNRELATED_TOPICS: Tuple[Tuple[str, Callable[[str, str, Settings], bool]], ...] = (
    ("unprompted_motivation", _unprompted_motivation),
    ("leisure_for_method", _leisure_for_method),
)

INCOMPLETE_ENDING = re.compile(r"(その度に|という風に|ということで|なので|そして|また|さらに|それで|けど|けれど)$")


def _clean(text: Optional[str]) -> str:
    return (text or "").strip()


def analyze_seriousness(question: Optional[str], answer: Optional[str]) -> SeriousnessFinding:
    """Run the seriousness rules and report the first that fires."""

    if not isinstance(answer, str):
        logger.warning("seriousness undecidable for %r; continuing", type(answer).__name__)
        return SeriousnessFinding(flagged=False)
    sample = answer.strip()
    context = _clean(question)
    try:
        for reason, predicate in SERIOUSNESS_RULES:
            if predicate(context, sample):
                return SeriousnessFinding(flagged=True, reason=reason, excerpt=sample[:40])
    except Exception:  # noqa: BLE001
        logger.exception("seriousness rules failed; treating answer as serious")
        return SeriousnessFinding(flagged=False)
    return SeriousnessFinding(flagged=False)


def check_seriousness(question: Optional[str], answer: Optional[str]) -> bool:
    """True when the answer reads as a joke or nonsense."""

    return analyze_seriousness(question, answer).flagged


def _short_or_yes_no(answer: str, cfg: Settings) -> bool:
    bare = re.sub(r"[。、．！？!?\s]", "", answer)
    return bare in YES_NO or len(answer) < cfg.SHORT_ANSWER_CHARS


def analyze_alignment(
    question: Optional[str],
    answer: Optional[str],
    cfg: Optional[Settings] = None,
) -> AlignmentFinding:
    """Collect every alignment rule that fires for the pair."""

    cfg = cfg or settings
    if not isinstance(question, str) or not isinstance(answer, str):
        return AlignmentFinding(flagged=False)
    sample = answer.strip()
    context = question.strip()
    if not sample or not context:
        return AlignmentFinding(flagged=False)

    categories: List[str] = []
    reasons: List[str] = []
    try:
        for rule in ALIGNMENT_RULES:
            if not rule.trigger.search(context):
                continue
            categories.append(rule.category)
            if rule.marker.search(sample):
                continue
            if rule.length_key is not None and len(sample) <= getattr(cfg, rule.length_key):
                continue
            if rule.requires is not None and not rule.requires.search(sample):
                continue
            reasons.append(rule.category)

        if ELABORATION_REQUEST.search(context) and _short_or_yes_no(sample, cfg):
            reasons.append("too_short")

        for reason, off_topic in UNRELATED_TOPICS:
            if off_topic(context, sample, cfg):
                reasons.append(reason)
    except Exception:  # noqa: BLE001
        logger.exception("alignment rules failed; treating answer as aligned")
        return AlignmentFinding(flagged=False)

    return AlignmentFinding(flagged=bool(reasons), categories=categories, reasons=reasons)


def check_alignment(question: Optional[str], answer: Optional[str], cfg: Optional[Settings] = None) -> bool:
    """True when the answer does not address what the question asked."""

    return analyze_alignment(question, answer, cfg).flagged


def is_incomplete_answer(answer: Optional[str]) -> bool:
    """Answers trailing off on a connective are still in progress."""

    if not isinstance(answer, str):
        return False
    sample = answer.strip().rstrip("、,…‥. ")
    if not sample:
        return False
    return INCOMPLETE_ENDING.search(sample) is not None


def classify_answer(question: Optional[str], answer: Optional[str], cfg: Optional[Settings] = None) -> Optional[str]:
    """Return "joking", "misaligned", "incomplete" or None, checked in that order."""

    if check_seriousness(question, answer):
        return "joking"
    if check_alignment(question, answer, cfg):
        return "misaligned"
    if is_incomplete_answer(answer):
        return "incomplete"
    return None


__all__ = [
    "SeriousnessFinding",
    "AlignmentFinding",
    "AlignmentRule",
    "SERIOUSNESS_RULES",
    "ALIGNMENT_RULES",
    "UNRELATED_TOPICS",
    "analyze_seriousness",
    "check_seriousness",
    "analyze_alignment",
    "check_alignment",
    "is_incomplete_answer",
    "classify_answer",
]
