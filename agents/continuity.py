"""Continuity keyword extraction from the latest examinee answer."""
from __future__ import annotations

import re
from typing import Dict, Iterable, Optional, Tuple

from agents.types import KeywordSet

# Groups are independent; order only matters for primary_keyword().
LEXICON_GROUPS: Tuple[Tuple[str, re.Pattern[str]], ...] = (
    (
        "activity",
        re.compile(
            r"メダカ|ダンス|環境委員会|pH|水質|振付|チーム|観察|記録|測定|練習|発表|文化祭|委員会|"
            r"植物|育成|実験|試合|大会|ロボット|プログラミング|ボランティア|清掃|演奏|合唱"
        ),
    ),
    (
        "challenge",
        re.compile(r"困った|大変|難しかった|うまくいかな|失敗|問題|課題|苦労|死んで|だめ|悪く"),
    ),
    (
        "people",
        re.compile(r"先生|友達|仲間|みんな|一緒|母|父|チームメンバー|クラスメート|先輩|後輩"),
    ),
    (
        "emotion",
        re.compile(r"嬉しかった|楽しかった|悲しかった|驚いた|発見|気づいた|学んだ|感じた|悔しかった"),
    ),
    (
        "method",
        re.compile(r"使って|試験紙|道具|器具|手順|方法|やり方|工夫|改善|対処|調べ"),
    ),
)


def extract_keywords(answer: Optional[str]) -> KeywordSet:
    """Union of every lexicon hit in ``answer`` as an unordered set."""

    if not answer:
        return frozenset()
    hits: set[str] = set()
    for _, pattern in LEXICON_GROUPS:
        hits.update(pattern.findall(answer))
    return frozenset(hits)


def group_keywords(keywords: Iterable[str]) -> Dict[str, list[str]]:
    grouped: Dict[str, list[str]] = {}
    for name, pattern in LEXICON_GROUPS:
        members = sorted(word for word in keywords if pattern.fullmatch(word))
        if members:
            grouped[name] = members
    return grouped


def primary_keyword(keywords: Iterable[str], group: Optional[str] = None) -> Optional[str]:
    """Pick a stable representative keyword, preferring activity nouns."""

    grouped = group_keywords(keywords)
    if group is not None:
        members = grouped.get(group)
        return members[0] if members else None
    for name, _ in LEXICON_GROUPS:
        if name in grouped:
            return grouped[name][0]
    return None


__all__ = ["LEXICON_GROUPS", "extract_keywords", "group_keywords", "primary_keyword"]
