"""Rule-based archetype tagging for the examinee's activity narrative."""
from __future__ import annotations

import re
from functools import lru_cache
from typing import Dict, Optional, Tuple, Union

from agents.types import ActivityProfile, Pattern

# Most specific vocabularies first; the first matching rule wins.
PATTERN_RULES: Tuple[Tuple[re.Pattern[str], Pattern], ...] = (
    (
        re.compile(
            r"サッカー|野球|バスケ|テニス|水泳|陸上|柔道|剣道|空手|卓球|バレーボール|バドミントン|"
            r"ソフトボール|試合|大会で|優勝|選手|スポーツ少年団"
        ),
        "competitive_sport",
    ),
    (
        re.compile(r"ダンス|振付|振り付け|合唱|演劇|吹奏楽|バンド|楽器|ピアノ|演奏|劇団|ミュージカル"),
        "team_performance",
    ),
    (
        re.compile(r"プログラミング|プログラム|ロボット|アプリ|電子工作|Scratch|スクラッチ|マイクラ|ものづくり|設計"),
        "technical_creation",
    ),
    (
        re.compile(
            r"メダカ|観察|実験|pH|ｐＨ|水質|測定|研究|植物|昆虫|生き物|飼育|栽培|天体|化石|"
            r"自由研究|データ|仮説"
        ),
        "scientific_inquiry",
    ),
    (
        re.compile(r"ボランティア|地域|清掃|ゴミ拾い|ごみ拾い|募金|福祉|高齢者|お年寄り|社会貢献|町内"),
        "community_service",
    ),
    (
        re.compile(r"委員長|生徒会|児童会|リーダー|キャプテン|班長|部長|まとめ役|委員会"),
        "leadership",
    ),
)

# Reflection cues that show an archetype-specific answer has reached depth.
DEPTH_CUES: Dict[Pattern, re.Pattern[str]] = {
    "competitive_sport": re.compile(r"悔し|負けて|勝て|成長|メンタル|チームワーク"),
    "team_performance": re.compile(r"一体感|息が合|表現|まとま|観客"),
    "technical_creation": re.compile(r"改良|バグ|試行錯誤|仕組み|動いた"),
    "scientific_inquiry": re.compile(r"分かった|わかった|気づいた|発見|仮説|結論|原因"),
    "community_service": re.compile(r"感謝|役に立|地域の人|社会|喜んで"),
    "leadership": re.compile(r"意見をまとめ|責任|みんなの意見|話し合い|信頼"),
    "generic": re.compile(r"学んだ|成長|変わった|気づいた"),
}


@lru_cache(maxsize=256)
def classify_text(text: str) -> Pattern:
    """Return the first archetype whose lexicon matches ``text``."""

    sample = (text or "").strip()
    if not sample:
        return "generic"
    for predicate, tag in PATTERN_RULES:
        if predicate.search(sample):
            return tag
    return "generic"


def classify_profile(profile: Union[ActivityProfile, Dict[str, str], None]) -> Pattern:
    if profile is None:
        return "generic"
    if isinstance(profile, dict):
        profile = ActivityProfile.model_validate(profile)
    return classify_text(profile.activity_text())


def has_depth_cue(pattern: Pattern, answer: Optional[str]) -> bool:
    cue = DEPTH_CUES.get(pattern, DEPTH_CUES["generic"])
    return bool(answer) and cue.search(answer or "") is not None


__all__ = ["PATTERN_RULES", "DEPTH_CUES", "classify_text", "classify_profile", "has_depth_cue"]
