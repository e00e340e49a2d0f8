"""Diagnostic 0-50 score for a finished question."""
from __future__ import annotations

from typing import Dict, Tuple

from agents.types import Pattern, QualityReport

SPECIFICITY_MARKERS: Tuple[str, ...] = (
    "具体的",
    "どのように",
    "どうやって",
    "なぜ",
    "どうして",
    "どんな",
    "いつ",
    "誰と",
    "何を",
    "どのくらい",
    "きっかけ",
)

DEEP_DIVE_MARKERS: Tuple[str, ...] = (
    "困った",
    "難し",
    "課題",
    "工夫",
    "解決",
    "協力",
    "一緒",
    "仲間",
    "学ん",
    "学び",
    "成長",
    "気づ",
    "活か",
    "変わ",
)

PATTERN_VOCABULARY: Dict[Pattern, Tuple[str, ...]] = {
    "scientific_inquiry": ("メダカ", "観察", "実験", "記録", "測定", "pH", "水質", "結果", "原因", "予想"),
    "team_performance": ("練習", "ダンス", "振付", "発表", "メンバー", "動き", "本番"),
    "competitive_sport": ("試合", "練習", "チーム", "大会", "競技", "勝ち負け"),
    "technical_creation": ("プログラム", "ロボット", "作った", "動かな", "ものづくり", "設計"),
    "community_service": ("地域", "ボランティア", "参加", "住民", "清掃"),
    "leadership": ("まとめ", "役割", "意見", "委員", "リーダー"),
    "generic": (),
}

MIN_WELL_FORMED_CHARS = 30
MAX_SCORE = 50


def _count(text: str, markers: Tuple[str, ...]) -> int:
    return sum(1 for marker in markers if marker in text)


def score_question(question: str, pattern: Pattern = "generic") -> QualityReport:
    text = question or ""
    specificity = _count(text, SPECIFICITY_MARKERS)
    vocabulary = _count(text, PATTERN_VOCABULARY.get(pattern, ()))
    depth_markers = _count(text, DEEP_DIVE_MARKERS)
    has_mark = int(text.rstrip().endswith(("？", "?")))
    proper_length = int(len(text) >= MIN_WELL_FORMED_CHARS)
    well_formed = has_mark + proper_length

    raw = specificity * 2 + vocabulary * 3 + depth_markers * 2 + has_mark * 5 + proper_length * 3
    return QualityReport(
        specificity=specificity,
        vocabulary=vocabulary,
        depth_markers=depth_markers,
        well_formed=well_formed,
        total=min(MAX_SCORE, raw),
    )


__all__ = ["SPECIFICITY_MARKERS", "DEEP_DIVE_MARKERS", "PATTERN_VOCABULARY", "score_question"]
