from agents.strategy import (
    depth_tier,
    mentions_motivation,
    motivation_policy,
    motivation_question,
    select_strategy,
    violates_topic_policy,
)
from config.settings import Settings


def test_depth_tiers():
    assert [depth_tier(d) for d in range(1, 10)] == [1, 1, 2, 2, 3, 3, 4, 4, 4]


def test_focus_comes_from_tier_not_pattern():
    labels = {select_strategy("exploration", 3, pattern).focus_label for pattern in ("generic", "leadership", "scientific_inquiry")}
    assert labels == {"obstacles_difficulties"}
    assert select_strategy("exploration", 1).focus_label == "basic_facts_timeline"
    assert select_strategy("deepening", 5).focus_label == "collaboration_support"
    assert select_strategy("deepening", 8).focus_label == "reflection_growth_future"


def test_pattern_adds_flavored_example():
    strategy = select_strategy("exploration", 1, "scientific_inquiry")
    assert "観察" in strategy.example_templates[0]


def test_motivation_policy_needs_turns_and_stage():
    assert motivation_policy("exploration", 30) == "avoid"
    assert motivation_policy("deepening", 9) == "avoid"
    assert motivation_policy("deepening", 10) == "allowed"
    assert motivation_policy("closing", 40) == "allowed"


def test_motivation_suppressed_in_exploration():
    strategy = select_strategy("exploration", 8, "generic", total_turns=30)
    assert strategy.allow_motivation is False
    assert not any(mentions_motivation(t) for t in strategy.example_templates)


def test_motivation_offered_late_in_deepening():
    strategy = select_strategy("deepening", 8, "generic", total_turns=20)
    assert strategy.allow_motivation is True
    assert motivation_question() in strategy.example_templates


def test_motivation_not_offered_before_reflection_tier():
    strategy = select_strategy("deepening", 5, "generic", total_turns=20)
    assert strategy.allow_motivation is True
    assert motivation_question() not in strategy.example_templates


def test_mentions_motivation():
    assert mentions_motivation("明和中学校でやりたいことは何ですか？")
    assert mentions_motivation("本校を志望した理由を教えてください。")
    assert not mentions_motivation("その活動で困ったことはありましたか？")
    assert not mentions_motivation(None)


def test_violates_topic_policy():
    blocked = select_strategy("exploration", 3, total_turns=12)
    allowed = select_strategy("deepening", 8, total_turns=12)
    assert violates_topic_policy(motivation_question(), blocked)
    assert not violates_topic_policy(motivation_question(), allowed)


def test_mentions_motivation_matches_short_school_name():
    assert mentions_motivation("明和に入りたいと思っています。")
    assert mentions_motivation("青葉でやりたいことは何ですか？", school_name="青葉中学校")
    assert not mentions_motivation("明和でやりたいことは何ですか？", school_name="青葉中学校")
    cfg = Settings(_env_file=None, SCHOOL_NAME="青葉高等学校")
    assert mentions_motivation("青葉に入学したいです。", cfg)
