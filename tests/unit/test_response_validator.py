import pytest

from agents.response_validator import parse_question, strip_wrapping, validate_question
from agents.strategy import motivation_question, select_strategy
from llm_gateway import MalformedGenerationOutput

EXPLORATION = select_strategy("exploration", 3, "generic", 10)
REFLECTION = select_strategy("deepening", 8, "generic", 20)


def test_strip_wrapping_removes_fences():
    assert strip_wrapping('```json\n{"question": "a"}\n```') == '{"question": "a"}'
    assert strip_wrapping("  plain  ") == "plain"


def test_parse_strict_envelope():
    assert parse_question('{"question": "その観察で、どんな工夫をしましたか？"}') == "その観察で、どんな工夫をしましたか？"


def test_parse_extracts_field_from_prose():
    raw = 'はい、次の質問です。{"question": "その観察で、\\"工夫\\"をしましたか？"} 以上です。'
    assert parse_question(raw) == 'その観察で、"工夫"をしましたか？'


def test_parse_rejects_plain_text():
    with pytest.raises(MalformedGenerationOutput):
        parse_question("了解しました。次の質問を考えます。")
    with pytest.raises(MalformedGenerationOutput):
        parse_question('{"question": "   "}')


def test_validate_repairs_question_mark():
    raw = '```json\n{"question": "その観察で、どんな工夫をしましたか"}\n```'
    assert validate_question(raw, EXPLORATION, depth=3) == "その観察で、どんな工夫をしましたか？"


def test_validate_rejects_short_and_filler():
    with pytest.raises(MalformedGenerationOutput):
        validate_question('{"question": "なぜ？"}', EXPLORATION, depth=3)
    with pytest.raises(MalformedGenerationOutput):
        validate_question('{"question": "なるほど、それでどうしましたか？"}', EXPLORATION, depth=3)


def test_validate_enforces_motivation_policy():
    raw = '{"question": "%s"}' % motivation_question()
    with pytest.raises(MalformedGenerationOutput):
        validate_question(raw, EXPLORATION, depth=3)
    assert validate_question(raw, REFLECTION, depth=8) == motivation_question()


def test_surface_difficulty_rejected_at_reflection_depth():
    raw = '{"question": "その活動で困ったことはありましたか？"}'
    assert validate_question(raw, EXPLORATION, depth=3)
    with pytest.raises(MalformedGenerationOutput):
        validate_question(raw, REFLECTION, depth=8)
