import json
import random
import time

import pytest
from pydantic import ValidationError

import flow_manager
from agents.qg.closing import CLOSING_LINES
from agents.qg.common import SAFETY_NET
from agents.qg.opening import ACTIVITY_INTRO, OPENING_SCRIPT
from agents.strategy import mentions_motivation, motivation_question
from agents.types import STAGE_ORDER, stage_index
from config.registry import GENERATOR_KEY, bind_model
from config.settings import Settings
from flow_manager import next_question, next_question_with_config
from services.question_cache import QuestionCache

OPENING_ANSWERS = ("受検番号123番、山田花子です。", "電車で来ました。", "30分くらいかかりました。")
# Aligned with every opening, probing and fallback question.
STEADY_ANSWER = "本で読んで興味を持ったから、先生や友達と一緒に毎日30分ずつ水質を測定して記録しました。大変でしたが工夫しました。"
GENERATED = "その観察で、どんな工夫をしましたか？"

PROFILES = (
    None,
    {"inquiry_learning": "環境委員会でメダカを育て、水質を観察しました。"},
    {"inquiry_learning": "ダンスチームで振付を考えました。"},
    {"research": "地域のゴミ拾いボランティア"},
)


def _append(history, question, answer):
    history.append({"role": "interviewer", "text": question})
    history.append({"role": "examinee", "text": answer})


def _through_opening(**kwargs):
    history = []
    for answer in OPENING_ANSWERS:
        _append(history, next_question(history, **kwargs).question, answer)
    return history


def _through_intro(**kwargs):
    history = _through_opening(**kwargs)
    intro = next_question(history, **kwargs)
    _append(history, intro.question, STEADY_ANSWER)
    return history


@pytest.mark.parametrize("profile", PROFILES)
def test_opening_script_is_fixed(profile):
    history = []
    for step, answer in enumerate(OPENING_ANSWERS):
        result = next_question(history, profile)
        assert result.question.endswith(OPENING_SCRIPT[step])
        assert (result.stage, result.depth, result.source) == ("opening", step + 1, "scripted")
        _append(history, result.question, answer)
    intro = next_question(history, profile)
    assert intro.question.endswith(ACTIVITY_INTRO)
    assert (intro.stage, intro.depth) == ("exploration", 1)


def test_joking_answer_is_redirected():
    history = []
    first = next_question(history)
    _append(history, first.question, OPENING_ANSWERS[0])
    second = next_question(history)
    _append(history, second.question, "どこでもドアで来ました。")

    result = next_question(history)
    assert result.flags.joking
    assert result.source == "redirect"
    assert result.reasons == ["fictional_transport"]
    assert "どのような交通手段" in result.question
    assert (result.stage, result.depth) == ("opening", 2)


def test_misaligned_answer_gets_clarification():
    history = []
    for answer in OPENING_ANSWERS[:2]:
        _append(history, next_question(history).question, answer)
    _append(history, next_question(history).question, "朝早く家を出たのは、遅刻したくなかったからです。")

    result = next_question(history)
    assert result.flags.misaligned
    assert not result.flags.joking
    assert "asks_duration" in result.reasons
    assert "かかった時間" in result.question
    assert (result.stage, result.depth) == ("opening", 3)


def test_incomplete_answer_invites_continuation():
    history = _through_opening()
    _append(history, next_question(history).question, "メダカを育てていて、そして")
    result = next_question(history)
    assert result.flags.incomplete
    assert result.source == "redirect"
    assert (result.stage, result.depth) == ("exploration", 1)


def test_generated_question_is_cached(json_generator):
    cache = QuestionCache()
    first_generator = json_generator(GENERATED)
    history = _through_intro()

    first = next_question(history, cache=cache, generator=first_generator)
    assert (first.question, first.source) == (GENERATED, "generated")
    assert (first.stage, first.depth, first.tier) == ("exploration", 2, 1)
    assert not first.flags.served_from_cache
    assert "水質" in first.keywords
    assert len(first_generator.calls) == 1
    assert first_generator.calls[0].messages[0]["role"] == "system"

    second_generator = json_generator("別の質問はありますか？")
    second = next_question(history, cache=cache, generator=second_generator)
    assert (second.question, second.source) == (GENERATED, "cache")
    assert second.flags.served_from_cache
    assert second_generator.calls == []


def test_similar_keywords_reuse_cached_question(json_generator):
    cache = QuestionCache()
    history = _through_intro()
    next_question(history, cache=cache, generator=json_generator(GENERATED))

    history[-1] = {"role": "examinee", "text": "水質を測定して、毎日記録しました。"}
    result = next_question(history, cache=cache, generator=json_generator("別の質問はありますか？"))
    assert (result.question, result.source) == (GENERATED, "similar")
    assert result.flags.served_from_cache


def test_bound_generator_is_used(json_generator):
    bind_model(GENERATOR_KEY, json_generator(GENERATED))
    result = next_question(_through_intro())
    assert (result.question, result.source) == (GENERATED, "generated")


def test_generator_failure_falls_back(failing_generator):
    result = next_question(_through_intro(), generator=failing_generator)
    assert result.source == "fallback"
    assert result.reasons == ["GenerationUnavailable"]
    assert result.question.endswith("？")


def test_malformed_output_falls_back():
    result = next_question(_through_intro(), generator=lambda _spec: "了解しました。")
    assert result.source == "fallback"
    assert result.reasons == ["MalformedGenerationOutput"]


def test_slow_generator_times_out():
    def _slow(_spec):
        time.sleep(0.5)
        return json.dumps({"question": GENERATED}, ensure_ascii=False)

    cfg = Settings(_env_file=None, GENERATION_TIMEOUT_S=0.05)
    result = next_question(_through_intro(cfg=cfg), generator=_slow, cfg=cfg)
    assert result.source == "fallback"


def test_every_stage_serves_a_question_without_generator(failing_generator):
    history = []
    seen = set()
    closing = []
    for _ in range(27):
        result = next_question(history, generator=failing_generator)
        assert result.question
        assert result.question.endswith("？")
        assert result.depth >= 1
        seen.add(result.stage)
        if result.stage == "closing":
            closing.append(result.question)
        _append(history, result.question, STEADY_ANSWER)
    assert seen == set(STAGE_ORDER)
    assert closing[:2] == list(CLOSING_LINES)


def test_stage_and_depth_follow_valid_answers(failing_generator):
    history = []
    positions = []
    for _ in range(16):
        result = next_question(history, generator=failing_generator)
        positions.append((result.stage, result.depth))
        _append(history, result.question, STEADY_ANSWER)
    assert positions[:4] == [("opening", 1), ("opening", 2), ("opening", 3), ("exploration", 1)]
    assert positions[11] == ("exploration", 9)
    assert positions[12] == ("deepening", 10)


def test_motivation_never_served_early(json_generator):
    rng = random.Random(20240601)
    other_answers = OPENING_ANSWERS + ("どこでもドアで来ました。", "えへへ", "はい。", "メダカを育てていて、そして")
    generator = json_generator(motivation_question())
    cache = QuestionCache()
    checked = 0
    served = 0

    for _ in range(40):
        history = []
        for _ in range(30):
            result = next_question(history, cache=cache, generator=generator)
            if mentions_motivation(result.question):
                served += 1
                assert len(history) >= 10
                assert stage_index(result.stage) >= stage_index("deepening")
            checked += 1
            answer = STEADY_ANSWER if rng.random() < 0.7 else rng.choice(other_answers)
            _append(history, result.question, answer)

    assert checked >= 1000
    assert served > 0


def test_explicit_pattern_is_honored():
    profile = {"inquiry_learning": "メダカの観察"}
    assert next_question([], profile).pattern == "scientific_inquiry"
    assert next_question([], profile, pattern="leadership").pattern == "leadership"


def test_events_record_each_node():
    result = next_question([])
    spans = [event["span"] for event in result.events]
    assert spans[:3] == ["classify_pattern", "derive_stage", "check_seriousness"]
    assert spans[-1] == "scripted"


def test_malformed_history_raises():
    with pytest.raises(ValidationError):
        next_question([{"role": "robot", "text": "こんにちは"}])


def test_pipeline_failure_serves_emergency_question(monkeypatch):
    class _Broken:
        def invoke(self, _state):
            raise RuntimeError("graph exploded")

    history = _through_opening()
    monkeypatch.setattr(flow_manager, "build_turn_graph", lambda: _Broken())
    result = next_question(history)
    assert (result.question, result.source) == (SAFETY_NET, "emergency")
    assert (result.stage, result.depth) == ("exploration", 1)


def test_next_question_with_config(tmp_path):
    class _Response:
        status_code = 200
        text = ""

        def json(self):
            return {"choices": [{"message": {"content": json.dumps({"question": GENERATED}, ensure_ascii=False)}}]}

    class _Client:
        def post(self, url, *, json, headers, timeout):
            return _Response()

    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "llm_routes": {"main": {"name": "main", "base_url": "http://llm.local", "model": "m"}},
                "registry": {GENERATOR_KEY: "main"},
            }
        ),
        encoding="utf-8",
    )
    result = next_question_with_config(_through_intro(), config_path=path, client=_Client())
    assert (result.question, result.source) == (GENERATED, "generated")


MISALIGNED_DURATION = "朝早く家を出たのは、遅刻したくなかったからです。"


def test_repeated_misaligned_answers_reask_the_same_question():
    history = []
    for answer in OPENING_ANSWERS[:2]:
        _append(history, next_question(history).question, answer)
    asked = next_question(history).question
    _append(history, asked, MISALIGNED_DURATION)

    redirects = []
    for _ in range(4):
        result = next_question(history)
        assert result.flags.misaligned
        assert (result.stage, result.depth) == ("opening", 3)
        redirects.append(result.question)
        _append(history, result.question, MISALIGNED_DURATION)

    for question in redirects:
        assert question.endswith(asked)
        assert question.count(asked) == 1
        assert question.count("かかった時間") == 1
    assert redirects[0] != redirects[1]
    assert redirects[0] == redirects[2]
    assert redirects[1] == redirects[3]


def test_formal_persona_reaches_redirects():
    gentle_cfg = Settings(_env_file=None)
    formal_cfg = Settings(_env_file=None, INTERVIEWER_PERSONA="Formal Examiner")
    questions = {}
    for name, cfg in (("gentle", gentle_cfg), ("formal", formal_cfg)):
        history = []
        first = next_question(history, cfg=cfg).question
        _append(history, first, "…")
        _append(history, next_question(history, cfg=cfg).question, "…")
        result = next_question(history, cfg=cfg)
        assert result.flags.joking
        assert result.question.endswith(OPENING_SCRIPT[0])
        questions[name] = result.question
    assert "緊張しなくて大丈夫ですよ。" in questions["gentle"]
    assert "緊張しなくて大丈夫ですよ。" not in questions["formal"]


def test_reasons_accumulate_across_nodes(failing_generator):
    class _BrokenCache:
        def get(self, _key):
            raise ConnectionError("cache down")

    result = next_question(_through_intro(), cache=_BrokenCache(), generator=failing_generator)
    assert result.source == "fallback"
    assert result.reasons == ["cache_unavailable", "GenerationUnavailable"]
