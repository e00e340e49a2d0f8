from agents.persona_manager import apply_persona

CORE = "どのくらい時間がかかりましたか？"


def test_ask_question_passthrough():
    assert apply_persona(CORE) == CORE


def test_redirect_variants_rotate():
    first = apply_persona(CORE, purpose="redirect", variant=0)
    second = apply_persona(CORE, purpose="redirect", variant=1)
    assert first != second
    assert apply_persona(CORE, purpose="redirect", variant=2) == first
    assert first.endswith(CORE)


def test_formal_persona_drops_softeners():
    gentle = apply_persona(CORE, purpose="remind")
    formal = apply_persona(CORE, persona="Formal Examiner", purpose="remind")
    assert "緊張しなくて大丈夫ですよ。" in gentle
    assert "緊張しなくて大丈夫ですよ。" not in formal


def test_acknowledge_and_topic_slots():
    assert apply_persona(CORE, purpose="acknowledge", ack="分かりました。") == "分かりました。" + CORE
    assert "そのときの気持ち" in apply_persona(CORE, purpose="clarify", topic="そのときの気持ち")


def test_both_clarify_variants_repeat_the_question():
    for variant in (0, 1):
        text = apply_persona(CORE, purpose="clarify", variant=variant, topic="かかった時間")
        assert text.endswith(CORE)
        assert "かかった時間" in text


def test_formal_persona_skips_acknowledgement():
    assert apply_persona(CORE, persona="Formal Examiner", purpose="acknowledge", ack="分かりました。") == CORE
