import random

from agents.qg.opening import OPENING_SCRIPT
from agents.stage_controller import coerce_history, derive_state, last_exchange, question_answer_pairs
from agents.types import ConversationTurn, stage_index
from config.settings import Settings

OPENING_ANSWERS = ("受検番号123番、山田花子です。", "電車で来ました。", "30分くらいかかりました。")
PROBE = "その活動について、もう少し詳しく教えてもらえますか？"
PLAIN_ANSWER = "毎週土曜日に公園で練習しています。"
CUE_ANSWER = "水を替えると元気になることに気づいた。"


def _exchange(question, answer):
    return [{"role": "interviewer", "text": question}, {"role": "examinee", "text": answer}]


def _opening_history():
    history = []
    for question, answer in zip(OPENING_SCRIPT, OPENING_ANSWERS):
        history += _exchange(question, answer)
    return history


def _exploration_history(answers):
    history = _opening_history()
    for answer in answers:
        history += _exchange(PROBE, answer)
    return history


def test_empty_history_starts_opening():
    state = derive_state([])
    assert (state.stage, state.depth, state.total_turns) == ("opening", 1, 0)


def test_opening_steps_advance_then_exploration():
    history = []
    for step, (question, answer) in enumerate(zip(OPENING_SCRIPT, OPENING_ANSWERS), start=1):
        assert derive_state(history).depth == step
        history += _exchange(question, answer)
    state = derive_state(history)
    assert (state.stage, state.depth, state.valid_answers) == ("exploration", 1, 3)


def test_flagged_answer_does_not_advance():
    history = _exchange(OPENING_SCRIPT[0], OPENING_ANSWERS[0]) + _exchange(OPENING_SCRIPT[1], "どこでもドアで来ました。")
    state = derive_state(history)
    assert (state.stage, state.depth, state.valid_answers) == ("opening", 2, 1)


def test_exploration_ends_at_turn_threshold():
    assert derive_state(_exploration_history([PLAIN_ANSWER] * 8)).stage == "exploration"
    assert derive_state(_exploration_history([PLAIN_ANSWER] * 8)).depth == 9
    state = derive_state(_exploration_history([PLAIN_ANSWER] * 9))
    assert (state.stage, state.depth) == ("deepening", 10)


def test_depth_cue_moves_to_deepening_early():
    history = _exploration_history([PLAIN_ANSWER] * 4 + [CUE_ANSWER])
    assert derive_state(history, "scientific_inquiry").stage == "deepening"
    assert derive_state(history, "team_performance").stage == "exploration"


def test_depth_cue_ignored_before_minimum_turns():
    history = _exploration_history([PLAIN_ANSWER, CUE_ANSWER])
    assert derive_state(history, "scientific_inquiry").stage == "exploration"


def test_turn_budget_forces_closing():
    history = []
    for _ in range(24):
        history += _exchange("質問ですか？", "えへへ")
    state = derive_state(history)
    assert (state.stage, state.depth) == ("closing", 1)
    history += _exchange("最後の質問ですか？", "はい。")
    assert derive_state(history).depth == 2


def test_thresholds_follow_settings():
    cfg = Settings(_env_file=None, EXPLORATION_TURN_THRESHOLD=2)
    assert derive_state(_exploration_history([PLAIN_ANSWER] * 2), cfg=cfg).stage == "deepening"


def test_same_history_same_state():
    history = _exploration_history([PLAIN_ANSWER, "えへへ", CUE_ANSWER])
    assert derive_state(history) == derive_state(list(history))


def test_stage_never_moves_backwards():
    rng = random.Random(7)
    answers = OPENING_ANSWERS + (PLAIN_ANSWER, CUE_ANSWER, "えへへ", "はい。", "メダカを育てて、そして")
    for _ in range(20):
        history = []
        previous = 0
        for _ in range(30):
            history += _exchange(PROBE, rng.choice(answers))
            current = stage_index(derive_state(history, "scientific_inquiry").stage)
            assert current >= previous
            previous = current


def test_history_helpers():
    turns = coerce_history(_exchange("Q1？", "A1") + [{"role": "interviewer", "text": "Q2？"}])
    assert all(isinstance(turn, ConversationTurn) for turn in turns)
    assert question_answer_pairs(turns) == [("Q1？", "A1")]
    assert last_exchange(turns) == (None, None)
    assert last_exchange(turns[:2]) == ("Q1？", "A1")


def test_pending_question_skips_redirect_frames():
    history = _opening_history()
    assert derive_state(history).pending_question == OPENING_SCRIPT[2]

    history += _exchange(PROBE, "どこでもドアで来ました。")
    history += _exchange("面接ですので、本当のことを教えてください。もう一度お聞きします。" + PROBE, "えへへ")
    history += _exchange("落ち着いて、思ったことをそのまま話してください。" + PROBE, PLAIN_ANSWER)
    assert derive_state(history).pending_question == PROBE

    history += _exchange("次の質問ですか？", PLAIN_ANSWER)
    assert derive_state(history).pending_question == "次の質問ですか？"
