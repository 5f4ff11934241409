import pytest

from examgrader.engine.evaluator import (
    LONG_ANSWER_CEILING,
    MalformedQuestionError,
    MatchingMode,
    SemanticScorerMissingError,
    apply_outcome,
    evaluate,
    long_answer_length_score,
    round_half_up,
    token_match_ratio,
)
from examgrader.schemas.attempt import StudentAnswer
from examgrader.schemas.exam import ModelAnswer, Question
from examgrader.tests.factories import FakeSemanticScorer


def short_question(points=20):
    return Question(id="sa-1", type="short-answer", content="Name the structure", points=points)


def long_question(points=25):
    return Question(id="la-1", type="long-answer", content="Discuss", points=points)


def answer(value, question_id="sa-1"):
    return StudentAnswer(question_id=question_id, answer=value)


# -------------------------
# MULTIPLE CHOICE
# -------------------------

def test_mcq_correct_answer_gets_full_points(mcq, mcq_model_answer):
    outcome = evaluate(mcq, answer(2, "mcq-1"), mcq_model_answer)

    assert outcome.score == 10
    assert outcome.feedback == "Correct answer"


def test_mcq_wrong_answer_names_correct_option(mcq, mcq_model_answer):
    outcome = evaluate(mcq, answer(0, "mcq-1"), mcq_model_answer)

    assert outcome.score == 0
    assert outcome.feedback == "Incorrect. The correct answer is option C."


@pytest.mark.parametrize("mode", list(MatchingMode))
def test_mcq_is_all_or_nothing_in_every_mode(mcq, mcq_model_answer, mode):
    scorer = FakeSemanticScorer({})
    scores = {
        evaluate(mcq, answer(choice, "mcq-1"), mcq_model_answer, mode, scorer).score
        for choice in range(4)
    }
    assert scores == {0, 10}


def test_mcq_string_index_is_not_an_exact_match(mcq, mcq_model_answer):
    outcome = evaluate(mcq, answer("2", "mcq-1"), mcq_model_answer)
    assert outcome.score == 0


def test_mcq_explanation_is_appended(mcq):
    model = ModelAnswer(question_id="mcq-1", answer=2, explanation="C is the third letter.")

    wrong = evaluate(mcq, answer(1, "mcq-1"), model)
    right = evaluate(mcq, answer(2, "mcq-1"), model)

    assert wrong.feedback == "Incorrect. The correct answer is option C. C is the third letter."
    assert right.feedback == "Correct answer. C is the third letter."


def test_mcq_without_options_is_rejected_with_question_id(mcq_model_answer):
    broken = Question(id="mcq-9", type="multiple-choice", content="?", options=[], points=5)

    with pytest.raises(MalformedQuestionError) as exc_info:
        evaluate(broken, answer(0, "mcq-9"), mcq_model_answer)

    assert exc_info.value.question_id == "mcq-9"
    assert "mcq-9" in str(exc_info.value)


def test_mcq_model_answer_out_of_range_is_rejected(mcq):
    with pytest.raises(MalformedQuestionError):
        evaluate(mcq, answer(0, "mcq-1"), ModelAnswer(question_id="mcq-1", answer=7))


def test_mcq_text_model_answer_is_rejected(mcq):
    with pytest.raises(MalformedQuestionError):
        evaluate(mcq, answer(0, "mcq-1"), ModelAnswer(question_id="mcq-1", answer="C"))


# -------------------------
# SHORT ANSWER
# -------------------------

def test_short_strict_ignores_case_and_surrounding_whitespace():
    model = ModelAnswer(question_id="sa-1", answer="Binary Search Tree")

    outcome = evaluate(short_question(), answer("  binary search tree "), model, "strict")

    assert outcome.score == 20
    assert outcome.feedback == "Correct answer"


def test_short_strict_mismatch_shows_expected_answer():
    model = ModelAnswer(question_id="sa-1", answer="Binary Search Tree")

    outcome = evaluate(short_question(), answer("a tree"), model, "strict")

    assert outcome.score == 0
    assert outcome.feedback == "Incorrect. Expected: Binary Search Tree"


def test_short_flexible_all_tokens_present_gets_full_points():
    model = ModelAnswer(question_id="sa-1", answer="binary search tree")

    outcome = evaluate(
        short_question(), answer("it is a tree used for binary searching"), model, MatchingMode.FLEXIBLE
    )

    assert outcome.score == 20
    assert outcome.feedback == "Correct answer"


@pytest.mark.parametrize(
    "student, expected_score, expected_feedback",
    [
        ("search the first depth", 14, "Partially correct answer"),
        ("depth and first", 6, "Some correct elements, but incomplete"),
        ("no idea", 0, "Incorrect. Expected: depth first search traversal"),
    ],
)
def test_short_flexible_tiers(student, expected_score, expected_feedback):
    model = ModelAnswer(question_id="sa-1", answer="depth first search traversal")

    outcome = evaluate(short_question(), answer(student), model, "flexible")

    assert outcome.score == expected_score
    assert outcome.feedback == expected_feedback


def test_short_flexible_explanation_appended_on_every_tier():
    model = ModelAnswer(question_id="sa-1", answer="binary search tree", explanation="See chapter 4.")

    outcome = evaluate(short_question(), answer("binary search tree"), model, "flexible")

    assert outcome.feedback == "Correct answer. See chapter 4."


def test_token_match_ratio_counts_short_tokens_in_total():
    # "is" and "a" can never match but still count
    assert token_match_ratio("stack queue", "stack is a queue") == pytest.approx(0.5)
    assert token_match_ratio("anything", "   ") == 0.0


def test_short_flexible_disjoint_answer_scores_zero():
    model = ModelAnswer(question_id="sa-1", answer="photosynthesis chlorophyll sunlight")

    outcome = evaluate(short_question(), answer("volcanoes erupt lava"), model, "flexible")

    assert outcome.score == 0


def test_short_semantic_uses_scorer_tiers():
    model = ModelAnswer(question_id="sa-1", answer="binary search tree")
    scorer = FakeSemanticScorer({
        ("a sorted binary tree", "binary search tree"): 0.9,
        ("a tree", "binary search tree"): 0.7,
        ("a list", "binary search tree"): 0.2,
    })

    full = evaluate(short_question(), answer("a sorted binary tree"), model, "semantic", scorer)
    partial = evaluate(short_question(), answer("a tree"), model, "semantic", scorer)
    wrong = evaluate(short_question(), answer("a list"), model, "semantic", scorer)

    assert (full.score, full.feedback) == (20, "Correct based on semantic meaning")
    assert (partial.score, partial.feedback) == (12, "Partially correct, but missing some key points")
    assert (wrong.score, wrong.feedback) == (0, "Incorrect. Expected: binary search tree")


def test_semantic_mode_without_scorer_is_refused():
    model = ModelAnswer(question_id="sa-1", answer="binary search tree")

    with pytest.raises(SemanticScorerMissingError):
        evaluate(short_question(), answer("tree"), model, "semantic")


def test_semantic_empty_answer_skips_scorer():
    scorer = FakeSemanticScorer({})
    model = ModelAnswer(question_id="sa-1", answer="binary search tree")

    outcome = evaluate(short_question(), answer(None), model, "semantic", scorer)

    assert outcome.score == 0
    assert scorer.calls == 0


# -------------------------
# LONG ANSWER
# -------------------------

def test_long_strict_requires_manual_evaluation():
    model = ModelAnswer(question_id="la-1", answer="Reference essay")

    outcome = evaluate(long_question(), answer("A thoughtful essay.", "la-1"), model, "strict")

    assert outcome.score == 0
    assert outcome.feedback == "This answer requires manual evaluation."
    assert outcome.needs_review


def test_long_flexible_scores_by_length():
    question = long_question(points=10)
    model = ModelAnswer(question_id="la-1", answer="Reference essay")

    short = evaluate(question, answer("x" * 10, "la-1"), model, "flexible")
    middle = evaluate(question, answer("x" * 125, "la-1"), model, "flexible")
    full = evaluate(question, answer("x" * 400, "la-1"), model, "flexible")

    assert short.score == 1
    assert middle.score == 4
    assert full.score == 7
    for outcome in (short, middle, full):
        assert "manual" in outcome.feedback.lower()
        assert outcome.needs_review


def test_long_answer_length_heuristic_is_monotonic_and_capped():
    points = 30
    scores = [long_answer_length_score(points, length)[0] for length in range(0, 301)]

    assert all(a <= b for a, b in zip(scores, scores[1:]))
    assert set(scores[200:]) == {round_half_up(points * LONG_ANSWER_CEILING)}


def test_partial_credit_rounds_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2
    # 10% of 25 is 2.5
    assert long_answer_length_score(25, 10)[0] == 3


@pytest.mark.parametrize("length, expected", [(60, 4), (160, 14), (170, 15)])
def test_long_answer_half_points_round_up(length, expected):
    # on 25 points: 60 chars is exactly 3.5, 160 chars 13.5, 170 chars 14.5
    question = long_question(points=25)
    model = ModelAnswer(question_id="la-1", answer="Reference essay")

    outcome = evaluate(question, answer("x" * length, "la-1"), model, "flexible")

    assert outcome.score == expected
    assert long_answer_length_score(25, length)[0] == expected


# -------------------------
# UNSCORED / GENERAL
# -------------------------

def test_missing_model_answer_leaves_answer_unscored():
    original = answer("binary search tree")

    outcome = evaluate(short_question(), original, None, "flexible")
    updated = apply_outcome(original, outcome)

    assert outcome.score is None and outcome.feedback is None
    assert updated.score is None and updated.feedback is None
    assert updated == original


def test_pdf_upload_is_never_auto_graded():
    question = Question(id="pdf-1", type="pdf-upload", content="Upload your work", points=15)
    model = ModelAnswer(question_id="pdf-1", answer="anything")

    for mode in ("strict", "flexible"):
        outcome = evaluate(question, answer("file.pdf", "pdf-1"), model, mode)
        assert not outcome.is_scored


def test_non_positive_points_are_malformed():
    question = Question.model_construct(id="bad", type="short-answer", content="?", points=0)

    with pytest.raises(MalformedQuestionError):
        evaluate(question, answer("x", "bad"), ModelAnswer(question_id="bad", answer="x"))


@pytest.mark.parametrize("mode", ["strict", "flexible"])
@pytest.mark.parametrize("text", ["", "tree", "binary search tree " * 20, "x" * 199])
def test_free_text_scores_stay_in_bounds_and_repeat(mode, text):
    for question in (short_question(points=7), long_question(points=7)):
        model = ModelAnswer(question_id=question.id, answer="binary search tree")
        first = evaluate(question, answer(text, question.id), model, mode)
        second = evaluate(question, answer(text, question.id), model, mode)

        assert 0 <= first.score <= question.points
        assert isinstance(first.score, int)
        assert (first.score, first.feedback) == (second.score, second.feedback)


def test_apply_outcome_only_touches_score_and_feedback(mcq, mcq_model_answer):
    original = StudentAnswer(question_id="mcq-1", answer=2, marked_for_review=True)

    updated = apply_outcome(original, evaluate(mcq, original, mcq_model_answer))

    assert updated.score == 10
    assert updated.answer == 2
    assert updated.marked_for_review is True
    assert original.score is None
