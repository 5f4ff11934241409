import pytest

from examgrader.engine.evaluator import MalformedQuestionError, MatchingMode, SemanticScorerMissingError
from examgrader.engine.grading import (
    AttemptStateError,
    ExamGradingEngine,
    grade_attempt,
    grade_attempts,
)
from examgrader.schemas.attempt import ExamAttempt, StudentAnswer
from examgrader.schemas.exam import Question


def test_attempt_with_one_missing_model_answer(exam, completed_attempt):
    result = grade_attempt(completed_attempt, exam, MatchingMode.STRICT)

    scores = {a.question_id: a.score for a in result.attempt.answers}
    assert scores == {"1-1": 10, "1-2": 0, "1-3": 20, "1-4": 0, "1-6": None}

    assert result.auto_scored == 4
    assert result.pending_review == 1
    assert result.pending_question_ids == ["1-6"]
    assert result.provisional_question_ids == ["1-4"]
    assert result.attempt.total_score == 30
    assert result.attempt.status == "graded"


def test_total_is_exact_sum_of_scored_answers(exam, completed_attempt):
    result = grade_attempt(completed_attempt, exam, "flexible")

    assert result.total_score == 45
    assert result.total_score == sum(a.score for a in result.attempt.answers if a.score is not None)


def test_pending_answer_keeps_no_feedback(exam, completed_attempt):
    result = grade_attempt(completed_attempt, exam)

    pending = result.attempt.get_answer("1-6")
    assert pending.score is None
    assert pending.feedback is None
    assert pending.answer == "It translates source code"


def test_grading_leaves_input_attempt_untouched(exam, completed_attempt):
    grade_attempt(completed_attempt, exam)

    assert completed_attempt.status == "completed"
    assert completed_attempt.total_score is None
    assert all(a.score is None for a in completed_attempt.answers)


def test_grading_is_repeatable(exam, completed_attempt):
    first = grade_attempt(completed_attempt, exam, "flexible")
    second = grade_attempt(completed_attempt, exam, "flexible")

    assert first.attempt == second.attempt


@pytest.mark.parametrize("status", ["in-progress", "graded"])
def test_only_completed_attempts_are_graded(exam, completed_attempt, status):
    attempt = completed_attempt.model_copy(update={"status": status})

    with pytest.raises(AttemptStateError):
        grade_attempt(attempt, exam)


def test_answer_to_unknown_question_stays_pending(exam, completed_attempt):
    answers = completed_attempt.answers + [StudentAnswer(question_id="ghost", answer="boo")]
    attempt = completed_attempt.model_copy(update={"answers": answers})

    result = grade_attempt(attempt, exam)

    assert len(result.attempt.answers) == 6
    assert result.pending_question_ids == ["1-6", "ghost"]
    assert result.total_score == 30


def test_malformed_question_aborts_with_its_id(exam, completed_attempt):
    broken = Question.model_construct(
        id="1-1", type="multiple-choice", content="?", options=None, correct_answer=0, points=10
    )
    questions = [broken] + exam.questions[1:]
    bad_exam = exam.model_copy(update={"questions": questions})

    with pytest.raises(MalformedQuestionError) as exc_info:
        grade_attempt(completed_attempt, bad_exam)

    assert exc_info.value.question_id == "1-1"


def test_semantic_grading_needs_a_scorer(exam, completed_attempt):
    with pytest.raises(SemanticScorerMissingError):
        grade_attempt(completed_attempt, exam, "semantic")


def test_batch_grades_completed_and_skips_others(exam, completed_attempt):
    in_progress = ExamAttempt(id="attempt-2", exam_id="cs101", student_id="student-2")
    second = completed_attempt.model_copy(update={"id": "attempt-3", "student_id": "student-3"})

    batch = grade_attempts([completed_attempt, in_progress, second], exam, "strict")

    assert batch.evaluated == 2
    assert batch.skipped == 1
    assert batch.skipped_attempt_ids == ["attempt-2"]
    assert batch.auto_scored == 8
    assert batch.pending_review == 2
    assert [a.status for a in batch.attempts] == ["graded", "in-progress", "graded"]


def test_engine_uses_default_mode_and_tracks_stats(exam, completed_attempt):
    engine = ExamGradingEngine(default_mode="flexible")

    result = engine.grade_attempt(completed_attempt, exam)
    batch = engine.grade_attempts([completed_attempt], exam, mode="strict")

    assert result.total_score == 45
    assert batch.results[0].total_score == 30
    config = engine.get_config()
    assert config["default_mode"] == "flexible"
    assert config["statistics"]["attempts_graded"] == 2
    assert config["statistics"]["answers_pending_review"] == 2
