import pytest

from examgrader.repositories.exam_repository import InMemoryExamRepository
from examgrader.schemas.attempt import ExamAttempt, StudentAnswer
from examgrader.schemas.exam import Exam, ModelAnswer, Question
from examgrader.tests.factories import exam_payload, submitted_answers


@pytest.fixture
def exam() -> Exam:
    return Exam(**exam_payload())


@pytest.fixture
def completed_attempt() -> ExamAttempt:
    return ExamAttempt(
        id="attempt-1",
        exam_id="cs101",
        student_id="student-1",
        status="completed",
        answers=[StudentAnswer(question_id=qid, answer=value) for qid, value in submitted_answers().items()],
    )


@pytest.fixture
def repository() -> InMemoryExamRepository:
    return InMemoryExamRepository()


@pytest.fixture
def mcq() -> Question:
    return Question(
        id="mcq-1",
        type="multiple-choice",
        content="Pick the third letter",
        options=["A", "B", "C", "D"],
        correct_answer=2,
        points=10,
    )


@pytest.fixture
def mcq_model_answer() -> ModelAnswer:
    return ModelAnswer(question_id="mcq-1", answer=2)
