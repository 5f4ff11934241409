# examgrader/services/exams.py

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Union

from examgrader.core.config import settings
from examgrader.engine.grading import AttemptStateError
from examgrader.repositories.exam_repository import ExamRepository
from examgrader.schemas.attempt import ExamAttempt, StudentAnswer
from examgrader.schemas.exam import Exam, ExamCreate, ModelAnswer, Question, QuestionType
from examgrader.services.errors import (
    AttemptTimeExpiredError,
    ExamNotOpenError,
    ExamValidationError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


def _is_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes (as SQLite hands them back) are taken to be UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _question_problems(question: Question) -> List[str]:
    problems = []

    if not _is_index(question.points) or question.points <= 0:
        problems.append(f"Question {question.id}: points must be a positive integer")

    if question.type == QuestionType.MULTIPLE_CHOICE:
        if not question.options:
            problems.append(f"Question {question.id}: multiple-choice question has no options")
        elif question.correct_answer is not None and not (
            _is_index(question.correct_answer) and 0 <= question.correct_answer < len(question.options)
        ):
            problems.append(
                f"Question {question.id}: correct answer must be an option index "
                f"between 0 and {len(question.options) - 1}"
            )

    elif question.type in (QuestionType.SHORT_ANSWER, QuestionType.LONG_ANSWER):
        if question.options:
            problems.append(f"Question {question.id}: options are only allowed on multiple-choice questions")
        if question.correct_answer is not None and not isinstance(question.correct_answer, str):
            problems.append(f"Question {question.id}: correct answer must be text")

    return problems


def _model_answer_problems(exam: Exam) -> List[str]:
    problems = []
    seen = set()

    for model_answer in exam.model_answers:
        qid = model_answer.question_id
        question = exam.get_question(qid)

        if qid in seen:
            problems.append(f"Model answer for question {qid} given more than once")
        seen.add(qid)

        if question is None:
            problems.append(f"Model answer references unknown question {qid}")
            continue

        if question.type == QuestionType.MULTIPLE_CHOICE:
            options = question.options or []
            if not (_is_index(model_answer.answer) and 0 <= model_answer.answer < len(options)):
                problems.append(f"Model answer for question {qid} must be an option index")
        elif question.type == QuestionType.PDF_UPLOAD:
            problems.append(f"Question {qid} is a pdf upload and cannot have a model answer")
        elif not isinstance(model_answer.answer, str) or not model_answer.answer.strip():
            problems.append(f"Model answer for question {qid} must be non-empty text")

    return problems


def validate_exam(exam: Exam) -> None:
    """
    Authoring-time checks, run whenever an exam or its model answers change.

    Raises:
        ExamValidationError: listing every problem found
    """
    problems = []

    seen = set()
    for question in exam.questions:
        if question.id in seen:
            problems.append(f"Question id {question.id} is used more than once")
        seen.add(question.id)
        problems.extend(_question_problems(question))

    problems.extend(_model_answer_problems(exam))

    if exam.start_date and exam.end_date and _as_utc(exam.end_date) <= _as_utc(exam.start_date):
        problems.append("Exam end date must be after its start date")

    if problems:
        raise ExamValidationError(problems)


class ExamService:
    """
    Exam authoring and the attempt lifecycle up to submission.

    Attempts are timed: each gets a deadline when it starts, and answers
    arriving later than deadline + grace are refused. clock is injectable
    so tests can move time.
    """

    def __init__(
        self,
        repository: ExamRepository,
        clock: Optional[Callable[[], datetime]] = None,
        grace_seconds: Optional[int] = None,
    ):
        self.repository = repository
        self.clock = clock or _utcnow
        if grace_seconds is None:
            grace_seconds = settings.ATTEMPT_GRACE_SECONDS
        self.grace = timedelta(seconds=grace_seconds)

    # ==============================
    # Exams
    # ==============================
    def create_exam(self, payload: ExamCreate) -> Exam:
        data = payload.model_dump(exclude={"id"})
        exam = Exam(id=payload.id or str(uuid.uuid4()), **data)

        if self.repository.get_exam(exam.id) is not None:
            raise ExamValidationError([f"Exam id {exam.id} already exists"])

        validate_exam(exam)
        saved = self.repository.save_exam(exam)
        logger.info(f"Created exam {saved.id} with {len(saved.questions)} questions")
        return saved

    def get_exam(self, exam_id: str) -> Exam:
        exam = self.repository.get_exam(exam_id)
        if exam is None:
            raise NotFoundError("Exam", exam_id)
        return exam

    def list_exams(self, teacher_id: Optional[str] = None, status: Optional[str] = None) -> List[Exam]:
        exams = self.repository.list_exams()
        if teacher_id is not None:
            exams = [e for e in exams if e.teacher_id == teacher_id]
        if status is not None:
            exams = [e for e in exams if e.status == status]
        return exams

    def upload_model_answers(self, exam_id: str, model_answers: List[ModelAnswer]) -> Exam:
        """Replace the exam's model answers; question content stays as authored."""
        exam = self.get_exam(exam_id)
        validate_exam(exam.model_copy(update={"model_answers": list(model_answers)}))

        saved = self.repository.set_model_answers(exam_id, model_answers)
        logger.info(f"Exam {exam_id}: {len(model_answers)} model answers uploaded")
        return saved

    # ==============================
    # Attempts
    # ==============================
    def start_attempt(self, exam_id: str, student_id: str) -> ExamAttempt:
        exam = self.get_exam(exam_id)
        now = self.clock()

        start_date, end_date = _as_utc(exam.start_date), _as_utc(exam.end_date)
        if start_date and now < start_date:
            raise ExamNotOpenError(exam.id, f"opens at {start_date.isoformat()}")
        if end_date and now >= end_date:
            raise ExamNotOpenError(exam.id, f"closed at {end_date.isoformat()}")

        deadline = now + timedelta(minutes=exam.duration_minutes)
        if end_date and end_date < deadline:
            deadline = end_date

        attempt = ExamAttempt(
            id=str(uuid.uuid4()),
            exam_id=exam.id,
            student_id=student_id,
            status="in-progress",
            started_at=now,
            deadline=deadline,
            answers=[StudentAnswer(question_id=q.id) for q in exam.questions],
        )
        logger.info(f"Attempt {attempt.id} started on exam {exam.id}, due {deadline.isoformat()}")
        return self.repository.save_attempt(attempt)

    def _is_overdue(self, attempt: ExamAttempt) -> bool:
        deadline = _as_utc(attempt.deadline)
        return deadline is not None and self.clock() > deadline + self.grace

    def get_attempt(self, attempt_id: str) -> ExamAttempt:
        attempt = self.repository.get_attempt(attempt_id)
        if attempt is None:
            raise NotFoundError("Attempt", attempt_id)
        return attempt

    def record_answer(
        self,
        attempt_id: str,
        question_id: str,
        answer: Optional[Union[int, str]],
        marked_for_review: bool = False,
    ) -> ExamAttempt:
        attempt = self.get_attempt(attempt_id)
        if attempt.status != "in-progress":
            raise AttemptStateError(attempt.id, attempt.status, expected="in-progress")
        if self._is_overdue(attempt):
            raise AttemptTimeExpiredError(attempt.id, _as_utc(attempt.deadline))

        exam = self.get_exam(attempt.exam_id)
        answers = self._set_answers(exam, attempt, {question_id: answer})

        answers = [
            a.model_copy(update={"marked_for_review": marked_for_review}) if a.question_id == question_id else a
            for a in answers
        ]
        return self.repository.save_attempt(attempt.model_copy(update={"answers": answers}))

    def submit_attempt(self, attempt_id: str, answers: Optional[Dict[str, Union[int, str]]] = None) -> ExamAttempt:
        """
        Close an in-progress attempt; it becomes available for grading.

        After the deadline (and grace period) new answers are refused, but an
        empty submission still closes the attempt with what was saved in time.
        """
        attempt = self.get_attempt(attempt_id)
        if attempt.status != "in-progress":
            raise AttemptStateError(attempt.id, attempt.status, expected="in-progress")

        ended_at = self.clock()
        if self._is_overdue(attempt):
            if answers:
                raise AttemptTimeExpiredError(attempt.id, _as_utc(attempt.deadline))
            ended_at = _as_utc(attempt.deadline)
            logger.warning(f"Attempt {attempt.id} submitted after its deadline; closing with saved answers")

        exam = self.get_exam(attempt.exam_id)
        updated = attempt.model_copy(update={
            "answers": self._set_answers(exam, attempt, answers or {}),
            "status": "completed",
            "ended_at": ended_at,
        })

        logger.info(f"Attempt {attempt.id} submitted for exam {exam.id}")
        return self.repository.save_attempt(updated)

    @staticmethod
    def _set_answers(
        exam: Exam,
        attempt: ExamAttempt,
        new_answers: Dict[str, Union[int, str, None]],
    ) -> List[StudentAnswer]:
        problems = []
        for question_id, value in new_answers.items():
            question = exam.get_question(question_id)
            if question is None:
                problems.append(f"Question {question_id} is not part of exam {exam.id}")
            elif question.type == QuestionType.MULTIPLE_CHOICE and value is not None and not (
                _is_index(value) and 0 <= value < len(question.options or [])
            ):
                problems.append(f"Answer to question {question_id} must be an option index")
        if problems:
            raise ExamValidationError(problems)

        answers = []
        for answer in attempt.answers:
            if answer.question_id in new_answers:
                answer = answer.model_copy(update={"answer": new_answers[answer.question_id]})
            answers.append(answer)

        known = {a.question_id for a in answers}
        for question_id, value in new_answers.items():
            if question_id not in known:
                answers.append(StudentAnswer(question_id=question_id, answer=value))
        return answers
