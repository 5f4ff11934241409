# examgrader/repositories/exam_repository.py

"""
Storage interface for exams and attempts.

The grading code never reaches for process-wide state: services receive an
ExamRepository and everything goes through it.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from examgrader.models import attempt as attempt_models
from examgrader.models import exam as exam_models
from examgrader.schemas.attempt import ExamAttempt, StudentAnswer
from examgrader.schemas.exam import Exam, ModelAnswer, Question


class ExamRepository(ABC):
    """Abstract base class for exam / attempt storage."""

    @abstractmethod
    def get_exam(self, exam_id: str) -> Optional[Exam]:
        pass

    @abstractmethod
    def list_exams(self) -> List[Exam]:
        pass

    @abstractmethod
    def save_exam(self, exam: Exam) -> Exam:
        """Insert or replace an exam, including its questions and model answers."""
        pass

    @abstractmethod
    def get_attempt(self, attempt_id: str) -> Optional[ExamAttempt]:
        pass

    @abstractmethod
    def save_attempt(self, attempt: ExamAttempt) -> ExamAttempt:
        pass

    @abstractmethod
    def list_attempts(self, exam_id: str, status: Optional[str] = None) -> List[ExamAttempt]:
        pass

    def set_model_answers(self, exam_id: str, model_answers: List[ModelAnswer]) -> Optional[Exam]:
        exam = self.get_exam(exam_id)
        if exam is None:
            return None
        return self.save_exam(exam.model_copy(update={"model_answers": list(model_answers)}))


class InMemoryExamRepository(ExamRepository):
    """Dictionary-backed repository; stores copies so callers cannot mutate it."""

    def __init__(self):
        self._exams: Dict[str, Exam] = {}
        self._attempts: Dict[str, ExamAttempt] = {}

    def get_exam(self, exam_id: str) -> Optional[Exam]:
        exam = self._exams.get(exam_id)
        return exam.model_copy(deep=True) if exam else None

    def list_exams(self) -> List[Exam]:
        return [e.model_copy(deep=True) for e in self._exams.values()]

    def save_exam(self, exam: Exam) -> Exam:
        self._exams[exam.id] = exam.model_copy(deep=True)
        return exam

    def get_attempt(self, attempt_id: str) -> Optional[ExamAttempt]:
        attempt = self._attempts.get(attempt_id)
        return attempt.model_copy(deep=True) if attempt else None

    def save_attempt(self, attempt: ExamAttempt) -> ExamAttempt:
        self._attempts[attempt.id] = attempt.model_copy(deep=True)
        return attempt

    def list_attempts(self, exam_id: str, status: Optional[str] = None) -> List[ExamAttempt]:
        return [
            a.model_copy(deep=True)
            for a in self._attempts.values()
            if a.exam_id == exam_id and (status is None or a.status == status)
        ]


class SqlExamRepository(ExamRepository):
    """SQLAlchemy-backed repository bound to one session."""

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------
    # Exams
    # -------------------------------

    def get_exam(self, exam_id: str) -> Optional[Exam]:
        row = self.db.get(exam_models.Exam, exam_id)
        return _exam_to_schema(row) if row else None

    def list_exams(self) -> List[Exam]:
        rows = self.db.query(exam_models.Exam).order_by(exam_models.Exam.created_at).all()
        return [_exam_to_schema(row) for row in rows]

    def save_exam(self, exam: Exam) -> Exam:
        row = self.db.get(exam_models.Exam, exam.id)
        if row is None:
            row = exam_models.Exam(id=exam.id)
            self.db.add(row)

        row.title = exam.title
        row.description = exam.description
        row.teacher_id = exam.teacher_id
        row.duration_minutes = exam.duration_minutes
        row.start_date = exam.start_date
        row.end_date = exam.end_date
        row.status = exam.status

        row.questions = [
            exam_models.Question(
                id=q.id,
                position=i,
                question_type=q.type.value,
                content=q.content,
                options=q.options,
                correct_answer=q.correct_answer,
                points=q.points,
                pdf_url=q.pdf_url,
            )
            for i, q in enumerate(exam.questions)
        ]
        row.model_answers = [
            exam_models.ModelAnswer(
                question_id=m.question_id,
                answer=m.answer,
                explanation=m.explanation,
            )
            for m in exam.model_answers
        ]

        self.db.commit()
        self.db.refresh(row)
        return _exam_to_schema(row)

    # -------------------------------
    # Attempts
    # -------------------------------

    def get_attempt(self, attempt_id: str) -> Optional[ExamAttempt]:
        row = self.db.get(attempt_models.ExamAttempt, attempt_id)
        return _attempt_to_schema(row) if row else None

    def save_attempt(self, attempt: ExamAttempt) -> ExamAttempt:
        row = self.db.get(attempt_models.ExamAttempt, attempt.id)
        if row is None:
            row = attempt_models.ExamAttempt(id=attempt.id)
            self.db.add(row)

        row.exam_id = attempt.exam_id
        row.student_id = attempt.student_id
        row.status = attempt.status
        row.ended_at = attempt.ended_at
        row.deadline = attempt.deadline
        row.total_score = attempt.total_score
        if attempt.started_at is not None:
            row.started_at = attempt.started_at

        row.answers = [
            attempt_models.StudentAnswer(
                question_id=a.question_id,
                position=i,
                answer=a.answer,
                marked_for_review=a.marked_for_review,
                score=a.score,
                feedback=a.feedback,
            )
            for i, a in enumerate(attempt.answers)
        ]

        self.db.commit()
        self.db.refresh(row)
        return _attempt_to_schema(row)

    def list_attempts(self, exam_id: str, status: Optional[str] = None) -> List[ExamAttempt]:
        query = self.db.query(attempt_models.ExamAttempt).filter(
            attempt_models.ExamAttempt.exam_id == exam_id
        )
        if status is not None:
            query = query.filter(attempt_models.ExamAttempt.status == status)
        rows = query.order_by(attempt_models.ExamAttempt.started_at).all()
        return [_attempt_to_schema(row) for row in rows]


# -------------------------------------------------
# ORM -> schema
# -------------------------------------------------

def _exam_to_schema(row: exam_models.Exam) -> Exam:
    return Exam(
        id=row.id,
        title=row.title,
        description=row.description or "",
        teacher_id=row.teacher_id,
        duration_minutes=row.duration_minutes,
        start_date=row.start_date,
        end_date=row.end_date,
        status=row.status,
        created_at=row.created_at,
        questions=[
            Question(
                id=q.id,
                type=q.question_type,
                content=q.content,
                options=q.options,
                correct_answer=q.correct_answer,
                points=q.points,
                pdf_url=q.pdf_url,
            )
            for q in row.questions
        ],
        model_answers=[
            ModelAnswer(
                question_id=m.question_id,
                answer=m.answer,
                explanation=m.explanation,
            )
            for m in row.model_answers
        ],
    )


def _attempt_to_schema(row: attempt_models.ExamAttempt) -> ExamAttempt:
    return ExamAttempt(
        id=row.id,
        exam_id=row.exam_id,
        student_id=row.student_id,
        status=row.status,
        started_at=row.started_at,
        ended_at=row.ended_at,
        deadline=row.deadline,
        total_score=row.total_score,
        answers=[
            StudentAnswer(
                question_id=a.question_id,
                answer=a.answer,
                marked_for_review=a.marked_for_review,
                score=a.score,
                feedback=a.feedback,
            )
            for a in row.answers
        ],
    )
