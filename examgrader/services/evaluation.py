# examgrader/services/evaluation.py

import logging
from typing import Optional, Union

from examgrader.engine.evaluator import MatchingMode
from examgrader.engine.grading import AttemptGrading, BatchGrading, ExamGradingEngine
from examgrader.repositories.exam_repository import ExamRepository
from examgrader.schemas.exam import Exam
from examgrader.services.errors import ModelAnswersMissingError, NotFoundError

logger = logging.getLogger(__name__)


class EvaluationService:
    """Loads submissions, runs the grading engine, and writes the results back."""

    def __init__(self, repository: ExamRepository, engine: ExamGradingEngine):
        self.repository = repository
        self.engine = engine

    def _load_gradable_exam(self, exam_id: str) -> Exam:
        exam = self.repository.get_exam(exam_id)
        if exam is None:
            raise NotFoundError("Exam", exam_id)

        if not exam.has_model_answers:
            raise ModelAnswersMissingError(exam.id)
        return exam

    def evaluate_exam(
        self,
        exam_id: str,
        mode: Optional[Union[MatchingMode, str]] = None,
    ) -> BatchGrading:
        """Grade every completed attempt of an exam and persist the graded attempts."""
        exam = self._load_gradable_exam(exam_id)
        attempts = self.repository.list_attempts(exam.id)

        batch = self.engine.grade_attempts(attempts, exam, mode)

        saved = {}
        for result in batch.results:
            result.attempt = self.repository.save_attempt(result.attempt)
            saved[result.attempt.id] = result.attempt

        batch.attempts = [saved.get(a.id, a) for a in batch.attempts]
        return batch

    def evaluate_attempt(
        self,
        attempt_id: str,
        mode: Optional[Union[MatchingMode, str]] = None,
    ) -> AttemptGrading:
        attempt = self.repository.get_attempt(attempt_id)
        if attempt is None:
            raise NotFoundError("Attempt", attempt_id)

        exam = self._load_gradable_exam(attempt.exam_id)
        result = self.engine.grade_attempt(attempt, exam, mode)
        result.attempt = self.repository.save_attempt(result.attempt)
        return result
