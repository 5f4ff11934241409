from typing import Optional

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from examgrader.core.config import settings
from examgrader.db.session import get_db
from examgrader.engine.evaluator import EvaluationError, MalformedQuestionError, SemanticScorerMissingError
from examgrader.engine.grading import AttemptGrading, AttemptStateError, BatchGrading, ExamGradingEngine
from examgrader.repositories.exam_repository import ExamRepository, SqlExamRepository
from examgrader.schemas.evaluation import AttemptGradingRead, BatchGradingRead
from examgrader.services.errors import (
    AttemptTimeExpiredError,
    ExamNotOpenError,
    ExamValidationError,
    ModelAnswersMissingError,
    NotFoundError,
    ServiceError,
)


_grading_engine: Optional[ExamGradingEngine] = None


def get_repository(db: Session = Depends(get_db)) -> ExamRepository:
    return SqlExamRepository(db)


def get_grading_engine() -> ExamGradingEngine:
    global _grading_engine
    if _grading_engine is None:
        scorer = None
        if settings.SEMANTIC_ENABLED:
            # torch is only imported when semantic matching is switched on
            from examgrader.engine.semantic import create_semantic_scorer
            scorer = create_semantic_scorer(settings)
        _grading_engine = ExamGradingEngine(
            default_mode=settings.DEFAULT_MATCHING_MODE,
            semantic_scorer=scorer,
        )
    return _grading_engine


def to_http_exception(exc: Exception) -> HTTPException:
    """Map domain errors onto HTTP status codes."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, ExamValidationError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.problems)
    if isinstance(exc, MalformedQuestionError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"question_id": exc.question_id, "error": str(exc)},
        )
    if isinstance(exc, (AttemptStateError, AttemptTimeExpiredError, ExamNotOpenError)):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, (ModelAnswersMissingError, SemanticScorerMissingError, EvaluationError, ServiceError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def attempt_grading_read(result: AttemptGrading) -> AttemptGradingRead:
    return AttemptGradingRead(
        attempt=result.attempt,
        auto_scored=result.auto_scored,
        pending_review=result.pending_review,
        pending_question_ids=result.pending_question_ids,
        total_score=result.total_score,
    )


def batch_grading_read(batch: BatchGrading) -> BatchGradingRead:
    return BatchGradingRead(
        exam_id=batch.exam_id,
        mode=batch.mode,
        evaluated=batch.evaluated,
        skipped=batch.skipped,
        auto_scored=batch.auto_scored,
        pending_review=batch.pending_review,
        results=[attempt_grading_read(r) for r in batch.results],
    )
