from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from examgrader.api.deps import (
    batch_grading_read,
    get_grading_engine,
    get_repository,
    to_http_exception,
)
from examgrader.engine.evaluator import EvaluationError
from examgrader.engine.grading import ExamGradingEngine
from examgrader.reports.report_builder import build_exam_summary
from examgrader.repositories.exam_repository import ExamRepository
from examgrader.schemas.attempt import AttemptStartRequest, ExamAttempt
from examgrader.schemas.evaluation import BatchGradingRead, EvaluationRequest
from examgrader.schemas.exam import Exam, ExamCreate, ModelAnswersUpload
from examgrader.services.errors import ServiceError
from examgrader.services.evaluation import EvaluationService
from examgrader.services.exams import ExamService

router = APIRouter(prefix="/exams", tags=["Exams"])


@router.post("", response_model=Exam, status_code=status.HTTP_201_CREATED)
def create_exam(
    payload: ExamCreate,
    repository: ExamRepository = Depends(get_repository),
):
    try:
        return ExamService(repository).create_exam(payload)
    except ServiceError as exc:
        raise to_http_exception(exc)


@router.get("", response_model=List[Exam])
def list_exams(
    teacher_id: Optional[str] = Query(None),
    exam_status: Optional[str] = Query(None, alias="status"),
    repository: ExamRepository = Depends(get_repository),
):
    return ExamService(repository).list_exams(teacher_id=teacher_id, status=exam_status)


@router.get("/{exam_id}", response_model=Exam)
def get_exam(
    exam_id: str,
    repository: ExamRepository = Depends(get_repository),
):
    try:
        return ExamService(repository).get_exam(exam_id)
    except ServiceError as exc:
        raise to_http_exception(exc)


@router.put("/{exam_id}/model-answers", response_model=Exam)
def upload_model_answers(
    exam_id: str,
    payload: ModelAnswersUpload,
    repository: ExamRepository = Depends(get_repository),
):
    try:
        return ExamService(repository).upload_model_answers(exam_id, payload.model_answers)
    except ServiceError as exc:
        raise to_http_exception(exc)


@router.post(
    "/{exam_id}/attempts",
    response_model=ExamAttempt,
    status_code=status.HTTP_201_CREATED,
)
def start_attempt(
    exam_id: str,
    payload: AttemptStartRequest,
    repository: ExamRepository = Depends(get_repository),
):
    try:
        return ExamService(repository).start_attempt(exam_id, payload.student_id)
    except ServiceError as exc:
        raise to_http_exception(exc)


@router.post("/{exam_id}/evaluate", response_model=BatchGradingRead)
def evaluate_exam(
    exam_id: str,
    payload: EvaluationRequest,
    repository: ExamRepository = Depends(get_repository),
    engine: ExamGradingEngine = Depends(get_grading_engine),
):
    """Grade every submitted (completed) attempt of the exam."""
    try:
        batch = EvaluationService(repository, engine).evaluate_exam(exam_id, payload.mode)
    except (ServiceError, EvaluationError) as exc:
        raise to_http_exception(exc)

    return batch_grading_read(batch)


@router.get("/{exam_id}/summary")
def get_exam_summary(
    exam_id: str,
    repository: ExamRepository = Depends(get_repository),
) -> Dict[str, Any]:
    try:
        exam = ExamService(repository).get_exam(exam_id)
    except ServiceError as exc:
        raise to_http_exception(exc)

    return build_exam_summary(exam, repository.list_attempts(exam.id))
