import os

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from examgrader.api.deps import (
    attempt_grading_read,
    get_grading_engine,
    get_repository,
    to_http_exception,
)
from examgrader.core.config import settings
from examgrader.engine.evaluator import EvaluationError
from examgrader.engine.grading import ExamGradingEngine
from examgrader.reports.report_builder import build_attempt_report
from examgrader.reports.report_docx import generate_report_docx
from examgrader.repositories.exam_repository import ExamRepository
from examgrader.schemas.attempt import AnswerSaveRequest, AttemptSubmitRequest, ExamAttempt
from examgrader.schemas.evaluation import AttemptGradingRead, EvaluationRequest
from examgrader.services.errors import ServiceError
from examgrader.services.evaluation import EvaluationService
from examgrader.services.exams import ExamService

router = APIRouter(prefix="/attempts", tags=["Attempts"])


@router.get("/{attempt_id}", response_model=ExamAttempt)
def get_attempt(
    attempt_id: str,
    repository: ExamRepository = Depends(get_repository),
):
    try:
        return ExamService(repository).get_attempt(attempt_id)
    except ServiceError as exc:
        raise to_http_exception(exc)


@router.put("/{attempt_id}/answers/{question_id}", response_model=ExamAttempt)
def save_answer(
    attempt_id: str,
    question_id: str,
    payload: AnswerSaveRequest,
    repository: ExamRepository = Depends(get_repository),
):
    try:
        return ExamService(repository).record_answer(
            attempt_id,
            question_id,
            payload.answer,
            marked_for_review=payload.marked_for_review,
        )
    except (ServiceError, EvaluationError) as exc:
        raise to_http_exception(exc)


@router.post("/{attempt_id}/submit", response_model=ExamAttempt)
def submit_attempt(
    attempt_id: str,
    payload: AttemptSubmitRequest,
    repository: ExamRepository = Depends(get_repository),
):
    try:
        return ExamService(repository).submit_attempt(attempt_id, payload.answers)
    except (ServiceError, EvaluationError) as exc:
        raise to_http_exception(exc)


@router.post("/{attempt_id}/evaluate", response_model=AttemptGradingRead)
def evaluate_attempt(
    attempt_id: str,
    payload: EvaluationRequest,
    repository: ExamRepository = Depends(get_repository),
    engine: ExamGradingEngine = Depends(get_grading_engine),
):
    try:
        result = EvaluationService(repository, engine).evaluate_attempt(attempt_id, payload.mode)
    except (ServiceError, EvaluationError) as exc:
        raise to_http_exception(exc)

    return attempt_grading_read(result)


@router.get("/{attempt_id}/report")
def get_or_download_report(
    attempt_id: str,
    download: bool = Query(False, description="Set true to download report"),
    repository: ExamRepository = Depends(get_repository),
):
    service = ExamService(repository)
    try:
        attempt = service.get_attempt(attempt_id)
        exam = service.get_exam(attempt.exam_id)
    except ServiceError as exc:
        raise to_http_exception(exc)

    report = build_attempt_report(attempt, exam)

    if not download:
        return report

    os.makedirs(settings.REPORTS_DIR, exist_ok=True)
    file_path = os.path.join(settings.REPORTS_DIR, f"exam_report_{attempt.id}.docx")
    generate_report_docx(report, file_path)

    return FileResponse(
        path=file_path,
        filename=os.path.basename(file_path),
        media_type="application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    )
