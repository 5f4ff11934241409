# examgrader/schemas/evaluation.py

from typing import List, Optional

from pydantic import BaseModel

from examgrader.engine.evaluator import MatchingMode
from examgrader.schemas.attempt import ExamAttempt


class EvaluationRequest(BaseModel):
    mode: Optional[MatchingMode] = None


class AttemptGradingRead(BaseModel):
    attempt: ExamAttempt
    auto_scored: int
    pending_review: int
    pending_question_ids: List[str]
    total_score: int


class BatchGradingRead(BaseModel):
    exam_id: str
    mode: MatchingMode
    evaluated: int
    skipped: int
    auto_scored: int
    pending_review: int
    results: List[AttemptGradingRead]
