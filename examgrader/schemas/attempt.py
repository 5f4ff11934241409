# examgrader/schemas/attempt.py

from datetime import datetime
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

AttemptStatus = Literal["in-progress", "completed", "graded"]


class StudentAnswer(BaseModel):
    question_id: str
    answer: Optional[Union[int, str]] = None
    marked_for_review: bool = False

    # populated only by grading
    score: Optional[int] = None
    feedback: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def is_scored(self) -> bool:
        return self.score is not None


class ExamAttempt(BaseModel):
    id: str
    exam_id: str
    student_id: str
    status: AttemptStatus = "in-progress"
    answers: List[StudentAnswer] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    # answers are accepted until this instant (plus the configured grace period)
    deadline: Optional[datetime] = None
    total_score: Optional[int] = None

    class Config:
        from_attributes = True

    def get_answer(self, question_id: str) -> Optional[StudentAnswer]:
        for answer in self.answers:
            if answer.question_id == question_id:
                return answer
        return None


# =========================
# Request bodies
# =========================
class AttemptStartRequest(BaseModel):
    student_id: str = Field(..., min_length=1)


class AnswerSaveRequest(BaseModel):
    answer: Optional[Union[int, str]] = None
    marked_for_review: bool = False


class AttemptSubmitRequest(BaseModel):
    """Final answers keyed by question id; omitted questions keep their saved answer."""
    answers: Dict[str, Union[int, str]] = Field(default_factory=dict)
