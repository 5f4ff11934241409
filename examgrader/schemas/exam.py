# examgrader/schemas/exam.py

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field


class QuestionType(str, Enum):
    """Supported question types."""
    MULTIPLE_CHOICE = "multiple-choice"
    SHORT_ANSWER = "short-answer"
    LONG_ANSWER = "long-answer"
    PDF_UPLOAD = "pdf-upload"


# =========================
# Question / Model Answer
# =========================
class Question(BaseModel):
    id: str = Field(..., min_length=1)
    type: QuestionType
    content: str = ""

    # multiple-choice only
    options: Optional[List[str]] = None

    # option index for multiple-choice, text for short / long answer
    correct_answer: Optional[Union[int, str]] = None

    points: int = Field(..., gt=0)

    # opaque blob reference for pdf-upload questions
    pdf_url: Optional[str] = None

    class Config:
        from_attributes = True


class ModelAnswer(BaseModel):
    """Teacher-supplied reference answer, kept apart from question content."""
    question_id: str = Field(..., min_length=1)
    answer: Union[int, str]
    explanation: Optional[str] = None

    class Config:
        from_attributes = True


# =========================
# Exam
# =========================
class ExamBase(BaseModel):
    class Config:
        protected_namespaces = ()

    title: str = Field(..., min_length=1)
    description: str = ""
    teacher_id: Optional[str] = None
    duration_minutes: int = Field(60, gt=0)

    # optional availability window; attempts can only start inside it
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    status: Literal["draft", "scheduled", "active", "completed", "graded"] = "draft"
    questions: List[Question] = Field(default_factory=list)
    model_answers: List[ModelAnswer] = Field(default_factory=list)


class ExamCreate(ExamBase):
    id: Optional[str] = None


class Exam(ExamBase):
    id: str
    created_at: Optional[datetime] = None

    @property
    def total_points(self) -> int:
        return sum(q.points for q in self.questions)

    def get_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def get_model_answer(self, question_id: str) -> Optional[ModelAnswer]:
        for model_answer in self.model_answers:
            if model_answer.question_id == question_id:
                return model_answer
        return None

    @property
    def has_model_answers(self) -> bool:
        return bool(self.model_answers)


class ModelAnswersUpload(BaseModel):
    class Config:
        protected_namespaces = ()

    model_answers: List[ModelAnswer]
