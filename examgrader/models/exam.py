import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from examgrader.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class Exam(Base):
    __tablename__ = "exams"

    id = Column(String(64), primary_key=True, default=_uuid)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    teacher_id = Column(String(64), nullable=True)

    duration_minutes = Column(Integer, nullable=False, default=60)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default="draft")

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    questions = relationship(
        "Question",
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="Question.position",
    )
    model_answers = relationship(
        "ModelAnswer",
        back_populates="exam",
        cascade="all, delete-orphan",
        order_by="ModelAnswer.pk",
    )


class Question(Base):
    __tablename__ = "questions"

    # Question ids are unique within an exam only
    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), nullable=False)
    exam_id = Column(String(64), ForeignKey("exams.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    question_type = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)

    options = Column(JSON, nullable=True)
    correct_answer = Column(JSON, nullable=True)

    points = Column(Integer, nullable=False)
    pdf_url = Column(String(512), nullable=True)

    exam = relationship("Exam", back_populates="questions")


class ModelAnswer(Base):
    __tablename__ = "model_answers"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    exam_id = Column(String(64), ForeignKey("exams.id"), nullable=False, index=True)
    question_id = Column(String(64), nullable=False)

    answer = Column(JSON, nullable=False)
    explanation = Column(Text, nullable=True)

    exam = relationship("Exam", back_populates="model_answers")
