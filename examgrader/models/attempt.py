import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import relationship

from examgrader.db.base import Base


class ExamAttempt(Base):
    __tablename__ = "exam_attempts"

    id = Column(String(64), primary_key=True, default=lambda: str(uuid.uuid4()))

    exam_id = Column(String(64), ForeignKey("exams.id"), nullable=False, index=True)
    student_id = Column(String(64), nullable=False, index=True)

    # in-progress -> completed -> graded
    status = Column(String(20), nullable=False, default="in-progress")

    started_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    deadline = Column(DateTime(timezone=True), nullable=True)

    total_score = Column(Integer, nullable=True)

    answers = relationship(
        "StudentAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
        order_by="StudentAnswer.position",
    )


class StudentAnswer(Base):
    __tablename__ = "student_answers"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    attempt_id = Column(String(64), ForeignKey("exam_attempts.id"), nullable=False, index=True)
    question_id = Column(String(64), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    # str for free text, int for a multiple-choice index
    answer = Column(JSON, nullable=True)
    marked_for_review = Column(Boolean, nullable=False, default=False)

    score = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)

    attempt = relationship("ExamAttempt", back_populates="answers")
