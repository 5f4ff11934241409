from datetime import datetime
from typing import List


class ServiceError(Exception):
    """Base class for service-layer errors."""


class NotFoundError(ServiceError):
    def __init__(self, kind: str, object_id: str):
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"{kind} {object_id!r} not found")


class ExamValidationError(ServiceError):
    """Authoring-time validation failure; carries every problem found."""

    def __init__(self, problems: List[str]):
        self.problems = problems
        super().__init__("; ".join(problems))


class ModelAnswersMissingError(ServiceError):
    def __init__(self, exam_id: str):
        self.exam_id = exam_id
        super().__init__(f"Exam {exam_id!r} has no model answers; upload them before automated evaluation")


class ExamNotOpenError(ServiceError):
    """The exam's availability window does not include the current time."""

    def __init__(self, exam_id: str, reason: str):
        self.exam_id = exam_id
        self.reason = reason
        super().__init__(f"Exam {exam_id!r} is not open: {reason}")


class AttemptTimeExpiredError(ServiceError):
    def __init__(self, attempt_id: str, deadline: datetime):
        self.attempt_id = attempt_id
        self.deadline = deadline
        super().__init__(f"Attempt {attempt_id!r} ran out of time at {deadline.isoformat()}")
