# examgrader/engine/grading.py

"""
ATTEMPT GRADING.

Runs the evaluator over every answer of a submitted attempt and rolls the
per-answer scores up into the attempt total.

GUARANTEES:
1. Only "completed" attempts are graded; grading moves them to "graded"
2. Answers are evaluated independently of one another
3. A missing model answer leaves that one answer unscored, never aborts
4. total_score is the exact sum of the scored answers
5. Every answer comes back, scored or pending
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union
import logging

from examgrader.engine.evaluator import (
    EvaluationError,
    EvaluationOutcome,
    MatchingMode,
    SemanticScorer,
    SemanticScorerMissingError,
    apply_outcome,
    evaluate,
)
from examgrader.schemas.attempt import ExamAttempt
from examgrader.schemas.exam import Exam

logger = logging.getLogger(__name__)


class AttemptStateError(EvaluationError):
    def __init__(self, attempt_id: str, status: str, expected: str = "completed"):
        self.attempt_id = attempt_id
        self.status = status
        super().__init__(
            f"Attempt {attempt_id!r} is {status!r}; only {expected!r} attempts can move forward"
        )


@dataclass
class AttemptGrading:
    """Graded attempt plus how many answers were auto-scored or left pending."""
    attempt: ExamAttempt
    outcomes: Dict[str, EvaluationOutcome] = field(default_factory=dict)
    pending_question_ids: List[str] = field(default_factory=list)
    provisional_question_ids: List[str] = field(default_factory=list)

    @property
    def total_score(self) -> int:
        return self.attempt.total_score or 0

    @property
    def pending_review(self) -> int:
        return len(self.pending_question_ids)

    @property
    def auto_scored(self) -> int:
        return len(self.attempt.answers) - self.pending_review


@dataclass
class BatchGrading:
    exam_id: str
    mode: MatchingMode
    attempts: List[ExamAttempt] = field(default_factory=list)
    results: List[AttemptGrading] = field(default_factory=list)
    skipped_attempt_ids: List[str] = field(default_factory=list)

    @property
    def evaluated(self) -> int:
        return len(self.results)

    @property
    def skipped(self) -> int:
        return len(self.skipped_attempt_ids)

    @property
    def auto_scored(self) -> int:
        return sum(r.auto_scored for r in self.results)

    @property
    def pending_review(self) -> int:
        return sum(r.pending_review for r in self.results)


def grade_attempt(
    attempt: ExamAttempt,
    exam: Exam,
    mode: Union[MatchingMode, str] = MatchingMode.STRICT,
    semantic_scorer: Optional[SemanticScorer] = None,
) -> AttemptGrading:
    """
    Grade one completed attempt against its exam.

    The input attempt is left untouched; the graded copy is returned.
    """
    mode = MatchingMode(mode)
    if mode == MatchingMode.SEMANTIC and semantic_scorer is None:
        raise SemanticScorerMissingError()

    if attempt.status != "completed":
        raise AttemptStateError(attempt.id, attempt.status)

    if attempt.exam_id != exam.id:
        raise EvaluationError(f"Attempt {attempt.id!r} belongs to exam {attempt.exam_id!r}, not {exam.id!r}")

    grading = AttemptGrading(attempt=attempt)
    graded_answers = []

    for answer in attempt.answers:
        question = exam.get_question(answer.question_id)
        if question is None:
            logger.warning(f"Attempt {attempt.id}: question {answer.question_id} not found in exam {exam.id}")
            graded_answers.append(answer.model_copy())
            grading.pending_question_ids.append(answer.question_id)
            continue

        outcome = evaluate(
            question,
            answer,
            exam.get_model_answer(question.id),
            mode=mode,
            semantic_scorer=semantic_scorer,
        )
        grading.outcomes[question.id] = outcome
        graded_answers.append(apply_outcome(answer, outcome))

        if not outcome.is_scored:
            grading.pending_question_ids.append(question.id)
        elif outcome.needs_review:
            grading.provisional_question_ids.append(question.id)

    total_score = sum(a.score for a in graded_answers if a.score is not None)

    grading.attempt = attempt.model_copy(update={
        "answers": graded_answers,
        "status": "graded",
        "total_score": total_score,
    })

    logger.info(
        f"Attempt {attempt.id} graded ({mode.value}): total={total_score}, "
        f"auto_scored={grading.auto_scored}, pending={grading.pending_review}"
    )
    return grading


def grade_attempts(
    attempts: Iterable[ExamAttempt],
    exam: Exam,
    mode: Union[MatchingMode, str] = MatchingMode.STRICT,
    semantic_scorer: Optional[SemanticScorer] = None,
) -> BatchGrading:
    """
    Grade every completed attempt of an exam.

    Attempts in any other status are passed through unchanged and reported
    as skipped. Order of the input is preserved in BatchGrading.attempts.
    """
    batch = BatchGrading(exam_id=exam.id, mode=MatchingMode(mode))

    for attempt in attempts:
        if attempt.status != "completed":
            batch.attempts.append(attempt)
            batch.skipped_attempt_ids.append(attempt.id)
            continue

        result = grade_attempt(attempt, exam, mode=batch.mode, semantic_scorer=semantic_scorer)
        batch.results.append(result)
        batch.attempts.append(result.attempt)

    return batch


class ExamGradingEngine:
    """
    Grading engine bound to a matching mode and an optional semantic scorer.

    Keeps running counters for monitoring; the counters never influence
    scoring.
    """

    ENGINE_VERSION = "rule_based_v1.0"

    def __init__(
        self,
        default_mode: Union[MatchingMode, str] = MatchingMode.STRICT,
        semantic_scorer: Optional[SemanticScorer] = None,
    ):
        self.default_mode = MatchingMode(default_mode)
        self.semantic_scorer = semantic_scorer

        self.stats = {
            "attempts_graded": 0,
            "attempts_skipped": 0,
            "answers_auto_scored": 0,
            "answers_pending_review": 0,
        }

        logger.info(
            f"ExamGradingEngine {self.ENGINE_VERSION} ready "
            f"(default mode={self.default_mode.value}, semantic={'on' if semantic_scorer else 'off'})"
        )

    def _resolve_mode(self, mode: Optional[Union[MatchingMode, str]]) -> MatchingMode:
        resolved = MatchingMode(mode) if mode is not None else self.default_mode
        if resolved == MatchingMode.SEMANTIC and self.semantic_scorer is None:
            raise SemanticScorerMissingError()
        return resolved

    def grade_attempt(
        self,
        attempt: ExamAttempt,
        exam: Exam,
        mode: Optional[Union[MatchingMode, str]] = None,
    ) -> AttemptGrading:
        result = grade_attempt(attempt, exam, self._resolve_mode(mode), self.semantic_scorer)
        self._record(result)
        return result

    def grade_attempts(
        self,
        attempts: Iterable[ExamAttempt],
        exam: Exam,
        mode: Optional[Union[MatchingMode, str]] = None,
    ) -> BatchGrading:
        attempts = list(attempts)
        resolved = self._resolve_mode(mode)
        logger.info(f"Grading {len(attempts)} attempts of exam {exam.id} ({resolved.value})")

        batch = grade_attempts(attempts, exam, resolved, self.semantic_scorer)

        for result in batch.results:
            self._record(result)
        self.stats["attempts_skipped"] += batch.skipped

        logger.info(
            f"Exam {exam.id}: evaluated={batch.evaluated}, skipped={batch.skipped}, "
            f"auto_scored={batch.auto_scored}, pending={batch.pending_review}"
        )
        return batch

    def _record(self, result: AttemptGrading):
        self.stats["attempts_graded"] += 1
        self.stats["answers_auto_scored"] += result.auto_scored
        self.stats["answers_pending_review"] += result.pending_review

    def get_config(self):
        return {
            "version": self.ENGINE_VERSION,
            "default_mode": self.default_mode.value,
            "semantic_enabled": self.semantic_scorer is not None,
            "statistics": dict(self.stats),
        }
