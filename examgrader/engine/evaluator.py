# examgrader/engine/evaluator.py

"""
RULE-BASED ANSWER EVALUATION ENGINE.

Maps one (question, student answer, model answer) triple to an integer score
in [0, points] plus a feedback string. Pure and deterministic: no I/O, no
randomness, no shared state. Calling it twice with the same inputs and mode
always yields the same outcome.

SCORING RULES:
MULTIPLE-CHOICE: exact index match, full points or zero, in every mode
SHORT-ANSWER:
    strict    -> case-insensitive trimmed equality, full points or zero
    flexible  -> model-answer token overlap, tiers 100% / 70% / 30% / 0%
    semantic  -> pluggable similarity scorer, tiers 100% / 60% / 0%
LONG-ANSWER:
    strict    -> zero, left for manual evaluation
    otherwise -> provisional score from response length only (10% .. 70%)
PDF-UPLOAD: never auto-graded

A missing model answer is not an error: the answer comes back unscored so a
teacher can review it. Structurally invalid questions raise
MalformedQuestionError naming the question.
"""

import logging
import math
from fractions import Fraction
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Tuple, Union

from examgrader.schemas.attempt import StudentAnswer
from examgrader.schemas.exam import ModelAnswer, Question, QuestionType

logger = logging.getLogger(__name__)


class MatchingMode(str, Enum):
    """How free-text answers are compared with the model answer."""
    STRICT = "strict"
    FLEXIBLE = "flexible"
    SEMANTIC = "semantic"


class SemanticScorer(Protocol):
    """Deterministic similarity in [0, 1] between an answer and a reference."""

    full_threshold: float
    partial_threshold: float

    def similarity(self, answer: str, reference: str) -> float:
        ...


# -------------------------------------------------------------------
# Errors
# -------------------------------------------------------------------

class EvaluationError(Exception):
    """Base class for evaluation engine errors."""


class MalformedQuestionError(EvaluationError):
    def __init__(self, question_id: str, reason: str):
        self.question_id = question_id
        self.reason = reason
        super().__init__(f"Question {question_id!r} is malformed: {reason}")


class SemanticScorerMissingError(EvaluationError):
    def __init__(self):
        super().__init__("Semantic matching requested but no semantic scorer is configured")


# -------------------------------------------------------------------
# Rule constants
# -------------------------------------------------------------------

# Flexible short-answer: only model tokens longer than this count as matches
MIN_TOKEN_LENGTH = 3

# Point shares are exact fractions so half points always round up.
# (ratio must exceed, share of points, feedback)
FLEXIBLE_TIERS = (
    (0.8, Fraction(1), "Correct answer"),
    (0.5, Fraction(7, 10), "Partially correct answer"),
    (0.3, Fraction(3, 10), "Some correct elements, but incomplete"),
)

SEMANTIC_PARTIAL_SHARE = Fraction(3, 5)
FEEDBACK_SEMANTIC_MATCH = "Correct based on semantic meaning"
FEEDBACK_SEMANTIC_PARTIAL = "Partially correct, but missing some key points"

LONG_ANSWER_MIN_LENGTH = 50
LONG_ANSWER_TARGET_LENGTH = 200
LONG_ANSWER_FLOOR = Fraction(1, 10)
LONG_ANSWER_CEILING = Fraction(7, 10)

FEEDBACK_CORRECT = "Correct answer"
FEEDBACK_MANUAL_REQUIRED = "This answer requires manual evaluation."
FEEDBACK_TOO_SHORT = "Response too short for automated evaluation. Needs manual review."
FEEDBACK_LENGTH_MET = "Length criteria met. Content needs manual verification."
FEEDBACK_LENGTH_PARTIAL = "Partial automated score based on length. Needs manual review."


@dataclass(frozen=True)
class EvaluationOutcome:
    """
    Result of evaluating one answer.

    score is None when the answer could not be auto-graded (no model answer,
    or a manual-only question type). needs_review marks scores that are
    provisional and still expect a teacher's look.
    """
    score: Optional[int]
    feedback: Optional[str]
    max_score: int
    rule: str
    needs_review: bool = False

    @property
    def is_scored(self) -> bool:
        return self.score is not None

    @classmethod
    def unscored(cls, question: Question, rule: str) -> "EvaluationOutcome":
        return cls(score=None, feedback=None, max_score=question.points, rule=rule, needs_review=True)


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def round_half_up(value: Union[float, Fraction]) -> int:
    """Round to the nearest integer, halves up (2.5 -> 3). Fractions stay exact."""
    return int(math.floor(value + Fraction(1, 2)))


def option_letter(index: int) -> str:
    return chr(ord("A") + index)


def _is_index(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _text(value: Optional[Union[int, str]]) -> str:
    if value is None:
        return ""
    return str(value)


def _with_explanation(feedback: str, model_answer: ModelAnswer) -> str:
    explanation = (model_answer.explanation or "").strip()
    if not explanation:
        return feedback
    if not feedback.endswith((".", "!", "?")):
        feedback += "."
    return f"{feedback} {explanation}"


def check_question(question: Question) -> None:
    """Raise MalformedQuestionError when a question cannot be graded at all."""
    if not _is_index(question.points) or question.points <= 0:
        raise MalformedQuestionError(question.id, f"points must be a positive integer, got {question.points!r}")

    if question.type == QuestionType.MULTIPLE_CHOICE and not question.options:
        raise MalformedQuestionError(question.id, "multiple-choice question has no options")


# -------------------------------------------------------------------
# Per-type rules
# -------------------------------------------------------------------

def _evaluate_mcq(
    question: Question,
    answer: StudentAnswer,
    model_answer: ModelAnswer,
) -> Tuple[int, str]:
    expected = model_answer.answer
    if not _is_index(expected) or not 0 <= expected < len(question.options):
        raise MalformedQuestionError(
            question.id,
            f"model answer {expected!r} is not an option index in 0..{len(question.options) - 1}",
        )

    if _is_index(answer.answer) and answer.answer == expected:
        return question.points, FEEDBACK_CORRECT

    return 0, f"Incorrect. The correct answer is option {option_letter(expected)}."


def _evaluate_short_strict(
    question: Question,
    answer: StudentAnswer,
    model_answer: ModelAnswer,
) -> Tuple[int, str]:
    student = _text(answer.answer).strip().lower()
    expected = _text(model_answer.answer).strip().lower()

    if student == expected:
        return question.points, FEEDBACK_CORRECT

    return 0, f"Incorrect. Expected: {model_answer.answer}"


def token_match_ratio(student_answer: str, model_answer: str) -> float:
    """
    Share of model-answer tokens found in the student answer.

    Tokens of MIN_TOKEN_LENGTH characters or fewer never match but still
    count towards the total. Matching is substring containment on the
    lowercased, trimmed student answer.
    """
    student = student_answer.strip().lower()
    terms = model_answer.strip().lower().split()
    if not terms:
        return 0.0

    matched = sum(1 for term in terms if len(term) > MIN_TOKEN_LENGTH and term in student)
    return matched / len(terms)


def _evaluate_short_flexible(
    question: Question,
    answer: StudentAnswer,
    model_answer: ModelAnswer,
) -> Tuple[int, str]:
    ratio = token_match_ratio(_text(answer.answer), _text(model_answer.answer))
    logger.debug(f"Question {question.id}: token match ratio {ratio:.3f}")

    for threshold, share, feedback in FLEXIBLE_TIERS:
        if ratio > threshold:
            return round_half_up(question.points * share), feedback

    return 0, f"Incorrect. Expected: {model_answer.answer}"


def _evaluate_short_semantic(
    question: Question,
    answer: StudentAnswer,
    model_answer: ModelAnswer,
    scorer: SemanticScorer,
) -> Tuple[int, str]:
    student = _text(answer.answer).strip()
    if not student:
        return 0, f"Incorrect. Expected: {model_answer.answer}"

    similarity = float(scorer.similarity(student, _text(model_answer.answer).strip()))
    similarity = max(0.0, min(similarity, 1.0))
    logger.debug(f"Question {question.id}: semantic similarity {similarity:.3f}")

    if similarity >= scorer.full_threshold:
        return question.points, FEEDBACK_SEMANTIC_MATCH

    if similarity >= scorer.partial_threshold:
        return round_half_up(question.points * SEMANTIC_PARTIAL_SHARE), FEEDBACK_SEMANTIC_PARTIAL

    return 0, f"Incorrect. Expected: {model_answer.answer}"


def long_answer_length_score(points: int, length: int) -> Tuple[int, str]:
    """
    Provisional score from response length alone.

    Below LONG_ANSWER_MIN_LENGTH characters the floor share applies, at or
    above LONG_ANSWER_TARGET_LENGTH the ceiling share, linear in between.
    """
    if length < LONG_ANSWER_MIN_LENGTH:
        return round_half_up(points * LONG_ANSWER_FLOOR), FEEDBACK_TOO_SHORT

    if length >= LONG_ANSWER_TARGET_LENGTH:
        return round_half_up(points * LONG_ANSWER_CEILING), FEEDBACK_LENGTH_MET

    ratio = Fraction(length - LONG_ANSWER_MIN_LENGTH, LONG_ANSWER_TARGET_LENGTH - LONG_ANSWER_MIN_LENGTH)
    share = LONG_ANSWER_FLOOR + (LONG_ANSWER_CEILING - LONG_ANSWER_FLOOR) * ratio
    return round_half_up(points * share), FEEDBACK_LENGTH_PARTIAL


# -------------------------------------------------------------------
# Entry points
# -------------------------------------------------------------------

def evaluate(
    question: Question,
    student_answer: StudentAnswer,
    model_answer: Optional[ModelAnswer],
    mode: Union[MatchingMode, str] = MatchingMode.STRICT,
    semantic_scorer: Optional[SemanticScorer] = None,
) -> EvaluationOutcome:
    """
    Evaluate a single answer.

    Args:
        question: The question being answered
        student_answer: The student's response
        model_answer: Teacher reference answer, or None when none was uploaded
        mode: Matching strategy for free-text questions
        semantic_scorer: Required for semantic mode

    Returns:
        EvaluationOutcome; unscored when grading has to be left to a teacher

    Raises:
        MalformedQuestionError: The question or its model answer is invalid
        SemanticScorerMissingError: Semantic mode without a scorer
    """
    mode = MatchingMode(mode)
    if mode == MatchingMode.SEMANTIC and semantic_scorer is None:
        raise SemanticScorerMissingError()

    check_question(question)

    if question.type == QuestionType.PDF_UPLOAD:
        return EvaluationOutcome.unscored(question, "manual_only")

    if model_answer is None:
        logger.info(f"No model answer for question {question.id}, left for manual review")
        return EvaluationOutcome.unscored(question, "missing_reference")

    needs_review = False

    if question.type == QuestionType.MULTIPLE_CHOICE:
        score, feedback = _evaluate_mcq(question, student_answer, model_answer)
        rule = "exact_choice"

    elif question.type == QuestionType.SHORT_ANSWER:
        if mode == MatchingMode.STRICT:
            score, feedback = _evaluate_short_strict(question, student_answer, model_answer)
            rule = "exact_text"
        elif mode == MatchingMode.FLEXIBLE:
            score, feedback = _evaluate_short_flexible(question, student_answer, model_answer)
            rule = "token_overlap"
        else:
            score, feedback = _evaluate_short_semantic(
                question, student_answer, model_answer, semantic_scorer
            )
            rule = "semantic_similarity"

    elif question.type == QuestionType.LONG_ANSWER:
        needs_review = True
        if mode == MatchingMode.STRICT:
            score, feedback = 0, FEEDBACK_MANUAL_REQUIRED
            rule = "manual_required"
        else:
            score, feedback = long_answer_length_score(
                question.points, len(_text(student_answer.answer))
            )
            rule = "length_heuristic"

    else:
        raise MalformedQuestionError(question.id, f"unsupported question type {question.type!r}")

    score = max(0, min(score, question.points))

    return EvaluationOutcome(
        score=score,
        feedback=_with_explanation(feedback, model_answer),
        max_score=question.points,
        rule=rule,
        needs_review=needs_review,
    )


def apply_outcome(student_answer: StudentAnswer, outcome: EvaluationOutcome) -> StudentAnswer:
    """Copy of the answer carrying the outcome; unscored outcomes leave it as is."""
    if not outcome.is_scored:
        return student_answer.model_copy()
    return student_answer.model_copy(update={"score": outcome.score, "feedback": outcome.feedback})
