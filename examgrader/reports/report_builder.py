from datetime import datetime, timezone
from fractions import Fraction
from typing import Any, Dict, List

from examgrader.engine.evaluator import round_half_up
from examgrader.schemas.attempt import ExamAttempt
from examgrader.schemas.exam import Exam


def letter_grade(percentage: float) -> str:
    if percentage >= 90:
        return "A"
    if percentage >= 80:
        return "B"
    if percentage >= 70:
        return "C"
    if percentage >= 60:
        return "D"
    return "F"


def _percentage(earned: int, possible: int) -> int:
    return round_half_up(Fraction(earned * 100, possible)) if possible else 0


def build_attempt_report(attempt: ExamAttempt, exam: Exam) -> Dict[str, Any]:
    """Score summary and per-question breakdown for one attempt."""

    max_score = exam.total_points
    earned = attempt.total_score or 0
    percentage = _percentage(earned, max_score)

    # -------------------------
    # PER-QUESTION BREAKDOWN
    # -------------------------
    breakdown: List[Dict[str, Any]] = []
    counts = {"correct": 0, "partial": 0, "incorrect": 0, "not_evaluated": 0}

    for answer in attempt.answers:
        question = exam.get_question(answer.question_id)
        points = question.points if question else 0

        if answer.score is None:
            outcome = "not_evaluated"
        elif answer.score == points:
            outcome = "correct"
        elif answer.score > 0:
            outcome = "partial"
        else:
            outcome = "incorrect"
        counts[outcome] += 1

        breakdown.append({
            "question_id": answer.question_id,
            "type": question.type.value if question else None,
            "content": question.content if question else "",
            "answer": answer.answer,
            "score": answer.score,
            "max_score": points,
            "feedback": answer.feedback,
            "outcome": outcome,
        })

    # -------------------------
    # SUMMARY LINES
    # -------------------------
    if attempt.status == "graded":
        summary = [
            f"Score: {earned} out of {max_score} ({percentage}%).",
            f"Grade: {letter_grade(percentage)}.",
            f"{counts['correct']} correct, {counts['partial']} partially correct, "
            f"{counts['incorrect']} incorrect.",
        ]
        if counts["not_evaluated"]:
            summary.append(f"{counts['not_evaluated']} of {len(breakdown)} answers await manual evaluation.")
    else:
        summary = [f"Attempt is {attempt.status}; no score is available yet."]

    return {
        "attempt_id": attempt.id,
        "exam_id": exam.id,
        "exam_title": exam.title,
        "student_id": attempt.student_id,
        "status": attempt.status,
        "summary": summary,
        "scores": {
            "total_score": attempt.total_score,
            "max_score": max_score,
            "percentage": percentage if attempt.status == "graded" else None,
            "grade": letter_grade(percentage) if attempt.status == "graded" else None,
        },
        "counts": counts,
        "question_breakdown": breakdown,
        "generated_at": datetime.now(timezone.utc).isoformat(),
    }


def build_exam_summary(exam: Exam, attempts: List[ExamAttempt]) -> Dict[str, Any]:
    """Submission progress and score statistics across an exam's attempts."""

    graded = [a for a in attempts if a.status == "graded"]
    pending = [a for a in attempts if a.status == "completed"]
    in_progress = [a for a in attempts if a.status == "in-progress"]

    percentages = [_percentage(a.total_score or 0, exam.total_points) for a in graded]
    average = round(sum(percentages) / len(percentages), 1) if percentages else None

    distribution = {letter: 0 for letter in "ABCDF"}
    for p in percentages:
        distribution[letter_grade(p)] += 1

    return {
        "exam_id": exam.id,
        "exam_title": exam.title,
        "total_points": exam.total_points,
        "has_model_answers": exam.has_model_answers,
        "submissions": {
            "total": len(attempts),
            "graded": len(graded),
            "pending": len(pending),
            "in_progress": len(in_progress),
            "graded_percentage": _percentage(len(graded), max(1, len(attempts))),
        },
        "average_percentage": average,
        "grade_distribution": distribution,
    }
