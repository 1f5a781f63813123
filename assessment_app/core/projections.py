"""Output shapes handed to callers.

Taking a quiz and reading a graded attempt expose different fields, so each
view is its own type instead of one entity with fields blanked out.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from assessment_app.core.models import (
    AttemptStatus,
    Quiz,
    QuizAnswer,
    QuizAttempt,
    QuizOption,
    QuizQuestion,
    QuestionType,
)


@dataclass(slots=True, frozen=True)
class OptionView:
    """Option as shown to a student; carries no correctness flag."""

    id: str
    option_text: str

    @classmethod
    def from_option(cls, option: QuizOption) -> "OptionView":
        return cls(id=option.id, option_text=option.option_text)


@dataclass(slots=True, frozen=True)
class QuestionView:
    id: str
    question_text: str
    type: QuestionType
    marks: int | None
    options: tuple[OptionView, ...]

    @classmethod
    def from_question(cls, question: QuizQuestion) -> "QuestionView":
        return cls(
            id=question.id,
            question_text=question.question_text,
            type=question.type,
            marks=question.marks,
            options=tuple(OptionView.from_option(option) for option in question.options),
        )


@dataclass(slots=True, frozen=True)
class AttemptForTaking:
    """A freshly started attempt with the question order this student sees."""

    attempt: QuizAttempt
    quiz_title: str
    duration_minutes: int | None
    total_marks: int | None
    questions: tuple[QuestionView, ...]


@dataclass(slots=True, frozen=True)
class GradedAttempt:
    """Result of a submission. Per-answer feedback only when the quiz allows it."""

    attempt_id: str
    quiz_id: str
    student_id: str
    attempt_number: int
    status: AttemptStatus
    score: int
    total_marks: int | None
    percentage: int
    passed: bool
    submitted_at: datetime | None
    time_spent_seconds: int | None
    answers: tuple[QuizAnswer, ...] = ()

    @classmethod
    def from_attempt(cls, attempt: QuizAttempt, quiz: Quiz) -> "GradedAttempt":
        return cls(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            student_id=attempt.student_id,
            attempt_number=attempt.attempt_number,
            status=attempt.status,
            score=attempt.score or 0,
            total_marks=quiz.total_marks,
            percentage=attempt.percentage or 0,
            passed=quiz.is_passing_score(attempt.score),
            submitted_at=attempt.submitted_at,
            time_spent_seconds=attempt.time_spent_seconds,
            answers=attempt.answers if quiz.show_results_immediately else (),
        )


@dataclass(slots=True, frozen=True)
class AttemptSummary:
    """Read view of an attempt in any status.

    Score fields stay empty until the attempt is graded; per-answer feedback
    follows the same rule as ``GradedAttempt``.
    """

    attempt_id: str
    quiz_id: str
    student_id: str
    attempt_number: int
    status: AttemptStatus
    started_at: datetime
    submitted_at: datetime | None
    time_spent_seconds: int | None
    score: int | None
    total_marks: int | None
    percentage: int | None
    passed: bool
    answers: tuple[QuizAnswer, ...] = ()

    @classmethod
    def from_attempt(cls, attempt: QuizAttempt, quiz: Quiz) -> "AttemptSummary":
        return cls(
            attempt_id=attempt.id,
            quiz_id=attempt.quiz_id,
            student_id=attempt.student_id,
            attempt_number=attempt.attempt_number,
            status=attempt.status,
            started_at=attempt.started_at,
            submitted_at=attempt.submitted_at,
            time_spent_seconds=attempt.time_spent_seconds,
            score=attempt.score,
            total_marks=quiz.total_marks,
            percentage=attempt.percentage,
            passed=quiz.is_passing_score(attempt.score),
            answers=attempt.answers if quiz.show_results_immediately else (),
        )


@dataclass(slots=True, frozen=True)
class QuizStatusRow:
    """A course quiz annotated with one student's progress on it."""

    quiz_id: str
    title: str
    max_attempts: int
    attempts_count: int
    is_completed: bool
    best_score: int | None = None
    best_percentage: int | None = None
    passed: bool = False
