"""Domain models for quizzes, attempts, assignments and enrollments.

Every entity is an immutable value object that points at related entities by
id. Services load related records explicitly through the store interfaces and
produce updated copies with ``dataclasses.replace`` instead of mutating.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    TRUE_FALSE = "TRUE_FALSE"
    SHORT_ANSWER = "SHORT_ANSWER"
    ESSAY = "ESSAY"
    MATCHING = "MATCHING"
    FILL_BLANK = "FILL_BLANK"


CHOICE_QUESTION_TYPES = frozenset({QuestionType.MULTIPLE_CHOICE, QuestionType.TRUE_FALSE})
TEXT_QUESTION_TYPES = frozenset({QuestionType.SHORT_ANSWER, QuestionType.FILL_BLANK})
MANUAL_QUESTION_TYPES = frozenset({QuestionType.ESSAY, QuestionType.MATCHING})


class AttemptStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    GRADED = "GRADED"
    EXPIRED = "EXPIRED"


class SubmissionStatus(str, Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    GRADED = "GRADED"
    RETURNED = "RETURNED"
    RESUBMITTED = "RESUBMITTED"


@dataclass(slots=True, frozen=True)
class Course:
    id: str
    title: str


@dataclass(slots=True, frozen=True)
class Enrollment:
    """Links a student to a course."""

    student_id: str
    course_id: str
    enrolled_at: datetime | None = None
    progress_percentage: int = 0


@dataclass(slots=True, frozen=True)
class QuizOption:
    """One selectable option of a choice-type question."""

    id: str
    option_text: str
    is_correct: bool = False
    order_index: int | None = None


@dataclass(slots=True, frozen=True)
class QuizQuestion:
    """A question of one quiz together with its options and grading key."""

    id: str
    quiz_id: str
    question_text: str
    type: QuestionType = QuestionType.MULTIPLE_CHOICE
    marks: int | None = None
    order_index: int | None = None
    correct_answer: str | None = None  # option id for choice types, literal text otherwise
    options: tuple[QuizOption, ...] = ()
    explanation: str | None = None

    def __post_init__(self) -> None:
        if self.marks is not None and self.marks < 0:
            raise ValueError("Question marks must not be negative.")

    def find_option(self, option_id: str) -> QuizOption | None:
        return next((option for option in self.options if option.id == option_id), None)


@dataclass(slots=True, frozen=True)
class Quiz:
    """Quiz settings. Questions are stored separately and looked up by quiz id."""

    id: str
    course_id: str
    title: str
    description: str | None = None
    total_marks: int | None = None
    passing_marks: int | None = None
    duration_minutes: int | None = None
    max_attempts: int = 1
    start_date: datetime | None = None
    end_date: datetime | None = None
    shuffle_questions: bool = False
    shuffle_options: bool = False
    show_results_immediately: bool = False

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("A quiz must allow at least one attempt.")
        if self.total_marks is not None and self.total_marks < 0:
            raise ValueError("Total marks must not be negative.")
        if self.passing_marks is not None and self.passing_marks < 0:
            raise ValueError("Passing marks must not be negative.")
        if (
            self.passing_marks is not None
            and self.total_marks is not None
            and self.passing_marks > self.total_marks
        ):
            raise ValueError("Passing marks cannot exceed total marks.")
        if self.duration_minutes is not None and self.duration_minutes <= 0:
            raise ValueError("Duration must be a positive number of minutes.")

    def is_passing_score(self, score: int | None) -> bool:
        return self.passing_marks is not None and score is not None and score >= self.passing_marks


@dataclass(slots=True, frozen=True)
class SubmittedAnswer:
    """Raw answer sent by a student for one question."""

    question_id: str
    selected_option_id: str | None = None
    answer_text: str | None = None


@dataclass(slots=True, frozen=True)
class QuizAnswer:
    """Graded answer stored with its attempt."""

    question_id: str
    selected_option_id: str | None
    answer_text: str | None
    is_correct: bool
    marks_obtained: int
    requires_manual_review: bool = False


@dataclass(slots=True, frozen=True)
class QuizAttempt:
    id: str
    quiz_id: str
    student_id: str
    attempt_number: int
    started_at: datetime
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    submitted_at: datetime | None = None
    time_spent_seconds: int | None = None
    score: int | None = None
    percentage: int | None = None
    answers: tuple[QuizAnswer, ...] = ()


@dataclass(slots=True, frozen=True)
class Assignment:
    id: str
    course_id: str
    title: str
    max_score: int | None = None


@dataclass(slots=True, frozen=True)
class AssignmentSubmission:
    id: str
    assignment_id: str
    student_id: str
    status: SubmissionStatus = SubmissionStatus.SUBMITTED
    score: int | None = None
    submitted_at: datetime | None = None
    graded_at: datetime | None = None
    is_late: bool = False

    @property
    def is_graded(self) -> bool:
        return self.status == SubmissionStatus.GRADED and self.score is not None
