"""Service for building course report cards and the per-student GPA rollup."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
import logging
from typing import Callable

from assessment_app.constants.grading_constants import (
    ASSIGNMENT_WEIGHT_PERCENT,
    DEFAULT_MAX_SCORE,
    FAILING_GRADE,
    LETTER_GRADE_LADDER,
    QUIZ_WEIGHT_PERCENT,
    SCORE_DECIMALS,
    UNAVAILABLE_GRADE,
)
from assessment_app.core.errors import NotFound
from assessment_app.core.models import (
    Assignment,
    AssignmentSubmission,
    Enrollment,
    Quiz,
    QuizAttempt,
    SubmissionStatus,
)
from assessment_app.core.stores import (
    AssignmentStore,
    AssignmentSubmissionStore,
    AttemptStore,
    CourseStore,
    EnrollmentCheck,
    QuizStore,
)

logger = logging.getLogger(__name__)

_UNTITLED_COURSE = "Untitled Course"


@dataclass(slots=True, frozen=True)
class QuizScoreRow:
    """Best graded attempt of one quiz."""

    quiz_id: str
    quiz_title: str
    score: int
    max_score: int
    percentage: float
    passed: bool
    attempt_date: datetime | None
    attempts_count: int


@dataclass(slots=True, frozen=True)
class AssignmentScoreRow:
    """Latest submission of one assignment. Score fields stay empty until graded."""

    assignment_id: str
    assignment_title: str
    score: int | None
    max_score: int
    percentage: float | None
    status: SubmissionStatus
    submitted_date: datetime | None
    graded_date: datetime | None
    is_graded: bool


@dataclass(slots=True, frozen=True)
class CourseReportCard:
    course_id: str
    course_title: str
    student_id: str
    quiz_average: float = 0.0
    assignment_average: float = 0.0
    overall_score: float = 0.0
    letter_grade: str = UNAVAILABLE_GRADE
    quiz_scores: tuple[QuizScoreRow, ...] = ()
    assignment_scores: tuple[AssignmentScoreRow, ...] = ()
    total_quizzes: int = 0
    total_assignments: int = 0
    quizzes_completed: int = 0
    assignments_completed: int = 0
    enrolled_at: datetime | None = None
    progress_percentage: int = 0
    generated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(slots=True, frozen=True)
class StudentReportCard:
    student_id: str
    course_grades: tuple[CourseReportCard, ...]
    overall_gpa: float
    overall_grade: str
    total_courses: int
    generated_at: datetime = field(default_factory=datetime.utcnow)


def letter_grade(score: float) -> str:
    for threshold, grade in LETTER_GRADE_LADDER:
        if score >= threshold:
            return grade
    return FAILING_GRADE


def round_score(value: float) -> float:
    """Round half up to the reporting precision."""
    quantum = Decimal(1).scaleb(-SCORE_DECIMALS)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def weighted_overall(quiz_average: float | None, assignment_average: float | None) -> float:
    """Combine category averages; ``None`` marks a category without data."""
    if quiz_average is not None and assignment_average is not None:
        return (
            QUIZ_WEIGHT_PERCENT * quiz_average + ASSIGNMENT_WEIGHT_PERCENT * assignment_average
        ) / 100
    if quiz_average is not None:
        return quiz_average
    if assignment_average is not None:
        return assignment_average
    return 0.0


class ReportCardAggregator:
    """Read-only aggregation over attempts and assignment submissions."""

    def __init__(
        self,
        courses: CourseStore,
        quizzes: QuizStore,
        assignments: AssignmentStore,
        attempts: AttemptStore,
        submissions: AssignmentSubmissionStore,
        enrollments: EnrollmentCheck,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._courses = courses
        self._quizzes = quizzes
        self._assignments = assignments
        self._attempts = attempts
        self._submissions = submissions
        self._enrollments = enrollments
        self._clock = clock

    def course_report_card(self, student_id: str, course_id: str) -> CourseReportCard:
        """Report card for one course. Not enrolled gives an empty "N/A" card."""
        course = self._courses.get(course_id)
        if course is None:
            raise NotFound("course", course_id)
        title = course.title or _UNTITLED_COURSE
        if not self._enrollments.is_enrolled(student_id, course_id):
            logger.info("Student %s is not enrolled in %s; returning empty report card", student_id, course_id)
            return CourseReportCard(
                course_id=course_id,
                course_title=title,
                student_id=student_id,
                generated_at=self._clock(),
            )
        return self._build_card(student_id, course_id, title)

    def student_report_card(self, student_id: str) -> StudentReportCard:
        """Every enrolled course plus the unweighted GPA across them."""
        cards = [
            self._card_for_enrollment(enrollment)
            for enrollment in self._enrollments.enrollments_for_student(student_id)
        ]
        if cards:
            gpa = sum(card.overall_score for card in cards) / len(cards)
            grade = letter_grade(gpa)
        else:
            gpa = 0.0
            grade = UNAVAILABLE_GRADE
        return StudentReportCard(
            student_id=student_id,
            course_grades=tuple(cards),
            overall_gpa=round_score(gpa),
            overall_grade=grade,
            total_courses=len(cards),
            generated_at=self._clock(),
        )

    def course_report_cards(self, course_id: str) -> list[CourseReportCard]:
        """Report cards for every student enrolled in a course."""
        if self._courses.get(course_id) is None:
            raise NotFound("course", course_id)
        return [
            self._card_for_enrollment(enrollment)
            for enrollment in self._enrollments.enrollments_for_course(course_id)
        ]

    def _card_for_enrollment(self, enrollment: Enrollment) -> CourseReportCard:
        course = self._courses.get(enrollment.course_id)
        title = course.title if course is not None and course.title else _UNTITLED_COURSE
        return self._build_card(
            enrollment.student_id,
            enrollment.course_id,
            title,
            enrolled_at=enrollment.enrolled_at,
            progress_percentage=enrollment.progress_percentage,
        )

    def _build_card(
        self,
        student_id: str,
        course_id: str,
        course_title: str,
        enrolled_at: datetime | None = None,
        progress_percentage: int = 0,
    ) -> CourseReportCard:
        quizzes = self._quizzes.find_by_course(course_id)
        assignments = self._assignments.find_by_course(course_id)
        attempts = self._attempts.find_graded_by_student_and_course(student_id, course_id)
        submissions = self._submissions.find_by_student_and_course(student_id, course_id)

        quiz_rows = _quiz_rows(quizzes, attempts)
        assignment_rows = _assignment_rows(assignments, submissions)

        quiz_average = _category_average(
            sum(row.score for row in quiz_rows), sum(row.max_score for row in quiz_rows), bool(quiz_rows)
        )
        graded_rows = [row for row in assignment_rows if row.is_graded]
        assignment_average = _category_average(
            sum(row.score or 0 for row in graded_rows),
            sum(row.max_score for row in graded_rows),
            bool(graded_rows),
        )
        overall = weighted_overall(quiz_average, assignment_average)

        return CourseReportCard(
            course_id=course_id,
            course_title=course_title,
            student_id=student_id,
            quiz_average=round_score(quiz_average or 0.0),
            assignment_average=round_score(assignment_average or 0.0),
            overall_score=round_score(overall),
            letter_grade=letter_grade(overall),
            quiz_scores=tuple(quiz_rows),
            assignment_scores=tuple(assignment_rows),
            total_quizzes=len(quizzes),
            total_assignments=len(assignments),
            quizzes_completed=len(quiz_rows),
            assignments_completed=len(assignment_rows),
            enrolled_at=enrolled_at,
            progress_percentage=progress_percentage,
            generated_at=self._clock(),
        )


def best_attempt(attempts: list[QuizAttempt]) -> QuizAttempt | None:
    """Highest score; the later submission wins a tie."""
    if not attempts:
        return None
    return max(attempts, key=lambda a: (a.score or 0, a.submitted_at or datetime.min))


def _quiz_rows(quizzes: list[Quiz], attempts: list[QuizAttempt]) -> list[QuizScoreRow]:
    by_quiz: dict[str, list[QuizAttempt]] = {}
    for attempt in attempts:
        by_quiz.setdefault(attempt.quiz_id, []).append(attempt)

    rows: list[QuizScoreRow] = []
    for quiz in quizzes:
        quiz_attempts = by_quiz.get(quiz.id, [])
        best = best_attempt(quiz_attempts)
        if best is None:
            continue
        score = best.score or 0
        max_score = quiz.total_marks if quiz.total_marks is not None else DEFAULT_MAX_SCORE
        rows.append(
            QuizScoreRow(
                quiz_id=quiz.id,
                quiz_title=quiz.title,
                score=score,
                max_score=max_score,
                percentage=round_score(score * 100 / max_score) if max_score > 0 else 0.0,
                passed=quiz.is_passing_score(score),
                attempt_date=best.submitted_at,
                attempts_count=len(quiz_attempts),
            )
        )
    return rows


def _assignment_rows(
    assignments: list[Assignment], submissions: list[AssignmentSubmission]
) -> list[AssignmentScoreRow]:
    by_assignment: dict[str, list[AssignmentSubmission]] = {}
    for submission in submissions:
        by_assignment.setdefault(submission.assignment_id, []).append(submission)

    rows: list[AssignmentScoreRow] = []
    for assignment in assignments:
        candidates = by_assignment.get(assignment.id)
        if not candidates:
            continue
        # Prefer a graded submission, then the most recent one.
        chosen = max(
            candidates,
            key=lambda s: (s.is_graded, s.graded_at or datetime.min, s.submitted_at or datetime.min),
        )
        max_score = assignment.max_score if assignment.max_score is not None else DEFAULT_MAX_SCORE
        graded = chosen.is_graded
        percentage = None
        if graded:
            percentage = round_score(chosen.score * 100 / max_score) if max_score > 0 else 0.0
        rows.append(
            AssignmentScoreRow(
                assignment_id=assignment.id,
                assignment_title=assignment.title,
                score=chosen.score if graded else None,
                max_score=max_score,
                percentage=percentage,
                status=chosen.status,
                submitted_date=chosen.submitted_at,
                graded_date=chosen.graded_at,
                is_graded=graded,
            )
        )
    return rows


def _category_average(total: int, maximum: int, has_data: bool) -> float | None:
    if not has_data:
        return None
    return total * 100 / maximum if maximum > 0 else 0.0
