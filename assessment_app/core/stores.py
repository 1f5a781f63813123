"""Collaborator interfaces the assessment core depends on.

Persistence, enrollment lookups and notification delivery live outside the
core. Anything satisfying these protocols can be plugged into the services;
``assessment_app.core.services.in_memory_stores`` ships one implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from assessment_app.core.models import (
    Assignment,
    AssignmentSubmission,
    Course,
    Enrollment,
    Quiz,
    QuizAttempt,
    QuizQuestion,
)


class EnrollmentCheck(Protocol):
    def is_enrolled(self, student_id: str, course_id: str) -> bool: ...

    def enrollments_for_student(self, student_id: str) -> list[Enrollment]: ...

    def enrollments_for_course(self, course_id: str) -> list[Enrollment]: ...


class CourseStore(Protocol):
    def get(self, course_id: str) -> Course | None: ...


class QuizStore(Protocol):
    def get(self, quiz_id: str) -> Quiz | None: ...

    def find_by_course(self, course_id: str) -> list[Quiz]: ...


class QuestionStore(Protocol):
    def find_by_quiz(self, quiz_id: str) -> list[QuizQuestion]: ...

    def save(self, question: QuizQuestion) -> QuizQuestion: ...


class AttemptStore(Protocol):
    def get(self, attempt_id: str) -> QuizAttempt | None: ...

    def save(self, attempt: QuizAttempt) -> QuizAttempt: ...

    def count_by_quiz_and_student(self, quiz_id: str, student_id: str) -> int: ...

    def find_by_quiz_and_student(self, quiz_id: str, student_id: str) -> list[QuizAttempt]: ...

    def find_by_student(self, student_id: str) -> list[QuizAttempt]: ...

    def find_graded_by_student_and_course(self, student_id: str, course_id: str) -> list[QuizAttempt]: ...

    def find_in_progress(self) -> list[QuizAttempt]: ...


class AssignmentStore(Protocol):
    def find_by_course(self, course_id: str) -> list[Assignment]: ...


class AssignmentSubmissionStore(Protocol):
    def find_by_student_and_course(self, student_id: str, course_id: str) -> list[AssignmentSubmission]: ...


class GradingNotifier(Protocol):
    """Told about every graded attempt. Delivery is best effort."""

    def quiz_graded(self, attempt: QuizAttempt, quiz: Quiz) -> None: ...


@dataclass(slots=True)
class StoreBundle:
    """The full set of stores the assessment services read and write."""

    courses: CourseStore
    enrollments: EnrollmentCheck
    quizzes: QuizStore
    questions: QuestionStore
    attempts: AttemptStore
    assignments: AssignmentStore
    submissions: AssignmentSubmissionStore
