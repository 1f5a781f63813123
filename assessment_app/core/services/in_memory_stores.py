"""Thread-safe in-memory implementations of the store interfaces.

Used by the HTTP adapter, the entry point and the tests. Every read returns
a fresh list built under the store's lock, so callers always get a complete
snapshot even while other threads are writing.
"""

from __future__ import annotations

from datetime import datetime
from threading import Lock

from assessment_app.core.models import (
    Assignment,
    AssignmentSubmission,
    AttemptStatus,
    Course,
    Enrollment,
    Quiz,
    QuizAttempt,
    QuizQuestion,
)
from assessment_app.core.stores import StoreBundle


class InMemoryCourseStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._courses: dict[str, Course] = {}

    def add(self, course: Course) -> Course:
        with self._lock:
            self._courses[course.id] = course
        return course

    def get(self, course_id: str) -> Course | None:
        with self._lock:
            return self._courses.get(course_id)


class InMemoryEnrollmentStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._enrollments: dict[tuple[str, str], Enrollment] = {}

    def enroll(self, student_id: str, course_id: str, enrolled_at: datetime | None = None) -> Enrollment:
        enrollment = Enrollment(
            student_id=student_id,
            course_id=course_id,
            enrolled_at=enrolled_at or datetime.utcnow(),
        )
        with self._lock:
            self._enrollments[(student_id, course_id)] = enrollment
        return enrollment

    def is_enrolled(self, student_id: str, course_id: str) -> bool:
        with self._lock:
            return (student_id, course_id) in self._enrollments

    def enrollments_for_student(self, student_id: str) -> list[Enrollment]:
        with self._lock:
            return [e for (sid, _), e in self._enrollments.items() if sid == student_id]

    def enrollments_for_course(self, course_id: str) -> list[Enrollment]:
        with self._lock:
            return [e for (_, cid), e in self._enrollments.items() if cid == course_id]


class InMemoryQuizStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._quizzes: dict[str, Quiz] = {}

    def add(self, quiz: Quiz) -> Quiz:
        with self._lock:
            self._quizzes[quiz.id] = quiz
        return quiz

    def get(self, quiz_id: str) -> Quiz | None:
        with self._lock:
            return self._quizzes.get(quiz_id)

    def find_by_course(self, course_id: str) -> list[Quiz]:
        with self._lock:
            return [quiz for quiz in self._quizzes.values() if quiz.course_id == course_id]


class InMemoryQuestionStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._questions: dict[str, QuizQuestion] = {}

    def save(self, question: QuizQuestion) -> QuizQuestion:
        with self._lock:
            self._questions[question.id] = question
        return question

    def find_by_quiz(self, quiz_id: str) -> list[QuizQuestion]:
        with self._lock:
            return [q for q in self._questions.values() if q.quiz_id == quiz_id]


class InMemoryAttemptStore:
    """Attempt rows keyed by id. Needs the quiz store to resolve a quiz's course."""

    def __init__(self, quiz_store: InMemoryQuizStore) -> None:
        self._lock = Lock()
        self._attempts: dict[str, QuizAttempt] = {}
        self._quiz_store = quiz_store

    def save(self, attempt: QuizAttempt) -> QuizAttempt:
        with self._lock:
            self._attempts[attempt.id] = attempt
        return attempt

    def get(self, attempt_id: str) -> QuizAttempt | None:
        with self._lock:
            return self._attempts.get(attempt_id)

    def count_by_quiz_and_student(self, quiz_id: str, student_id: str) -> int:
        return len(self.find_by_quiz_and_student(quiz_id, student_id))

    def find_by_quiz_and_student(self, quiz_id: str, student_id: str) -> list[QuizAttempt]:
        with self._lock:
            return sorted(
                (a for a in self._attempts.values() if a.quiz_id == quiz_id and a.student_id == student_id),
                key=lambda a: a.attempt_number,
            )

    def find_by_student(self, student_id: str) -> list[QuizAttempt]:
        with self._lock:
            return [a for a in self._attempts.values() if a.student_id == student_id]

    def find_graded_by_student_and_course(self, student_id: str, course_id: str) -> list[QuizAttempt]:
        course_quiz_ids = {quiz.id for quiz in self._quiz_store.find_by_course(course_id)}
        with self._lock:
            return [
                a
                for a in self._attempts.values()
                if a.student_id == student_id
                and a.quiz_id in course_quiz_ids
                and a.status == AttemptStatus.GRADED
            ]

    def find_in_progress(self) -> list[QuizAttempt]:
        with self._lock:
            return [a for a in self._attempts.values() if a.status == AttemptStatus.IN_PROGRESS]


class InMemoryAssignmentStore:
    def __init__(self) -> None:
        self._lock = Lock()
        self._assignments: dict[str, Assignment] = {}
        self._submissions: dict[str, AssignmentSubmission] = {}

    def add(self, assignment: Assignment) -> Assignment:
        with self._lock:
            self._assignments[assignment.id] = assignment
        return assignment

    def add_submission(self, submission: AssignmentSubmission) -> AssignmentSubmission:
        with self._lock:
            if submission.assignment_id not in self._assignments:
                raise ValueError(f"Unknown assignment '{submission.assignment_id}'.")
            self._submissions[submission.id] = submission
        return submission

    def find_by_course(self, course_id: str) -> list[Assignment]:
        with self._lock:
            return [a for a in self._assignments.values() if a.course_id == course_id]

    def find_by_student_and_course(self, student_id: str, course_id: str) -> list[AssignmentSubmission]:
        with self._lock:
            course_assignment_ids = {
                a.id for a in self._assignments.values() if a.course_id == course_id
            }
            return [
                s
                for s in self._submissions.values()
                if s.student_id == student_id and s.assignment_id in course_assignment_ids
            ]


def in_memory_stores() -> StoreBundle:
    """Wire a fresh, empty set of in-memory stores."""
    quizzes = InMemoryQuizStore()
    assignments = InMemoryAssignmentStore()
    return StoreBundle(
        courses=InMemoryCourseStore(),
        enrollments=InMemoryEnrollmentStore(),
        quizzes=quizzes,
        questions=InMemoryQuestionStore(),
        attempts=InMemoryAttemptStore(quizzes),
        assignments=assignments,
        submissions=assignments,
    )
