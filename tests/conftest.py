from __future__ import annotations

from datetime import datetime, timedelta
import random

import pytest

from assessment_app.core.assessment_manager import AssessmentManager
from assessment_app.core.models import Course, Quiz, QuizOption, QuizQuestion, SubmittedAnswer

COURSE_ID = "course-algebra"
STUDENT_ID = "student-1"


class FakeClock:
    """Settable clock handed to the manager instead of ``datetime.utcnow``."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 3, 4, 9, 0, 0))


@pytest.fixture
def manager(clock: FakeClock) -> AssessmentManager:
    manager = AssessmentManager(clock=clock, rng=random.Random(1234))
    manager.stores.courses.add(Course(id=COURSE_ID, title="Algebra I"))
    manager.stores.enrollments.enroll(STUDENT_ID, COURSE_ID, enrolled_at=clock.now)
    return manager


def choice_question(question_id: str, marks: int | None = 1) -> QuizQuestion:
    """Two-option question whose correct option id is ``<question_id>-right``."""
    return QuizQuestion(
        id=question_id,
        quiz_id="",
        question_text=f"Question {question_id}?",
        marks=marks,
        options=(
            QuizOption(id=f"{question_id}-right", option_text="Right", is_correct=True),
            QuizOption(id=f"{question_id}-wrong", option_text="Wrong"),
        ),
    )


@pytest.fixture
def make_quiz(manager: AssessmentManager):
    """Create a quiz in the default course with one choice question per mark value."""

    def _make(quiz_id: str = "quiz-1", question_marks=(5, 5), course_id: str = COURSE_ID, **settings) -> Quiz:
        settings.setdefault("total_marks", sum(question_marks))
        quiz = manager.stores.quizzes.add(
            Quiz(id=quiz_id, course_id=course_id, title=f"Quiz {quiz_id}", **settings)
        )
        for index, marks in enumerate(question_marks):
            manager.add_question(quiz.id, choice_question(f"{quiz_id}-q{index}", marks))
        return quiz

    return _make


def right(question_id: str) -> SubmittedAnswer:
    return SubmittedAnswer(question_id=question_id, selected_option_id=f"{question_id}-right")


def wrong(question_id: str) -> SubmittedAnswer:
    return SubmittedAnswer(question_id=question_id, selected_option_id=f"{question_id}-wrong")
