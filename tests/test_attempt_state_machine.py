from __future__ import annotations

from datetime import timedelta
import random
from threading import Barrier, Thread

import pytest

from assessment_app.core.assessment_manager import AssessmentManager
from assessment_app.core.errors import (
    AssessmentError,
    AttemptLimitExceeded,
    DuplicateAnswer,
    InvalidAttemptState,
    NotEnrolled,
    NotFound,
    QuestionNotFound,
    QuizClosed,
    QuizHasNoQuestions,
    QuizNotYetAvailable,
)
from assessment_app.core.models import AttemptStatus, Course, Quiz
from assessment_app.core.services.attempt_state_machine import KeyedLocks
from conftest import COURSE_ID, STUDENT_ID, choice_question, right, wrong


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls = []

    def quiz_graded(self, attempt, quiz) -> None:
        self.calls.append((attempt.id, attempt.score, quiz.id))


class BrokenNotifier:
    def quiz_graded(self, attempt, quiz) -> None:
        raise RuntimeError("mail server down")


def _manager_with(notifier, clock) -> AssessmentManager:
    manager = AssessmentManager(notifier=notifier, clock=clock, rng=random.Random(3))
    manager.stores.courses.add(Course(id=COURSE_ID, title="Algebra I"))
    manager.stores.enrollments.enroll(STUDENT_ID, COURSE_ID)
    manager.stores.quizzes.add(Quiz(id="quiz-n", course_id=COURSE_ID, title="Notify", total_marks=2))
    manager.add_question("quiz-n", choice_question("quiz-n-q0", marks=2))
    return manager


def test_start_creates_first_attempt_and_hides_answer_key(manager, make_quiz, clock):
    quiz = make_quiz(duration_minutes=30)

    started = manager.start_attempt(quiz.id, STUDENT_ID)

    assert started.attempt.attempt_number == 1
    assert started.attempt.status == AttemptStatus.IN_PROGRESS
    assert started.attempt.started_at == clock.now
    assert started.duration_minutes == 30
    assert started.total_marks == 10
    assert {q.id for q in started.questions} == {"quiz-1-q0", "quiz-1-q1"}
    for question in started.questions:
        assert not hasattr(question, "correct_answer")
        assert all(not hasattr(option, "is_correct") for option in question.options)
    assert manager.get_attempt(started.attempt.id) == started.attempt


def test_attempt_numbers_increase_until_limit(manager, make_quiz):
    quiz = make_quiz(max_attempts=2)

    first = manager.start_attempt(quiz.id, STUDENT_ID)
    second = manager.start_attempt(quiz.id, STUDENT_ID)
    with pytest.raises(AttemptLimitExceeded) as excinfo:
        manager.start_attempt(quiz.id, STUDENT_ID)

    assert (first.attempt.attempt_number, second.attempt.attempt_number) == (1, 2)
    assert excinfo.value.details["current_attempts"] == 2
    assert len(manager.get_student_attempts(STUDENT_ID)) == 2


def test_start_before_window_opens(manager, make_quiz, clock):
    quiz = make_quiz(start_date=clock.now + timedelta(days=1))

    with pytest.raises(QuizNotYetAvailable):
        manager.start_attempt(quiz.id, STUDENT_ID)


def test_start_after_window_closes(manager, make_quiz, clock):
    quiz = make_quiz(end_date=clock.now - timedelta(minutes=1))

    with pytest.raises(QuizClosed):
        manager.start_attempt(quiz.id, STUDENT_ID)


def test_attempt_limit_is_checked_before_window(manager, make_quiz, clock):
    quiz = make_quiz(end_date=clock.now + timedelta(minutes=5))
    manager.start_attempt(quiz.id, STUDENT_ID)
    clock.advance(minutes=10)

    with pytest.raises(AttemptLimitExceeded):
        manager.start_attempt(quiz.id, STUDENT_ID)


def test_start_requires_enrollment(manager, make_quiz):
    quiz = make_quiz()

    with pytest.raises(NotEnrolled):
        manager.start_attempt(quiz.id, "stranger")

    assert manager.get_student_attempts("stranger") == []


def test_start_requires_questions(manager, make_quiz):
    quiz = make_quiz(question_marks=(), total_marks=0)

    with pytest.raises(QuizHasNoQuestions):
        manager.start_attempt(quiz.id, STUDENT_ID)


def test_start_unknown_quiz(manager):
    with pytest.raises(NotFound):
        manager.start_attempt("missing", STUDENT_ID)


def test_submit_grades_and_records_time(manager, make_quiz, clock):
    quiz = make_quiz(passing_marks=5)
    started = manager.start_attempt(quiz.id, STUDENT_ID)
    clock.advance(seconds=90)

    graded = manager.submit_attempt(started.attempt.id, [right("quiz-1-q0"), wrong("quiz-1-q1")])

    assert graded.status == AttemptStatus.GRADED
    assert (graded.score, graded.percentage, graded.passed) == (5, 50, True)
    assert graded.time_spent_seconds == 90
    assert graded.submitted_at == clock.now
    stored = manager.get_attempt(started.attempt.id)
    assert stored.status == AttemptStatus.GRADED
    assert stored.score == 5
    assert len(stored.answers) == 2


def test_feedback_only_when_results_are_shown(manager, make_quiz):
    hidden = make_quiz("quiz-hidden")
    shown = make_quiz("quiz-shown", show_results_immediately=True)

    hidden_attempt = manager.start_attempt(hidden.id, STUDENT_ID).attempt
    shown_attempt = manager.start_attempt(shown.id, STUDENT_ID).attempt

    assert manager.submit_attempt(hidden_attempt.id, [right("quiz-hidden-q0")]).answers == ()
    answers = manager.submit_attempt(shown_attempt.id, [right("quiz-shown-q0")]).answers
    assert [(a.question_id, a.is_correct, a.marks_obtained) for a in answers] == [("quiz-shown-q0", True, 5)]


def test_second_submit_is_rejected_and_score_kept(manager, make_quiz):
    quiz = make_quiz()
    attempt_id = manager.start_attempt(quiz.id, STUDENT_ID).attempt.id
    manager.submit_attempt(attempt_id, [right("quiz-1-q0"), right("quiz-1-q1")])

    with pytest.raises(InvalidAttemptState):
        manager.submit_attempt(attempt_id, [wrong("quiz-1-q0")])

    assert manager.get_attempt(attempt_id).score == 10


def test_clock_skew_clamps_time_spent(manager, make_quiz, clock):
    quiz = make_quiz()
    attempt_id = manager.start_attempt(quiz.id, STUDENT_ID).attempt.id
    clock.advance(seconds=-30)

    graded = manager.submit_attempt(attempt_id, [])

    assert graded.time_spent_seconds == 0
    assert graded.score == 0


def test_late_submission_of_started_attempt_is_accepted(manager, make_quiz, clock):
    quiz = make_quiz(end_date=clock.now + timedelta(minutes=10))
    attempt_id = manager.start_attempt(quiz.id, STUDENT_ID).attempt.id
    clock.advance(minutes=20)

    graded = manager.submit_attempt(attempt_id, [right("quiz-1-q0")])

    assert graded.score == 5


def test_duplicate_answers_are_rejected(manager, make_quiz):
    quiz = make_quiz()
    attempt_id = manager.start_attempt(quiz.id, STUDENT_ID).attempt.id

    with pytest.raises(DuplicateAnswer):
        manager.submit_attempt(attempt_id, [right("quiz-1-q0"), right("quiz-1-q0")])

    assert manager.get_attempt(attempt_id).status == AttemptStatus.IN_PROGRESS


def test_foreign_question_leaves_attempt_open(manager, make_quiz):
    quiz = make_quiz()
    make_quiz("quiz-other")
    attempt_id = manager.start_attempt(quiz.id, STUDENT_ID).attempt.id

    with pytest.raises(QuestionNotFound):
        manager.submit_attempt(attempt_id, [right("quiz-other-q0")])

    assert manager.get_attempt(attempt_id).status == AttemptStatus.IN_PROGRESS
    assert manager.submit_attempt(attempt_id, [right("quiz-1-q0")]).score == 5


def test_submit_by_other_student_is_not_found(manager, make_quiz):
    quiz = make_quiz()
    attempt_id = manager.start_attempt(quiz.id, STUDENT_ID).attempt.id

    with pytest.raises(NotFound):
        manager.submit_attempt(attempt_id, [], student_id="student-2")

    assert manager.get_attempt(attempt_id).status == AttemptStatus.IN_PROGRESS


def test_submit_unknown_attempt(manager):
    with pytest.raises(NotFound):
        manager.submit_attempt("missing", [])


def test_sweep_expires_overdue_attempts_only(manager, make_quiz, clock):
    timed = make_quiz("quiz-timed", duration_minutes=30)
    untimed = make_quiz("quiz-untimed")
    overdue = manager.start_attempt(timed.id, STUDENT_ID).attempt
    open_ended = manager.start_attempt(untimed.id, STUDENT_ID).attempt
    clock.advance(minutes=31)

    expired = manager.expire_stale_attempts()

    assert [a.id for a in expired] == [overdue.id]
    assert manager.get_attempt(overdue.id).status == AttemptStatus.EXPIRED
    assert manager.get_attempt(overdue.id).time_spent_seconds == 31 * 60
    assert manager.get_attempt(open_ended.id).status == AttemptStatus.IN_PROGRESS
    with pytest.raises(InvalidAttemptState):
        manager.submit_attempt(overdue.id, [right("quiz-timed-q0")])


def test_sweep_expires_attempts_past_quiz_end(manager, make_quiz, clock):
    quiz = make_quiz(end_date=clock.now + timedelta(minutes=5))
    attempt = manager.start_attempt(quiz.id, STUDENT_ID).attempt
    clock.advance(minutes=6)

    assert [a.id for a in manager.expire_stale_attempts()] == [attempt.id]


def test_submitted_attempt_is_not_expired(manager, make_quiz, clock):
    quiz = make_quiz(duration_minutes=1)
    attempt_id = manager.start_attempt(quiz.id, STUDENT_ID).attempt.id
    manager.submit_attempt(attempt_id, [right("quiz-1-q0")])
    clock.advance(minutes=5)

    assert manager.expire_stale_attempts() == []
    assert manager.get_attempt(attempt_id).status == AttemptStatus.GRADED


def test_expired_attempts_still_count_towards_limit(manager, make_quiz, clock):
    quiz = make_quiz(duration_minutes=1, max_attempts=1)
    manager.start_attempt(quiz.id, STUDENT_ID)
    clock.advance(minutes=2)
    manager.expire_stale_attempts()

    with pytest.raises(AttemptLimitExceeded):
        manager.start_attempt(quiz.id, STUDENT_ID)


def test_notifier_receives_graded_attempt(clock):
    notifier = RecordingNotifier()
    manager = _manager_with(notifier, clock)
    attempt_id = manager.start_attempt("quiz-n", STUDENT_ID).attempt.id

    manager.submit_attempt(attempt_id, [right("quiz-n-q0")])

    assert notifier.calls == [(attempt_id, 2, "quiz-n")]


def test_notifier_failure_does_not_undo_grade(clock):
    manager = _manager_with(BrokenNotifier(), clock)
    attempt_id = manager.start_attempt("quiz-n", STUDENT_ID).attempt.id

    graded = manager.submit_attempt(attempt_id, [right("quiz-n-q0")])

    assert graded.score == 2
    assert manager.get_attempt(attempt_id).status == AttemptStatus.GRADED


def _run_concurrently(count: int, action) -> tuple[list, list[AssessmentError]]:
    barrier = Barrier(count)
    results: list = []
    errors: list[AssessmentError] = []

    def worker() -> None:
        barrier.wait()
        try:
            results.append(action())
        except AssessmentError as exc:
            errors.append(exc)

    threads = [Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return results, errors


def test_concurrent_starts_never_exceed_max_attempts(manager, make_quiz):
    quiz = make_quiz(max_attempts=3)

    results, errors = _run_concurrently(10, lambda: manager.start_attempt(quiz.id, STUDENT_ID))

    assert sorted(r.attempt.attempt_number for r in results) == [1, 2, 3]
    assert len(errors) == 7
    assert all(isinstance(exc, AttemptLimitExceeded) for exc in errors)


def test_concurrent_submits_grade_once(manager, make_quiz):
    quiz = make_quiz()
    attempt_id = manager.start_attempt(quiz.id, STUDENT_ID).attempt.id

    results, errors = _run_concurrently(
        8, lambda: manager.submit_attempt(attempt_id, [right("quiz-1-q0")])
    )

    assert len(results) == 1
    assert len(errors) == 7
    assert all(isinstance(exc, InvalidAttemptState) for exc in errors)
    assert manager.get_attempt(attempt_id).score == 5


def test_keyed_locks_drop_released_keys():
    locks = KeyedLocks()

    with locks.hold("a"):
        with locks.hold("b"):
            assert len(locks) == 2
        assert len(locks) == 1
    assert len(locks) == 0

    with pytest.raises(RuntimeError):
        with locks.hold("a"):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_attempt_locks_are_released_after_concurrent_use(manager, make_quiz):
    quiz = make_quiz(max_attempts=3)

    results, _ = _run_concurrently(6, lambda: manager.start_attempt(quiz.id, STUDENT_ID))
    _run_concurrently(
        4, lambda: manager.submit_attempt(results[0].attempt.id, [right("quiz-1-q0")])
    )

    assert len(manager._attempts._locks) == 0
