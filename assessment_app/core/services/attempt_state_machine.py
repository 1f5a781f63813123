"""Lifecycle of a student's quiz attempt.

IN_PROGRESS -> GRADED on submit (submission and auto-grading happen in one
step), IN_PROGRESS -> EXPIRED through the housekeeping sweep. Attempt
creation is serialized per (quiz, student) and every transition per attempt
id, so concurrent callers can neither exceed ``max_attempts`` nor grade the
same attempt twice.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
import logging
from threading import Lock
from typing import Callable, Hashable, Iterable, Iterator
from uuid import uuid4

from assessment_app.core.errors import (
    AttemptLimitExceeded,
    DuplicateAnswer,
    InvalidAttemptState,
    NotEnrolled,
    NotFound,
    QuizClosed,
    QuizHasNoQuestions,
    QuizNotYetAvailable,
)
from assessment_app.core.models import AttemptStatus, Quiz, QuizAttempt, SubmittedAnswer
from assessment_app.core.projections import AttemptForTaking, GradedAttempt, QuestionView
from assessment_app.core.services.grading_engine import GradingEngine
from assessment_app.core.services.question_bank import QuestionBank
from assessment_app.core.stores import AttemptStore, GradingNotifier, QuizStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _KeyedLock:
    lock: Lock = field(default_factory=Lock)
    users: int = 0


class KeyedLocks:
    """One lock per key, dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._locks: dict[Hashable, _KeyedLock] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, _KeyedLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]


class AttemptStateMachine:
    """Starts, grades and expires attempts."""

    def __init__(
        self,
        attempt_store: AttemptStore,
        quiz_store: QuizStore,
        question_bank: QuestionBank,
        grading_engine: GradingEngine,
        notifier: GradingNotifier | None = None,
        id_factory: Callable[[], str] = lambda: uuid4().hex,
    ) -> None:
        self._attempts = attempt_store
        self._quizzes = quiz_store
        self._question_bank = question_bank
        self._grading_engine = grading_engine
        self._notifier = notifier
        self._new_id = id_factory
        self._locks = KeyedLocks()

    def start(
        self,
        quiz: Quiz,
        student_id: str,
        now: datetime | None = None,
        is_enrolled: bool = True,
    ) -> AttemptForTaking:
        now = now or datetime.utcnow()
        if not is_enrolled:
            raise NotEnrolled(student_id, quiz.course_id)

        questions = self._question_bank.questions_for(quiz)
        if not questions:
            raise QuizHasNoQuestions(quiz.id)

        with self._locks.hold(("start", quiz.id, student_id)):
            existing = self._attempts.count_by_quiz_and_student(quiz.id, student_id)
            if existing >= quiz.max_attempts:
                logger.warning(
                    "Student %s hit the attempt limit on quiz %s (%d/%d)",
                    student_id, quiz.id, existing, quiz.max_attempts,
                )
                raise AttemptLimitExceeded(quiz.id, quiz.max_attempts, existing)
            if quiz.start_date is not None and now < quiz.start_date:
                raise QuizNotYetAvailable(quiz.id, quiz.start_date)
            if quiz.end_date is not None and now > quiz.end_date:
                raise QuizClosed(quiz.id, quiz.end_date)

            attempt = QuizAttempt(
                id=self._new_id(),
                quiz_id=quiz.id,
                student_id=student_id,
                attempt_number=existing + 1,
                started_at=now,
            )
            self._attempts.save(attempt)

        logger.info(
            "Student %s started attempt %d on quiz %s", student_id, attempt.attempt_number, quiz.id
        )
        return AttemptForTaking(
            attempt=attempt,
            quiz_title=quiz.title,
            duration_minutes=quiz.duration_minutes,
            total_marks=quiz.total_marks,
            questions=tuple(QuestionView.from_question(q) for q in questions),
        )

    def submit(
        self,
        attempt: QuizAttempt,
        raw_answers: Iterable[SubmittedAnswer],
        now: datetime | None = None,
    ) -> GradedAttempt:
        """Grade an in-progress attempt. A second call fails; nothing is re-scored."""
        now = now or datetime.utcnow()
        answers = list(raw_answers)

        with self._locks.hold(("attempt", attempt.id)):
            current = self._require_attempt(attempt.id)
            if current.status != AttemptStatus.IN_PROGRESS:
                logger.warning("Rejected submit of attempt %s in status %s", current.id, current.status.value)
                raise InvalidAttemptState(current.id, current.status.value, "submit")
            _reject_duplicate_answers(answers)

            quiz = self._require_quiz(current.quiz_id)
            result = self._grading_engine.grade_attempt(
                quiz, self._question_bank.questions_by_id(quiz.id), answers
            )
            graded = replace(
                current,
                status=AttemptStatus.GRADED,
                submitted_at=now,
                time_spent_seconds=_elapsed_seconds(current.started_at, now),
                score=result.total_score,
                percentage=result.percentage,
                answers=result.answers,
            )
            self._attempts.save(graded)

        if quiz.end_date is not None and now > quiz.end_date:
            logger.info("Accepted late submission of attempt %s (started in time)", graded.id)
        logger.info(
            "Graded attempt %s on quiz %s: %d marks (%d%%)",
            graded.id, quiz.id, result.total_score, result.percentage,
        )
        self._notify(graded, quiz)
        return GradedAttempt.from_attempt(graded, quiz)

    def expire(self, attempt: QuizAttempt, now: datetime | None = None) -> QuizAttempt:
        """Close an unsubmitted attempt. Loses to a submit that got the lock first."""
        now = now or datetime.utcnow()
        with self._locks.hold(("attempt", attempt.id)):
            current = self._require_attempt(attempt.id)
            if current.status != AttemptStatus.IN_PROGRESS:
                raise InvalidAttemptState(current.id, current.status.value, "expire")
            expired = replace(
                current,
                status=AttemptStatus.EXPIRED,
                time_spent_seconds=_elapsed_seconds(current.started_at, now),
            )
            self._attempts.save(expired)
        logger.info("Expired attempt %s on quiz %s", expired.id, expired.quiz_id)
        return expired

    def sweep_expired(self, now: datetime | None = None) -> list[QuizAttempt]:
        """Expire every in-progress attempt that ran past its window or duration."""
        now = now or datetime.utcnow()
        expired: list[QuizAttempt] = []
        for attempt in self._attempts.find_in_progress():
            quiz = self._quizzes.get(attempt.quiz_id)
            if quiz is None:
                logger.warning("Skipping attempt %s of unknown quiz %s", attempt.id, attempt.quiz_id)
                continue
            if not is_overdue(attempt, quiz, now):
                continue
            try:
                expired.append(self.expire(attempt, now))
            except InvalidAttemptState:
                logger.debug("Attempt %s left IN_PROGRESS before it could expire", attempt.id)
        return expired

    def _require_attempt(self, attempt_id: str) -> QuizAttempt:
        current = self._attempts.get(attempt_id)
        if current is None:
            raise NotFound("attempt", attempt_id)
        return current

    def _require_quiz(self, quiz_id: str) -> Quiz:
        quiz = self._quizzes.get(quiz_id)
        if quiz is None:
            raise NotFound("quiz", quiz_id)
        return quiz

    def _notify(self, attempt: QuizAttempt, quiz: Quiz) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.quiz_graded(attempt, quiz)
        except Exception:
            # The grade is already stored; delivery problems must not undo it.
            logger.exception("Failed to send grading notification for attempt %s", attempt.id)


def is_overdue(attempt: QuizAttempt, quiz: Quiz, now: datetime) -> bool:
    if quiz.end_date is not None and now > quiz.end_date:
        return True
    if quiz.duration_minutes is not None:
        return now > attempt.started_at + timedelta(minutes=quiz.duration_minutes)
    return False


def _elapsed_seconds(started_at: datetime, now: datetime) -> int:
    return max(0, int((now - started_at).total_seconds()))


def _reject_duplicate_answers(answers: list[SubmittedAnswer]) -> None:
    seen: set[str] = set()
    for answer in answers:
        if answer.question_id in seen:
            raise DuplicateAnswer(answer.question_id)
        seen.add(answer.question_id)
