"""Business logic entry point shared by the HTTP adapter and scripts."""

from __future__ import annotations

from datetime import datetime
import logging
import random
from typing import Callable, Iterable

from assessment_app.core.errors import NotFound
from assessment_app.core.models import Quiz, QuizAttempt, QuizQuestion, SubmittedAnswer
from assessment_app.core.projections import AttemptForTaking, AttemptSummary, GradedAttempt, QuizStatusRow
from assessment_app.core.services.attempt_state_machine import AttemptStateMachine
from assessment_app.core.services.grading_engine import GradingEngine
from assessment_app.core.services.in_memory_stores import in_memory_stores
from assessment_app.core.services.question_bank import QuestionBank
from assessment_app.core.services.report_cards import (
    CourseReportCard,
    ReportCardAggregator,
    StudentReportCard,
    best_attempt,
)
from assessment_app.core.stores import GradingNotifier, StoreBundle

logger = logging.getLogger(__name__)


class AssessmentManager:
    """Facade for the assessment services: QuestionBank, AttemptStateMachine,
    GradingEngine and ReportCardAggregator.

    Resolves ids through the stores and raises ``NotFound`` for unknown ones.
    Locking lives in the services, keyed per quiz/student and per attempt, so
    report cards never wait behind a submission.
    """

    def __init__(
        self,
        stores: StoreBundle | None = None,
        notifier: GradingNotifier | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        rng: random.Random | None = None,
    ) -> None:
        self._stores = stores or in_memory_stores()
        self._clock = clock

        # Services
        self._question_bank = QuestionBank(self._stores.questions, rng=rng)
        self._grading_engine = GradingEngine()
        self._attempts = AttemptStateMachine(
            self._stores.attempts,
            self._stores.quizzes,
            self._question_bank,
            self._grading_engine,
            notifier=notifier,
        )
        self._report_cards = ReportCardAggregator(
            courses=self._stores.courses,
            quizzes=self._stores.quizzes,
            assignments=self._stores.assignments,
            attempts=self._stores.attempts,
            submissions=self._stores.submissions,
            enrollments=self._stores.enrollments,
            clock=clock,
        )

    @property
    def stores(self) -> StoreBundle:
        return self._stores

    # --- Question Bank Delegation ---

    def add_question(self, quiz_id: str, question: QuizQuestion) -> QuizQuestion:
        return self._question_bank.add_question(self._require_quiz(quiz_id), question)

    def get_quiz_questions(self, quiz_id: str) -> list[QuizQuestion]:
        """Authoring view: canonical order with the grading key attached."""
        return self._question_bank.canonical_questions(self._require_quiz(quiz_id).id)

    # --- Attempt Lifecycle Delegation ---

    def start_attempt(self, quiz_id: str, student_id: str) -> AttemptForTaking:
        quiz = self._require_quiz(quiz_id)
        enrolled = self._stores.enrollments.is_enrolled(student_id, quiz.course_id)
        return self._attempts.start(quiz, student_id, now=self._clock(), is_enrolled=enrolled)

    def submit_attempt(
        self,
        attempt_id: str,
        answers: Iterable[SubmittedAnswer],
        student_id: str | None = None,
    ) -> GradedAttempt:
        """Grade an attempt. When ``student_id`` is given it must own the attempt."""
        attempt = self.get_attempt(attempt_id)
        if student_id is not None and attempt.student_id != student_id:
            logger.warning("Student %s tried to submit attempt %s they do not own", student_id, attempt_id)
            raise NotFound("attempt", attempt_id)
        return self._attempts.submit(attempt, answers, now=self._clock())

    def get_attempt(self, attempt_id: str) -> QuizAttempt:
        attempt = self._stores.attempts.get(attempt_id)
        if attempt is None:
            raise NotFound("attempt", attempt_id)
        return attempt

    def get_attempt_summary(self, attempt_id: str) -> AttemptSummary:
        """Caller-facing view; answers are hidden unless the quiz shows results."""
        attempt = self.get_attempt(attempt_id)
        return AttemptSummary.from_attempt(attempt, self._require_quiz(attempt.quiz_id))

    def get_student_attempts(self, student_id: str) -> list[AttemptSummary]:
        attempts = sorted(
            self._stores.attempts.find_by_student(student_id),
            key=lambda a: (a.started_at, a.attempt_number),
        )
        return [AttemptSummary.from_attempt(a, self._require_quiz(a.quiz_id)) for a in attempts]

    def expire_stale_attempts(self) -> list[QuizAttempt]:
        expired = self._attempts.sweep_expired(now=self._clock())
        if expired:
            logger.info("Housekeeping expired %d attempt(s)", len(expired))
        return expired

    def get_quizzes_with_status(self, course_id: str, student_id: str) -> list[QuizStatusRow]:
        """Course quizzes annotated with this student's attempts and best result."""
        self._require_course(course_id)
        rows: list[QuizStatusRow] = []
        for quiz in self._stores.quizzes.find_by_course(course_id):
            attempts = self._stores.attempts.find_by_quiz_and_student(quiz.id, student_id)
            best = best_attempt([a for a in attempts if a.score is not None])
            rows.append(
                QuizStatusRow(
                    quiz_id=quiz.id,
                    title=quiz.title,
                    max_attempts=quiz.max_attempts,
                    attempts_count=len(attempts),
                    is_completed=bool(attempts),
                    best_score=best.score if best else None,
                    best_percentage=best.percentage if best else None,
                    passed=quiz.is_passing_score(best.score) if best else False,
                )
            )
        return rows

    # --- Report Card Delegation ---

    def get_course_report_card(self, student_id: str, course_id: str) -> CourseReportCard:
        return self._report_cards.course_report_card(student_id, course_id)

    def get_student_report_card(self, student_id: str) -> StudentReportCard:
        return self._report_cards.student_report_card(student_id)

    def get_course_report_cards(self, course_id: str) -> list[CourseReportCard]:
        return self._report_cards.course_report_cards(course_id)

    # --- Lookups ---

    def _require_quiz(self, quiz_id: str) -> Quiz:
        quiz = self._stores.quizzes.get(quiz_id)
        if quiz is None:
            raise NotFound("quiz", quiz_id)
        return quiz

    def _require_course(self, course_id: str) -> None:
        if self._stores.courses.get(course_id) is None:
            raise NotFound("course", course_id)
