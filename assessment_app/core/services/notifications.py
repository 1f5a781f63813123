"""Default grading notifier that writes the result message to the log."""

from __future__ import annotations

import logging

from assessment_app.core.models import Quiz, QuizAttempt

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Stands in for e-mail/in-app delivery when no real channel is wired."""

    def quiz_graded(self, attempt: QuizAttempt, quiz: Quiz) -> None:
        total = quiz.total_marks if quiz.total_marks is not None else attempt.score
        logger.info(
            "Quiz graded for student %s: '%s' score %s/%s (%s%%)",
            attempt.student_id,
            quiz.title,
            attempt.score,
            total,
            attempt.percentage,
        )
