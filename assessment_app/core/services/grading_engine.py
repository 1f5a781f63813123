"""Auto-grading of submitted answers."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Mapping

from assessment_app.constants.grading_constants import DEFAULT_QUESTION_MARKS
from assessment_app.core.errors import QuestionNotFound
from assessment_app.core.models import (
    CHOICE_QUESTION_TYPES,
    MANUAL_QUESTION_TYPES,
    TEXT_QUESTION_TYPES,
    Quiz,
    QuizAnswer,
    QuizQuestion,
    SubmittedAnswer,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class GradeResult:
    is_correct: bool
    marks_obtained: int
    requires_manual_review: bool = False


@dataclass(slots=True, frozen=True)
class AttemptScore:
    total_score: int
    percentage: int
    answers: tuple[QuizAnswer, ...]


_NO_CREDIT = GradeResult(is_correct=False, marks_obtained=0)
_MANUAL_REVIEW = GradeResult(is_correct=False, marks_obtained=0, requires_manual_review=True)


class GradingEngine:
    """Scores answers per question type. Pure: same input, same result."""

    def grade(self, question: QuizQuestion, answer: SubmittedAnswer | None) -> GradeResult:
        if question.type in MANUAL_QUESTION_TYPES:
            return _MANUAL_REVIEW
        if answer is None:
            return _NO_CREDIT
        if question.type in CHOICE_QUESTION_TYPES:
            correct = self._is_correct_choice(question, answer.selected_option_id)
        elif question.type in TEXT_QUESTION_TYPES:
            correct = self._is_correct_text(question, answer.answer_text)
        else:  # pragma: no cover - every QuestionType is handled above
            correct = False
        if not correct:
            return _NO_CREDIT
        return GradeResult(is_correct=True, marks_obtained=_question_marks(question))

    def grade_attempt(
        self,
        quiz: Quiz,
        questions_by_id: Mapping[str, QuizQuestion],
        answers: Iterable[SubmittedAnswer],
    ) -> AttemptScore:
        """Grade every answer in submission order and total the marks.

        Each answer is graded on its own, so two answers for the same
        question both count. Callers that need one answer per question must
        enforce it before calling. An answer for a question outside the quiz
        fails the whole batch.
        """
        graded: list[QuizAnswer] = []
        total_score = 0
        for answer in answers:
            question = questions_by_id.get(answer.question_id)
            if question is None:
                raise QuestionNotFound(answer.question_id, quiz.id)
            result = self.grade(question, answer)
            total_score += result.marks_obtained
            graded.append(
                QuizAnswer(
                    question_id=question.id,
                    selected_option_id=answer.selected_option_id,
                    answer_text=answer.answer_text,
                    is_correct=result.is_correct,
                    marks_obtained=result.marks_obtained,
                    requires_manual_review=result.requires_manual_review,
                )
            )
        percentage = score_percentage(total_score, quiz.total_marks)
        logger.debug("Graded %d answers for quiz %s: %d marks", len(graded), quiz.id, total_score)
        return AttemptScore(total_score=total_score, percentage=percentage, answers=tuple(graded))

    @staticmethod
    def _is_correct_choice(question: QuizQuestion, selected_option_id: str | None) -> bool:
        if selected_option_id is None or not str(selected_option_id).strip():
            return False
        selected = str(selected_option_id).strip()
        if question.correct_answer is not None and selected == str(question.correct_answer).strip():
            return True
        # correct_answer may be unset or point at a replaced option.
        option = question.find_option(selected)
        return option is not None and option.is_correct

    @staticmethod
    def _is_correct_text(question: QuizQuestion, answer_text: str | None) -> bool:
        if answer_text is None or not answer_text.strip() or question.correct_answer is None:
            return False
        return answer_text.strip().casefold() == question.correct_answer.strip().casefold()


def score_percentage(total_score: int, total_marks: int | None) -> int:
    """Whole percent, rounded half up. Zero when the quiz has no total."""
    if not total_marks:
        return 0
    return (200 * total_score + total_marks) // (2 * total_marks)


def _question_marks(question: QuizQuestion) -> int:
    return question.marks if question.marks is not None else DEFAULT_QUESTION_MARKS
