"""Service for storing quiz questions and building per-attempt question views."""

from __future__ import annotations

from dataclasses import replace
import logging
import random
from threading import Lock
from typing import Sequence, TypeVar
from uuid import uuid4

from assessment_app.core.models import CHOICE_QUESTION_TYPES, Quiz, QuizOption, QuizQuestion
from assessment_app.core.stores import QuestionStore

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class QuestionBank:
    """Holds the canonical questions of each quiz and hands out shuffled copies."""

    def __init__(self, store: QuestionStore, rng: random.Random | None = None) -> None:
        self._store = store
        self._rng_lock = Lock()
        self._add_lock = Lock()
        self._shuffle_rng = rng or random.Random()

    def canonical_questions(self, quiz_id: str) -> list[QuizQuestion]:
        """Return the quiz's questions in authoring order with ordered options."""
        questions = sorted(self._store.find_by_quiz(quiz_id), key=_order_key)
        return [replace(q, options=tuple(sorted(q.options, key=_order_key))) for q in questions]

    def questions_by_id(self, quiz_id: str) -> dict[str, QuizQuestion]:
        return {question.id: question for question in self._store.find_by_quiz(quiz_id)}

    def questions_for(self, quiz: Quiz) -> list[QuizQuestion]:
        """Return the questions one attempt should see.

        A new permutation is drawn on every call. The stored questions are
        never touched; shuffled options keep their ids and ``is_correct``
        flags so the grading key is unaffected.
        """
        questions = self.canonical_questions(quiz.id)
        if quiz.shuffle_options:
            questions = [replace(q, options=tuple(self._shuffled(q.options))) for q in questions]
        if quiz.shuffle_questions:
            questions = self._shuffled(questions)
        return questions

    def add_question(self, quiz: Quiz, question: QuizQuestion) -> QuizQuestion:
        """Validate, normalize and store a new question for ``quiz``."""
        with self._add_lock:
            prepared = self._prepare_question(quiz, question)
            self._store.save(prepared)
        logger.info("Added question %s to quiz %s", prepared.id, quiz.id)
        return prepared

    def set_shuffle_seed(self, seed: int | None) -> None:
        with self._rng_lock:
            self._shuffle_rng.seed(seed)

    def _shuffled(self, items: Sequence[_T]) -> list[_T]:
        shuffled = list(items)
        with self._rng_lock:
            self._shuffle_rng.shuffle(shuffled)
        return shuffled

    def _prepare_question(self, quiz: Quiz, question: QuizQuestion) -> QuizQuestion:
        cleaned_text = question.question_text.strip()
        if not cleaned_text:
            raise ValueError("Question text must not be empty.")

        options = self._prepare_options(question.options)
        if question.type in CHOICE_QUESTION_TYPES and len(options) < 2:
            raise ValueError("Choice questions need at least two options.")

        order_index = question.order_index
        if order_index is None:
            order_index = len(self._store.find_by_quiz(quiz.id))

        correct_answer = question.correct_answer
        if correct_answer is None and question.type in CHOICE_QUESTION_TYPES:
            correct_option = next((option for option in options if option.is_correct), None)
            if correct_option is not None:
                correct_answer = correct_option.id

        return replace(
            question,
            id=question.id or uuid4().hex,
            quiz_id=quiz.id,
            question_text=cleaned_text,
            order_index=order_index,
            correct_answer=correct_answer,
            options=options,
        )

    @staticmethod
    def _prepare_options(options: Sequence[QuizOption]) -> tuple[QuizOption, ...]:
        prepared: list[QuizOption] = []
        for position, option in enumerate(options):
            text = option.option_text.strip()
            if not text:
                raise ValueError("Option text cannot be empty.")
            prepared.append(
                replace(
                    option,
                    id=option.id or uuid4().hex,
                    option_text=text,
                    order_index=position if option.order_index is None else option.order_index,
                )
            )
        return tuple(prepared)


def _order_key(item: QuizQuestion | QuizOption) -> tuple[bool, int]:
    # Unordered items go last, keeping store order among themselves.
    return (item.order_index is None, item.order_index or 0)
