"""Utilities for importing quiz questions from a human-friendly text file.

File format (repeat blocks separated by blank lines or '---'):

    Q: Question text. Additional lines until the next marker are treated
       as part of the question.
    TYPE: MULTIPLE_CHOICE | TRUE_FALSE | SHORT_ANSWER | FILL_BLANK | ESSAY | MATCHING
          (optional - defaults to MULTIPLE_CHOICE when options are present,
          SHORT_ANSWER otherwise)
    MARKS: integer (optional - omitted marks count as 1 when awarded)
    A: First option text
    B: Second option text
    ...                (up to F)
    CORRECT: letter    (choice questions)
    ANSWER: text       (short answer / fill in the blank)

Example:

    Q: Which planet is closest to the sun?
    MARKS: 2
    A: Venus
    B: Mercury
    C: Mars
    CORRECT: B

    Q: The chemical symbol for gold is ____.
    TYPE: FILL_BLANK
    ANSWER: Au

Imported questions carry no ids; ``QuestionBank.add_question`` assigns them
and derives ``correct_answer`` from the option marked correct.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from assessment_app.core.errors import QuizImportError
from assessment_app.core.models import (
    CHOICE_QUESTION_TYPES,
    TEXT_QUESTION_TYPES,
    QuestionType,
    QuizOption,
    QuizQuestion,
)


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported quiz metadata and questions."""

    source_path: Path
    questions: list[QuizQuestion]


_OPTION_ORDER = ["A", "B", "C", "D", "E", "F"]


def load_quiz_from_file(file_path: Path, quiz_id: str) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    questions = parse_quiz_text(text, quiz_id)
    if not questions:
        raise QuizImportError("Quiz file did not contain any questions.")
    return ImportedQuiz(source_path=file_path, questions=questions)


def parse_quiz_text(text: str, quiz_id: str) -> list[QuizQuestion]:
    blocks: list[str] = []
    current_block: list[str] = []
    for raw_line in text.splitlines():
        stripped = raw_line.strip()
        if stripped == "---":
            if current_block:
                blocks.append("\n".join(current_block).strip())
                current_block = []
            continue
        if stripped:
            current_block.append(raw_line)
        elif current_block:
            blocks.append("\n".join(current_block).strip())
            current_block = []
    if current_block:
        blocks.append("\n".join(current_block).strip())

    return [
        _parse_block(block, quiz_id, order_index)
        for order_index, block in enumerate(b for b in blocks if b)
    ]


def _parse_block(block: str, quiz_id: str, order_index: int) -> QuizQuestion:
    question_lines: list[str] = []
    options: dict[str, str] = {}
    correct_letter: str | None = None
    answer_text: str | None = None
    question_type: QuestionType | None = None
    marks: int | None = None
    current_section: str | None = None

    for raw_line in block.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        upper = line.upper()
        if upper.startswith("Q:"):
            question_lines = [line[2:].strip()]
            current_section = "Q"
            continue

        if upper.startswith("CORRECT:"):
            correct_letter = line.split(":", 1)[1].strip().upper()
            current_section = None
            continue

        if upper.startswith("ANSWER:"):
            answer_text = line.split(":", 1)[1].strip()
            current_section = None
            continue

        if upper.startswith("TYPE:"):
            raw_type = line.split(":", 1)[1].strip().upper()
            try:
                question_type = QuestionType(raw_type)
            except ValueError as exc:
                raise QuizImportError(f"Unknown question type '{raw_type}'.") from exc
            current_section = None
            continue

        if upper.startswith("MARKS:"):
            marks = _parse_marks(line.split(":", 1)[1].strip())
            current_section = None
            continue

        if len(line) > 2 and line[0].upper() in _OPTION_ORDER and line[1] == ":":
            letter = line[0].upper()
            options[letter] = line[2:].strip()
            current_section = letter
            continue

        if current_section == "Q":
            question_lines.append(line)
        elif current_section in _OPTION_ORDER:
            options[current_section] = options[current_section] + f"\n{line}"
        else:
            raise QuizImportError(
                f"Encountered text outside of a known section: '{line}'."
            )

    question_text = "\n".join(question_lines).strip()
    if not question_text:
        raise QuizImportError("Question text missing (Q: ...)")

    if question_type is None:
        question_type = QuestionType.MULTIPLE_CHOICE if options else QuestionType.SHORT_ANSWER

    letters = [letter for letter in _OPTION_ORDER if letter in options]
    if letters != _OPTION_ORDER[: len(letters)]:
        raise QuizImportError("Options must use consecutive letters starting at A.")

    if question_type in CHOICE_QUESTION_TYPES:
        if len(letters) < 2:
            raise QuizImportError("Choice questions must define at least two options.")
        if correct_letter is not None and correct_letter not in letters:
            raise QuizImportError(f"CORRECT must be one of {', '.join(letters)}.")
    elif options:
        raise QuizImportError(f"{question_type.value} questions cannot define options.")

    if question_type in TEXT_QUESTION_TYPES and answer_text is None:
        raise QuizImportError(f"{question_type.value} questions need an ANSWER line.")

    option_list = []
    for position, letter in enumerate(letters):
        option_text = options[letter].strip()
        if not option_text:
            raise QuizImportError("Option text cannot be empty.")
        option_list.append(
            QuizOption(
                id="",
                option_text=option_text,
                is_correct=letter == correct_letter,
                order_index=position,
            )
        )

    return QuizQuestion(
        id="",
        quiz_id=quiz_id,
        question_text=question_text,
        type=question_type,
        marks=marks,
        order_index=order_index,
        correct_answer=answer_text if question_type in TEXT_QUESTION_TYPES else None,
        options=tuple(option_list),
    )


def _parse_marks(raw_value: str) -> int:
    if not raw_value:
        raise QuizImportError("MARKS must include an integer value.")
    try:
        parsed_value = int(raw_value)
    except ValueError as exc:
        raise QuizImportError("MARKS must be an integer.") from exc
    if parsed_value < 0:
        raise QuizImportError("MARKS must not be negative.")
    return parsed_value
