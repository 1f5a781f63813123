"""Grading policy constants shared by the grading engine and report cards."""

DEFAULT_QUESTION_MARKS: int = 1
DEFAULT_MAX_SCORE: int = 100

# Percent weights, applied only when both categories have data.
QUIZ_WEIGHT_PERCENT: int = 40
ASSIGNMENT_WEIGHT_PERCENT: int = 60

SCORE_DECIMALS: int = 2

LETTER_GRADE_LADDER: tuple[tuple[float, str], ...] = (
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
    (45, "D+"),
    (40, "D"),
)
FAILING_GRADE: str = "F"
UNAVAILABLE_GRADE: str = "N/A"
