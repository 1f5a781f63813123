"""Exceptions raised by the assessment core.

All of them are caller-recoverable: the HTTP adapter maps each one to a 4xx
response and passes the message through unchanged.
"""

from __future__ import annotations

from typing import Any


class AssessmentError(Exception):
    """Base class carrying a stable error code and structured details."""

    error_code: str = "ASSESSMENT_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error_code, "message": self.message, "details": self.details}


class NotFound(AssessmentError):
    error_code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type.title()} '{resource_id}' not found",
            {"resource_type": resource_type, "resource_id": resource_id},
        )


class QuestionNotFound(AssessmentError):
    error_code = "QUESTION_NOT_FOUND"

    def __init__(self, question_id: str, quiz_id: str) -> None:
        super().__init__(
            f"Question '{question_id}' does not belong to quiz '{quiz_id}'",
            {"question_id": question_id, "quiz_id": quiz_id},
        )


class NotEnrolled(AssessmentError):
    error_code = "NOT_ENROLLED"

    def __init__(self, student_id: str, course_id: str) -> None:
        super().__init__(
            "Student is not enrolled in this course",
            {"student_id": student_id, "course_id": course_id},
        )


class AttemptLimitExceeded(AssessmentError):
    error_code = "ATTEMPT_LIMIT_EXCEEDED"

    def __init__(self, quiz_id: str, max_attempts: int, current_attempts: int) -> None:
        super().__init__(
            f"Maximum attempts reached for this quiz ({current_attempts}/{max_attempts})",
            {"quiz_id": quiz_id, "max_attempts": max_attempts, "current_attempts": current_attempts},
        )


class QuizNotYetAvailable(AssessmentError):
    error_code = "QUIZ_NOT_YET_AVAILABLE"

    def __init__(self, quiz_id: str, start_date: Any) -> None:
        super().__init__(
            "Quiz is not available yet",
            {"quiz_id": quiz_id, "start_date": str(start_date)},
        )


class QuizClosed(AssessmentError):
    error_code = "QUIZ_CLOSED"

    def __init__(self, quiz_id: str, end_date: Any) -> None:
        super().__init__(
            "Quiz has ended",
            {"quiz_id": quiz_id, "end_date": str(end_date)},
        )


class QuizHasNoQuestions(AssessmentError):
    error_code = "QUIZ_HAS_NO_QUESTIONS"

    def __init__(self, quiz_id: str) -> None:
        super().__init__("Quiz has no questions", {"quiz_id": quiz_id})


class InvalidAttemptState(AssessmentError):
    error_code = "INVALID_ATTEMPT_STATE"

    def __init__(self, attempt_id: str, current_status: str, action: str) -> None:
        super().__init__(
            f"Cannot {action} attempt '{attempt_id}' in status {current_status}",
            {"attempt_id": attempt_id, "status": current_status, "action": action},
        )


class DuplicateAnswer(AssessmentError):
    error_code = "DUPLICATE_ANSWER"

    def __init__(self, question_id: str) -> None:
        super().__init__(
            f"More than one answer submitted for question '{question_id}'",
            {"question_id": question_id},
        )


class QuizImportError(AssessmentError):
    """Raised when a quiz definition cannot be parsed."""

    error_code = "QUIZ_IMPORT_ERROR"
