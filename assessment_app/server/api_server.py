"""FastAPI server that exposes the attempt and report-card operations."""

from __future__ import annotations

from dataclasses import asdict
import logging
from threading import Thread

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from assessment_app.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from assessment_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
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
    QuizImportError,
    QuizNotYetAvailable,
)
from assessment_app.core.models import SubmittedAnswer

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[AssessmentError], int] = {
    NotFound: 404,
    NotEnrolled: 403,
    AttemptLimitExceeded: 409,
    QuizNotYetAvailable: 409,
    QuizClosed: 409,
    QuizHasNoQuestions: 409,
    InvalidAttemptState: 409,
    QuestionNotFound: 422,
    DuplicateAnswer: 422,
    QuizImportError: 422,
}


def status_code_for(exc: AssessmentError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[error_type]
    return 400


class StartAttemptPayload(BaseModel):
    """Payload schema for starting an attempt."""

    student_id: str = Field(min_length=1)


class AnswerPayload(BaseModel):
    """One answer: an option id for choice questions, free text otherwise."""

    question_id: str = Field(min_length=1)
    selected_option_id: str | None = None
    answer_text: str | None = None

    def to_answer(self) -> SubmittedAnswer:
        return SubmittedAnswer(
            question_id=self.question_id,
            selected_option_id=self.selected_option_id,
            answer_text=self.answer_text,
        )


class SubmitAttemptPayload(BaseModel):
    """Payload schema for submitting an attempt."""

    student_id: str | None = None
    answers: list[AnswerPayload]


def _get_manager_dependency(manager: AssessmentManager):
    def dependency() -> AssessmentManager:
        return manager

    return dependency


def create_api_app(manager: AssessmentManager) -> FastAPI:
    """Create a FastAPI application wired to the provided assessment manager."""
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    manager_dep = _get_manager_dependency(manager)

    @app.exception_handler(AssessmentError)
    async def assessment_error_handler(request: Request, exc: AssessmentError) -> JSONResponse:
        status_code = status_code_for(exc)
        logger.info("%s %s -> %d %s", request.method, request.url.path, status_code, exc.error_code)
        return JSONResponse(status_code=status_code, content={"detail": exc.message, **exc.to_dict()})

    @app.post("/quizzes/{quiz_id}/attempts", status_code=201)
    def start_attempt(
        quiz_id: str,
        payload: StartAttemptPayload,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return asdict(manager.start_attempt(quiz_id, payload.student_id))

    @app.post("/attempts/{attempt_id}/submit")
    def submit_attempt(
        attempt_id: str,
        payload: SubmitAttemptPayload,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        answers = [answer.to_answer() for answer in payload.answers]
        graded = manager.submit_attempt(attempt_id, answers, student_id=payload.student_id)
        return asdict(graded)

    @app.get("/attempts/{attempt_id}")
    def get_attempt(
        attempt_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return asdict(manager.get_attempt_summary(attempt_id))

    @app.get("/students/{student_id}/attempts")
    def get_student_attempts(
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [asdict(attempt) for attempt in manager.get_student_attempts(student_id)]

    @app.get("/courses/{course_id}/quizzes")
    def get_course_quizzes(
        course_id: str,
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [asdict(row) for row in manager.get_quizzes_with_status(course_id, student_id)]

    @app.get("/students/{student_id}/report-card")
    def get_student_report_card(
        student_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return asdict(manager.get_student_report_card(student_id))

    @app.get("/students/{student_id}/courses/{course_id}/report-card")
    def get_course_report_card(
        student_id: str,
        course_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> dict[str, object]:
        return asdict(manager.get_course_report_card(student_id, course_id))

    @app.get("/courses/{course_id}/report-cards")
    def get_course_report_cards(
        course_id: str,
        manager: AssessmentManager = Depends(manager_dep),
    ) -> list[dict[str, object]]:
        return [asdict(card) for card in manager.get_course_report_cards(course_id)]

    @app.post("/housekeeping/expire-attempts")
    def expire_attempts(manager: AssessmentManager = Depends(manager_dep)) -> dict[str, object]:
        expired = manager.expire_stale_attempts()
        return {"expired_attempt_ids": [attempt.id for attempt in expired]}

    return app


def start_api_server(
    manager: AssessmentManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="AssessmentApiServer", daemon=True)
    thread.start()
    return thread
