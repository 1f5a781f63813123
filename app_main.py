"""Application entry point for the QuizGrade assessment service."""

from __future__ import annotations

from pathlib import Path
import sys

from assessment_app.constants.about import APP_NAME, APP_VERSION
from assessment_app.constants.grading_constants import DEFAULT_QUESTION_MARKS
from assessment_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from assessment_app.core.assessment_manager import AssessmentManager
from assessment_app.core.models import Course, Quiz
from assessment_app.core.quiz_importer import load_quiz_from_file
from assessment_app.core.services.notifications import LoggingNotifier
from assessment_app.server.api_server import start_api_server
from assessment_app.utils.logging_config import configure_logging

DEMO_COURSE_ID = "demo-course"
DEMO_QUIZ_ID = "demo-quiz"
DEMO_STUDENT_ID = "demo-student"


def load_demo_quiz(manager: AssessmentManager, quiz_file: Path) -> Quiz:
    """Create a demo course and quiz from a text file and enroll the demo student."""
    imported = load_quiz_from_file(quiz_file, DEMO_QUIZ_ID)
    stores = manager.stores
    stores.courses.add(Course(id=DEMO_COURSE_ID, title="Demo Course"))
    total_marks = sum(
        q.marks if q.marks is not None else DEFAULT_QUESTION_MARKS for q in imported.questions
    )
    quiz = stores.quizzes.add(
        Quiz(
            id=DEMO_QUIZ_ID,
            course_id=DEMO_COURSE_ID,
            title=quiz_file.stem.replace("_", " ").title(),
            total_marks=total_marks,
            passing_marks=total_marks // 2,
            max_attempts=3,
            show_results_immediately=True,
        )
    )
    for question in imported.questions:
        manager.add_question(quiz.id, question)
    stores.enrollments.enroll(DEMO_STUDENT_ID, DEMO_COURSE_ID)
    return quiz


def main() -> None:
    """Initialize logging, wire the in-memory stores and serve the API."""
    logger = configure_logging()
    logger.info("Starting %s %s", APP_NAME, APP_VERSION)

    manager = AssessmentManager(notifier=LoggingNotifier())
    if len(sys.argv) > 1:
        quiz = load_demo_quiz(manager, Path(sys.argv[1]))
        logger.info(
            "Loaded demo quiz %s; start it as student '%s'", quiz.id, DEMO_STUDENT_ID
        )

    server_thread = start_api_server(manager=manager, host=DEFAULT_HOST, port=DEFAULT_PORT)
    logger.info("API available at http://%s:%d/docs", DEFAULT_HOST, DEFAULT_PORT)
    try:
        server_thread.join()
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
