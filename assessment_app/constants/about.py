"""Static metadata describing the assessment service."""

APP_NAME = "QuizGrade"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "QuizGrade runs quiz attempts, auto-grades submitted answers and rolls quiz "
    "and assignment results up into weighted course report cards."
)
