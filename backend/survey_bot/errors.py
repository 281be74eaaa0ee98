# survey_bot/errors.py


class SurveyBotError(Exception):
    """Base class for errors surfaced to the web layer."""


class SurveyValidationError(SurveyBotError):
    """A survey could not be created from the submitted fields."""


class NotAuthenticatedError(SurveyBotError):
    """No Circuit session (or stored token) exists for the user."""

    def __init__(self, user_id: str | None):
        self.user_id = user_id
        super().__init__(f"User {user_id} is not authenticated")


class CircuitError(SurveyBotError):
    """The Circuit API answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
