# survey_bot/templating.py
from pathlib import Path
from typing import Optional

from fastapi import Request
from fastapi.templating import Jinja2Templates

from survey_bot import config
from survey_bot.errors import CircuitError, NotAuthenticatedError, SurveyValidationError

TEMPLATES_DIR = Path(__file__).parent / "templates"
STATIC_DIR = Path(__file__).parent / "static"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _status_for(error) -> int:
    if isinstance(error, SurveyValidationError):
        return 400
    if isinstance(error, NotAuthenticatedError):
        return 401
    if isinstance(error, CircuitError):
        return 502
    return 500


def render_error(request: Request, error, status_code: Optional[int] = None):
    return templates.TemplateResponse(
        request,
        "error.html",
        {"error": str(error), "domain": config.DOMAIN},
        status_code=status_code or _status_for(error),
    )
