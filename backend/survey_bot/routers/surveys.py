# survey_bot/routers/surveys.py
import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse, Response
from pydantic import ValidationError

from survey_bot import config
from survey_bot.errors import SurveyBotError
from survey_bot.models import SurveyIn
from survey_bot.services.export import surveys_to_json, surveys_to_xlsx
from survey_bot.templating import render_error, templates

logger = logging.getLogger(__name__)

router = APIRouter(tags=["surveys"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ---------- Helpers ----------

def _is_authenticated(request: Request) -> bool:
    return bool(request.session.get("isAuthenticated")) and bool(request.session.get("userId"))


def _render_index(request: Request):
    user_id = request.session.get("userId")
    authenticated = _is_authenticated(request)
    surveys = request.app.state.registry.list_surveys(user_id) if authenticated else []
    return templates.TemplateResponse(request, "index.html", {
        "domain": config.DOMAIN,
        "authenticated": authenticated,
        "displayName": request.session.get("displayName"),
        "surveys": surveys,
    })


# ---------- Routes ----------

@router.get("/")
async def index(request: Request):
    if _is_authenticated(request) and request.session.get("postdata"):
        # back from the OAuth redirect after the user already clicked "Post"
        data = SurveyIn.model_validate(request.session.pop("postdata"))
        try:
            await request.app.state.subscriptions.post_survey(request.session["userId"], data)
        except SurveyBotError as e:
            logger.error("Posting stashed survey failed: %s", e)
            return render_error(request, e)
    return _render_index(request)


@router.post("/post")
async def post_survey(request: Request):
    form = await request.form()
    try:
        data = SurveyIn.model_validate({k: v for k, v in form.items() if isinstance(v, str)})
    except ValidationError as e:
        return render_error(request, e, status_code=422)

    if not _is_authenticated(request):
        request.session["postdata"] = data.model_dump(by_alias=True)
        return RedirectResponse("/login", status_code=303)

    try:
        await request.app.state.subscriptions.post_survey(request.session["userId"], data)
    except SurveyBotError as e:
        logger.error("Posting survey failed: %s", e)
        return render_error(request, e)
    return _render_index(request)


@router.get("/export-json")
def export_json(request: Request):
    if not _is_authenticated(request):
        return render_error(request, "Not authenticated", status_code=401)
    surveys = request.app.state.registry.list_surveys(request.session["userId"])
    return Response(
        surveys_to_json(surveys),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="surveys.json"'},
    )


@router.get("/export-xls")
def export_xls(request: Request):
    if not _is_authenticated(request):
        return render_error(request, "Not authenticated", status_code=401)
    surveys = request.app.state.registry.list_surveys(request.session["userId"])
    return Response(
        surveys_to_xlsx(surveys),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="surveys.xlsx"'},
    )
