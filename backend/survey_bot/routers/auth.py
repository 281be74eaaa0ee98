# survey_bot/routers/auth.py
import logging

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse

from survey_bot.errors import SurveyBotError
from survey_bot.templating import render_error

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.get("/login")
def login(request: Request):
    oauth = request.app.state.oauth
    # state parameter prevents CSRF on the callback
    request.session["oauthState"] = oauth.new_state()
    return RedirectResponse(oauth.authorize_url(request.session["oauthState"]), status_code=302)


@router.get("/oauthCallback")
async def oauth_callback(request: Request, code: str | None = None, state: str | None = None):
    if not code or not state or request.session.get("oauthState") != state:
        return render_error(request, "Access Denied", status_code=403)

    oauth = request.app.state.oauth
    try:
        token = await oauth.get_token(code)
        user = await oauth.get_profile(token["access_token"])

        request.session["isAuthenticated"] = True
        request.session["userId"] = user["userId"]
        request.session["displayName"] = user.get("displayName")
        await request.app.state.store.save_token(user["userId"], token)

        await request.app.state.subscriptions.update_client_subscription(user["userId"])
    except SurveyBotError as e:
        logger.error("OAuth callback failed: %s", e)
        return render_error(request, e)

    return RedirectResponse("/", status_code=302)


@router.get("/logout")
def logout(request: Request):
    request.session["isAuthenticated"] = False
    return RedirectResponse("/", status_code=302)
