# survey_bot/routers/webhooks.py
import logging
from typing import Any, Dict

from fastapi import APIRouter, Request
from pydantic import ValidationError

from survey_bot.models import FormSubmissionEvent, WebhookDelivery
from survey_bot.services.circuit import FORM_SUBMISSION_EVENT

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/circuit/{user_id}")
async def circuit_event(user_id: str, body: Dict[str, Any], request: Request):
    """
    Receives Circuit webhook deliveries for one user.
    Only form submissions are of interest; Circuit always gets {"ok": true} back.
    """
    try:
        delivery = WebhookDelivery.model_validate(body)
        if delivery.type != FORM_SUBMISSION_EVENT or not delivery.submit_form_data:
            logger.debug("Ignoring %s event for user %s", delivery.type, user_id)
            return {"ok": True}
        event = FormSubmissionEvent.model_validate(delivery.submit_form_data)
    except ValidationError as e:
        logger.warning("Malformed webhook delivery for user %s: %s", user_id, e)
        return {"ok": True}

    request.app.state.subscriptions.dispatch(user_id, event)
    return {"ok": True}
