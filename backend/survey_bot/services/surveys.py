# survey_bot/services/surveys.py
"""
Survey registry: posts surveys as Circuit forms and tallies the answers
coming back as form submissions.

Every read-modify-persist pass on a user's surveys holds that user's lock, so
a create and concurrent submissions for one user never overwrite each other.
"""
import asyncio
import logging
import secrets
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from survey_bot.errors import SurveyValidationError
from survey_bot.models import MAX_ANSWERS, FormSubmissionEvent, Survey
from survey_bot.services.store import SettingsStore

logger = logging.getLogger(__name__)

FORM_NOTIFICATION = "Form submitted successfully"


def generate_form_id() -> str:
    return secrets.token_urlsafe(16)


def present_answers(answers: Sequence[Optional[str]]) -> List[str]:
    """
    Keep the non-blank answers in order (at most five).
    The first answer is required; blank or missing later slots are dropped.
    """
    if len(answers) > MAX_ANSWERS:
        raise SurveyValidationError(f"At most {MAX_ANSWERS} answers are supported")
    if not answers or not answers[0] or not answers[0].strip():
        raise SurveyValidationError("A survey needs at least one answer")
    return [a.strip() for a in answers if a and a.strip()]


def build_form(form_id: str, question: str, answers: List[str]) -> Dict[str, Any]:
    """Circuit form: a label with the question and one button per answer (values "1".."5")."""
    return {
        "id": form_id,
        "controls": [{
            "type": "LABEL",
            "text": question,
        }, {
            "type": "BUTTON",
            "name": "answers",
            "options": [{
                "notification": FORM_NOTIFICATION,
                "text": text,
                "value": str(i + 1),
            } for i, text in enumerate(answers)],
        }],
    }


def option_index(value: Optional[str]) -> Optional[int]:
    """Map a submitted button value ("1".."5") to a 0-based answer index."""
    try:
        return int(value) - 1
    except (TypeError, ValueError):
        return None


class SurveyRegistry:

    def __init__(self, store: SettingsStore):
        self.store = store
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def list_surveys(self, user_id: str) -> List[Survey]:
        return self.store.get_settings(user_id)

    async def create_survey(self,
                            client,
                            user_id: str,
                            conv_id: str,
                            question: str,
                            answers: Sequence[Optional[str]]) -> Survey:
        """
        Post a new survey into a conversation and record it for the user.
        Nothing is stored if posting fails.
        """
        if not conv_id or not question or not question.strip():
            raise SurveyValidationError("Conversation and question are required")
        labels = present_answers(answers)

        form_id = generate_form_id()
        item = await client.add_text_item(conv_id, form=build_form(form_id, question, labels))

        survey = Survey(
            form_id=form_id,
            item_id=item["itemId"],
            conv_id=conv_id,
            question=question,
            answers=labels,
            answer_user_ids=[[] for _ in labels],
        )

        async with self._locks[user_id]:
            surveys = self.store.get_settings(user_id)
            surveys.append(survey)
            try:
                await self.store.save_settings(user_id, surveys)
            except Exception:
                logger.exception("Survey %s was posted as item %s but could not be saved",
                                 form_id, survey.item_id)
                raise

        logger.info("Posted survey %s to conversation %s", form_id, conv_id)
        logger.info("User %s now has %d survey(s)", user_id, len(surveys))
        return survey

    async def handle_submission(self,
                                client,
                                user_id: str,
                                form_id: str,
                                option: Optional[int],
                                respondent_id: str) -> None:
        """
        Record one answer. Unknown forms and out-of-range choices are logged
        and dropped without touching the stored surveys.
        """
        async with self._locks[user_id]:
            surveys = self.store.get_settings(user_id)
            survey = next((s for s in surveys if s.form_id == form_id), None)
            if survey is None:
                logger.warning("Receiving form submission for unknown formId %s (user %s)",
                               form_id, user_id)
                return
            if option is None or not 0 <= option < len(survey.answers):
                logger.warning("Unknown survey choice %s for formId %s", option, form_id)
                return

            user = await client.get_user_by_id(respondent_id)
            email = user["emailAddress"]
            # re-votes are kept: every submission counts
            survey.answer_user_ids[option].append(email)
            await self.store.save_settings(user_id, surveys)

        logger.info("Answer %d selected by %s on survey %s", option + 1, email, form_id)

    async def handle_form_submission(self, client, user_id: str, event: FormSubmissionEvent) -> None:
        await self.handle_submission(
            client,
            user_id,
            event.form.id,
            option_index(event.selected_value),
            event.submitter_id,
        )
