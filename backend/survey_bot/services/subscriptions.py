# survey_bot/services/subscriptions.py
"""
Live Circuit sessions, one per logged-on user.

Each session owns a queue of inbound form submissions drained by a single
consumer task, so one user's events are applied in arrival order while
different users are processed independently.
"""
import asyncio
import contextlib
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from survey_bot import config
from survey_bot.errors import CircuitError, NotAuthenticatedError
from survey_bot.models import FormSubmissionEvent, Survey, SurveyIn
from survey_bot.services.circuit import FORM_SUBMISSION_EVENT, CircuitClient
from survey_bot.services.store import SettingsStore
from survey_bot.services.surveys import SurveyRegistry

logger = logging.getLogger(__name__)


@dataclass
class Subscription:
    client: CircuitClient
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    webhook_id: Optional[str] = None
    consumer: Optional[asyncio.Task] = None


class SubscriptionManager:

    def __init__(self,
                 store: SettingsStore,
                 registry: SurveyRegistry,
                 client_factory: Callable[[str], CircuitClient] = CircuitClient,
                 webhook_base: str = config.APP_DOMAIN):
        self.store = store
        self.registry = registry
        self.client_factory = client_factory
        self.webhook_base = webhook_base.rstrip("/")
        self._subscriptions: Dict[str, Subscription] = {}

    async def init(self) -> None:
        """On startup subscribe for all known users so events can be received."""
        for user_id in self.store.get_users():
            try:
                await self.logon(user_id)
                await self.subscribe(user_id)
            except (NotAuthenticatedError, CircuitError) as e:
                logger.error("Could not restore session for user %s: %s", user_id, e)

    def webhook_url(self, user_id: str) -> str:
        return f"{self.webhook_base}/webhooks/circuit/{user_id}"

    # ---------- Session lifecycle ----------

    async def logon(self, user_id: str) -> dict:
        token = self.store.get_token(user_id)
        if not token or not token.get("access_token"):
            raise NotAuthenticatedError(user_id)
        client = self.client_factory(token["access_token"])
        user = await client.logon()
        self._subscriptions[user_id] = Subscription(client=client)
        logger.info("Logged on user %s", user.get("emailAddress"))
        return user

    async def logout(self, user_id: str) -> None:
        sub = self._subscriptions.pop(user_id, None)
        if sub is None:
            return
        email = (sub.client.logged_on_user or {}).get("emailAddress")
        await sub.client.logout()
        logger.info("Logged out user %s", email)

    async def subscribe(self, user_id: str) -> None:
        sub = self._get(user_id)
        try:
            sub.webhook_id = await sub.client.add_webhook(self.webhook_url(user_id), [FORM_SUBMISSION_EVENT])
        except CircuitError:
            logger.error("Could not subscribe user %s, dropping the session", user_id)
            await self.logout(user_id)
            raise
        sub.consumer = asyncio.create_task(self._consume(user_id, sub))

    async def unsubscribe(self, user_id: str) -> None:
        sub = self._subscriptions.get(user_id)
        if sub is None:
            return
        if sub.consumer is not None:
            sub.consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sub.consumer
            sub.consumer = None
        if sub.webhook_id is not None:
            try:
                await sub.client.delete_webhook(sub.webhook_id)
            except CircuitError as e:
                logger.warning("Could not remove webhook %s of user %s: %s", sub.webhook_id, user_id, e)
            sub.webhook_id = None

    async def update_client_subscription(self, user_id: str) -> None:
        """Re-create the session after the user obtained a new token."""
        await self.unsubscribe(user_id)
        await self.logout(user_id)
        await self.logon(user_id)
        await self.subscribe(user_id)

    async def shutdown(self) -> None:
        for user_id in list(self._subscriptions):
            await self.unsubscribe(user_id)
            await self.logout(user_id)

    async def is_authenticated(self, user_id: str) -> bool:
        sub = self._subscriptions.get(user_id)
        if sub is None:
            return False
        return await sub.client.is_authenticated()

    def client_for(self, user_id: str) -> CircuitClient:
        return self._get(user_id).client

    def _get(self, user_id: str) -> Subscription:
        sub = self._subscriptions.get(user_id)
        if sub is None:
            raise NotAuthenticatedError(user_id)
        return sub

    # ---------- Surveys ----------

    async def post_survey(self, user_id: str, data: SurveyIn) -> Survey:
        return await self.registry.create_survey(
            self.client_for(user_id),
            user_id,
            data.conv_id,
            data.question,
            data.answers(),
        )

    # ---------- Inbound events ----------

    def dispatch(self, user_id: str, event: FormSubmissionEvent) -> bool:
        """Queue a form submission for the user's consumer. Returns False if nobody is subscribed."""
        sub = self._subscriptions.get(user_id)
        if sub is None or sub.consumer is None:
            logger.warning("Dropping form submission for user %s without a subscription", user_id)
            return False
        sub.queue.put_nowait(event)
        return True

    async def drain(self, user_id: str) -> None:
        """Wait until every queued event of the user has been processed."""
        sub = self._subscriptions.get(user_id)
        if sub is not None:
            await sub.queue.join()

    async def _consume(self, user_id: str, sub: Subscription) -> None:
        while True:
            event = await sub.queue.get()
            try:
                logger.info("Form submission for user %s: %s", user_id, event.form.id)
                await self.registry.handle_form_submission(sub.client, user_id, event)
            except Exception:
                logger.exception("Failed to process form submission %s", event.form.id)
            finally:
                sub.queue.task_done()
