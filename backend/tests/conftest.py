import asyncio
from typing import Any, Dict, List, Optional, Tuple

import pytest

from survey_bot.services.storage import LocalStorage
from survey_bot.services.store import SettingsStore
from survey_bot.services.surveys import SurveyRegistry

OWNER_ID = "owner-1"


class FakeCircuitClient:
    """In-memory stand-in for CircuitClient."""

    def __init__(self, access_token: str = "token", users: Optional[Dict[str, str]] = None):
        self.access_token = access_token
        self.logged_on_user: Optional[Dict[str, Any]] = None
        self.users = users or {}
        self.posted: List[Tuple[str, Dict[str, Any]]] = []
        self.webhooks: Dict[str, Tuple[str, List[str]]] = {}
        self.deleted_webhooks: List[str] = []
        self.fail_post: Optional[Exception] = None
        self.fail_webhook: Optional[Exception] = None
        self.closed = False

    async def logon(self) -> Dict[str, Any]:
        self.logged_on_user = {"userId": OWNER_ID, "emailAddress": "owner@x.com"}
        return self.logged_on_user

    async def is_authenticated(self) -> bool:
        return self.logged_on_user is not None

    async def logout(self) -> None:
        self.logged_on_user = None
        self.closed = True

    async def add_text_item(self, conv_id: str, content: str = "", form=None) -> Dict[str, Any]:
        if self.fail_post:
            raise self.fail_post
        self.posted.append((conv_id, form))
        return {"itemId": f"item-{len(self.posted)}", "convId": conv_id}

    async def get_user_by_id(self, user_id: str) -> Dict[str, Any]:
        await asyncio.sleep(0)
        # respondents resolve to themselves unless mapped
        return {"userId": user_id, "emailAddress": self.users.get(user_id, user_id)}

    async def add_webhook(self, url: str, filters: List[str]) -> str:
        if self.fail_webhook:
            raise self.fail_webhook
        webhook_id = f"wh-{len(self.webhooks) + len(self.deleted_webhooks) + 1}"
        self.webhooks[webhook_id] = (url, filters)
        return webhook_id

    async def delete_webhook(self, webhook_id: str) -> None:
        self.webhooks.pop(webhook_id)
        self.deleted_webhooks.append(webhook_id)


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path))


@pytest.fixture
def store(storage):
    s = SettingsStore(storage, "db/data.json")
    s.init()
    return s


@pytest.fixture
def registry(store):
    return SurveyRegistry(store)


@pytest.fixture
def client():
    return FakeCircuitClient()


class ClientFactory:
    """Builds FakeCircuitClients and remembers them."""

    def __init__(self):
        self.clients: List[FakeCircuitClient] = []

    def __call__(self, access_token: str) -> FakeCircuitClient:
        client = FakeCircuitClient(access_token)
        self.clients.append(client)
        return client


@pytest.fixture
def factory():
    return ClientFactory()
