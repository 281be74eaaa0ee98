# survey_bot/services/circuit.py
"""
Thin async client for the Circuit REST API (v2), authenticated with a user's
OAuth access token.
"""
import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from survey_bot import config
from survey_bot.errors import CircuitError

logger = logging.getLogger(__name__)

FORM_SUBMISSION_EVENT = "USER.SUBMIT_FORM_DATA"


class CircuitClient:

    def __init__(self,
                 access_token: str,
                 domain: str = config.DOMAIN,
                 timeout: float = config.HTTP_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.domain = domain
        self.logged_on_user: Optional[Dict[str, Any]] = None
        self._http = httpx.AsyncClient(
            base_url=f"https://{domain}/rest/v2",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._http.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CircuitError(
                f"{method} {path} failed with {e.response.status_code}: {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise CircuitError(f"{method} {path} failed: {e}") from e
        if not resp.content:
            return None
        return resp.json()

    # ---------- Session ----------

    async def logon(self) -> Dict[str, Any]:
        """Validate the token by reading the user's profile."""
        self.logged_on_user = await self._request("GET", "/users/profile")
        return self.logged_on_user

    async def is_authenticated(self) -> bool:
        try:
            await self._request("GET", "/users/profile")
        except CircuitError as e:
            if e.status_code == 401:
                return False
            raise
        return True

    async def logout(self) -> None:
        await self._http.aclose()
        self.logged_on_user = None

    # ---------- Conversations ----------

    async def add_text_item(self, conv_id: str, content: str = "",
                            form: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"content": content}
        if form is not None:
            body["form"] = form
        return await self._request("POST", f"/conversations/{conv_id}/messages", json=body)

    # ---------- Users ----------

    async def get_user_by_id(self, user_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/users/{user_id}")

    async def get_users_by_id(self, user_ids: Iterable[str]) -> List[Dict[str, Any]]:
        return list(await asyncio.gather(*(self.get_user_by_id(u) for u in user_ids)))

    async def get_emails(self, user_ids: Iterable[str]) -> List[str]:
        users = await self.get_users_by_id(user_ids)
        return [u.get("emailAddress") for u in users]

    # ---------- Webhooks ----------

    async def add_webhook(self, url: str, filters: List[str]) -> str:
        result = await self._request("POST", "/webhooks", json={"url": url, "filter": filters})
        return result["id"]

    async def delete_webhook(self, webhook_id: str) -> None:
        await self._request("DELETE", f"/webhooks/{webhook_id}")
