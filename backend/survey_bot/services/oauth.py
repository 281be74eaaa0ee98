# survey_bot/services/oauth.py
"""OAuth2 authorization-code flow against the Circuit domain."""
import logging
import secrets
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from survey_bot import config
from survey_bot.errors import CircuitError

logger = logging.getLogger(__name__)


class CircuitOAuth:

    def __init__(self,
                 client_id: str = config.CLIENT_ID,
                 client_secret: str = config.CLIENT_SECRET,
                 domain: str = config.DOMAIN,
                 redirect_uri: str = config.REDIRECT_URI,
                 scope: str = config.SCOPE,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.token_host = f"https://{domain}"
        self.redirect_uri = redirect_uri
        self.scope = scope
        self._transport = transport

    @staticmethod
    def new_state() -> str:
        """Random value bound to the browser session to prevent CSRF on the callback."""
        return secrets.token_urlsafe(12)

    def authorize_url(self, state: str) -> str:
        query = urlencode({
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scope,
            "state": state,
        })
        return f"{self.token_host}/oauth/authorize?{query}"

    async def get_token(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for an access token."""
        async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT, transport=self._transport) as http:
            resp = await http.post(f"{self.token_host}/oauth/token", data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_uri,
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            })
        result = resp.json() if resp.content else {}
        if resp.is_error or result.get("error"):
            raise CircuitError(
                f"Error getting access token: {result.get('error_description') or resp.text}",
                status_code=resp.status_code,
            )
        return result

    async def get_profile(self, access_token: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=config.HTTP_TIMEOUT, transport=self._transport) as http:
            resp = await http.get(
                f"{self.token_host}/rest/v2/users/profile",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        if resp.is_error:
            raise CircuitError(f"Could not read user profile: {resp.text}", status_code=resp.status_code)
        return resp.json()
