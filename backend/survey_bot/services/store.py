# survey_bot/services/store.py
"""
Per-user settings kept in one JSON document:

    { "<userId>": { "settings": [<survey>, ...], "token": {...} } }

The document is loaded once by init() and rewritten in full on every save.
"""
import asyncio
import copy
import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from survey_bot import config
from survey_bot.models import Survey
from survey_bot.services.storage import StorageBackend, get_storage

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"
TOKEN_KEY = "token"


class SettingsStore:

    def __init__(self, storage: Optional[StorageBackend] = None, data_file: str = config.DATA_FILE):
        self.storage = storage or get_storage()
        self.data_file = data_file
        self._data: Dict[str, Dict[str, Any]] = {}
        # one writer at a time: every save rewrites the whole document
        self._write_lock = asyncio.Lock()

    def init(self) -> None:
        if not self.storage.exists(self.data_file):
            self.storage.write_json(self.data_file, {})
        try:
            data = self.storage.read_json(self.data_file)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Ignoring unreadable data file %s: %s", self.data_file, e)
            data = {}
        if not isinstance(data, dict):
            logger.warning("Ignoring malformed data file %s", self.data_file)
            data = {}
        self._data = data
        logger.info("Loaded %d user(s) from %s", len(self._data), self.data_file)

    # ---------- Generic key/value ----------

    def get_users(self) -> List[str]:
        return list(self._data.keys())

    def get(self, user_id: str, key: str) -> Any:
        entry = self._data.get(user_id)
        if not entry:
            return None
        return copy.deepcopy(entry.get(key))

    async def set(self, user_id: str, key: str, value: Any) -> None:
        self._data.setdefault(user_id, {})[key] = copy.deepcopy(value)
        async with self._write_lock:
            snapshot = copy.deepcopy(self._data)
            await asyncio.to_thread(self.storage.write_json, self.data_file, snapshot)

    # ---------- Surveys ----------

    def get_settings(self, user_id: str) -> List[Survey]:
        """Return the user's surveys; absent or unreadable data is an empty list."""
        raw = self.get(user_id, SETTINGS_KEY)
        if not isinstance(raw, list):
            return []
        try:
            return [Survey.model_validate(s) for s in raw]
        except ValidationError as e:
            logger.warning("Discarding malformed surveys of user %s: %s", user_id, e)
            return []

    async def save_settings(self, user_id: str, surveys: List[Survey]) -> None:
        await self.set(user_id, SETTINGS_KEY, [s.model_dump() for s in surveys])

    # ---------- OAuth token ----------

    def get_token(self, user_id: str) -> Optional[Dict[str, Any]]:
        return self.get(user_id, TOKEN_KEY)

    async def save_token(self, user_id: str, token: Dict[str, Any]) -> None:
        await self.set(user_id, TOKEN_KEY, token)
