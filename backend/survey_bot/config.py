# survey_bot/config.py
"""
Runtime configuration.
Values come from an optional config.json, overridden by environment variables
(a local .env file is loaded first for development).
"""
import json
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

CONFIG_FILE = Path(os.getenv("CONFIG_FILE", "config.json"))


def _load_config_file(path: Path) -> dict:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


_file_config = _load_config_file(CONFIG_FILE)
_circuit = _file_config.get("circuit", {})
_app = _file_config.get("app", {})

# Circuit OAuth app
CLIENT_ID = os.getenv("CLIENT_ID", _circuit.get("client_id", ""))
CLIENT_SECRET = os.getenv("CLIENT_SECRET", _circuit.get("client_secret", ""))
DOMAIN = os.getenv("DOMAIN", _circuit.get("domain", "circuitsandbox.net"))
SCOPE = os.getenv(
    "SCOPE",
    _circuit.get("scope", "READ_USER_PROFILE,READ_CONVERSATIONS,WRITE_CONVERSATIONS,READ_USER"),
)

# This app
APP_DOMAIN = os.getenv("APP_DOMAIN", _app.get("domain", "http://localhost:3000")).rstrip("/")
PORT = int(os.getenv("PORT", "3000"))
SESSION_SECRET = os.getenv("SESSION_SECRET", "secret-survey")
REDIRECT_URI = f"{APP_DOMAIN}/oauthCallback"

# Persistence
DATA_FILE = os.getenv("DATA_FILE", "db/data.json")
STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "local")  # 'local' or 's3'
S3_BUCKET = os.getenv("S3_BUCKET", "circuit-survey-data")
AWS_REGION = os.getenv("AWS_REGION", "eu-central-1")

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "30"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
