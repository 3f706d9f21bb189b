"""Centralized configuration for the CalQ backend.

Typed constants for storage, OAuth, the HTTP bridge, digests and SMTP.
Environment variable overrides use safe defaults so the app starts without
extra env configuration. User-editable settings (SMTP account, reminder
times, calendar selection) are not here: they live in the encrypted settings
store, see calq.storage.app_settings.
"""

from __future__ import annotations

import os
from pathlib import Path

# --- App ---
APP_NAME: str = "CalQ"
APP_VERSION: str = "1.0.0"

# --- Storage ---
DATA_DIR: Path = Path(os.getenv("CALQ_DATA_DIR", "~/.calq")).expanduser()
DB_PATH: Path = Path(os.getenv("CALQ_DB_PATH", str(DATA_DIR / "calq.db"))).expanduser()
KEY_PATH: Path = DATA_DIR / "secret.key"
LOG_PATH: Path = DATA_DIR / "calq.log"
DB_CONNECT_TIMEOUT: float = float(os.getenv("CALQ_DB_CONNECT_TIMEOUT", "30.0"))
DB_RETRY_MAX: int = int(os.getenv("CALQ_DB_RETRY_MAX", "5"))
DB_RETRY_BASE_DELAY: float = 0.1
DB_RETRY_MAX_DELAY: float = 2.0
DB_RETRY_JITTER: float = 0.1

# --- OAuth ---
OAUTH_REDIRECT_HOST: str = "localhost"
OAUTH_REDIRECT_PORT: int = int(os.getenv("CALQ_OAUTH_PORT", "8085"))
OAUTH_REDIRECT_URI: str = f"http://{OAUTH_REDIRECT_HOST}:{OAUTH_REDIRECT_PORT}/"
OAUTH_AUTH_URI: str = "https://accounts.google.com/o/oauth2/auth"
OAUTH_TOKEN_URI: str = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES: list[str] = ["https://www.googleapis.com/auth/calendar.readonly"]
TOKEN_EXPIRY_BUFFER_SECONDS: int = 300

# --- Calendar ---
CALENDAR_API_VERSION: str = "v3"
DEFAULT_CALENDAR_COLOR: str = "#007AFF"
AGENDA_MONTHS_AHEAD: int = 6
EVENTS_PAGE_SIZE: int = 250

# --- HTTP bridge ---
API_HOST: str = os.getenv("CALQ_API_HOST", "127.0.0.1")
API_PORT: int = int(os.getenv("CALQ_API_PORT", "8765"))

# --- Digest / SMTP ---
DEFAULT_SMTP_HOST: str = "smtp.gmail.com"
DEFAULT_SMTP_PORT: int = 587
SMTP_SSL_PORT: int = 465
SMTP_TIMEOUT_SECONDS: float = float(os.getenv("CALQ_SMTP_TIMEOUT", "30"))
DEFAULT_MORNING_TIME: str = "07:00"
DEFAULT_EVENING_TIME: str = "19:00"
DIGEST_FROM_NAME: str = os.getenv("CALQ_DIGEST_FROM_NAME", APP_NAME)
DIGEST_MISFIRE_GRACE_SECONDS: int = 15 * 60
