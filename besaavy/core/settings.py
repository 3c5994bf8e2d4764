"""App settings: loaded from environment variables with defaults."""

import os
from typing import List
from dotenv import load_dotenv
from besaavy.core.constants import (
    LEARNING_SMOOTHING as _DEFAULT_LEARNING_SMOOTHING,
    BATCH_THROTTLE_ANCHOR as _DEFAULT_THROTTLE_ANCHOR,
)

load_dotenv()


class Settings:
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    DATABASE_URL: str = os.getenv("DB_CONNECTION_STRING", "sqlite+aiosqlite:///./besaavy.db")

    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]
    CORS_EXTRA_ORIGINS: str = os.getenv("CORS_EXTRA_ORIGINS", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Wall-clock zone the deferred runner fires held notifications in
    NOTIFICATION_TIMEZONE: str = os.getenv("NOTIFICATION_TIMEZONE", "America/New_York")

    # Defaults from constants.py; overridable via env
    LEARNING_SMOOTHING: float = float(
        os.getenv("LEARNING_SMOOTHING", str(_DEFAULT_LEARNING_SMOOTHING))
    )
    BATCH_THROTTLE_ANCHOR: str = os.getenv("BATCH_THROTTLE_ANCHOR", _DEFAULT_THROTTLE_ANCHOR)

    # Generate keys with: npx web-push generate-vapid-keys
    VAPID_PUBLIC_KEY: str = os.getenv("VAPID_PUBLIC_KEY", "")
    VAPID_PRIVATE_KEY: str = os.getenv("VAPID_PRIVATE_KEY", "")
    VAPID_EMAIL: str = os.getenv("VAPID_EMAIL", "alerts@besaavy.app")


settings = Settings()
