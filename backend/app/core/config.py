"""Application configuration.

Environment variables override all defaults. Missing credentials never crash
startup: the subsystem that needs them stays disabled and says so in the log.
"""

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)

logger = logging.getLogger(__name__)

MiB = 1024 * 1024


def _split_csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Settings:
    # Database Configuration
    DATABASE_URL_CONFIGURED: bool = bool(os.getenv("DATABASE_URL"))
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./studyshelf.db")

    # Telegram Bot (Must be set via .env, never in code)
    TELEGRAM_BOT_TOKEN: str = os.getenv("TELEGRAM_BOT_TOKEN", "")
    # Non-empty switches the bot from long polling to webhook delivery
    WEBHOOK_URL: str = os.getenv("WEBHOOK_URL", "")

    # Groq API Key (Must be set via .env, never in code)
    GROQ_API_KEY: str = os.getenv("GROQ_API_KEY", "")
    GROQ_MODEL: str = os.getenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    GROQ_TIMEOUT_SECONDS: float = float(os.getenv("GROQ_TIMEOUT_SECONDS", "20"))

    # HTTP server
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = _split_csv(
        os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    )

    # File limits
    MAX_TRANSFER_BYTES: int = int(os.getenv("MAX_TRANSFER_BYTES", str(50 * MiB)))  # Telegram bot API ceiling
    MAX_UPLOAD_BYTES: int = int(os.getenv("MAX_UPLOAD_BYTES", str(15 * MiB)))
    CONTENT_CHUNK_SIZE: int = int(os.getenv("CONTENT_CHUNK_SIZE", str(255 * 1024)))

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    def warn_missing(self) -> None:
        """Log one warning per subsystem that is inert because of missing config."""
        if not self.TELEGRAM_BOT_TOKEN:
            logger.warning("TELEGRAM_BOT_TOKEN is not set. The Telegram bot is disabled.")
        if not self.GROQ_API_KEY:
            logger.warning("GROQ_API_KEY is not set. Replies fall back to templates.")
        if not self.DATABASE_URL_CONFIGURED:
            logger.warning(f"DATABASE_URL is not set. Using local default {self.DATABASE_URL}")


settings = Settings()
