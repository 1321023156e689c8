# backend/chat_relay/core/config.py
from __future__ import annotations

import logging
from functools import lru_cache
from typing import List, Optional

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict

# Strukturiertes Logging (JSON)
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

GROQ_CHAT_COMPLETIONS_URL = "https://api.groq.com/openai/v1/chat/completions"


class Settings(BaseSettings):
    # Datenbank / SQLAlchemy
    database_url: str
    debug_sql: bool = False
    db_auto_create: bool = False
    db_timeout_s: float = 10.0

    # HTTP / Socket
    host: str = "0.0.0.0"
    port: int = 4000
    frontend_origin: str = "*"

    # Groq (OpenAI-kompatibel)
    groq_api_key: Optional[str] = None
    groq_api_url: str = GROQ_CHAT_COMPLETIONS_URL
    groq_model: str = "llama-3.1-8b-instant"
    ai_system_prompt: str = "You are a helpful assistant."
    ai_max_tokens: int = 300
    ai_temperature: float = 0.2
    ai_timeout_s: float = 30.0
    ai_mock_mode: bool = False

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @property
    def allowed_origins(self) -> List[str]:
        raw = (self.frontend_origin or "*").strip()
        if raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]

    @property
    def ai_mock(self) -> bool:
        """Mock replies when forced or when no Groq key is configured."""
        return self.ai_mock_mode or not (self.groq_api_key or "").strip()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO))
