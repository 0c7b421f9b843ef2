import os
from functools import lru_cache
from typing import List, Tuple

from dotenv import load_dotenv

load_dotenv(override=False)


def _split_names(raw: str) -> Tuple[str, ...]:
    return tuple(name.strip() for name in raw.split(",") if name.strip())


DEFAULT_THEOLOGIANS: Tuple[str, ...] = (
    "Charles Spurgeon",
    "Martin Luther King Jr.",
    "C.S. Lewis",
    "Sam Shamoun",
)


class Settings:
    """Application configuration settings"""

    # Generative text configuration
    GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-2.0-flash")
    GEMINI_API_BASE: str = os.getenv(
        "GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta/models"
    )
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    CLAUDE_MODEL: str = os.getenv("CLAUDE_MODEL", "claude-3-sonnet-20240229")
    MAX_TOKENS: int = int(os.getenv("MAX_TOKENS", "1024"))
    # gemini | openai | anthropic
    GENERATION_PROVIDER: str = os.getenv("GENERATION_PROVIDER", "gemini").lower()

    # Bible API configuration (bible-api.com)
    BIBLE_API_BASE: str = os.getenv("BIBLE_API_BASE", "https://bible-api.com")
    BIBLE_TRANSLATION: str = os.getenv("BIBLE_TRANSLATION", "kjv")
    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "30"))

    # Storage
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    TESTING_MODE: bool = os.getenv("TESTING_MODE", "false").lower() == "true"

    # Commentators
    ALLOWED_THEOLOGIANS: Tuple[str, ...] = (
        _split_names(os.getenv("ALLOWED_THEOLOGIANS", "")) or DEFAULT_THEOLOGIANS
    )
    # last_by | known_name
    COMMENTATOR_SPLIT_STRATEGY: str = os.getenv("COMMENTATOR_SPLIT_STRATEGY", "last_by")

    # CORS Configuration
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:5173",  # Vite dev server
        "http://localhost:3000",
        "*"  # In production, replace with specific origins
    ]

    # Application Configuration
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def has_gemini_key(self) -> bool:
        return bool(self.GEMINI_API_KEY)

    @property
    def has_openai_key(self) -> bool:
        return bool(self.OPENAI_API_KEY)

    @property
    def has_anthropic_key(self) -> bool:
        return bool(self.ANTHROPIC_API_KEY)


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings"""
    return Settings()
