"""Application configuration managed via environment variables."""
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_API_KEY = "your-api-key-here"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Todo Planner Backend"
    log_level: str = "INFO"
    database_path: str = "todos.db"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    anthropic_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-5"
    llm_fallback_models: list[str] = ["claude-haiku-4-5"]
    llm_timeout_seconds: float = 20.0
    llm_max_tokens: int = 2048
    llm_temperature: float = 0.3

    # IANA zone name; None means the zone of the server process
    timezone: Optional[str] = None

    @property
    def has_api_key(self) -> bool:
        key = (self.anthropic_api_key or "").strip()
        return bool(key) and key != PLACEHOLDER_API_KEY


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
