"""
Mood Analysis Configuration
===========================
All environment variables in one place. Pydantic Settings validates
types at startup so a bad timeout or log level fails on boot rather
than on the first request.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Loaded from environment variables or a .env file."""

    # --- OpenAI (primary classification path) ---
    # Empty key = fallback-only mode. No network call is ever attempted.
    openai_api_key: str = ""
    openai_api_url: str = "https://api.openai.com/v1/chat/completions"
    openai_model: str = "gpt-4o-mini"
    # The response is a single small JSON object
    openai_max_tokens: int = 200
    openai_timeout_seconds: float = 5.0

    # --- App settings ---
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"

    # --- Request limits ---
    max_text_length: int = 500

    # --- Feature flags ---
    # Kill switch: if False, skip the LLM even when a key is configured
    # and answer every request from the keyword rules.
    enable_ai_classification: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def primary_path_enabled(self) -> bool:
        return bool(self.openai_api_key) and self.enable_ai_classification


@lru_cache
def get_settings() -> Settings:
    return Settings()
