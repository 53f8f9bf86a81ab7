"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.
"""

from typing import List, Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Claude API (required to run any generation phase)
    ANTHROPIC_API_KEY: Optional[str] = None
    CLAUDE_MODEL: str = "claude-sonnet-4-20250514"
    GENERATION_MAX_TOKENS: int = 8000
    GENERATION_TEMPERATURE: float = 0.2

    # Retry policy for every generation call
    GENERATION_MAX_RETRIES: int = 4
    GENERATION_INITIAL_DELAY: float = 1.0  # seconds

    # DataForSEO (optional - keyword enrichment is skipped without it)
    DATAFORSEO_LOGIN: Optional[str] = None
    DATAFORSEO_PASSWORD: Optional[str] = None
    DATAFORSEO_LOCATION_CODE: int = 2840
    DATAFORSEO_LANGUAGE_NAME: str = "English"

    # Content collection
    COLLECTOR_TIMEOUT: int = 30
    COLLECTOR_MAX_PAGES: int = 1000

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated browser origins allowed to call the API
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def has_dataforseo_credentials(self) -> bool:
        return bool(self.DATAFORSEO_LOGIN and self.DATAFORSEO_PASSWORD)


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()
