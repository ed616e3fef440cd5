"""Configuration management for the Creative Funnel Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # Anthropic configuration (optional: no key means no suggestions)
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")

    # Environment
    FUNNEL_ENV: str = Field(default="dev", description="Environment: dev, staging, prod, test")

    # Suggestion generation
    SUGGESTIONS_MODEL: str = Field(
        default="claude-sonnet-4-5-20250929", description="Model for funnel suggestions"
    )
    SUGGESTIONS_MAX_TOKENS: int = Field(
        default=1024, description="Max output tokens per suggestion request"
    )
    SUGGESTIONS_TEMPERATURE: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Sampling temperature for suggestions"
    )

    # Remote store
    REMOTE_TIMEOUT_SECONDS: float = Field(
        default=15.0, gt=0, description="Timeout for a single remote store call"
    )

    # Brief export
    BRIEF_AUTHOR: str = Field(default="flnt", description="Author stamped on exported briefs")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
