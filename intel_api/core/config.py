"""Configuration management for the Intelligence Platform API."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from intel_api.core.errors import ConfigurationError

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

    # Application
    APP_NAME: str = Field(default="Pravado API", description="Application name")
    APP_VERSION: str = Field(default="0.1.0", description="Semantic version string")
    APP_ENV: str = Field(default="dev", description="Environment: dev, staging, prod, test")

    # HTTP surface
    CORS_ORIGIN: str = Field(
        default="http://localhost:3000", description="Comma separated list of allowed origins"
    )
    SESSION_COOKIE_NAME: str = Field(
        default="sb-access-token", description="Cookie carrying the Supabase access token"
    )
    ADMIN_API_KEY: str | None = Field(default=None, description="Admin API key for internal tools")

    # LLM provider selection
    LLM_PROVIDER: str = Field(default="openai", description="LLM provider: openai, anthropic, stub")
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    ANTHROPIC_API_KEY: str | None = Field(default=None, description="Anthropic API key")
    EXEC_NARRATIVE_MODEL: str = Field(
        default="gpt-4o-mini", description="OpenAI model for executive narratives"
    )
    ANTHROPIC_NARRATIVE_MODEL: str = Field(
        default="claude-3-5-haiku-20241022", description="Anthropic model for executive narratives"
    )
    LLM_TIMEOUT_SECONDS: float = Field(default=30.0, description="Timeout for a single LLM call")
    LLM_MAX_TOKENS: int = Field(default=800, description="Max completion tokens for narratives")

    # Executive command center
    EXEC_MAX_INSIGHTS_PER_DASHBOARD: int = Field(
        default=100, description="Max insights stored per refresh"
    )
    EXEC_MAX_KPIS_PER_DASHBOARD: int = Field(default=30, description="Max KPIs stored per refresh")
    EXEC_DEFAULT_TIME_WINDOW: str = Field(default="7d", description="Default dashboard time window")
    EXEC_DEFAULT_PRIMARY_FOCUS: str = Field(
        default="mixed", description="Default dashboard primary focus"
    )

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ConfigurationError: If required environment variables are missing
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ConfigurationError(
            f"Missing or invalid environment variables: {', '.join(missing)}"
        ) from e
