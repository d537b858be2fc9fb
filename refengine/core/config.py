"""Configuration management for the Rules Reference Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    # Environment variables should be set directly
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    REF_ENGINE_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Entity API (the catalog service that owns rules, abilities, feats and spells)
    ENTITY_API_BASE_URL: str = Field(
        default="http://localhost:3000", description="Base URL of the entity catalog API"
    )
    ENTITY_API_TIMEOUT: float = Field(default=10.0, description="Entity API request timeout in seconds")

    # Reference search
    SEARCH_DEFAULT_LIMIT: int = Field(default=10, description="Default number of ranked candidates")
    SEARCH_PROVIDER_LIMIT: int = Field(
        default=10, description="Items requested from each collection per search"
    )
    SEARCH_MIN_SCORE: float = Field(
        default=45.0, description="Fuzzy score (0-100) below which a candidate is dropped"
    )
    SEARCH_SECONDARY_WEIGHT: float = Field(
        default=0.6, description="Weight applied to description matches vs label matches"
    )
    SEARCH_DEBOUNCE_SECONDS: float = Field(
        default=0.3, description="Quiet period after the last keystroke before searching"
    )

    # Reference preview
    PREVIEW_OPEN_DELAY_SECONDS: float = Field(
        default=0.4, description="Hover/focus delay before a preview opens and fetches"
    )
    PREVIEW_CLOSE_DELAY_SECONDS: float = Field(
        default=0.3, description="Delay before a preview closes after the pointer leaves"
    )

    # Codec
    MAX_LABEL_DEPTH: int = Field(
        default=5, description="Max nesting depth when decoding references inside labels"
    )

    # Mention audit
    AUDIT_COLLECTION_LIMIT: int = Field(
        default=1000, description="Max items fetched per collection by the mention audit"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If environment variables hold invalid values
    """
    return Settings()
