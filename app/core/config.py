"""Configuration management for the Cognitive Structure Engine."""

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
    """Application settings loaded from environment variables.

    Nothing here is required: without a vector index or embedding key the
    engine runs on rule-based matching alone.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    ENGINE_ENV: str = Field(default="dev", description="Environment: dev, test, prod")
    PORT: int = Field(default=8000, description="HTTP port when run directly")
    LOG_LEVEL: str | None = Field(default=None, description="Overrides the env-based log level")

    # Vector index (Qdrant)
    VECTOR_URL: str | None = Field(default=None, description="Qdrant base URL")
    VECTOR_API_KEY: str | None = Field(default=None, description="Qdrant API key")
    PATTERN_COLLECTION: str = Field(default="patterns", description="Collection holding pattern vectors")
    TENANT_COLLECTION: str = Field(default="tenants", description="Collection holding tenant domain vectors")
    VECTOR_TIMEOUT_SECONDS: float = Field(default=10.0, description="Vector index request timeout")

    # Embedding provider
    OPENAI_API_KEY: str | None = Field(default=None, description="OpenAI API key")
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")

    # Pattern matching
    PATTERN_MATCH_THRESHOLD: float = Field(
        default=0.2, description="Minimum rule-based score for a pattern to match"
    )
    VECTOR_MIN_SCORE: float = Field(
        default=0.3, description="Minimum similarity for a vector match"
    )
    FUSION_ALPHA: float = Field(
        default=0.7, description="Weight of the query vector when fusing with the tenant vector"
    )
    AFFINITY_DELTA: float = Field(
        default=0.1, description="Affinity step applied per accepted/rejected outcome"
    )
    AFFINITY_RERANK_WEIGHT: float = Field(
        default=0.1, description="Weight of tenant/pattern affinity when reranking vector hits"
    )
    DEFAULT_DECAY_RATE: float = Field(
        default=0.01, description="Confidence lost per day since last grounding"
    )

    # Pipeline
    MAX_AUTO_FIX_ATTEMPTS: int = Field(default=3, description="Auto-fix rounds per pipeline run")
    LOAD_SEED_PATTERNS: bool = Field(default=True, description="Load the built-in HSE patterns")

    @property
    def vector_search_configured(self) -> bool:
        return bool(self.VECTOR_URL and self.OPENAI_API_KEY)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If an environment variable has an invalid value
    """
    return Settings()
