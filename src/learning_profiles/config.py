"""Configuration management for learning profiles."""

from typing import Optional

from pydantic import AliasChoices, Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", env_file=".env", extra="ignore")

    url: Optional[str] = None
    pool_min_size: int = 1
    pool_max_size: int = 10

    @validator("url")
    def validate_url(cls, v):
        """Validate database URL format."""
        if v is None:
            return v
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError("DATABASE_URL must be a valid PostgreSQL connection string")
        if "[PASSWORD]" in v:
            raise ValueError("DATABASE_URL contains placeholder password - please set actual password")
        return v


class LLMConfig(BaseSettings):
    """LLM API configuration settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    gemini_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    github_token: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    github_model: str = "gpt-4o-mini"
    use_llm_analysis: bool = False
    max_concurrent_requests: int = 5
    request_timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0


class ScoringConfig(BaseSettings):
    """Heuristic scoring constants."""

    model_config = SettingsConfigDict(env_prefix="SCORING_", env_file=".env", extra="ignore")

    base_score: float = Field(75.0, ge=0, le=100)
    min_score: float = 60.0
    max_score: float = 100.0
    modality_bonus: float = 10.0
    superior_learner_threshold: float = 85.0

    @validator("max_score")
    def validate_bounds(cls, v, values):
        """Ensure the clamp interval is not empty."""
        if v < values.get("min_score", 0):
            raise ValueError("max_score must be greater than or equal to min_score")
        return v


class AppConfig(BaseSettings):
    """Application configuration settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    name: str = Field("learning-profiles", validation_alias=AliasChoices("APP_NAME", "name"))
    version: str = Field("0.1.0", validation_alias=AliasChoices("APP_VERSION", "version"))
    log_level: str = "INFO"
    debug: bool = False
    testing: bool = False


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    app: AppConfig = Field(default_factory=AppConfig)

    @classmethod
    def load(cls) -> "Settings":
        """Load settings from environment."""
        return cls()


# Global settings instance
settings = Settings.load()
