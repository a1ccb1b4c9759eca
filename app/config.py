"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Attributes:
        app_name: Name of the application.
        debug: Enable debug mode.
        database_url: Database connection URL.
        import_sample_size: Non-empty values sampled per column for type detection.
        import_suggestion_threshold: Minimum detector confidence for a suggestion
            to be applied without operator confirmation.
        match_high_threshold: Name similarity for a "high" confidence match.
        match_low_threshold: Name similarity for a "low" confidence match.
        match_tie_margin: Candidates scoring within this margin of the best
            candidate make a name match ambiguous.
        preview_sample_limit: Maximum row outcomes returned by a preview.
        preview_ttl_minutes: How long a preview stays available for commit.
        max_upload_rows: Largest number of data rows accepted per upload.
        max_hours_per_row: Largest hours value accepted for a single row.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "smartImport"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # Database
    database_url: str = "sqlite:///./smart_import.db"

    # CORS (for the wizard frontend)
    cors_origins: list[str] = ["http://localhost:5000", "http://127.0.0.1:5000"]

    # Column detection
    import_sample_size: int = 5
    import_suggestion_threshold: float = 0.8

    # Employee matching
    match_high_threshold: float = 0.90
    match_low_threshold: float = 0.80
    match_tie_margin: float = 0.05

    # Preview
    preview_sample_limit: int = 100
    preview_ttl_minutes: int = 60
    max_upload_rows: int = 50_000
    max_hours_per_row: float = 168


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Application settings.
    """
    return Settings()
