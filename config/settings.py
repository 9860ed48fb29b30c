"""Application settings using Pydantic."""
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///job_enricher.db",
        description="SQLAlchemy database URL",
    )

    # Enrichment
    enrichment_version: str = Field(
        default="4.0",
        description="Schema version stamped on every enriched job",
    )
    min_description_length: int = Field(
        default=200,
        ge=0,
        description="Minimum description length (characters) for full quality credit",
    )
    quality_weights: Optional[dict[str, int]] = Field(
        default=None,
        description="Override for quality rubric weights (must sum to 100)",
    )
    enrichment_workers: int = Field(
        default=1,
        ge=1,
        le=16,
        description="Number of jobs enriched concurrently",
    )
    progress_every: int = Field(
        default=100,
        ge=1,
        description="Log progress every N jobs",
    )

    # Scheduler
    enrichment_interval_minutes: int = Field(
        default=60,
        description="How often to re-enrich recent jobs (minutes)",
    )
    enrichment_days_back: int = Field(
        default=30,
        description="Scheduled runs only touch jobs posted in the last N days",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for rotating log file",
    )

    # Paths
    config_dir: Path = Field(
        default=Path(__file__).parent,
        description="Configuration directory",
    )
    taxonomy_file: Optional[Path] = Field(
        default=None,
        description="Override path for the role/language taxonomy YAML",
    )

    @property
    def taxonomy_path(self) -> Path:
        """Path to the taxonomy.yaml file."""
        return self.taxonomy_file or self.config_dir / "taxonomy.yaml"

    @property
    def project_root(self) -> Path:
        """Project root directory."""
        return self.config_dir.parent


# Global settings instance
settings = Settings()
