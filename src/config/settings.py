"""Lineage engine settings loaded from environment variables."""

from enum import StrEnum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    """Deployment environment."""

    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"


class LogLevel(StrEnum):
    """Supported log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """Settings loaded from environment variables / .env file.

    Data locations and the status-change heuristic live here so that a
    deployment can point at another dataset without code changes.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Data location ---
    DATA_BASE_URL: str = Field(
        default="",
        description="HTTP base URL serving the CSV collections. Wins over DATA_DIR when set.",
    )
    DATA_DIR: str = Field(
        default="./data",
        description="Local directory holding the CSV collections.",
    )
    FETCH_TIMEOUT_S: float = Field(
        default=30.0,
        description="Per-request timeout for HTTP fetches.",
    )

    # --- Collection file names ---
    PREFECTURES_FILE: str = "prefectures.csv"
    SUBPREFECTURES_FILE: str = "subprefectures.csv"
    COUNTIES_FILE: str = "counties.csv"
    CITIES_FILE: str = "cities.csv"
    MUNICIPALITIES_FILE: str = "municipalities.csv"
    MUNICIPALITY_VERSIONS_FILE: str = "municipality_versions.csv"
    CHANGE_EVENTS_FILE: str = "change_events.csv"

    # --- Status-change heuristic ---
    STATUS_CHANGE_HEURISTIC_ENABLED: bool = Field(
        default=True,
        description="Infer town->city / village->town transitions from names.",
    )
    STATUS_CHANGE_PLACEHOLDER_DATE: str = Field(
        default="2000-01-01",
        description="Date given to inferred status changes with no usable version boundary.",
    )

    # --- Logging ---
    LOG_LEVEL: LogLevel = Field(
        default=LogLevel.INFO,
        description="Application log level.",
    )

    # --- Environment ---
    ENVIRONMENT: Environment = Field(
        default=Environment.DEV,
        description="Deployment environment (dev/staging/prod).",
    )


def get_settings() -> Settings:
    """Factory function for dependency injection."""
    return Settings()
