"""Application configuration with environment support.

Configuration hierarchy:
    1. CLI flags (highest priority, applied by the CLI layer)
    2. Environment variables
    3. .env file
    4. Built-in defaults
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BackendKind(str, Enum):
    """Execution engine selected for a run."""

    POLARS = "polars"
    DATAFUSION = "datafusion"


class QueryConfig(BaseSettings):
    """Defaults for reading and streaming query results."""

    backend: BackendKind = Field(default=BackendKind.POLARS, description="Execution engine")
    chunk_by: int = Field(default=1000, ge=1, description="Maximum rows per streamed batch")
    allow_missing_columns: bool = Field(
        default=True,
        description="Tolerate columns missing from some files of a multi-file Parquet scan",
    )

    model_config = SettingsConfigDict(env_prefix="STRATA_QUERY_", extra="ignore")


class SinkConfig(BaseSettings):
    """Defaults for the concat writer."""

    parquet_compression: str = Field(default="snappy", description="Parquet compression codec")
    parquet_statistics: bool = Field(
        default=False, description="Embed column statistics in written Parquet files"
    )
    keep_partition_keys: bool = Field(
        default=True, description="Write partition key columns inside partition files"
    )

    model_config = SettingsConfigDict(env_prefix="STRATA_SINK_", extra="ignore")


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="WARNING", description="Log level")
    format: str = Field(default="console", description="Log format (json or console)")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"Log level must be one of {valid}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v.lower() not in {"json", "console"}:
            raise ValueError("Log format must be 'json' or 'console'")
        return v.lower()

    model_config = SettingsConfigDict(env_prefix="STRATA_LOG_", extra="ignore")


class ObjectStoreConfig(BaseSettings):
    """Credentials for URI sources (s3://, gs://) on the DataFusion engine."""

    aws_region: str | None = Field(
        default=None, validation_alias=AliasChoices("AWS_REGION", "AWS_DEFAULT_REGION")
    )
    aws_access_key_id: str | None = Field(
        default=None, validation_alias=AliasChoices("AWS_ACCESS_KEY_ID")
    )
    aws_secret_access_key: str | None = Field(
        default=None, validation_alias=AliasChoices("AWS_SECRET_ACCESS_KEY")
    )
    aws_endpoint: str | None = Field(
        default=None, validation_alias=AliasChoices("AWS_ENDPOINT_URL", "AWS_ENDPOINT")
    )
    gcp_service_account_path: Path | None = Field(
        default=None, validation_alias=AliasChoices("GOOGLE_APPLICATION_CREDENTIALS")
    )

    model_config = SettingsConfigDict(extra="ignore")


class AppConfig(BaseSettings):
    """Master configuration for Strata.

    Sub-configurations:
        config.query.backend
        config.sink.parquet_statistics
        config.logging.level
        config.object_store.aws_region
    """

    query: QueryConfig = Field(default_factory=QueryConfig)
    sink: SinkConfig = Field(default_factory=SinkConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    object_store: ObjectStoreConfig = Field(default_factory=ObjectStoreConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


config = AppConfig()


def get_config() -> AppConfig:
    """Get the global application configuration."""
    return config


def reload_config() -> AppConfig:
    """Reload configuration from environment.

    Useful for testing or dynamic configuration changes.
    """
    global config
    config = AppConfig()
    return config
