"""Application configuration via Pydantic Settings.

All configuration is loaded from environment variables following 12-factor principles.
The settings object is built once at startup and passed explicitly to the app,
worker pool, storage, and data source.
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str = Field(
        description="Async SQLAlchemy connection string (e.g. postgresql+asyncpg://...)",
    )

    # JWT
    jwt_secret_key: str = Field(min_length=32, description="Secret key for verifying JWTs (minimum 32 characters)")
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_access_token_expire_minutes: int = Field(
        default=30,
        description="Access token expiration in minutes",
        gt=0,
    )

    # Report generation
    report_worker_pool_size: int = Field(
        default=4,
        description="Maximum number of reports generated concurrently",
        gt=0,
    )
    report_generation_timeout: float | None = Field(
        default=None,
        description="Optional per-job generation time budget in seconds (unset = unbounded)",
        gt=0,
    )
    report_stale_after_minutes: int = Field(
        default=60,
        description="Minutes after which a GENERATING job is reported as stale by the CLI",
        gt=0,
    )

    # Report storage
    report_storage_backend: Literal["local", "s3"] = Field(
        default="local",
        description="Artifact storage backend",
    )
    report_storage_dir: str = Field(
        default="./reports",
        description="Directory for generated report files (local backend)",
    )
    report_s3_bucket: str | None = Field(
        default=None,
        description="Bucket for generated report files (s3 backend)",
    )
    report_s3_prefix: str = Field(
        default="reports",
        description="Key prefix within the report bucket",
    )
    report_s3_endpoint_url: str | None = Field(
        default=None,
        description="Custom S3 endpoint (R2, MinIO); unset for AWS",
    )
    report_s3_region: str | None = Field(
        default=None,
        description="S3 region name",
    )
    report_s3_access_key_id: str | None = Field(
        default=None,
        description="S3 access key (falls back to the boto3 credential chain)",
    )
    report_s3_secret_access_key: str | None = Field(
        default=None,
        description="S3 secret key (falls back to the boto3 credential chain)",
    )

    # Report data source
    report_data_source_url: str | None = Field(
        default=None,
        description="Base URL of the WasteCollect backend supplying report aggregates",
    )
    report_data_source_token: str | None = Field(
        default=None,
        description="Bearer token for the report data source",
    )
    report_data_source_timeout: float = Field(
        default=30.0,
        description="Report data source request timeout in seconds",
        gt=0,
    )

    @field_validator("report_data_source_url")
    @classmethod
    def validate_data_source_url(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        if not v.startswith(("http://", "https://")):
            msg = "report_data_source_url must be an http(s) URL"
            raise ValueError(msg)
        return v.rstrip("/")

    @model_validator(mode="after")
    def validate_storage_backend(self) -> "Settings":
        if self.report_storage_backend == "s3" and not self.report_s3_bucket:
            msg = "report_s3_bucket is required when report_storage_backend is 's3'"
            raise ValueError(msg)
        return self

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_dir: str | None = Field(
        default=None,
        description="Directory for log files (enables file logging with 24h rotation when set)",
    )

    # CORS
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (must be explicitly configured)",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        """Parse CORS origins string into a list."""
        if not self.cors_origins.strip():
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # API
    api_v1_prefix: str = Field(
        default="/api/v1",
        description="API version prefix",
    )


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()  # type: ignore[call-arg]
