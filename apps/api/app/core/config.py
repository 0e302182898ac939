"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.03.00"

    # Panchayat shown in health output
    PANCHAYAT_NAME: str = "Gram Panchayat Kon"

    # Database
    DATABASE_URL: str = "sqlite:///./panchayat.db"

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 12

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Object storage (S3-compatible)
    S3_ENDPOINT_URL: str = ""
    S3_REGION: str = ""
    S3_URL_STYLE: str = ""  # "path" or "virtual"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    STORAGE_PUBLIC_BASE_URL: str = ""  # e.g. https://cdn.example.org/storage
    DOCUMENTS_BUCKET: str = "documents"
    MAX_UPLOAD_SIZE_BYTES: int = 10 * 1024 * 1024

    # Document workflow
    # When True, transitions are written as UPDATE ... WHERE status = <expected>
    # and a concurrent transition by another staff member is reported as a conflict.
    WORKFLOW_CONDITIONAL_UPDATES: bool = True

    # Serve /staff/performance from a live snapshot refreshed by the change feed
    STAFF_PERFORMANCE_SNAPSHOT: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Rate Limiting (requests per minute)
    RATE_LIMIT_API: int = 60

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets


settings = Settings()
